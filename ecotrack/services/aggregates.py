"""Shared aggregation over activity rows.

Dashboards, admin overviews and the badge award pass all read their numbers
from here so charts and badge progress never disagree.
"""

from __future__ import annotations

from collections import Counter, OrderedDict
from typing import Any, Iterable

from ..models.activity import ACTIVITY_LABELS, ACTIVITY_STATUSES, ACTIVITY_TYPES
from ..utils.time import as_utc
from .progress import UserStats


def _field(row: Any, name: str, default=None):
    if isinstance(row, dict):
        if name == "activity_type":
            return row.get("activity_type", row.get("type", default))
        return row.get(name, default)
    return getattr(row, name, default)


def approved_only(activities: Iterable[Any]) -> list:
    return [a for a in activities if _field(a, "status") == "approved"]


def compute_user_stats(activities: Iterable[Any], streak_days: int = 0) -> UserStats:
    """Aggregate approved activities into the stats badges are measured on."""

    approved = approved_only(activities)
    counts = Counter(_field(a, "activity_type") for a in approved)
    waste = sum(float(_field(a, "waste_kg") or 0) for a in approved)
    return UserStats(
        total_activities=len(approved),
        tree_plantation_count=counts.get("tree_plantation", 0),
        cleanup_count=counts.get("cleanup", 0),
        recycling_count=counts.get("recycling", 0),
        eco_habit_count=counts.get("eco_habit", 0),
        waste_kg=waste,
        streak_days=int(streak_days or 0),
    )


def monthly_counts(activities: Iterable[Any]) -> list[dict]:
    """Approved activities per calendar month (UTC), oldest first."""

    buckets: "OrderedDict[str, dict]" = OrderedDict()
    dated = [
        (as_utc(_field(a, "created_at")), a)
        for a in approved_only(activities)
        if _field(a, "created_at") is not None
    ]
    for created_at, _ in sorted(dated, key=lambda pair: pair[0]):
        key = f"{created_at:%Y-%m}"
        bucket = buckets.get(key)
        if bucket is None:
            bucket = {"month": key, "label": f"{created_at:%b}", "count": 0}
            buckets[key] = bucket
        bucket["count"] += 1
    return list(buckets.values())


def type_breakdown(activities: Iterable[Any]) -> list[dict]:
    counts = Counter(_field(a, "activity_type") for a in approved_only(activities))
    return [
        {"type": activity_type, "name": ACTIVITY_LABELS[activity_type], "value": counts[activity_type]}
        for activity_type in ACTIVITY_TYPES
        if counts.get(activity_type)
    ]


def status_counts(activities: Iterable[Any]) -> dict[str, int]:
    counts = Counter(_field(a, "status") for a in activities)
    return {status: counts.get(status, 0) for status in ACTIVITY_STATUSES}


__all__ = [
    "approved_only",
    "compute_user_stats",
    "monthly_counts",
    "status_counts",
    "type_breakdown",
]
