"""Badge and reward progress calculations.

Everything here is side-effect free so that the badge award pass and the
dashboard views compute identical numbers from identical inputs. Progress is
kept as an unrounded float; rounding belongs to presentation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping


@dataclass(frozen=True)
class UserStats:
    """Aggregate of a user's approved activities plus their current streak."""

    total_activities: int = 0
    tree_plantation_count: int = 0
    cleanup_count: int = 0
    recycling_count: int = 0
    eco_habit_count: int = 0
    waste_kg: float = 0.0
    streak_days: int = 0

    def to_dict(self) -> dict[str, float]:
        return {
            "total_activities": self.total_activities,
            "tree_plantation_count": self.tree_plantation_count,
            "cleanup_count": self.cleanup_count,
            "recycling_count": self.recycling_count,
            "eco_habit_count": self.eco_habit_count,
            "waste_kg": self.waste_kg,
            "streak_days": self.streak_days,
        }


def stat_value(criteria_type: str, stats: UserStats | Mapping[str, Any]) -> float:
    """Return the stat a badge criterion is measured against.

    Unknown criteria resolve to ``0`` so a mistyped catalogue entry stays
    locked instead of breaking the dashboard.
    """
    if isinstance(stats, UserStats):
        values = stats.to_dict()
    else:
        values = stats
    raw = values.get(criteria_type, 0)
    try:
        return float(raw or 0)
    except (TypeError, ValueError):
        return 0.0


def progress_for(criteria_type: str, criteria_value: float, stats) -> float:
    if not criteria_value or criteria_value <= 0:
        return 100.0
    current = stat_value(criteria_type, stats)
    return min(current / criteria_value * 100, 100.0)


def is_unlocked(criteria_type: str, criteria_value: float, stats) -> bool:
    return stat_value(criteria_type, stats) >= criteria_value


def badge_progress(badges: Iterable[Any], stats, unlocked_ids: Iterable[int] = ()) -> list[dict]:
    """Build the per-badge progress list shown on the dashboard.

    A badge already recorded as unlocked stays unlocked at 100 even if the
    underlying stat has since dropped.
    """
    recorded = set(unlocked_ids)
    items = []
    for badge in badges:
        unlocked = badge.id in recorded or is_unlocked(
            badge.criteria_type, badge.criteria_value, stats
        )
        progress = 100.0 if unlocked else progress_for(
            badge.criteria_type, badge.criteria_value, stats
        )
        items.append(
            {
                **badge.to_dict(),
                "unlocked": unlocked,
                "progress": progress,
            }
        )
    return items


def next_reward(rewards: Iterable[Any], points: int):
    """Lowest-threshold reward the user has not reached yet, or ``None``."""
    candidates = [reward for reward in rewards if reward.points_required > points]
    if not candidates:
        return None
    return min(candidates, key=lambda reward: reward.points_required)


def reward_progress(rewards: Iterable[Any], points: int) -> tuple[Any, float]:
    reward = next_reward(rewards, points)
    if reward is None:
        return None, 100.0
    return reward, progress_for("points", reward.points_required, {"points": points})


__all__ = [
    "UserStats",
    "badge_progress",
    "is_unlocked",
    "next_reward",
    "progress_for",
    "reward_progress",
    "stat_value",
]
