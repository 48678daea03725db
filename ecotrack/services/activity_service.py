"""Activity submission and review.

Approval is the place where most coupled side effects live: the status flip,
the points credit, the streak update and the badge/reward pass all commit in
one transaction or not at all.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..models import db
from ..models.activity import ACTIVITY_LABELS, ACTIVITY_POINTS, ACTIVITY_TYPES, Activity
from ..models.gamification import UserStreak
from ..models.profile import Profile
from ..models.user import User
from ..utils.logger import get_logger
from ..utils.time import as_utc, to_iso_utc, utcnow
from .badge_service import check_and_award_badges, check_and_award_rewards

logger = get_logger(__name__)

ACTIVITY_ICONS = {
    "tree_plantation": "🌳",
    "cleanup": "🧹",
    "recycling": "♻️",
    "eco_habit": "🌿",
}

REVIEWER_ROLES = ("organizer", "admin")


def _coerce_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"not a number: {value!r}")


def validate_submission(payload: dict) -> tuple[dict | None, str | None]:
    """Normalise a submission payload; return ``(clean, None)`` or ``(None, reason)``."""

    activity_type = (payload.get("type") or payload.get("activity_type") or "").strip()
    if activity_type not in ACTIVITY_TYPES:
        return None, "type must be one of: " + ", ".join(ACTIVITY_TYPES)

    try:
        waste_kg = _coerce_float(payload.get("waste_kg"))
        latitude = _coerce_float(payload.get("latitude"))
        longitude = _coerce_float(payload.get("longitude"))
    except ValueError as exc:
        return None, str(exc)

    if activity_type != "cleanup":
        waste_kg = None
    elif waste_kg is not None and waste_kg < 0:
        return None, "waste_kg cannot be negative"

    if latitude is not None and not -90 <= latitude <= 90:
        return None, "latitude out of range"
    if longitude is not None and not -180 <= longitude <= 180:
        return None, "longitude out of range"

    description = (payload.get("description") or "").strip() or None
    return {
        "activity_type": activity_type,
        "description": description,
        "waste_kg": waste_kg,
        "latitude": latitude,
        "longitude": longitude,
        "image_url": payload.get("image_url") or None,
    }, None


def submit_activity(user: User, payload: dict) -> dict:
    clean, reason = validate_submission(payload)
    if clean is None:
        return {"ok": False, "error": "invalid_input", "message": reason}

    activity = Activity(user_id=user.id, status="pending", points_awarded=0, **clean)
    try:
        db.session.add(activity)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[ACTIVITY] Failed to store submission for user=%s", user.id)
        return {"ok": False, "error": "database_error"}

    logger.info(
        "[ACTIVITY] user=%s submitted %s (id=%s)", user.id, activity.activity_type, activity.id
    )
    return {"ok": True, "activity": activity.to_dict()}


def _register_streak(user_id: int, activity: Activity) -> None:
    streak = UserStreak.query.filter_by(user_id=user_id).first()
    if streak is None:
        streak = UserStreak(user_id=user_id, current_streak=0, longest_streak=0)
        db.session.add(streak)
    created_at = as_utc(activity.created_at) or utcnow()
    streak.register_activity(created_at.date())


def _unchanged(action: str, activity: Activity) -> dict:
    logger.info("[ACTIVITY] %s(%s) ignored: already %s", action, activity.id, activity.status)
    return {"ok": True, "changed": False, "activity": activity.to_dict()}


def approve_activity(activity_id: int, reviewer: User) -> dict:
    """Approve a pending activity and credit its points exactly once.

    Approving an activity that is already approved or rejected is a no-op
    reported with ``changed=False``.
    """

    if reviewer is None:
        return {"ok": False, "error": "auth_required"}
    if not reviewer.has_role(*REVIEWER_ROLES):
        return {"ok": False, "error": "forbidden"}

    activity = db.session.get(Activity, activity_id)
    if activity is None:
        return {"ok": False, "error": "not_found"}
    if activity.is_terminal:
        return _unchanged("approve", activity)

    points = ACTIVITY_POINTS[activity.activity_type]
    submitter_id = activity.user_id

    try:
        result = db.session.execute(
            update(Activity)
            .where(Activity.id == activity_id, Activity.status == "pending")
            .values(
                status="approved",
                points_awarded=points,
                reviewed_by=reviewer.id,
                reviewed_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Another reviewer got there between the read and the update.
            db.session.rollback()
            db.session.refresh(activity)
            return _unchanged("approve", activity)

        db.session.execute(
            update(Profile)
            .where(Profile.user_id == submitter_id)
            .values(points=Profile.points + points)
            .execution_options(synchronize_session=False)
        )
        db.session.expire(activity)
        _register_streak(submitter_id, activity)
        badges = check_and_award_badges(submitter_id)
        check_and_award_rewards(submitter_id)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[ACTIVITY] approve(%s) failed", activity_id)
        return {"ok": False, "error": "database_error"}

    logger.info(
        "[ACTIVITY] %s approved by %s, +%d points to user=%s",
        activity_id,
        reviewer.id,
        points,
        submitter_id,
    )
    return {
        "ok": True,
        "changed": True,
        "activity": activity.to_dict(),
        "new_badges": [badge.to_dict() for badge in badges],
    }


def reject_activity(activity_id: int, reviewer: User) -> dict:
    if reviewer is None:
        return {"ok": False, "error": "auth_required"}
    if not reviewer.has_role(*REVIEWER_ROLES):
        return {"ok": False, "error": "forbidden"}

    activity = db.session.get(Activity, activity_id)
    if activity is None:
        return {"ok": False, "error": "not_found"}
    if activity.is_terminal:
        return _unchanged("reject", activity)

    try:
        result = db.session.execute(
            update(Activity)
            .where(Activity.id == activity_id, Activity.status == "pending")
            .values(status="rejected", reviewed_by=reviewer.id, reviewed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        changed = result.rowcount > 0
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[ACTIVITY] reject(%s) failed", activity_id)
        return {"ok": False, "error": "database_error"}

    if changed:
        logger.info("[ACTIVITY] %s rejected by %s", activity_id, reviewer.id)
    return {"ok": True, "changed": changed, "activity": activity.to_dict()}


def list_user_activities(user_id: int) -> list[Activity]:
    return (
        Activity.query.filter_by(user_id=user_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .all()
    )


def list_pending_activities() -> list[dict]:
    rows = (
        db.session.query(Activity, Profile.name)
        .outerjoin(Profile, Profile.user_id == Activity.user_id)
        .filter(Activity.status == "pending")
        .order_by(Activity.created_at.asc(), Activity.id.asc())
        .all()
    )
    return [{**activity.to_dict(), "submitter_name": name} for activity, name in rows]


def certificate_for(activity_id: int, viewer: User) -> dict:
    """Data for the printable certificate of an approved activity."""

    activity = db.session.get(Activity, activity_id)
    if activity is None:
        return {"ok": False, "error": "not_found"}
    if activity.user_id != viewer.id and not viewer.is_admin:
        return {"ok": False, "error": "forbidden"}
    if activity.status != "approved":
        return {"ok": False, "error": "invalid_input", "message": "Only approved activities have certificates."}

    profile = Profile.query.filter_by(user_id=activity.user_id).first()
    return {
        "ok": True,
        "certificate": {
            "activity_id": activity.id,
            "recipient": profile.name if profile else "",
            "type": activity.activity_type,
            "type_label": ACTIVITY_LABELS[activity.activity_type],
            "icon": ACTIVITY_ICONS[activity.activity_type],
            "points": activity.points_awarded,
            "waste_kg": activity.waste_kg,
            "date": to_iso_utc(activity.created_at),
        },
    }


__all__ = [
    "ACTIVITY_ICONS",
    "approve_activity",
    "certificate_for",
    "list_pending_activities",
    "list_user_activities",
    "reject_activity",
    "submit_activity",
    "validate_submission",
]
