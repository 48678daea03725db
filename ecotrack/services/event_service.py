"""Community events: creation, membership and code-validated check-in."""

from __future__ import annotations

import json
import secrets
from typing import Any

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..models import db
from ..models.event import Event, EventCheckin, EventParticipant
from ..models.profile import Profile
from ..models.user import User
from ..utils.logger import get_logger
from ..utils.time import parse_datetime
from .badge_service import check_and_award_badges, check_and_award_rewards

logger = get_logger(__name__)

CHECKIN_HISTORY_LIMIT = 20
EVENT_MANAGER_ROLES = ("organizer", "admin")


def build_checkin_payload(event: Event) -> str:
    """Text encoded in the QR code an organizer shows at the venue."""
    return json.dumps({"event_id": event.id, "code": event.checkin_code})


def parse_checkin_payload(text: Any) -> tuple[int, str] | None:
    """Extract ``(event_id, code)`` from scanned QR text, or ``None``."""

    if not isinstance(text, str) or not text.strip():
        return None
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    event_id = data.get("event_id")
    code = data.get("code")
    if not event_id or not code or not isinstance(code, str):
        return None
    try:
        return int(event_id), code
    except (TypeError, ValueError):
        return None


def _participant_counts(event_ids: list[int]) -> dict[int, int]:
    if not event_ids:
        return {}
    rows = (
        db.session.query(EventParticipant.event_id, func.count(EventParticipant.id))
        .filter(EventParticipant.event_id.in_(event_ids))
        .group_by(EventParticipant.event_id)
        .all()
    )
    return {event_id: count for event_id, count in rows}


def can_manage(event: Event, user: User | None) -> bool:
    return user is not None and (event.created_by == user.id or user.is_admin)


def list_events(viewer: User | None) -> list[dict]:
    events = Event.query.order_by(Event.event_date.asc(), Event.id.asc()).all()
    counts = _participant_counts([event.id for event in events])
    joined: set[int] = set()
    if viewer is not None:
        joined = {
            row.event_id for row in EventParticipant.query.filter_by(user_id=viewer.id).all()
        }
    return [
        {
            **event.to_public_dict(),
            "participant_count": counts.get(event.id, 0),
            "joined": event.id in joined,
        }
        for event in events
    ]


def event_detail(event_id: int, viewer: User | None) -> dict:
    event = db.session.get(Event, event_id)
    if event is None:
        return {"ok": False, "error": "not_found"}

    payload = {
        **event.to_public_dict(),
        "participant_count": event.participants.count(),
        "joined": False,
        "checked_in": False,
    }
    if viewer is not None:
        payload["joined"] = event.participants.filter_by(user_id=viewer.id).first() is not None
        payload["checked_in"] = event.checkins.filter_by(user_id=viewer.id).first() is not None
    if can_manage(event, viewer):
        payload["checkin_code"] = event.checkin_code
        payload["checkin_payload"] = build_checkin_payload(event)
    return {"ok": True, "event": payload}


def create_event(creator: User, payload: dict) -> dict:
    if not creator.has_role(*EVENT_MANAGER_ROLES):
        return {"ok": False, "error": "forbidden"}

    title = (payload.get("title") or "").strip()
    event_date = parse_datetime(payload.get("event_date"))
    if not title or event_date is None:
        return {"ok": False, "error": "invalid_input", "message": "title and event_date are required"}

    try:
        attendance_points = int(payload.get("attendance_points", 10) or 0)
        latitude = float(payload["latitude"]) if payload.get("latitude") not in (None, "") else None
        longitude = float(payload["longitude"]) if payload.get("longitude") not in (None, "") else None
    except (TypeError, ValueError):
        return {"ok": False, "error": "invalid_input", "message": "numeric fields are malformed"}
    if attendance_points < 0:
        return {"ok": False, "error": "invalid_input", "message": "attendance_points must be >= 0"}

    event = Event(
        title=title,
        description=(payload.get("description") or "").strip() or None,
        location=(payload.get("location") or "").strip() or None,
        latitude=latitude,
        longitude=longitude,
        event_date=event_date,
        attendance_points=attendance_points,
        event_type=(payload.get("event_type") or "cleanup").strip(),
        created_by=creator.id,
    )
    try:
        db.session.add(event)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[EVENTS] create failed for user=%s", creator.id)
        return {"ok": False, "error": "database_error"}

    logger.info("[EVENTS] user=%s created event=%s", creator.id, event.id)
    return {
        "ok": True,
        "event": {
            **event.to_public_dict(),
            "checkin_code": event.checkin_code,
            "checkin_payload": build_checkin_payload(event),
        },
    }


def delete_event(event_id: int, user: User) -> dict:
    event = db.session.get(Event, event_id)
    if event is None:
        return {"ok": False, "error": "not_found"}
    if not can_manage(event, user):
        return {"ok": False, "error": "forbidden"}
    try:
        db.session.delete(event)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[EVENTS] delete(%s) failed", event_id)
        return {"ok": False, "error": "database_error"}
    logger.info("[EVENTS] event=%s deleted by user=%s", event_id, user.id)
    return {"ok": True}


def join_event(event_id: int, user: User) -> dict:
    if db.session.get(Event, event_id) is None:
        return {"ok": False, "error": "not_found"}
    if EventParticipant.query.filter_by(event_id=event_id, user_id=user.id).first():
        return {"ok": True, "changed": False}
    try:
        db.session.add(EventParticipant(event_id=event_id, user_id=user.id))
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return {"ok": True, "changed": False}
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[EVENTS] join(%s) failed for user=%s", event_id, user.id)
        return {"ok": False, "error": "database_error"}
    return {"ok": True, "changed": True}


def leave_event(event_id: int, user: User) -> dict:
    if db.session.get(Event, event_id) is None:
        return {"ok": False, "error": "not_found"}
    try:
        removed = EventParticipant.query.filter_by(event_id=event_id, user_id=user.id).delete(
            synchronize_session=False
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[EVENTS] leave(%s) failed for user=%s", event_id, user.id)
        return {"ok": False, "error": "database_error"}
    return {"ok": True, "changed": bool(removed)}


def checkin_event(event_id: int, code: Any, user: User) -> dict:
    """Record attendance and credit the event's points once per user."""

    if user is None:
        return {"ok": False, "error": "auth_required"}
    if not isinstance(code, str) or not code.strip():
        return {"ok": False, "error": "invalid_input", "message": "code is required"}

    event = db.session.get(Event, event_id)
    if event is None:
        return {"ok": False, "error": "not_found"}
    if not secrets.compare_digest(code.strip().encode(), (event.checkin_code or "").encode()):
        logger.info("[EVENTS] invalid check-in code for event=%s user=%s", event_id, user.id)
        return {"ok": False, "error": "invalid_code"}
    if EventCheckin.query.filter_by(event_id=event_id, user_id=user.id).first() is not None:
        return {"ok": False, "error": "already_checked_in"}

    points = event.attendance_points or 0
    try:
        checkin = EventCheckin(event_id=event_id, user_id=user.id, points_awarded=points)
        db.session.add(checkin)
        db.session.flush()
        if points:
            db.session.execute(
                update(Profile)
                .where(Profile.user_id == user.id)
                .values(points=Profile.points + points)
                .execution_options(synchronize_session=False)
            )
        check_and_award_badges(user.id)
        check_and_award_rewards(user.id)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return {"ok": False, "error": "already_checked_in"}
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[EVENTS] check-in failed for event=%s user=%s", event_id, user.id)
        return {"ok": False, "error": "database_error"}

    logger.info("[EVENTS] user=%s checked in to event=%s (+%d)", user.id, event_id, points)
    return {"ok": True, "points_awarded": points, "checkin": checkin.to_dict()}


def checkin_history(user_id: int, limit: int = CHECKIN_HISTORY_LIMIT) -> list[dict]:
    rows = (
        EventCheckin.query.filter_by(user_id=user_id)
        .order_by(EventCheckin.checked_in_at.desc(), EventCheckin.id.desc())
        .limit(limit)
        .all()
    )
    return [row.to_dict() for row in rows]


def organizer_events(user: User) -> list[dict]:
    events = (
        Event.query.filter_by(created_by=user.id)
        .order_by(Event.event_date.desc(), Event.id.desc())
        .all()
    )
    counts = _participant_counts([event.id for event in events])
    return [
        {**event.to_public_dict(), "participant_count": counts.get(event.id, 0)}
        for event in events
    ]


__all__ = [
    "build_checkin_payload",
    "can_manage",
    "checkin_event",
    "checkin_history",
    "create_event",
    "delete_event",
    "event_detail",
    "join_event",
    "leave_event",
    "list_events",
    "organizer_events",
    "parse_checkin_payload",
]
