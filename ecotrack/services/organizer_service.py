"""Organizer applications and the role elevation tied to their approval."""

from __future__ import annotations

import re

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..models import db
from ..models.organizer_application import ORGANIZER_TYPES, OrganizerApplication
from ..models.profile import Profile
from ..models.user import User, UserRole
from ..utils.logger import get_logger
from ..utils.time import utcnow

logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
REQUIRED_FIELDS = ("organization_name", "organizer_type", "official_email", "contact_number", "purpose")
FIELD_LIMITS = {
    "organization_name": 200,
    "official_email": 255,
    "contact_number": 20,
    "purpose": 1000,
}


def validate_application(payload: dict) -> tuple[dict | None, str | None]:
    clean = {name: (payload.get(name) or "").strip() for name in REQUIRED_FIELDS}
    missing = [name for name, value in clean.items() if not value]
    if missing:
        return None, "Missing required fields: " + ", ".join(missing)
    if clean["organizer_type"] not in ORGANIZER_TYPES:
        return None, "organizer_type must be one of: " + ", ".join(ORGANIZER_TYPES)
    if not EMAIL_RE.match(clean["official_email"]):
        return None, "official_email is not a valid email address"
    for name, limit in FIELD_LIMITS.items():
        if len(clean[name]) > limit:
            return None, f"{name} exceeds {limit} characters"

    clean["website_url"] = (payload.get("website_url") or "").strip() or None
    clean["proof_url"] = payload.get("proof_url") or None
    clean["proof_type"] = None
    if clean["proof_url"]:
        clean["proof_type"] = (payload.get("proof_type") or "").strip() or "id_card"
    return clean, None


def submit_application(user: User, payload: dict) -> dict:
    if user.role != "citizen":
        return {"ok": False, "error": "invalid_input", "message": "Only citizens can apply to become organizers."}

    clean, reason = validate_application(payload)
    if clean is None:
        return {"ok": False, "error": "invalid_input", "message": reason}

    if OrganizerApplication.query.filter_by(user_id=user.id).first() is not None:
        return {"ok": False, "error": "already_applied"}

    application = OrganizerApplication(user_id=user.id, status="pending", **clean)
    try:
        db.session.add(application)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return {"ok": False, "error": "already_applied"}
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[ORGANIZER] application insert failed for user=%s", user.id)
        return {"ok": False, "error": "database_error"}

    logger.info("[ORGANIZER] user=%s applied as %s", user.id, application.organizer_type)
    return {"ok": True, "application": application.to_dict()}


def application_for(user_id: int) -> OrganizerApplication | None:
    return OrganizerApplication.query.filter_by(user_id=user_id).first()


def list_applications(status: str | None = None) -> list[dict]:
    query = db.session.query(OrganizerApplication, Profile.name).outerjoin(
        Profile, Profile.user_id == OrganizerApplication.user_id
    )
    if status:
        query = query.filter(OrganizerApplication.status == status)
    rows = query.order_by(OrganizerApplication.created_at.desc()).all()
    return [{**application.to_dict(), "applicant_name": name} for application, name in rows]


def _review(application_id: int, reviewer: User, new_status: str, remarks: str | None):
    return db.session.execute(
        update(OrganizerApplication)
        .where(
            OrganizerApplication.id == application_id,
            OrganizerApplication.status == "pending",
        )
        .values(
            status=new_status,
            admin_remarks=(remarks or "").strip() or None,
            reviewed_by=reviewer.id,
            reviewed_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )


def approve_application(application_id: int, reviewer: User, remarks: str | None = None) -> dict:
    """Approve a pending application and promote the applicant to organizer."""

    if reviewer is None:
        return {"ok": False, "error": "auth_required"}
    if not reviewer.is_admin:
        return {"ok": False, "error": "forbidden"}

    application = db.session.get(OrganizerApplication, application_id)
    if application is None:
        return {"ok": False, "error": "not_found"}
    applicant_id = application.user_id

    try:
        result = _review(application_id, reviewer, "approved", remarks)
        if result.rowcount == 0:
            db.session.rollback()
            return {"ok": True, "changed": False, "application": application.to_dict()}

        assignment = UserRole.query.filter_by(user_id=applicant_id).first()
        if assignment is None:
            db.session.add(UserRole(user_id=applicant_id, role="organizer"))
        elif assignment.role != "admin":
            assignment.role = "organizer"
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[ORGANIZER] approve(%s) failed", application_id)
        return {"ok": False, "error": "database_error"}

    db.session.refresh(application)
    logger.info("[ORGANIZER] application=%s approved; user=%s is now organizer", application_id, applicant_id)
    return {"ok": True, "changed": True, "application": application.to_dict()}


def reject_application(application_id: int, reviewer: User, remarks: str | None = None) -> dict:
    if reviewer is None:
        return {"ok": False, "error": "auth_required"}
    if not reviewer.is_admin:
        return {"ok": False, "error": "forbidden"}

    application = db.session.get(OrganizerApplication, application_id)
    if application is None:
        return {"ok": False, "error": "not_found"}

    try:
        changed = _review(application_id, reviewer, "rejected", remarks).rowcount > 0
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[ORGANIZER] reject(%s) failed", application_id)
        return {"ok": False, "error": "database_error"}

    db.session.refresh(application)
    if changed:
        logger.info("[ORGANIZER] application=%s rejected", application_id)
    return {"ok": True, "changed": changed, "application": application.to_dict()}


__all__ = [
    "application_for",
    "approve_application",
    "list_applications",
    "reject_application",
    "submit_application",
    "validate_application",
]
