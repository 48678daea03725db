"""Authentication helpers for the JSON API.

Sessions store ``user_id`` in the signed Flask cookie; flask-login's
``current_user`` is honoured first so ``login_user`` and a bare
``session["user_id"]`` both resolve.
"""

from functools import wraps

from flask import current_app, request, session
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from ..models import db
from ..models.user import User
from .responses import error_response


def get_current_user():
    """Return the signed-in user, or ``None`` for anonymous or banned sessions."""

    try:
        if current_user.is_authenticated:
            return current_user._get_current_object()
    except SQLAlchemyError as exc:
        current_app.logger.warning("[AUTH] current_user authentication check failed: %s", exc)
        db.session.rollback()
        return None

    user_id = session.get("user_id")
    if user_id is None:
        return None

    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        session.pop("user_id", None)
        return None
    except SQLAlchemyError as exc:
        current_app.logger.error("[AUTH] user lookup failed, clearing session: %s", exc)
        db.session.rollback()
        session.pop("user_id", None)
        return None

    if user is None or user.is_banned():
        session.pop("user_id", None)
        return None
    return user


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        from ..session_context import get_session_context

        if not get_session_context().is_authenticated:
            current_app.logger.info(
                "[AUTH] login_required rejected. endpoint=%s path=%s",
                request.endpoint,
                request.path,
            )
            return error_response("auth_required")
        return f(*args, **kwargs)

    return decorated_function
