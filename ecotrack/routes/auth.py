from flask import Blueprint, current_app, jsonify, request, session
from flask_login import login_user

from ..models.user import User
from ..services.account_service import RegistrationError, register_user
from ..services.seen_badges import SeenBadgeStore
from ..session_context import SessionContext, get_session_context, reset_session_context
from ..utils.responses import error_response

bp = Blueprint("auth", __name__)


def _start_session(user: User) -> SessionContext:
    seen_store = SeenBadgeStore()
    seen_records = seen_store.snapshot()
    session.clear()
    # Celebrated unlocks belong to the device, not the sign-in.
    seen_store.restore(seen_records)
    login_user(user)
    session["user_id"] = user.id
    session.permanent = True
    reset_session_context()
    return get_session_context()


@bp.route("/register", methods=["POST"])
def register():
    payload = request.get_json(silent=True) or {}
    try:
        user = register_user(
            payload.get("email"),
            payload.get("password"),
            payload.get("name"),
            payload.get("city"),
        )
    except RegistrationError as exc:
        return error_response(exc.code, exc.message)

    context = _start_session(user)
    return jsonify({"ok": True, **context.to_dict()}), 201


@bp.route("/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or {}
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    if not email or not password:
        return error_response("invalid_input", "email and password are required")

    user = User.query.filter_by(email=email).first()
    if user is None or not user.check_password(password):
        current_app.logger.info("[AUTH] failed login for %s", email)
        return error_response("auth_required", "Invalid email or password.")
    if user.is_banned():
        current_app.logger.info("[AUTH] blocked login for banned user=%s", user.id)
        return error_response("forbidden", "This account has been suspended.")

    context = _start_session(user)
    current_app.logger.info("[AUTH] user=%s signed in", user.id)
    return jsonify({"ok": True, **context.to_dict()})


@bp.route("/logout", methods=["POST"])
def logout():
    context = get_session_context()
    if context.is_authenticated:
        current_app.logger.info("[AUTH] user=%s signed out", context.user_id)
    context.teardown()
    return jsonify({"ok": True})


@bp.route("/me")
def me():
    return jsonify(get_session_context().to_dict())


def register_rate_limits(app) -> None:
    limiter = app.extensions.get("limiter")
    if not limiter:
        return

    limiter.limit("10/minute")(login)
    limiter.limit("5/minute")(register)


__all__ = ["bp", "register_rate_limits"]
