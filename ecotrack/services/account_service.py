"""Account lifecycle: registration, admin seeding and status moderation."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..models import db
from ..models.gamification import UserStreak
from ..models.profile import ACCOUNT_STATUSES, Profile
from ..models.user import User, UserRole, has_role
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Hours the identity stays banned for each status; ``None`` lifts the ban.
BAN_DURATIONS = {
    "active": None,
    "suspended": 720,
    "banned": 876600,
}

MIN_PASSWORD_LENGTH = 6


class AccountStatusError(ValueError):
    """Raised when an account status change is refused."""


class RegistrationError(ValueError):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def register_user(email: str, password: str, name: str, city: str | None = None) -> User:
    """Create the identity together with its profile, role and streak rows."""

    email = (email or "").strip().lower()
    name = (name or "").strip()
    if not email or "@" not in email or not name:
        raise RegistrationError("invalid_input", "email and name are required")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise RegistrationError(
            "invalid_input", f"password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if User.query.filter_by(email=email).first() is not None:
        raise RegistrationError("invalid_input", "an account with this email already exists")

    user = User(email=email)
    user.set_password(password)
    user.profile = Profile(name=name, city=(city or "").strip() or None, points=0)
    user.role_assignment = UserRole(role="citizen")
    user.streak = UserStreak(current_streak=0, longest_streak=0)
    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise RegistrationError("invalid_input", "an account with this email already exists") from exc

    logger.info("[AUTH] registered user=%s", user.id)
    return user


def ensure_admin(email: str, password: str | None) -> tuple[User, bool]:
    """Create or promote the seed administrator. Returns ``(user, created)``."""

    email = (email or "").strip().lower()
    if not email:
        raise ValueError("ADMIN_EMAIL must be configured")

    user = User.query.filter_by(email=email).first()
    created = user is None
    if created:
        if not password:
            raise ValueError("ADMIN_PASSWORD must be configured to create the admin account")
        user = User(email=email)
        user.set_password(password)
        db.session.add(user)

    if user.role_assignment is None:
        user.role_assignment = UserRole(role="admin")
    else:
        user.role_assignment.role = "admin"
    if user.profile is None:
        user.profile = Profile(name="Administrator", points=0)
    if user.streak is None:
        user.streak = UserStreak(current_streak=0, longest_streak=0)

    db.session.commit()
    return user, created


def set_account_status(caller: User | None, target_user_id, status) -> None:
    """Change ``target_user_id``'s account status and matching ban window.

    Raises :class:`AccountStatusError` for every refusal.
    """

    if caller is None:
        raise AccountStatusError("Unauthorized")
    if not has_role(caller.id, "admin"):
        raise AccountStatusError("Only super admins can manage user status")

    if not target_user_id or status not in ACCOUNT_STATUSES:
        raise AccountStatusError("Invalid user_id or status")
    try:
        target_user_id = int(target_user_id)
    except (TypeError, ValueError) as exc:
        raise AccountStatusError("Invalid user_id or status") from exc

    if target_user_id == caller.id:
        raise AccountStatusError("Cannot change your own account status")

    target = db.session.get(User, target_user_id)
    if target is None or target.profile is None:
        raise AccountStatusError("User not found")

    try:
        target.profile.account_status = status
        target.ban_for(BAN_DURATIONS[status])
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("[ACCOUNT] status change failed for user=%s", target_user_id)
        raise AccountStatusError("Failed to update account status") from exc

    logger.info("[ACCOUNT] admin=%s set user=%s to %s", caller.id, target_user_id, status)


def list_users_with_roles() -> list[dict]:
    rows = (
        db.session.query(Profile, UserRole.role, User.email)
        .join(User, User.id == Profile.user_id)
        .outerjoin(UserRole, UserRole.user_id == Profile.user_id)
        .order_by(Profile.created_at.desc())
        .all()
    )
    return [
        {**profile.to_dict(), "email": email, "role": role or "citizen"}
        for profile, role, email in rows
    ]


__all__ = [
    "AccountStatusError",
    "BAN_DURATIONS",
    "RegistrationError",
    "ensure_admin",
    "list_users_with_roles",
    "register_user",
    "set_account_status",
]
