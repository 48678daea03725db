from datetime import datetime, timedelta, timezone

import bcrypt
from flask_login import UserMixin
from sqlalchemy.orm import validates

from . import db
from ..utils.time import as_utc

ROLE_CHOICES = ("citizen", "organizer", "admin")


class User(UserMixin, db.Model):
    """Authentication identity. Community data lives on :class:`Profile`."""

    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("email = lower(email)", name="ck_users_email_lowercase"),
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=True, default="")
    banned_until = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        default=lambda: datetime.now(timezone.utc),
    )

    profile = db.relationship(
        "Profile",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    role_assignment = db.relationship(
        "UserRole",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    streak = db.relationship(
        "UserStreak",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<User {self.email}>"

    @validates("email")
    def _normalize_email(self, key: str, value: str | None) -> str:
        if value is None:
            raise ValueError("Email cannot be null")
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("Email cannot be empty")
        return normalized

    # --- Credentials --------------------------------------------------
    def set_password(self, plain: str) -> None:
        self.password_hash = bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()

    def check_password(self, plain: str) -> bool:
        if not self.password_hash:
            return False
        try:
            return bcrypt.checkpw(plain.encode(), self.password_hash.encode())
        except ValueError:
            return False

    # --- Ban state ----------------------------------------------------
    def is_banned(self, now: datetime | None = None) -> bool:
        banned_until = as_utc(self.banned_until)
        if banned_until is None:
            return False
        now = now or datetime.now(timezone.utc)
        return banned_until > now

    def ban_for(self, hours: int | None) -> None:
        """Ban the identity for ``hours``; ``None`` lifts any ban."""
        if hours is None:
            self.banned_until = None
        else:
            self.banned_until = datetime.now(timezone.utc) + timedelta(hours=hours)

    @property
    def is_active(self) -> bool:  # type: ignore[override]
        return not self.is_banned()

    # --- Role helpers -------------------------------------------------
    @property
    def role(self) -> str:
        if self.role_assignment is None:
            return "citizen"
        return self.role_assignment.role

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def has_role(self, *roles: str) -> bool:
        if self.is_admin:
            return True
        normalized = {role for role in roles if role}
        if not normalized:
            return False
        return self.role in normalized


class UserRole(db.Model):
    """Role assignment, one row per user."""

    __tablename__ = "user_roles"
    __table_args__ = (
        db.CheckConstraint(
            "role IN ('citizen', 'organizer', 'admin')",
            name="ck_user_roles_role",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    role = db.Column(db.String(20), nullable=False, default="citizen", server_default="citizen")

    user = db.relationship("User", back_populates="role_assignment")

    def __repr__(self) -> str:  # pragma: no cover - helper
        return f"<UserRole {self.user_id} {self.role}>"


def has_role(user_id: int, role: str) -> bool:
    """Return True when ``user_id`` holds exactly ``role``."""

    assignment = UserRole.query.filter_by(user_id=user_id).first()
    return assignment is not None and assignment.role == role
