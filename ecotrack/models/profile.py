from datetime import datetime, timezone

from . import db

ACCOUNT_STATUSES = ("active", "suspended", "banned")


class Profile(db.Model):
    """Public community profile holding the user's point balance."""

    __tablename__ = "profiles"
    __table_args__ = (
        db.CheckConstraint("points >= 0", name="ck_profiles_points_non_negative"),
        db.CheckConstraint(
            "account_status IN ('active', 'suspended', 'banned')",
            name="ck_profiles_account_status",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    name = db.Column(db.String(120), nullable=False)
    city = db.Column(db.String(120), nullable=True)
    avatar_url = db.Column(db.String(512), nullable=True)
    points = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    account_status = db.Column(
        db.String(20),
        nullable=False,
        default="active",
        server_default="active",
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = db.relationship("User", back_populates="profile")

    def __repr__(self) -> str:  # pragma: no cover - helper
        return f"<Profile {self.user_id} {self.points}pts>"

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "name": self.name,
            "city": self.city,
            "avatar_url": self.avatar_url,
            "points": self.points,
            "account_status": self.account_status,
        }
