"""Citizen-submitted eco activities and their review lifecycle."""

from __future__ import annotations

from datetime import datetime, timezone

from . import db
from ..utils.time import to_iso_utc

ACTIVITY_TYPES = ("tree_plantation", "cleanup", "recycling", "eco_habit")
ACTIVITY_STATUSES = ("pending", "approved", "rejected")
TERMINAL_STATUSES = frozenset({"approved", "rejected"})

ACTIVITY_POINTS = {
    "tree_plantation": 50,
    "cleanup": 30,
    "recycling": 20,
    "eco_habit": 5,
}

ACTIVITY_LABELS = {
    "tree_plantation": "Tree Plantation",
    "cleanup": "Cleanup Drive",
    "recycling": "Recycling",
    "eco_habit": "Eco Habit",
}


class Activity(db.Model):
    __tablename__ = "activities"
    __table_args__ = (
        db.CheckConstraint(
            "type IN ('tree_plantation', 'cleanup', 'recycling', 'eco_habit')",
            name="ck_activities_type",
        ),
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_activities_status",
        ),
        db.CheckConstraint("points_awarded >= 0", name="ck_activities_points_non_negative"),
        db.Index("ix_activities_user_created", "user_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    activity_type = db.Column("type", db.String(32), nullable=False)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(512), nullable=True)
    waste_kg = db.Column(db.Float, nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    status = db.Column(
        db.String(16), nullable=False, default="pending", server_default="pending", index=True
    )
    points_awarded = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    reviewed_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    submitter = db.relationship("User", foreign_keys=[user_id])

    def __repr__(self) -> str:  # pragma: no cover - helper
        return f"<Activity {self.id} {self.activity_type} {self.status}>"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.activity_type,
            "description": self.description,
            "image_url": self.image_url,
            "waste_kg": self.waste_kg,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "status": self.status,
            "points_awarded": self.points_awarded,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": to_iso_utc(self.reviewed_at),
            "created_at": to_iso_utc(self.created_at),
        }
