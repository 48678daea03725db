"""Community events, their participants and attendance check-ins."""

from __future__ import annotations

import secrets
from datetime import datetime, timezone

from . import db
from ..utils.time import to_iso_utc


def generate_checkin_code() -> str:
    return secrets.token_hex(4).upper()


class Event(db.Model):
    __tablename__ = "events"
    __table_args__ = (
        db.CheckConstraint(
            "attendance_points >= 0", name="ck_events_attendance_points_non_negative"
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    location = db.Column(db.String(255), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    event_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    attendance_points = db.Column(db.Integer, nullable=False, default=10, server_default="10")
    event_type = db.Column(db.String(32), nullable=False, default="cleanup", server_default="cleanup")
    checkin_code = db.Column(db.String(32), nullable=False, default=generate_checkin_code)
    created_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    participants = db.relationship(
        "EventParticipant",
        back_populates="event",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )
    checkins = db.relationship(
        "EventCheckin",
        back_populates="event",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )

    def __repr__(self) -> str:  # pragma: no cover - helper
        return f"<Event {self.id} {self.title}>"

    def to_public_dict(self) -> dict:
        """Serialize the event without its check-in secret."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "event_date": to_iso_utc(self.event_date),
            "attendance_points": self.attendance_points,
            "event_type": self.event_type,
            "created_by": self.created_by,
            "created_at": to_iso_utc(self.created_at),
        }


class EventParticipant(db.Model):
    __tablename__ = "event_participants"
    __table_args__ = (
        db.UniqueConstraint("event_id", "user_id", name="uq_event_participants_event_user"),
    )

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(
        db.Integer, db.ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    joined_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    event = db.relationship("Event", back_populates="participants")


class EventCheckin(db.Model):
    __tablename__ = "event_checkins"
    __table_args__ = (
        db.UniqueConstraint("event_id", "user_id", name="uq_event_checkins_event_user"),
    )

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(
        db.Integer, db.ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    points_awarded = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    checked_in_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    event = db.relationship("Event", back_populates="checkins")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "points_awarded": self.points_awarded,
            "checked_in_at": to_iso_utc(self.checked_in_at),
            "event": {
                "title": self.event.title,
                "event_date": to_iso_utc(self.event.event_date),
                "location": self.event.location,
            }
            if self.event is not None
            else None,
        }
