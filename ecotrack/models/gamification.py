"""Database models backing badges, rewards and activity streaks."""

from __future__ import annotations

from datetime import date, datetime, timezone

from . import db

BADGE_CATEGORIES = ("milestone", "streak", "community_impact")
BADGE_CRITERIA = (
    "total_activities",
    "tree_plantation_count",
    "cleanup_count",
    "recycling_count",
    "eco_habit_count",
    "waste_kg",
    "streak_days",
)


class Badge(db.Model):
    """Static catalogue entry unlocked when a user stat reaches a threshold."""

    __tablename__ = "badges"
    __table_args__ = (
        db.CheckConstraint(
            "category IN ('milestone', 'streak', 'community_impact')",
            name="ck_badges_category",
        ),
        db.CheckConstraint("criteria_value > 0", name="ck_badges_criteria_positive"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=False, default="")
    icon = db.Column(db.String(16), nullable=False, default="🏅")
    category = db.Column(db.String(32), nullable=False)
    criteria_type = db.Column(db.String(32), nullable=False)
    criteria_value = db.Column(db.Float, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "category": self.category,
            "criteria_type": self.criteria_type,
            "criteria_value": self.criteria_value,
        }


class UserBadge(db.Model):
    """Append-only unlock record; never revoked."""

    __tablename__ = "user_badges"
    __table_args__ = (
        db.UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    badge_id = db.Column(
        db.Integer, db.ForeignKey("badges.id", ondelete="CASCADE"), nullable=False
    )
    unlocked_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    badge = db.relationship("Badge")

    def __repr__(self) -> str:  # pragma: no cover - helper
        return f"<UserBadge {self.user_id} {self.badge_id}>"


class Reward(db.Model):
    __tablename__ = "rewards"
    __table_args__ = (
        db.CheckConstraint("points_required > 0", name="ck_rewards_points_positive"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    icon = db.Column(db.String(16), nullable=False, default="🎁")
    points_required = db.Column(db.Integer, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "points_required": self.points_required,
        }


class UserReward(db.Model):
    __tablename__ = "user_rewards"
    __table_args__ = (
        db.UniqueConstraint("user_id", "reward_id", name="uq_user_rewards_user_reward"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reward_id = db.Column(
        db.Integer, db.ForeignKey("rewards.id", ondelete="CASCADE"), nullable=False
    )
    unlocked_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


class UserStreak(db.Model):
    """Consecutive-day streak of approved activities."""

    __tablename__ = "user_streaks"
    __table_args__ = (
        db.CheckConstraint("current_streak >= 0", name="ck_user_streaks_current_non_negative"),
        db.CheckConstraint("longest_streak >= 0", name="ck_user_streaks_longest_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    current_streak = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    longest_streak = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    last_activity_date = db.Column(db.Date, nullable=True)

    user = db.relationship("User", back_populates="streak")

    def register_activity(self, day: date) -> None:
        """Advance the streak for an approved activity dated ``day``.

        Same-day activities leave the streak untouched; activities older than
        ``last_activity_date`` are ignored.
        """
        current = self.current_streak or 0
        last = self.last_activity_date

        if last is None:
            current = 1
        else:
            delta = (day - last).days
            if delta < 0:
                return
            if delta == 0:
                current = max(current, 1)
            elif delta == 1:
                current += 1
            else:
                current = 1

        self.current_streak = current
        self.longest_streak = max(self.longest_streak or 0, current)
        self.last_activity_date = day

