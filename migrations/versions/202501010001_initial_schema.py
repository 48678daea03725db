"""Initial EcoTrack schema"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202501010001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=128), nullable=True),
        _timestamp("banned_until", nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("email = lower(email)", name="ck_users_email_lowercase"),
    )

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="citizen"),
        sa.CheckConstraint(
            "role IN ('citizen', 'organizer', 'admin')", name="ck_user_roles_role"
        ),
    )

    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("avatar_url", sa.String(length=512), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "account_status", sa.String(length=20), nullable=False, server_default="active"
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("points >= 0", name="ck_profiles_points_non_negative"),
        sa.CheckConstraint(
            "account_status IN ('active', 'suspended', 'banned')",
            name="ck_profiles_account_status",
        ),
    )

    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(length=512), nullable=True),
        sa.Column("waste_kg", sa.Float(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("points_awarded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "reviewed_by",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _timestamp("reviewed_at", nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "type IN ('tree_plantation', 'cleanup', 'recycling', 'eco_habit')",
            name="ck_activities_type",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="ck_activities_status"
        ),
        sa.CheckConstraint("points_awarded >= 0", name="ck_activities_points_non_negative"),
    )
    op.create_index("ix_activities_user_id", "activities", ["user_id"])
    op.create_index("ix_activities_status", "activities", ["status"])
    op.create_index("ix_activities_user_created", "activities", ["user_id", "created_at"])

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        _timestamp("event_date"),
        sa.Column("attendance_points", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("event_type", sa.String(length=32), nullable=False, server_default="cleanup"),
        sa.Column("checkin_code", sa.String(length=32), nullable=False),
        sa.Column(
            "created_by",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "attendance_points >= 0", name="ck_events_attendance_points_non_negative"
        ),
    )
    op.create_index("ix_events_event_date", "events", ["event_date"])
    op.create_index("ix_events_created_by", "events", ["created_by"])

    for table, timestamp_column, extra_columns in (
        ("event_participants", "joined_at", []),
        (
            "event_checkins",
            "checked_in_at",
            [sa.Column("points_awarded", sa.Integer(), nullable=False, server_default="0")],
        ),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "event_id",
                sa.Integer(),
                sa.ForeignKey("events.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column(
                "user_id",
                sa.Integer(),
                sa.ForeignKey("users.id", ondelete="CASCADE"),
                nullable=False,
            ),
            *extra_columns,
            _timestamp(timestamp_column),
            sa.UniqueConstraint("event_id", "user_id", name=f"uq_{table}_event_user"),
        )
        op.create_index(f"ix_{table}_event_id", table, ["event_id"])
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])

    op.create_table(
        "badges",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("icon", sa.String(length=16), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("criteria_type", sa.String(length=32), nullable=False),
        sa.Column("criteria_value", sa.Float(), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "category IN ('milestone', 'streak', 'community_impact')",
            name="ck_badges_category",
        ),
        sa.CheckConstraint("criteria_value > 0", name="ck_badges_criteria_positive"),
    )

    op.create_table(
        "user_badges",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "badge_id",
            sa.Integer(),
            sa.ForeignKey("badges.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("unlocked_at"),
        sa.UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
    )
    op.create_index("ix_user_badges_user_id", "user_badges", ["user_id"])

    op.create_table(
        "rewards",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("icon", sa.String(length=16), nullable=False),
        sa.Column("points_required", sa.Integer(), nullable=False),
        sa.CheckConstraint("points_required > 0", name="ck_rewards_points_positive"),
    )
    op.create_index("ix_rewards_points_required", "rewards", ["points_required"])

    op.create_table(
        "user_rewards",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "reward_id",
            sa.Integer(),
            sa.ForeignKey("rewards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("unlocked_at"),
        sa.UniqueConstraint("user_id", "reward_id", name="uq_user_rewards_user_reward"),
    )
    op.create_index("ix_user_rewards_user_id", "user_rewards", ["user_id"])

    op.create_table(
        "user_streaks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_activity_date", sa.Date(), nullable=True),
        sa.CheckConstraint("current_streak >= 0", name="ck_user_streaks_current_non_negative"),
        sa.CheckConstraint("longest_streak >= 0", name="ck_user_streaks_longest_non_negative"),
    )

    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=160), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=16), nullable=False),
        sa.Column("points_cost", sa.Integer(), nullable=False),
        sa.Column("coupon_code", sa.String(length=64), nullable=False),
        _timestamp("expiry_date", nullable=True),
        sa.Column("max_redemptions", sa.Integer(), nullable=True),
        sa.Column("total_redeemed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        sa.CheckConstraint("points_cost >= 0", name="ck_coupons_points_cost_non_negative"),
        sa.CheckConstraint(
            "total_redeemed >= 0", name="ck_coupons_total_redeemed_non_negative"
        ),
        sa.CheckConstraint(
            "max_redemptions IS NULL OR total_redeemed <= max_redemptions",
            name="ck_coupons_within_max_redemptions",
        ),
    )

    op.create_table(
        "user_coupons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "coupon_id",
            sa.Integer(),
            sa.ForeignKey("coupons.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("points_spent", sa.Integer(), nullable=False),
        _timestamp("redeemed_at"),
        sa.UniqueConstraint("user_id", "coupon_id", name="uq_user_coupons_user_coupon"),
    )
    op.create_index("ix_user_coupons_user_id", "user_coupons", ["user_id"])

    op.create_table(
        "organizer_applications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("organization_name", sa.String(length=200), nullable=False),
        sa.Column("organizer_type", sa.String(length=32), nullable=False),
        sa.Column("official_email", sa.String(length=255), nullable=False),
        sa.Column("contact_number", sa.String(length=40), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=False),
        sa.Column("website_url", sa.String(length=512), nullable=True),
        sa.Column("proof_url", sa.String(length=512), nullable=True),
        sa.Column("proof_type", sa.String(length=40), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("admin_remarks", sa.Text(), nullable=True),
        sa.Column(
            "reviewed_by",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _timestamp("reviewed_at", nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_organizer_applications_status",
        ),
        sa.CheckConstraint(
            "organizer_type IN ('ngo', 'college_school', 'company_csr', 'community_group')",
            name="ck_organizer_applications_type",
        ),
    )
    op.create_index(
        "ix_organizer_applications_status", "organizer_applications", ["status"]
    )


def downgrade() -> None:
    op.drop_index("ix_organizer_applications_status", table_name="organizer_applications")
    op.drop_table("organizer_applications")
    op.drop_index("ix_user_coupons_user_id", table_name="user_coupons")
    op.drop_table("user_coupons")
    op.drop_table("coupons")
    op.drop_table("user_streaks")
    op.drop_index("ix_user_rewards_user_id", table_name="user_rewards")
    op.drop_table("user_rewards")
    op.drop_index("ix_rewards_points_required", table_name="rewards")
    op.drop_table("rewards")
    op.drop_index("ix_user_badges_user_id", table_name="user_badges")
    op.drop_table("user_badges")
    op.drop_table("badges")
    for table in ("event_checkins", "event_participants"):
        op.drop_index(f"ix_{table}_user_id", table_name=table)
        op.drop_index(f"ix_{table}_event_id", table_name=table)
        op.drop_table(table)
    op.drop_index("ix_events_created_by", table_name="events")
    op.drop_index("ix_events_event_date", table_name="events")
    op.drop_table("events")
    op.drop_index("ix_activities_user_created", table_name="activities")
    op.drop_index("ix_activities_status", table_name="activities")
    op.drop_index("ix_activities_user_id", table_name="activities")
    op.drop_table("activities")
    op.drop_table("profiles")
    op.drop_table("user_roles")
    op.drop_table("users")
