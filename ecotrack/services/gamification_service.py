"""Read-side views over points, badges and rewards."""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import cache
from ..models import db
from ..models.activity import Activity
from ..models.gamification import Badge, Reward, UserReward, UserStreak
from ..models.profile import Profile
from ..models.user import User
from .aggregates import compute_user_stats, monthly_counts, status_counts, type_breakdown
from .badge_service import badge_icons_for_users, unlocked_badge_ids
from .progress import badge_progress, reward_progress
from .seen_badges import SeenBadgeStore

LANDING_STATS_CACHE_KEY = "landing-stats"


def dashboard_for(user: User, seen_store: SeenBadgeStore | None = None) -> dict:
    """Everything the citizen dashboard renders, computed from one activity list."""

    profile = user.profile
    points = profile.points if profile else 0
    activities = (
        Activity.query.filter_by(user_id=user.id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .all()
    )
    streak = UserStreak.query.filter_by(user_id=user.id).first()
    current = streak.current_streak if streak else 0

    stats = compute_user_stats(activities, streak_days=current)
    badges = Badge.query.order_by(Badge.category.asc(), Badge.criteria_value.asc()).all()
    unlocked = unlocked_badge_ids(user.id)
    new_ids = (seen_store or SeenBadgeStore()).detect_new(user.id, unlocked)

    rewards = Reward.query.order_by(Reward.points_required.asc()).all()
    upcoming, progress = reward_progress(rewards, points)
    unlocked_rewards = {row.reward_id for row in UserReward.query.filter_by(user_id=user.id).all()}

    return {
        "profile": profile.to_dict() if profile else None,
        "role": user.role,
        "points": points,
        "stats": stats.to_dict(),
        "streak": {
            "current": current,
            "longest": streak.longest_streak if streak else 0,
            "last_activity_date": streak.last_activity_date.isoformat()
            if streak and streak.last_activity_date
            else None,
        },
        "badges": badge_progress(badges, stats, unlocked),
        "new_badge_ids": new_ids,
        "rewards": [
            {**reward.to_dict(), "unlocked": reward.id in unlocked_rewards} for reward in rewards
        ],
        "next_reward": upcoming.to_dict() if upcoming else None,
        "next_reward_progress": progress,
        "monthly": monthly_counts(activities),
        "by_type": type_breakdown(activities),
        "status_counts": status_counts(activities),
        "recent_activities": [activity.to_dict() for activity in activities[:10]],
    }


def leaderboard(limit: int | None = None) -> list[dict]:
    limit = limit or current_app.config.get("LEADERBOARD_SIZE", 50)
    profiles = (
        Profile.query.order_by(Profile.points.desc(), Profile.created_at.asc())
        .limit(limit)
        .all()
    )
    icons = badge_icons_for_users([profile.user_id for profile in profiles])
    return [
        {
            "rank": index,
            "user_id": profile.user_id,
            "name": profile.name,
            "city": profile.city,
            "avatar_url": profile.avatar_url,
            "points": profile.points,
            "badge_icons": icons.get(profile.user_id, []),
        }
        for index, profile in enumerate(profiles, start=1)
    ]


def get_landing_stats() -> dict:
    cached = cache.get(LANDING_STATS_CACHE_KEY)
    if cached is not None:
        return cached

    approved = (
        db.session.query(func.count(Activity.id)).filter(Activity.status == "approved").scalar()
    )
    profiles = db.session.query(func.count(Profile.id)).scalar()
    stats = {"approved_activities": int(approved or 0), "profiles": int(profiles or 0)}
    cache.set(
        LANDING_STATS_CACHE_KEY,
        stats,
        timeout=current_app.config.get("LANDING_STATS_CACHE_SECONDS", 120),
    )
    return stats


def admin_overview() -> dict:
    rows = db.session.query(Activity.status, Activity.activity_type).all()
    activities = [{"status": status, "activity_type": activity_type} for status, activity_type in rows]
    return {
        "status_counts": status_counts(activities),
        "by_type": type_breakdown(activities),
        "profiles": db.session.query(func.count(Profile.id)).scalar() or 0,
        "total_points": int(db.session.query(func.coalesce(func.sum(Profile.points), 0)).scalar() or 0),
    }


__all__ = ["admin_overview", "dashboard_for", "get_landing_stats", "leaderboard"]
