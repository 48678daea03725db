"""Badge and reward unlock evaluation.

Both passes only add rows to the current session; the caller owns the
transaction so unlocks land together with the points change that caused them.
"""

from __future__ import annotations

from datetime import datetime, timezone

from ..models import db
from ..models.activity import Activity
from ..models.gamification import Badge, Reward, UserBadge, UserReward, UserStreak
from ..models.profile import Profile
from ..utils.logger import get_logger
from .aggregates import compute_user_stats
from .progress import UserStats, is_unlocked

logger = get_logger(__name__)


def current_streak(user_id: int) -> int:
    streak = UserStreak.query.filter_by(user_id=user_id).first()
    return streak.current_streak if streak else 0


def user_stats(user_id: int) -> UserStats:
    approved = (
        Activity.query.filter_by(user_id=user_id, status="approved")
        .with_entities(Activity.activity_type, Activity.waste_kg, Activity.status)
        .all()
    )
    rows = [
        {"activity_type": row.activity_type, "waste_kg": row.waste_kg, "status": row.status}
        for row in approved
    ]
    return compute_user_stats(rows, streak_days=current_streak(user_id))


def unlocked_badge_ids(user_id: int) -> list[int]:
    return [
        row.badge_id
        for row in UserBadge.query.filter_by(user_id=user_id)
        .order_by(UserBadge.unlocked_at.asc(), UserBadge.id.asc())
        .all()
    ]


def check_and_award_badges(user_id: int) -> list[Badge]:
    """Record every badge whose threshold the user now meets.

    Existing unlocks are never removed.
    """

    stats = user_stats(user_id)
    already = set(unlocked_badge_ids(user_id))
    now = datetime.now(timezone.utc)
    awarded: list[Badge] = []

    for badge in Badge.query.order_by(Badge.id.asc()).all():
        if badge.id in already:
            continue
        if is_unlocked(badge.criteria_type, badge.criteria_value, stats):
            db.session.add(UserBadge(user_id=user_id, badge_id=badge.id, unlocked_at=now))
            awarded.append(badge)

    if awarded:
        db.session.flush()
        logger.info(
            "[BADGES] user=%s unlocked %s",
            user_id,
            ", ".join(badge.name for badge in awarded),
        )
    return awarded


def check_and_award_rewards(user_id: int) -> list[Reward]:
    """Unlock rewards whose threshold the current balance has reached.

    Spending points later does not revoke an unlocked reward.
    """

    # Balances are changed with bulk UPDATEs; reload instead of trusting the identity map.
    profile = Profile.query.filter_by(user_id=user_id).populate_existing().first()
    if profile is None:
        return []

    owned = {
        row.reward_id for row in UserReward.query.filter_by(user_id=user_id).all()
    }
    reachable = (
        Reward.query.filter(Reward.points_required <= profile.points)
        .order_by(Reward.points_required.asc())
        .all()
    )
    awarded = [reward for reward in reachable if reward.id not in owned]
    for reward in awarded:
        db.session.add(UserReward(user_id=user_id, reward_id=reward.id))

    if awarded:
        db.session.flush()
        logger.info("[BADGES] user=%s unlocked %d reward(s)", user_id, len(awarded))
    return awarded


def badge_icons_for_users(user_ids: list[int], limit: int = 3) -> dict[int, list[str]]:
    """Return up to ``limit`` earliest badge icons per user."""

    if not user_ids:
        return {}
    rows = (
        db.session.query(UserBadge.user_id, Badge.icon)
        .join(Badge, Badge.id == UserBadge.badge_id)
        .filter(UserBadge.user_id.in_(user_ids))
        .order_by(UserBadge.user_id.asc(), UserBadge.unlocked_at.asc(), UserBadge.id.asc())
        .all()
    )
    icons: dict[int, list[str]] = {user_id: [] for user_id in user_ids}
    for user_id, icon in rows:
        bucket = icons.setdefault(user_id, [])
        if len(bucket) < limit:
            bucket.append(icon)
    return icons


__all__ = [
    "badge_icons_for_users",
    "check_and_award_badges",
    "check_and_award_rewards",
    "current_streak",
    "unlocked_badge_ids",
    "user_stats",
]
