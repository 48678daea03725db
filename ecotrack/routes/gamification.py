from flask import Blueprint, jsonify

from ..models.gamification import Badge, Reward
from ..services import gamification_service
from ..services.badge_service import unlocked_badge_ids, user_stats
from ..services.progress import badge_progress
from ..session_context import get_session_context
from ..utils.auth import login_required

bp = Blueprint("gamification", __name__)


@bp.route("/api/dashboard")
@login_required
def dashboard():
    return jsonify(gamification_service.dashboard_for(get_session_context().user))


@bp.route("/api/badges")
def badges():
    catalogue = Badge.query.order_by(Badge.category.asc(), Badge.criteria_value.asc()).all()
    context = get_session_context()
    if not context.is_authenticated:
        return jsonify({"badges": [badge.to_dict() for badge in catalogue]})
    stats = user_stats(context.user_id)
    return jsonify(
        {
            "badges": badge_progress(catalogue, stats, unlocked_badge_ids(context.user_id)),
            "stats": stats.to_dict(),
        }
    )


@bp.route("/api/rewards")
def rewards():
    catalogue = Reward.query.order_by(Reward.points_required.asc()).all()
    return jsonify({"rewards": [reward.to_dict() for reward in catalogue]})


@bp.route("/api/leaderboard")
def leaderboard():
    return jsonify({"leaderboard": gamification_service.leaderboard()})


@bp.route("/api/landing-stats")
def landing_stats():
    return jsonify(gamification_service.get_landing_stats())


__all__ = ["bp"]
