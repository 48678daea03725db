from flask import Blueprint, jsonify

from ..services.account_service import list_users_with_roles
from ..services.gamification_service import admin_overview
from ..utils.acl import admin_required

bp = Blueprint("admin", __name__)


@bp.route("/users")
@admin_required
def users():
    return jsonify({"users": list_users_with_roles()})


@bp.route("/overview")
@admin_required
def overview():
    return jsonify(admin_overview())


__all__ = ["bp"]
