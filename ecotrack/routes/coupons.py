from flask import Blueprint, jsonify, request

from ..services import coupon_service
from ..session_context import get_session_context
from ..utils.acl import admin_required
from ..utils.auth import login_required
from ..utils.responses import result_response

bp = Blueprint("coupons", __name__)


@bp.route("/api/coupons")
def list_coupons():
    return jsonify({"coupons": coupon_service.list_available_coupons(get_session_context().user)})


@bp.route("/api/coupons/<int:coupon_id>/redeem", methods=["POST"])
@login_required
def redeem(coupon_id: int):
    return result_response(coupon_service.redeem_coupon(get_session_context().user, coupon_id))


@bp.route("/api/coupons/mine")
@login_required
def my_coupons():
    return jsonify({"coupons": coupon_service.list_user_coupons(get_session_context().user_id)})


@bp.route("/api/admin/coupons", methods=["POST"])
@admin_required
def create_coupon():
    payload = request.get_json(silent=True) or {}
    return result_response(coupon_service.create_coupon(payload), 201)


__all__ = ["bp"]
