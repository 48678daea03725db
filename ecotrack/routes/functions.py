"""HTTP functions with their own request/response contracts.

They answer ``{"error": message}`` rather than the API's error envelope.
"""

from flask import Blueprint, jsonify, request

from ..services.account_service import AccountStatusError, set_account_status
from ..services.image_verification import (
    VERIFICATION_PURPOSES,
    VerificationError,
    should_withhold_submission,
    verify_activity_image,
    verify_latest,
)
from ..session_context import get_session_context
from ..utils.generation import purpose_key

bp = Blueprint("functions", __name__)


@bp.route("/manage-user-status", methods=["POST"])
def manage_user_status():
    payload = request.get_json(silent=True) or {}
    try:
        set_account_status(
            get_session_context().user,
            payload.get("user_id"),
            payload.get("status"),
        )
    except AccountStatusError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"success": True})


@bp.route("/verify-activity-image", methods=["POST"])
def verify_activity_image_view():
    payload = request.get_json(silent=True)
    if payload is None and request.get_data():
        return jsonify({"error": "Request body must be valid JSON"}), 400
    if not isinstance(payload, dict):
        payload = {}

    image_base64 = payload.get("imageBase64")
    activity_type = payload.get("activityType")
    if not image_base64 or not activity_type:
        return jsonify({"error": "imageBase64 and activityType are required"}), 400

    try:
        key = purpose_key(payload.get("purpose"), VERIFICATION_PURPOSES)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        if key is None:
            result = verify_activity_image(image_base64, activity_type)
        else:
            result = verify_latest(key, image_base64, activity_type)
    except VerificationError as exc:
        return jsonify({"error": exc.message}), exc.status_code

    if result is None:
        # The activity type changed while this check was running.
        return jsonify({"superseded": True})
    return jsonify({**result, "withhold": should_withhold_submission(result)})


def register_rate_limits(app) -> None:
    limiter = app.extensions.get("limiter")
    if not limiter:
        return

    limiter.limit("30/minute")(manage_user_status)
    limiter.limit("20/minute")(verify_activity_image_view)


__all__ = ["bp", "register_rate_limits"]
