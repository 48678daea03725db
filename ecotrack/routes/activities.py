from flask import Blueprint, jsonify, request

from ..services import activity_service
from ..services.media_library import MediaUploadError, upload_image
from ..session_context import get_session_context
from ..utils.acl import role_required
from ..utils.auth import login_required
from ..utils.responses import error_response, result_response

bp = Blueprint("activities", __name__)


@bp.route("", methods=["POST"])
@login_required
def submit():
    context = get_session_context()
    if request.mimetype == "multipart/form-data":
        payload = request.form.to_dict()
    else:
        payload = request.get_json(silent=True) or {}

    image = request.files.get("image")
    if image is not None and image.filename:
        try:
            payload["image_url"] = upload_image(image, kind="activity", owner_id=context.user_id)
        except MediaUploadError as exc:
            return error_response("invalid_input", str(exc))
    else:
        payload.pop("image_url", None)

    return result_response(activity_service.submit_activity(context.user, payload), 201)


@bp.route("/mine")
@login_required
def mine():
    activities = activity_service.list_user_activities(get_session_context().user_id)
    return jsonify({"activities": [activity.to_dict() for activity in activities]})


@bp.route("/pending")
@role_required("organizer", "admin")
def pending():
    return jsonify({"activities": activity_service.list_pending_activities()})


@bp.route("/<int:activity_id>/approve", methods=["POST"])
@login_required
def approve(activity_id: int):
    return result_response(activity_service.approve_activity(activity_id, get_session_context().user))


@bp.route("/<int:activity_id>/reject", methods=["POST"])
@login_required
def reject(activity_id: int):
    return result_response(activity_service.reject_activity(activity_id, get_session_context().user))


@bp.route("/<int:activity_id>/certificate")
@login_required
def certificate(activity_id: int):
    return result_response(activity_service.certificate_for(activity_id, get_session_context().user))


__all__ = ["bp"]
