from flask import Blueprint, jsonify, request

from ..models.organizer_application import APPLICATION_STATUSES
from ..services import organizer_service
from ..services.media_library import MediaUploadError, upload_image
from ..session_context import get_session_context
from ..utils.acl import admin_required
from ..utils.auth import login_required
from ..utils.responses import error_response, result_response

bp = Blueprint("organizers", __name__)


@bp.route("/api/organizer-applications", methods=["POST"])
@login_required
def apply():
    context = get_session_context()
    if request.mimetype == "multipart/form-data":
        payload = request.form.to_dict()
    else:
        payload = request.get_json(silent=True) or {}

    proof = request.files.get("proof")
    if proof is not None and proof.filename:
        try:
            payload["proof_url"] = upload_image(proof, kind="proof", owner_id=context.user_id)
        except MediaUploadError as exc:
            return error_response("invalid_input", str(exc))
    else:
        payload.pop("proof_url", None)

    return result_response(organizer_service.submit_application(context.user, payload), 201)


@bp.route("/api/organizer-applications/mine")
@login_required
def my_application():
    application = organizer_service.application_for(get_session_context().user_id)
    return jsonify({"application": application.to_dict() if application else None})


@bp.route("/api/admin/organizer-applications")
@admin_required
def list_applications():
    status = request.args.get("status") or None
    if status is not None and status not in APPLICATION_STATUSES:
        return error_response("invalid_input", "unknown status filter")
    return jsonify({"applications": organizer_service.list_applications(status)})


@bp.route("/api/admin/organizer-applications/<int:application_id>/approve", methods=["POST"])
@admin_required
def approve(application_id: int):
    remarks = (request.get_json(silent=True) or {}).get("remarks")
    return result_response(
        organizer_service.approve_application(application_id, get_session_context().user, remarks)
    )


@bp.route("/api/admin/organizer-applications/<int:application_id>/reject", methods=["POST"])
@admin_required
def reject(application_id: int):
    remarks = (request.get_json(silent=True) or {}).get("remarks")
    return result_response(
        organizer_service.reject_application(application_id, get_session_context().user, remarks)
    )


__all__ = ["bp"]
