from flask import Blueprint, jsonify, request

from ..services import event_service
from ..session_context import get_session_context
from ..utils.acl import role_required
from ..utils.auth import login_required
from ..utils.responses import error_response, result_response

bp = Blueprint("events", __name__)


@bp.route("/api/events")
def list_events():
    return jsonify({"events": event_service.list_events(get_session_context().user)})


@bp.route("/api/events", methods=["POST"])
@role_required("organizer", "admin")
def create_event():
    payload = request.get_json(silent=True) or {}
    return result_response(event_service.create_event(get_session_context().user, payload), 201)


@bp.route("/api/events/<int:event_id>")
def event_detail(event_id: int):
    return result_response(event_service.event_detail(event_id, get_session_context().user))


@bp.route("/api/events/<int:event_id>", methods=["DELETE"])
@login_required
def delete_event(event_id: int):
    return result_response(event_service.delete_event(event_id, get_session_context().user))


@bp.route("/api/events/<int:event_id>/join", methods=["POST"])
@login_required
def join_event(event_id: int):
    return result_response(event_service.join_event(event_id, get_session_context().user))


@bp.route("/api/events/<int:event_id>/leave", methods=["POST"])
@login_required
def leave_event(event_id: int):
    return result_response(event_service.leave_event(event_id, get_session_context().user))


@bp.route("/api/events/checkin", methods=["POST"])
@login_required
def checkin():
    payload = request.get_json(silent=True) or {}
    if "payload" in payload:
        parsed = event_service.parse_checkin_payload(payload.get("payload"))
        if parsed is None:
            return error_response("invalid_input", "Scanned code is not an EcoTrack check-in code.")
        event_id, code = parsed
    else:
        try:
            event_id = int(payload.get("event_id"))
        except (TypeError, ValueError):
            return error_response("invalid_input", "event_id and code are required")
        code = payload.get("code")

    return result_response(event_service.checkin_event(event_id, code, get_session_context().user))


@bp.route("/api/checkins/mine")
@login_required
def my_checkins():
    return jsonify({"checkins": event_service.checkin_history(get_session_context().user_id)})


@bp.route("/api/organizer/events")
@role_required("organizer", "admin")
def organizer_events():
    return jsonify({"events": event_service.organizer_events(get_session_context().user)})


__all__ = ["bp"]
