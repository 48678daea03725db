from flask import Blueprint, jsonify, request

from ..services import geocoding
from ..utils.generation import purpose_key
from ..utils.responses import error_response

bp = Blueprint("geo", __name__)


def _lookup_key():
    return purpose_key(request.args.get("purpose"), geocoding.LOOKUP_PURPOSES)


@bp.route("/search")
def search():
    query = (request.args.get("q") or "").strip()
    if not query:
        return jsonify({"results": []})

    try:
        key = _lookup_key()
    except ValueError as exc:
        return error_response("invalid_input", str(exc))
    if key is None:
        return jsonify({"results": geocoding.search(query)})
    results, current = geocoding.search_latest(key, query)
    return jsonify({"results": results if current else [], "superseded": not current})


@bp.route("/reverse")
def reverse():
    try:
        lat = float(request.args["lat"])
        lon = float(request.args["lon"])
        key = _lookup_key()
    except (KeyError, TypeError, ValueError):
        return error_response("invalid_input", "lat, lon and a known purpose are required")

    if key is None:
        result = geocoding.reverse(lat, lon)
        return jsonify({"address": result})
    result, current = geocoding.reverse_latest(key, lat, lon)
    return jsonify({"address": result if current else None, "superseded": not current})


__all__ = ["bp"]
