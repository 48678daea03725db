"""JSON error envelope shared by every API blueprint."""

from __future__ import annotations

from flask import jsonify

ERROR_STATUS = {
    "invalid_input": 400,
    "insufficient_points": 400,
    "sold_out": 400,
    "expired": 400,
    "inactive": 400,
    "invalid_code": 400,
    "auth_required": 401,
    "forbidden": 403,
    "not_found": 404,
    "already_redeemed": 409,
    "already_checked_in": 409,
    "already_applied": 409,
    "rate_limited": 429,
    "database_error": 500,
}

ERROR_MESSAGES = {
    "invalid_input": "The request is missing required fields or contains invalid values.",
    "insufficient_points": "Not enough points.",
    "sold_out": "This coupon is sold out.",
    "expired": "This coupon has expired.",
    "inactive": "This coupon is no longer available.",
    "invalid_code": "Invalid check-in code.",
    "auth_required": "Please sign in first.",
    "forbidden": "You do not have permission to perform this action.",
    "not_found": "Resource not found.",
    "already_redeemed": "You have already redeemed this coupon.",
    "already_checked_in": "You have already checked in to this event.",
    "already_applied": "You have already submitted an application.",
    "rate_limited": "Too many requests. Please slow down.",
    "database_error": "Something went wrong. Please try again.",
}


def status_for(code: str) -> int:
    return ERROR_STATUS.get(code, 400)


def error_response(code: str, message: str | None = None, status: int | None = None):
    payload = {
        "ok": False,
        "error": code,
        "message": message or ERROR_MESSAGES.get(code, code),
    }
    return jsonify(payload), status or status_for(code)


def result_response(result: dict, success_status: int = 200):
    """Translate a service result dict into an HTTP response."""

    if result.get("ok"):
        return jsonify(result), success_status
    return error_response(result.get("error", "database_error"), result.get("message"))


__all__ = ["ERROR_STATUS", "error_response", "result_response", "status_for"]
