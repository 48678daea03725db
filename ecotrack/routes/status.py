import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..models import db

status_bp = Blueprint("status", __name__)

_START_TIME = time.time()


@status_bp.route("/healthz")
def healthz():
    """Liveness plus a cheap database round trip."""
    database_online = True
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.warning("[HEALTH] database check failed: %s", exc)
        db.session.rollback()
        database_online = False

    payload = {
        "ok": database_online,
        "uptime_seconds": int(time.time() - _START_TIME),
        "database": {"online": database_online},
        "env": current_app.config.get("APP_ENV"),
    }
    return jsonify(payload), 200 if database_online else 503


@status_bp.route("/readyz")
def readiness_check():
    """Kubernetes-style readiness probe"""
    return jsonify({"ready": True}), 200


@status_bp.route("/livez")
def liveness_check():
    """Kubernetes-style liveness probe"""
    return jsonify({"alive": True}), 200
