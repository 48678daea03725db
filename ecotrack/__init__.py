from flask import Flask, g, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
import os
import sys
import warnings
from datetime import datetime, timedelta, timezone
from time import perf_counter
from urllib.parse import urlparse, urlunparse

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool, StaticPool

from .cli import register_cli_commands
from .extensions import init_extensions
from .models import db
from .routes.activities import bp as activities_bp
from .routes.admin import bp as admin_bp
from .routes.auth import bp as auth_bp, register_rate_limits as register_auth_rate_limits
from .routes.coupons import bp as coupons_bp
from .routes.events import bp as events_bp
from .routes.functions import bp as functions_bp, register_rate_limits as register_function_rate_limits
from .routes.gamification import bp as gamification_bp
from .routes.geo import bp as geo_bp
from .routes.organizers import bp as organizers_bp
from .routes.status import status_bp
from .security import build_csp, talisman
from .utils.logger import configure_logging
from .utils.responses import error_response
from config import Config, get_database_uri_from_env

login_manager = LoginManager()
limiter = None
migrate = Migrate()

SLOW_REQUEST_THRESHOLD_MS = 300
DEFAULT_LIMITS = ["2000 per day", "300 per hour"]
PLACEHOLDER_SECRETS = {"", "dev", "change-me"}
MIN_PRODUCTION_SECRET_LENGTH = 32
POOL_SIZING_KEYS = ("pool_size", "max_overflow", "pool_recycle")
HTTP_ERROR_CODES = {401: "auth_required", 403: "forbidden", 404: "not_found", 429: "rate_limited"}


def _mask_database_uri(uri: str) -> str:
    try:
        parsed = urlparse(uri)
    except ValueError:
        return "<unavailable>"
    if not parsed.password:
        return uri
    return urlunparse(parsed._replace(netloc=parsed.netloc.replace(parsed.password, "***")))


def _configure_secret_key(app: Flask, app_env: str) -> None:
    """Refuse to boot production with a placeholder or short SECRET_KEY."""

    secret_key = str(app.config.get("SECRET_KEY") or "")
    is_placeholder = secret_key in PLACEHOLDER_SECRETS

    if app.config.get("TESTING"):
        if is_placeholder:
            app.config["SECRET_KEY"] = "test-secret-key"
        return

    if app_env == "production":
        if is_placeholder or len(secret_key) < MIN_PRODUCTION_SECRET_LENGTH:
            app.logger.critical(
                "[BOOT] SECRET_KEY must be set to at least %d characters in production.",
                MIN_PRODUCTION_SECRET_LENGTH,
            )
            sys.exit(1)
        return

    if is_placeholder:
        app.config["SECRET_KEY"] = "dev-secret-key"
        app.logger.warning("[BOOT] SECRET_KEY not provided; using development fallback.")


def _engine_options(database_uri: str, overrides: dict) -> dict:
    options = {
        "pool_size": 5,
        "max_overflow": 5,
        "pool_pre_ping": True,
        "pool_recycle": 280,
    }
    options.update(overrides)

    poolclass = options.get("poolclass")
    uses_static_pool = isinstance(poolclass, type) and issubclass(poolclass, StaticPool)
    if database_uri.startswith("sqlite") or uses_static_pool:
        # SQLite files and the in-memory StaticPool reject queue sizing.
        for key in POOL_SIZING_KEYS:
            options.pop(key, None)
    elif isinstance(poolclass, type) and not issubclass(poolclass, QueuePool):
        options.pop("pool_size", None)
        options.pop("max_overflow", None)
    return options


def _configure_database(app: Flask, config_overrides: dict | None) -> None:
    if config_overrides and config_overrides.get("SQLALCHEMY_DATABASE_URI"):
        source = "overrides"
    else:
        database_url, source = get_database_uri_from_env(Config.SQLALCHEMY_DATABASE_URI)
        app.config["SQLALCHEMY_DATABASE_URI"] = database_url

    database_uri = app.config["SQLALCHEMY_DATABASE_URI"]
    app.logger.info(
        "[BOOT] Database resolved from %s: %s", source, _mask_database_uri(database_uri)
    )
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = _engine_options(
        database_uri, dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    )


def create_app(config_overrides: dict | None = None):
    global limiter
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    log_path = configure_logging(
        app.config.get("LOG_DIR"),
        level=app.config.get("LOG_LEVEL", "INFO"),
        log_to_file=app.config.get("LOG_TO_FILE", True),
    )
    app.logger.info("[BOOT] Logging configured. Writing to %s", log_path or "stderr")

    warnings.filterwarnings("ignore", message="Using the in-memory storage")

    app_env = (
        os.getenv("APP_ENV")
        or app.config.get("APP_ENV")
        or os.getenv("FLASK_ENV")
        or "development"
    ).lower()
    app.config["APP_ENV"] = app_env
    is_production = app_env == "production"

    _configure_secret_key(app, app_env)

    if is_production:
        app.config["SESSION_COOKIE_SECURE"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = app.config.get("SESSION_COOKIE_SAMESITE") or "Lax"
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=30)
    app.config.setdefault("COMPRESS_ALGORITHM", ["br", "gzip"])
    if not app.config.get("MAX_CONTENT_LENGTH"):
        app.config["MAX_CONTENT_LENGTH"] = app.config["MAX_UPLOAD_BYTES"] + 1024 * 1024
    app.config.setdefault("RATELIMIT_ENABLED", not app.config.get("TESTING", False))
    app.config["START_TIME"] = datetime.now(timezone.utc)

    _configure_database(app, config_overrides)

    # Honour proxy headers so generated URLs keep the public scheme and host.
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)  # type: ignore[attr-defined]

    db.init_app(app)
    migrate.init_app(app, db)

    login_manager.init_app(app)
    login_manager.session_protection = "basic"

    from .models.user import User  # imported lazily to avoid circular imports

    @login_manager.user_loader
    def load_user(user_id: str):  # pragma: no cover - thin integration wrapper
        try:
            user = db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None
        except SQLAlchemyError as e:
            app.logger.error("[LOGIN] user_loader failed: %s", e, exc_info=True)
            db.session.rollback()
            return None
        if user is None or user.is_banned():
            return None
        return user

    talisman.init_app(
        app,
        content_security_policy=build_csp(),
        force_https=is_production,
        session_cookie_secure=app.config["SESSION_COOKIE_SECURE"],
        frame_options="DENY",
    )

    redis_url = os.getenv("REDIS_URL")
    init_extensions(app, redis_url)

    limiter_options = {"storage_uri": redis_url} if redis_url else {}
    limiter = Limiter(
        key_func=get_remote_address,
        app=app,
        default_limits=DEFAULT_LIMITS,
        **limiter_options,
    )

    app.extensions["limiter"] = limiter

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(activities_bp, url_prefix="/api/activities")
    app.register_blueprint(events_bp)
    app.register_blueprint(gamification_bp)
    app.register_blueprint(coupons_bp)
    app.register_blueprint(organizers_bp)
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
    app.register_blueprint(functions_bp, url_prefix="/functions/v1")
    app.register_blueprint(geo_bp, url_prefix="/api/geocode")
    app.register_blueprint(status_bp)

    register_auth_rate_limits(app)
    register_function_rate_limits(app)
    register_cli_commands(app)

    @app.before_request
    def start_request_timer():  # pragma: no cover - tiny helper
        g._request_started_at = perf_counter()

    @app.after_request
    def finalize_response(response):  # pragma: no cover - thin instrumentation
        started_at = getattr(g, "_request_started_at", None)
        if started_at is not None:
            elapsed_ms = (perf_counter() - started_at) * 1000
            if elapsed_ms > SLOW_REQUEST_THRESHOLD_MS:
                app.logger.warning(
                    "[SLOW] %s %s took %.1f ms", request.method, request.path, elapsed_ms
                )
        return response

    @app.errorhandler(HTTPException)
    def render_http_error(error: HTTPException):
        code = HTTP_ERROR_CODES.get(error.code, "invalid_input")
        return error_response(code, error.description, status=error.code)

    @app.errorhandler(500)
    def render_internal_error(error):  # pragma: no cover - presentation only
        app.logger.exception("[500] Internal server error")
        db.session.rollback()
        return error_response("database_error", status=500)

    app.logger.info("[BOOT] EcoTrack ready (env=%s)", app_env)
    return app
