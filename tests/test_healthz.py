import os

import pytest
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")

from ecotrack import create_app
from ecotrack.extensions import build_cache_config
from ecotrack.models import db
from ecotrack.utils.logger import configure_logging


@pytest.fixture
def client():
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_ENGINE_OPTIONS": {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            },
        }
    )
    with app.app_context():
        db.create_all()
    with app.test_client() as c:
        yield c


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    payload = r.get_json()
    assert payload["ok"] is True
    assert "uptime_seconds" in payload
    assert payload["database"]["online"] is True


def test_readiness_and_liveness(client):
    assert client.get("/readyz").get_json() == {"ready": True}
    assert client.get("/livez").get_json() == {"alive": True}


def test_security_headers_present(client):
    r = client.get("/livez")
    assert r.headers.get("X-Frame-Options") == "DENY"
    assert "default-src 'none'" in r.headers.get("Content-Security-Policy", "")


def test_cache_backend_follows_redis_url():
    assert build_cache_config(None)["CACHE_TYPE"] == "SimpleCache"
    redis_config = build_cache_config("redis://localhost:6379/0", default_timeout=30)
    assert redis_config == {
        "CACHE_DEFAULT_TIMEOUT": 30,
        "CACHE_TYPE": "RedisCache",
        "CACHE_REDIS_URL": "redis://localhost:6379/0",
    }
    assert configure_logging(log_to_file=False) is None
