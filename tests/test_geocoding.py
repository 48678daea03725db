import os

import pytest
import requests
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")

from ecotrack import create_app
from ecotrack.extensions import cache
from ecotrack.models import db
from ecotrack.models.profile import Profile
from ecotrack.models.user import User
from ecotrack.services import geocoding
from ecotrack.utils.generation import RequestGeneration


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


@pytest.fixture()
def app():
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
    yield app
    with app.app_context():
        db.drop_all()


def test_request_generation_tokens(app):
    with app.app_context():
        generation = RequestGeneration("lookups")
        first = generation.next("search")
        second = generation.next("search")
        other = generation.next("reverse")

        assert second == first + 1
        assert generation.is_current("search", first) is False
        assert generation.is_current("search", second) is True
        assert generation.is_current("reverse", other) is True
        assert generation.is_current((7, "event-form"), 1) is False


def test_generation_tokens_are_shared_through_the_cache(app):
    with app.app_context():
        # Two instances stand in for two workers reading the same cache.
        worker_a = RequestGeneration("lookups")
        worker_b = RequestGeneration("lookups")
        unrelated = RequestGeneration("other")

        token = worker_a.next((1, "event-form"))
        worker_b.next((1, "event-form"))

        assert worker_a.is_current((1, "event-form"), token) is False
        assert unrelated.next((1, "event-form")) == 1
        assert worker_a.key_for((1, "event-form")) == "generation:lookups:1:event-form"


def test_search_parses_coordinates(app, monkeypatch):
    seen = {}

    def fake_get(url, params=None, headers=None, timeout=None):
        seen.update(url=url, params=params, headers=headers)
        return FakeResponse(
            [
                {"display_name": "Catania, Sicily", "lat": "37.50", "lon": "15.08"},
                {"display_name": "broken"},
            ]
        )

    monkeypatch.setattr(geocoding.requests, "get", fake_get)
    with app.app_context():
        results = geocoding.search("Catania")

    assert results == [{"display_name": "Catania, Sicily", "lat": 37.5, "lon": 15.08}]
    assert seen["url"].endswith("/search")
    assert seen["params"]["q"] == "Catania"
    assert "User-Agent" in seen["headers"]


def test_failures_degrade_to_empty(app, monkeypatch):
    def failing_get(*args, **kwargs):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(geocoding.requests, "get", failing_get)
    with app.app_context():
        assert geocoding.search("Catania") == []
        assert geocoding.reverse(37.5, 15.08) is None


def test_reverse_is_cached(app, monkeypatch):
    calls = []

    def fake_get(url, **kwargs):
        calls.append(url)
        return FakeResponse({"display_name": "Via Etnea, Catania"})

    monkeypatch.setattr(geocoding.requests, "get", fake_get)
    with app.app_context():
        assert geocoding.reverse(37.5, 15.08) == {"display_name": "Via Etnea, Catania"}
        assert geocoding.reverse(37.5, 15.08) == {"display_name": "Via Etnea, Catania"}

    assert len(calls) == 1


def test_superseded_search_is_flagged(app, monkeypatch):
    def fake_get(url, **kwargs):
        # A newer lookup for the same field starts while this one is in flight.
        geocoding.geocoding_generation.next("location-field")
        return FakeResponse([{"display_name": "Old", "lat": "1", "lon": "2"}])

    monkeypatch.setattr(geocoding.requests, "get", fake_get)
    with app.app_context():
        results, current = geocoding.search_latest("location-field", "Old")

    assert results
    assert current is False


def test_geocode_routes(app, monkeypatch):
    monkeypatch.setattr(
        geocoding.requests,
        "get",
        lambda url, **kwargs: FakeResponse([{"display_name": "Acireale", "lat": "37.6", "lon": "15.16"}])
        if url.endswith("/search")
        else FakeResponse({"display_name": "Piazza Duomo"}),
    )
    with app.app_context():
        user = User(email="mapper@example.com")
        user.profile = Profile(name="Mapper", points=0)
        db.session.add(user)
        db.session.commit()
        user_id = user.id

    client = app.test_client()
    assert client.get("/api/geocode/search").get_json() == {"results": []}
    assert client.get("/api/geocode/search?q=Acireale").get_json()["results"][0]["lat"] == 37.6
    assert client.get("/api/geocode/reverse?lat=north").status_code == 400
    assert client.get("/api/geocode/reverse?lat=37.5&lon=15.0").get_json() == {
        "address": {"display_name": "Piazza Duomo"}
    }

    with client.session_transaction() as sess:
        sess["user_id"] = user_id
    scoped = client.get("/api/geocode/search?q=Acireale&purpose=event-form").get_json()
    assert scoped["superseded"] is False
    assert scoped["results"][0]["display_name"] == "Acireale"


def test_unknown_purposes_are_rejected_without_growing_state(app, monkeypatch):
    monkeypatch.setattr(
        geocoding.requests,
        "get",
        lambda url, **kwargs: FakeResponse([{"display_name": "Nicolosi", "lat": "37.6", "lon": "15.0"}]),
    )
    with app.app_context():
        user = User(email="typer@example.com")
        user.profile = Profile(name="Typer", points=0)
        db.session.add(user)
        db.session.commit()
        user_id = user.id
        baseline = len(cache.cache._cache)

    client = app.test_client()
    with client.session_transaction() as sess:
        sess["user_id"] = user_id

    for index in range(200):
        response = client.get(f"/api/geocode/search?q=x&purpose=p{index}")
        assert response.status_code == 400
    assert client.get("/api/geocode/reverse?lat=1&lon=2&purpose=p1").status_code == 400

    for _ in range(5):
        assert client.get("/api/geocode/search?q=x&purpose=event-form").status_code == 200

    with app.app_context():
        assert len(cache.cache._cache) == baseline + 1
