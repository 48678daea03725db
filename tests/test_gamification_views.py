import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")

from ecotrack import create_app
from ecotrack.cli import seed_catalog
from ecotrack.models import db
from ecotrack.models.activity import Activity
from ecotrack.models.gamification import Badge, UserBadge, UserReward, UserStreak
from ecotrack.models.profile import Profile
from ecotrack.models.user import User, UserRole
from ecotrack.services.badge_service import (
    badge_icons_for_users,
    check_and_award_badges,
    check_and_award_rewards,
)
from ecotrack.services.gamification_service import (
    admin_overview,
    dashboard_for,
    get_landing_stats,
    leaderboard,
)
from ecotrack.services.seen_badges import SeenBadgeStore


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
        seed_catalog()
    yield app
    with app.app_context():
        db.drop_all()


def _create_user(email: str, points: int = 0, role: str = "citizen", name: str | None = None) -> User:
    user = User(email=email)
    user.profile = Profile(name=name or email.split("@")[0], points=points)
    user.role_assignment = UserRole(role=role)
    user.streak = UserStreak(current_streak=0, longest_streak=0)
    db.session.add(user)
    db.session.commit()
    return user


def _add_activity(user: User, activity_type: str, status: str = "approved", days_ago: int = 0, **kwargs):
    activity = Activity(
        user_id=user.id,
        activity_type=activity_type,
        status=status,
        created_at=datetime.now(timezone.utc) - timedelta(days=days_ago),
        **kwargs,
    )
    db.session.add(activity)
    db.session.commit()
    return activity


def test_seen_badge_store_reports_each_unlock_once():
    backend = {}
    store = SeenBadgeStore(backend)

    assert store.detect_new(7, [1, 2]) == [1, 2]
    assert store.detect_new(7, [1, 2]) == []
    assert store.detect_new(7, [1, 2, 5]) == [5]
    assert backend["seen_badges_7"] == [1, 2, 5]
    assert store.detect_new(8, [1]) == [1]

    store.forget(7)
    assert store.seen(7) == []


def test_seen_badge_store_defaults_to_session(app):
    with app.test_request_context():
        from flask import session

        store = SeenBadgeStore()
        assert store.detect_new(3, [4]) == [4]
        assert session["seen_badges_3"] == [4]


def test_badges_are_never_revoked(app):
    with app.app_context():
        user = _create_user("waste@example.com")
        _add_activity(user, "cleanup", waste_kg=60)
        awarded = {badge.name for badge in check_and_award_badges(user.id)}
        db.session.commit()
        assert "Waste Warrior" in awarded

        Activity.query.filter_by(user_id=user.id).delete()
        db.session.commit()

        assert check_and_award_badges(user.id) == []
        assert UserBadge.query.filter_by(user_id=user.id).count() == len(awarded)


def test_rewards_unlock_from_balance_and_stay(app):
    with app.app_context():
        user = _create_user("saver@example.com", points=260)

        names = {reward.name for reward in check_and_award_rewards(user.id)}
        db.session.commit()
        assert names == {"Seedling", "Sapling"}

        user.profile.points = 10
        db.session.commit()
        assert check_and_award_rewards(user.id) == []
        assert UserReward.query.filter_by(user_id=user.id).count() == 2


def test_dashboard_combines_stats_progress_and_charts(app):
    with app.app_context():
        user = _create_user("dash@example.com", points=150)
        _add_activity(user, "tree_plantation", days_ago=1)
        _add_activity(user, "cleanup", waste_kg=5.5)
        _add_activity(user, "recycling", status="pending")
        check_and_award_badges(user.id)
        db.session.commit()

        data = dashboard_for(user, seen_store=SeenBadgeStore({}))

        assert data["points"] == 150
        assert data["stats"]["total_activities"] == 2
        assert data["stats"]["waste_kg"] == pytest.approx(5.5)
        assert data["status_counts"] == {"pending": 1, "approved": 2, "rejected": 0}
        assert data["next_reward"]["name"] == "Sapling"
        assert data["next_reward_progress"] == pytest.approx(60.0)
        first_step = next(item for item in data["badges"] if item["name"] == "First Step")
        assert first_step["unlocked"] is True and first_step["progress"] == 100.0
        assert first_step["id"] in data["new_badge_ids"]
        assert {item["type"] for item in data["by_type"]} == {"tree_plantation", "cleanup"}
        assert len(data["recent_activities"]) == 3


def test_leaderboard_orders_by_points_with_badge_icons(app):
    with app.app_context():
        low = _create_user("low@example.com", points=10)
        high = _create_user("high@example.com", points=300)
        _add_activity(high, "eco_habit")
        check_and_award_badges(high.id)
        db.session.commit()

        board = leaderboard()

        assert [row["user_id"] for row in board] == [high.id, low.id]
        assert board[0]["rank"] == 1
        assert board[0]["badge_icons"] == ["🌱"]
        assert badge_icons_for_users([low.id]) == {low.id: []}


def test_landing_stats_are_cached(app):
    with app.app_context():
        user = _create_user("first@example.com")
        _add_activity(user, "recycling")

        assert get_landing_stats() == {"approved_activities": 1, "profiles": 1}
        _create_user("second@example.com")
        assert get_landing_stats()["profiles"] == 1


def test_admin_overview_totals(app):
    with app.app_context():
        user = _create_user("a@example.com", points=40)
        _create_user("b@example.com", points=2)
        _add_activity(user, "recycling")
        _add_activity(user, "cleanup", status="rejected")

        overview = admin_overview()

        assert overview["profiles"] == 2
        assert overview["total_points"] == 42
        assert overview["status_counts"]["rejected"] == 1


def test_dashboard_and_badges_routes(app):
    with app.app_context():
        user_id = _create_user("route@example.com", points=120).id
        total_badges = Badge.query.count()

    client = app.test_client()
    assert client.get("/api/dashboard").status_code == 401
    anonymous = client.get("/api/badges").get_json()["badges"]
    assert len(anonymous) == total_badges
    assert "progress" not in anonymous[0]

    with client.session_transaction() as sess:
        sess["user_id"] = user_id
    dashboard = client.get("/api/dashboard").get_json()
    assert dashboard["points"] == 120
    badges = client.get("/api/badges").get_json()
    assert "progress" in badges["badges"][0]
    assert client.get("/api/leaderboard").get_json()["leaderboard"][0]["points"] == 120
    assert len(client.get("/api/rewards").get_json()["rewards"]) == 4
    assert client.get("/api/landing-stats").get_json()["profiles"] == 1


def test_seen_badge_snapshot_keeps_only_badge_records():
    backend = {"seen_badges_3": [1, 2], "user_id": 3, "seen_badges_9": "corrupt"}
    store = SeenBadgeStore(backend)

    records = store.snapshot()
    assert records == {"seen_badges_3": [1, 2]}

    fresh = {}
    SeenBadgeStore(fresh).restore(records)
    assert SeenBadgeStore(fresh).detect_new(3, [1, 2]) == []


def test_celebrated_badges_stay_seen_after_signing_in_again(app):
    client = app.test_client()
    credentials = {"email": "returning@example.com", "password": "password123"}
    register = client.post("/auth/register", json={**credentials, "name": "Returning"})
    assert register.status_code == 201
    user_id = register.get_json()["user"]["id"]

    with app.app_context():
        badge = Badge.query.filter_by(name="First Step").first()
        db.session.add(UserBadge(user_id=user_id, badge_id=badge.id))
        db.session.commit()
        badge_id = badge.id

    assert client.get("/api/dashboard").get_json()["new_badge_ids"] == [badge_id]
    assert client.get("/api/dashboard").get_json()["new_badge_ids"] == []

    client.post("/auth/logout")
    assert client.post("/auth/login", json=credentials).status_code == 200

    assert client.get("/api/dashboard").get_json()["new_badge_ids"] == []
