import os

import pytest
from sqlalchemy import event
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")

from ecotrack import create_app
from ecotrack.cli import seed_catalog
from ecotrack.models import db
from ecotrack.models.activity import Activity
from ecotrack.models.gamification import UserBadge, UserStreak
from ecotrack.models.profile import Profile
from ecotrack.models.user import User, UserRole
from ecotrack.services.activity_service import (
    approve_activity,
    certificate_for,
    list_pending_activities,
    reject_activity,
    submit_activity,
    validate_submission,
)


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


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client


def _create_user(email: str, role: str = "citizen", points: int = 0) -> User:
    user = User(email=email)
    user.profile = Profile(name=email.split("@")[0].title(), points=points)
    user.role_assignment = UserRole(role=role)
    user.streak = UserStreak(current_streak=0, longest_streak=0)
    db.session.add(user)
    db.session.commit()
    return user


def _login(client, user_id: int) -> None:
    with client.session_transaction() as sess:
        sess["user_id"] = user_id


def _points(user_id: int) -> int:
    return Profile.query.filter_by(user_id=user_id).populate_existing().first().points


def test_validate_submission_rejects_unknown_type():
    clean, reason = validate_submission({"type": "gardening"})
    assert clean is None
    assert "type must be one of" in reason


def test_validate_submission_drops_waste_for_non_cleanup():
    clean, reason = validate_submission({"type": "recycling", "waste_kg": "4"})
    assert reason is None
    assert clean["waste_kg"] is None


def test_validate_submission_rejects_negative_waste_and_bad_coordinates():
    assert validate_submission({"type": "cleanup", "waste_kg": -1})[0] is None
    assert validate_submission({"type": "eco_habit", "latitude": 91})[0] is None
    assert validate_submission({"type": "eco_habit", "longitude": "east"})[0] is None


def test_submission_starts_pending_without_points(app):
    with app.app_context():
        user = _create_user("citizen@example.com")
        result = submit_activity(user, {"type": "tree_plantation", "description": "Oak"})

        assert result["ok"] is True
        assert result["activity"]["status"] == "pending"
        assert result["activity"]["points_awarded"] == 0
        assert _points(user.id) == 0


def test_approval_credits_points_exactly_once(app):
    with app.app_context():
        citizen = _create_user("citizen@example.com")
        organizer = _create_user("organizer@example.com", role="organizer")
        activity_id = submit_activity(citizen, {"type": "tree_plantation"})["activity"]["id"]

        first = approve_activity(activity_id, organizer)
        second = approve_activity(activity_id, organizer)

        assert first["ok"] is True and first["changed"] is True
        assert first["activity"]["points_awarded"] == 50
        assert second["ok"] is True and second["changed"] is False
        assert _points(citizen.id) == 50
        assert db.session.get(Activity, activity_id).reviewed_by == organizer.id


def test_cleanup_keeps_waste_weight_and_awards_thirty_points(app):
    with app.app_context():
        citizen = _create_user("citizen@example.com")
        admin = _create_user("admin@example.com", role="admin")
        activity_id = submit_activity(citizen, {"type": "cleanup", "waste_kg": 5.5})["activity"]["id"]

        result = approve_activity(activity_id, admin)

        assert result["activity"]["waste_kg"] == pytest.approx(5.5)
        assert result["activity"]["points_awarded"] == 30
        assert _points(citizen.id) == 30


def test_rejected_activity_is_terminal(app):
    with app.app_context():
        citizen = _create_user("citizen@example.com")
        organizer = _create_user("organizer@example.com", role="organizer")
        activity_id = submit_activity(citizen, {"type": "recycling"})["activity"]["id"]

        assert reject_activity(activity_id, organizer)["changed"] is True
        approved = approve_activity(activity_id, organizer)

        assert approved["changed"] is False
        assert approved["activity"]["status"] == "rejected"
        assert _points(citizen.id) == 0


def test_reviewed_activity_is_not_written_again(app):
    with app.app_context():
        citizen = _create_user("citizen@example.com")
        organizer = _create_user("organizer@example.com", role="organizer")
        activity_id = submit_activity(citizen, {"type": "cleanup", "waste_kg": 2})["activity"]["id"]
        approve_activity(activity_id, organizer)

        activity = db.session.get(Activity, activity_id)
        assert activity.is_terminal is True

        updates = []

        def record(conn, cursor, statement, parameters, context, executemany):
            if statement.lstrip().upper().startswith("UPDATE"):
                updates.append(statement)

        event.listen(db.engine, "before_cursor_execute", record)
        try:
            assert approve_activity(activity_id, organizer)["changed"] is False
            assert reject_activity(activity_id, organizer)["changed"] is False
        finally:
            event.remove(db.engine, "before_cursor_execute", record)

        assert updates == []
        assert _points(citizen.id) == 30

def test_citizen_cannot_review(app):
    with app.app_context():
        citizen = _create_user("citizen@example.com")
        other = _create_user("other@example.com")
        activity_id = submit_activity(citizen, {"type": "eco_habit"})["activity"]["id"]

        assert approve_activity(activity_id, other) == {"ok": False, "error": "forbidden"}
        assert reject_activity(activity_id, None) == {"ok": False, "error": "auth_required"}
        assert approve_activity(999, _create_user("org@example.com", role="organizer"))["error"] == "not_found"


def test_approval_updates_streak_and_awards_first_badge(app):
    with app.app_context():
        seed_catalog()
        citizen = _create_user("citizen@example.com")
        organizer = _create_user("organizer@example.com", role="organizer")
        activity_id = submit_activity(citizen, {"type": "eco_habit"})["activity"]["id"]

        result = approve_activity(activity_id, organizer)

        assert "First Step" in {badge["name"] for badge in result["new_badges"]}
        assert UserBadge.query.filter_by(user_id=citizen.id).count() == 1
        streak = UserStreak.query.filter_by(user_id=citizen.id).first()
        assert streak.current_streak == 1


def test_pending_list_includes_submitter_name(app):
    with app.app_context():
        citizen = _create_user("maria@example.com")
        submit_activity(citizen, {"type": "cleanup", "waste_kg": 2})

        pending = list_pending_activities()

        assert len(pending) == 1
        assert pending[0]["submitter_name"] == "Maria"


def test_certificate_only_for_owner_of_approved_activity(app):
    with app.app_context():
        citizen = _create_user("citizen@example.com")
        stranger = _create_user("stranger@example.com")
        organizer = _create_user("organizer@example.com", role="organizer")
        activity_id = submit_activity(citizen, {"type": "tree_plantation"})["activity"]["id"]

        assert certificate_for(activity_id, citizen)["error"] == "invalid_input"
        approve_activity(activity_id, organizer)

        certificate = certificate_for(activity_id, citizen)["certificate"]
        assert certificate["type_label"] == "Tree Plantation"
        assert certificate["points"] == 50
        assert certificate_for(activity_id, stranger)["error"] == "forbidden"


def test_review_flow_over_http(app, client):
    with app.app_context():
        citizen_id = _create_user("citizen@example.com").id
        organizer_id = _create_user("organizer@example.com", role="organizer").id

    _login(client, citizen_id)
    created = client.post("/api/activities", json={"type": "recycling"})
    assert created.status_code == 201
    activity_id = created.get_json()["activity"]["id"]

    assert client.get("/api/activities/pending").status_code == 403
    assert client.post(f"/api/activities/{activity_id}/approve").status_code == 403

    _login(client, organizer_id)
    pending = client.get("/api/activities/pending").get_json()["activities"]
    assert [item["id"] for item in pending] == [activity_id]

    approved = client.post(f"/api/activities/{activity_id}/approve")
    assert approved.status_code == 200
    assert approved.get_json()["changed"] is True
    again = client.post(f"/api/activities/{activity_id}/approve")
    assert again.get_json()["changed"] is False

    _login(client, citizen_id)
    mine = client.get("/api/activities/mine").get_json()["activities"]
    assert mine[0]["status"] == "approved"
    with app.app_context():
        assert _points(citizen_id) == 30


def test_submit_requires_login(client):
    response = client.post("/api/activities", json={"type": "recycling"})
    assert response.status_code == 401
    assert response.get_json()["error"] == "auth_required"


def test_invalid_submission_returns_400(app, client):
    with app.app_context():
        citizen_id = _create_user("citizen@example.com").id
    _login(client, citizen_id)

    response = client.post("/api/activities", json={"type": "unknown"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_input"
