import os

import pytest
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")

from ecotrack import create_app
from ecotrack.models import db
from ecotrack.models.profile import Profile
from ecotrack.models.user import User, UserRole


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


@pytest.fixture()
def users(app):
    ids = {}
    with app.app_context():
        for email, role in (
            ("admin@example.com", "admin"),
            ("organizer@example.com", "organizer"),
            ("citizen@example.com", "citizen"),
        ):
            user = User(email=email)
            user.set_password("password123")
            user.profile = Profile(name=role.title(), points=0)
            user.role_assignment = UserRole(role=role)
            db.session.add(user)
            db.session.commit()
            ids[role] = user.id
    return ids


def _login(client, user_id):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id


def _manage(client, user_id, status):
    return client.post(
        "/functions/v1/manage-user-status", json={"user_id": user_id, "status": status}
    )


def test_anonymous_caller_is_unauthorized(client, users):
    response = _manage(client, users["citizen"], "banned")
    assert response.status_code == 400
    assert response.get_json() == {"error": "Unauthorized"}


def test_non_admin_is_refused(client, users):
    _login(client, users["organizer"])
    response = _manage(client, users["citizen"], "banned")
    assert response.status_code == 400
    assert response.get_json()["error"] == "Only super admins can manage user status"


def test_admin_cannot_change_own_status(client, users):
    _login(client, users["admin"])
    response = _manage(client, users["admin"], "suspended")
    assert response.get_json()["error"] == "Cannot change your own account status"


def test_invalid_status_and_unknown_user(client, users):
    _login(client, users["admin"])
    assert _manage(client, users["citizen"], "deleted").get_json()["error"] == "Invalid user_id or status"
    assert _manage(client, None, "banned").get_json()["error"] == "Invalid user_id or status"
    assert _manage(client, 9999, "banned").get_json()["error"] == "User not found"


def test_ban_blocks_login_and_reactivation_lifts_it(app, client, users):
    _login(client, users["admin"])
    response = _manage(client, users["citizen"], "banned")
    assert response.status_code == 200
    assert response.get_json() == {"success": True}

    with app.app_context():
        target = db.session.get(User, users["citizen"])
        assert target.profile.account_status == "banned"
        assert target.is_banned() is True

    client.post("/auth/logout")
    login = client.post(
        "/auth/login", json={"email": "citizen@example.com", "password": "password123"}
    )
    assert login.status_code == 403

    _login(client, users["admin"])
    assert _manage(client, users["citizen"], "active").status_code == 200
    with app.app_context():
        target = db.session.get(User, users["citizen"])
        assert target.profile.account_status == "active"
        assert target.is_banned() is False


def test_banned_session_is_treated_as_anonymous(client, users):
    _login(client, users["admin"])
    _manage(client, users["citizen"], "suspended")

    _login(client, users["citizen"])
    me = client.get("/auth/me").get_json()
    assert me["authenticated"] is False


def test_admin_user_listing(client, users):
    _login(client, users["citizen"])
    assert client.get("/api/admin/users").status_code == 403

    _login(client, users["admin"])
    listed = client.get("/api/admin/users").get_json()["users"]
    assert {item["role"] for item in listed} == {"admin", "organizer", "citizen"}
    assert {item["email"] for item in listed} >= {"citizen@example.com"}
