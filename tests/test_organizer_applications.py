import os

import pytest
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")

from ecotrack import create_app
from ecotrack.models import db
from ecotrack.models.profile import Profile
from ecotrack.models.user import User, UserRole
from ecotrack.services.organizer_service import (
    approve_application,
    list_applications,
    reject_application,
    submit_application,
    validate_application,
)

VALID_APPLICATION = {
    "organization_name": "Green Earth Club",
    "organizer_type": "ngo",
    "official_email": "contact@greenearth.org",
    "contact_number": "+39 333 1234567",
    "purpose": "Monthly river cleanups",
}


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


def _create_user(email: str, role: str = "citizen") -> User:
    user = User(email=email)
    user.profile = Profile(name=email.split("@")[0], points=0)
    user.role_assignment = UserRole(role=role)
    db.session.add(user)
    db.session.commit()
    return user


def _role(user_id: int) -> str:
    return UserRole.query.filter_by(user_id=user_id).populate_existing().first().role


def test_validation_reports_missing_and_malformed_fields():
    clean, reason = validate_application({"organization_name": "Club"})
    assert clean is None
    assert "organizer_type" in reason

    bad_email = dict(VALID_APPLICATION, official_email="not-an-email")
    assert validate_application(bad_email)[0] is None

    bad_type = dict(VALID_APPLICATION, organizer_type="government")
    assert validate_application(bad_type)[0] is None

    too_long = dict(VALID_APPLICATION, purpose="x" * 1001)
    assert "purpose" in validate_application(too_long)[1]


def test_proof_type_defaults_when_proof_present():
    clean, _ = validate_application(dict(VALID_APPLICATION, proof_url="https://cdn.example/p.png"))
    assert clean["proof_type"] == "id_card"

    clean, _ = validate_application(VALID_APPLICATION)
    assert clean["proof_type"] is None


def test_approval_promotes_applicant_to_organizer(app):
    with app.app_context():
        citizen = _create_user("citizen@example.com")
        admin = _create_user("admin@example.com", role="admin")
        application_id = submit_application(citizen, VALID_APPLICATION)["application"]["id"]

        result = approve_application(application_id, admin, remarks="Welcome aboard")

        assert result["changed"] is True
        assert result["application"]["status"] == "approved"
        assert result["application"]["admin_remarks"] == "Welcome aboard"
        assert _role(citizen.id) == "organizer"

        repeat = approve_application(application_id, admin)
        assert repeat["ok"] is True and repeat["changed"] is False


def test_rejection_is_terminal_and_keeps_role(app):
    with app.app_context():
        citizen = _create_user("citizen@example.com")
        admin = _create_user("admin@example.com", role="admin")
        application_id = submit_application(citizen, VALID_APPLICATION)["application"]["id"]

        assert reject_application(application_id, admin, "Incomplete proof")["changed"] is True
        assert approve_application(application_id, admin)["changed"] is False
        assert _role(citizen.id) == "citizen"


def test_one_application_per_user_and_citizens_only(app):
    with app.app_context():
        citizen = _create_user("citizen@example.com")
        organizer = _create_user("org@example.com", role="organizer")

        assert submit_application(citizen, VALID_APPLICATION)["ok"] is True
        assert submit_application(citizen, VALID_APPLICATION)["error"] == "already_applied"
        assert submit_application(organizer, VALID_APPLICATION)["error"] == "invalid_input"


def test_only_admins_review(app):
    with app.app_context():
        citizen = _create_user("citizen@example.com")
        organizer = _create_user("org@example.com", role="organizer")
        application_id = submit_application(citizen, VALID_APPLICATION)["application"]["id"]

        assert approve_application(application_id, organizer)["error"] == "forbidden"
        assert approve_application(application_id, None)["error"] == "auth_required"
        assert list_applications("pending")[0]["applicant_name"] == "citizen"
        assert list_applications("approved") == []


def test_application_review_over_http(app, client):
    with app.app_context():
        citizen_id = _create_user("citizen@example.com").id
        admin_id = _create_user("admin@example.com", role="admin").id

    with client.session_transaction() as sess:
        sess["user_id"] = citizen_id
    created = client.post("/api/organizer-applications", json=VALID_APPLICATION)
    assert created.status_code == 201
    application_id = created.get_json()["application"]["id"]
    assert client.post("/api/organizer-applications", json=VALID_APPLICATION).status_code == 409
    assert client.get("/api/admin/organizer-applications").status_code == 403

    with client.session_transaction() as sess:
        sess["user_id"] = admin_id
    listing = client.get("/api/admin/organizer-applications?status=pending").get_json()
    assert [item["id"] for item in listing["applications"]] == [application_id]
    assert client.get("/api/admin/organizer-applications?status=bogus").status_code == 400

    approved = client.post(
        f"/api/admin/organizer-applications/{application_id}/approve", json={"remarks": "ok"}
    )
    assert approved.status_code == 200

    with client.session_transaction() as sess:
        sess["user_id"] = citizen_id
    me = client.get("/auth/me").get_json()
    assert me["role"] == "organizer"
    mine = client.get("/api/organizer-applications/mine").get_json()
    assert mine["application"]["status"] == "approved"
