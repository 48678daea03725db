import io
import os

import cloudinary.exceptions
import pytest
from sqlalchemy.pool import StaticPool
from werkzeug.datastructures import FileStorage

os.environ.setdefault("SECRET_KEY", "test-secret-key")

from ecotrack import create_app
from ecotrack.models import db
from ecotrack.models.profile import Profile
from ecotrack.models.user import User
from ecotrack.services import media_library
from ecotrack.services.media_library import (
    MediaUploadError,
    build_public_id,
    upload_image,
    validate_media_file,
)


def _file(name="photo.png", content_type="image/png", size=16):
    return FileStorage(stream=io.BytesIO(b"x" * size), filename=name, content_type=content_type)


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
            "CLOUDINARY_CLOUD_NAME": "",
            "CLOUDINARY_API_KEY": "",
            "CLOUDINARY_API_SECRET": "",
        }
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


def test_validate_media_file():
    assert validate_media_file(_file(), max_bytes=1024) == (True, None)
    assert validate_media_file(None, max_bytes=1024)[0] is False
    assert validate_media_file(_file(name="anim.gif", content_type="image/gif"), max_bytes=1024)[0] is False
    assert validate_media_file(_file(content_type="text/plain"), max_bytes=1024)[0] is False

    ok, error = validate_media_file(_file(size=2048), max_bytes=1024)
    assert ok is False
    assert "too large" in error


def test_build_public_id_is_scoped_per_owner():
    public_id = build_public_id("activity", 42, "Park Cleanup!.jpg")
    assert public_id.startswith("ecotrack/activity-images/42/park-cleanup-")

    proof_id = build_public_id("proof", 7, "...")
    assert proof_id.startswith("ecotrack/organizer-proofs/7/image-")


def test_upload_requires_configuration(app):
    with app.app_context():
        with pytest.raises(MediaUploadError) as excinfo:
            upload_image(_file(), kind="activity", owner_id=1)
    assert "not configured" in str(excinfo.value)


def test_upload_returns_secure_url(app, monkeypatch):
    app.config.update(
        CLOUDINARY_CLOUD_NAME="demo", CLOUDINARY_API_KEY="key", CLOUDINARY_API_SECRET="secret"
    )
    captured = {}

    def fake_upload(file, **kwargs):
        captured.update(kwargs)
        return {"secure_url": "https://res.cloudinary.com/demo/image/upload/x.png"}

    monkeypatch.setattr(media_library.cloudinary.uploader, "upload", fake_upload)
    with app.app_context():
        url = upload_image(_file(), kind="activity", owner_id=5)

    assert url.startswith("https://res.cloudinary.com/")
    assert captured["public_id"].startswith("ecotrack/activity-images/5/photo-")


def test_upload_failure_is_wrapped(app, monkeypatch):
    app.config.update(
        CLOUDINARY_CLOUD_NAME="demo", CLOUDINARY_API_KEY="key", CLOUDINARY_API_SECRET="secret"
    )

    def failing_upload(file, **kwargs):
        raise cloudinary.exceptions.Error("quota")

    monkeypatch.setattr(media_library.cloudinary.uploader, "upload", failing_upload)
    with app.app_context():
        with pytest.raises(MediaUploadError):
            upload_image(_file(), kind="proof", owner_id=5)


def test_activity_upload_without_storage_is_rejected(app):
    with app.app_context():
        user = User(email="snap@example.com")
        user.profile = Profile(name="Snap", points=0)
        db.session.add(user)
        db.session.commit()
        user_id = user.id

    client = app.test_client()
    with client.session_transaction() as sess:
        sess["user_id"] = user_id

    response = client.post(
        "/api/activities",
        data={"type": "cleanup", "image": (io.BytesIO(b"img"), "bag.png", "image/png")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_input"
