"""Shared fixtures: in-memory database, fake S3, stub pose service and an authenticated client."""

import base64
import os

# Required settings must exist before the app module is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("AWS_BUCKET_NAME", "test-bucket")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cyclofit.app import app
from cyclofit.shared.analyses import database as _analyses  # noqa: F401
from cyclofit.shared.analyses.service import AnalysisService, get_duration_probe
from cyclofit.shared.auth.database import Base, User, get_db
from cyclofit.shared.auth.rate_limit_utils import contact_limiter, login_limiter
from cyclofit.shared.auth.security import create_access_token, hash_password
from cyclofit.shared.config.settings import Settings, get_settings
from cyclofit.shared.contact import database as _contact  # noqa: F401
from cyclofit.shared.newsletter import database as _newsletter  # noqa: F401
from cyclofit.shared.pose_estimation.pose_service import get_pose_client
from cyclofit.shared.storage.object_store import ObjectStoreError, get_object_store
from cyclofit.shared.storage.url_cache import SignedUrlCache, get_url_cache

ADMIN_API_KEY = "test-admin-key"
PASSWORD = "correct-horse-battery"


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def make_ai_payload(keyframe_count: int = 3, **overrides) -> dict:
    """A pose service response shaped like the real one."""
    payload = {
        "analysis_id": "ignored-upstream-id",
        "video": b64(b"processed-video-bytes"),
        "key_frames": [b64(f"jpeg-{i}".encode()) for i in range(keyframe_count)],
        "max_angles": {"hip_knee_ankle": 152, "shoulder_hip_knee": 112},
        "min_angles": {"hip_knee_ankle": 72, "shoulder_hip_knee": 45},
        "body_lengths_cm": {"torso_length": 54, "femur_length": 45, "measurement_method": "estimated from height"},
        "recommendations": {
            "general": [
                {"component": "SADDLE HEIGHT", "issue": "Good position", "action": "No change needed", "priority": "low"},
            ]
        },
    }
    payload.update(overrides)
    return payload


class FakeObjectStore:
    """In-memory stand-in for S3ObjectStore; fail_uploads/fail_deletes hold key suffixes."""

    def __init__(self):
        self.objects = {}
        self.uploads = []
        self.deleted = []
        self.signed = []
        self.fail_uploads = set()
        self.fail_deletes = set()

    def upload(self, data, key, content_type):
        if any(key.endswith(suffix) for suffix in self.fail_uploads):
            raise ObjectStoreError(f"Upload of {key} failed")
        self.objects[key] = (data, content_type)
        self.uploads.append(key)
        return key

    def get_signed_url(self, key, ttl_seconds=3600):
        self.signed.append(key)
        return f"https://test-bucket.s3.amazonaws.com/{key}?X-Amz-Expires={ttl_seconds}&n={len(self.signed)}"

    def delete(self, key):
        if any(key.endswith(suffix) for suffix in self.fail_deletes):
            raise ObjectStoreError(f"Delete of {key} failed")
        self.objects.pop(key, None)
        self.deleted.append(key)

    def delete_many(self, keys):
        failed = []
        for key in keys:
            try:
                self.delete(key)
            except ObjectStoreError:
                failed.append(key)
        return failed

    def check_connection(self):
        return {"connected": True, "bucket": "test-bucket", "error": None}


class StubPoseClient:
    """Records calls and answers with a canned payload (or raises)."""

    def __init__(self, payload=None, error=None):
        self.payload = payload if payload is not None else make_ai_payload()
        self.error = error
        self.calls = []

    def process_video(self, video_bytes, user_height_cm, quality=40, bike_type="road",
                      filename="video.mp4", content_type="video/mp4"):
        self.calls.append({
            "size": len(video_bytes),
            "user_height_cm": user_height_cm,
            "quality": quality,
            "bike_type": bike_type,
            "filename": filename,
            "content_type": content_type,
        })
        if self.error is not None:
            raise self.error
        return self.payload


class StubProbe:
    """Duration probe returning a fixed value."""

    def __init__(self, duration=12.0):
        self.duration = duration
        self.calls = 0

    def __call__(self, data):
        self.calls += 1
        return self.duration


@pytest.fixture
def settings(tmp_path):
    legacy_root = tmp_path / "legacy"
    legacy_root.mkdir()
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        JWT_SECRET="test-jwt-secret",
        AWS_BUCKET_NAME="test-bucket",
        AWS_REGION="us-east-1",
        AWS_ACCESS_KEY_ID="testing",
        AWS_SECRET_ACCESS_KEY="testing",
        ADMIN_API_KEY=ADMIN_API_KEY,
        LEGACY_MEDIA_ROOT=str(legacy_root),
        SERVER_URL="http://testserver",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store():
    return FakeObjectStore()


@pytest.fixture
def url_cache():
    return SignedUrlCache(max_size=20, ttl_seconds=300)


@pytest.fixture
def probe():
    return StubProbe()


@pytest.fixture
def pose_client():
    return StubPoseClient()


@pytest.fixture
def service(db, store, settings, url_cache, probe):
    return AnalysisService(db, store, settings, url_cache=url_cache, probe=probe)


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    login_limiter.reset()
    contact_limiter.reset()
    yield
    login_limiter.reset()
    contact_limiter.reset()


@pytest.fixture
def client(session_factory, settings, store, url_cache, probe, pose_client):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_object_store] = lambda: store
    app.dependency_overrides[get_url_cache] = lambda: url_cache
    app.dependency_overrides[get_duration_probe] = lambda: probe
    app.dependency_overrides[get_pose_client] = lambda: pose_client
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_user(db, email="rider@example.com", role="user", verified=True, active=True, **fields):
    user = User(
        email=email,
        password_hash=hash_password(PASSWORD),
        first_name=fields.pop("first_name", "Test"),
        last_name=fields.pop("last_name", "Rider"),
        role=role,
        is_email_verified=verified,
        is_active=active,
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user, settings):
    return {"Authorization": f"Bearer {create_access_token(user.id, settings)}"}


@pytest.fixture
def user(db):
    return create_user(db)


@pytest.fixture
def other_user(db):
    return create_user(db, email="other@example.com", first_name="Other")


@pytest.fixture
def admin_user(db):
    return create_user(db, email="admin@example.com", role="admin", first_name="Ada")


@pytest.fixture
def headers(user, settings):
    return auth_headers(user, settings)


@pytest.fixture
def other_headers(other_user, settings):
    return auth_headers(other_user, settings)


@pytest.fixture
def admin_headers(admin_user, settings):
    return auth_headers(admin_user, settings)
