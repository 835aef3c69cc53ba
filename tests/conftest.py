"""
Pytest configuration and fixtures for Print Queue Backend tests.
"""

import os
import shutil
import tempfile
from pathlib import Path
from uuid import uuid4

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
_DATA_DIR = tempfile.mkdtemp(prefix="print_queue_test_")
os.environ["PRINT_QUEUE_API_KEY"] = "test-gateway-key-12345"
os.environ["PRINT_QUEUE_MASTER_KEY"] = "test-master-key-12345"
os.environ["PRINT_QUEUE_DB_PATH"] = str(Path(_DATA_DIR) / "print_queue.db")
os.environ["S3_BUCKET_NAME"] = "test-bucket"
os.environ.pop("STRICT_TRANSITIONS", None)
os.environ.pop("PRINT_QUEUE_CONFIG", None)

from print_queue_backend.authorization import Caller
from print_queue_backend.database import JobDatabase
from print_queue_backend.job_manager import JobManager
from print_queue_backend.main import app, job_manager
from print_queue_backend.storage import FileStorage
from print_queue_backend.user_store import UserStore


class FakeS3Client:
    """In-memory stand-in for the boto3 S3 client calls the storage layer makes."""

    def __init__(self):
        self.objects = {}
        self.deleted = []

    def put(self, key, size):
        self.objects[key] = size

    def generate_presigned_post(self, Bucket, Key, Fields=None, Conditions=None, ExpiresIn=3600):
        self.last_post = {"Bucket": Bucket, "Key": Key, "Conditions": Conditions, "ExpiresIn": ExpiresIn}
        return {
            "url": f"https://{Bucket}.s3.amazonaws.com/",
            "fields": {"key": Key, "policy": "test-policy", "x-amz-signature": "test-signature"},
        }

    def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ContentLength": self.objects[Key]}

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn=3600):
        return f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}?X-Amz-Expires={ExpiresIn}"

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)
        self.deleted.append(Key)
        return {}


@pytest.fixture(scope="session", autouse=True)
def test_data_dir():
    """Cleanup the test database directory after the session."""
    yield _DATA_DIR
    shutil.rmtree(_DATA_DIR, ignore_errors=True)


@pytest.fixture
def fake_s3():
    return FakeS3Client()


@pytest.fixture
def storage(fake_s3):
    return FileStorage(bucket="test-bucket", upload_expiration=900, download_expiration=3600, client=fake_s3)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "print_queue.db"


@pytest.fixture
def job_db(db_path):
    return JobDatabase(db_path)


@pytest.fixture
def user_store(db_path):
    return UserStore(db_path)


@pytest.fixture
def manager(job_db, user_store, storage):
    return JobManager(jobs=job_db, users=user_store, storage=storage)


@pytest.fixture
def alice():
    return Caller(external_id="user_alice", email="alice@example.com", display_name="Alice")


@pytest.fixture
def bob():
    return Caller(external_id="user_bob", email="bob@example.com", display_name="Bob")


@pytest.fixture
def admin():
    return Caller(external_id="user_admin", email="admin@example.com", display_name="Admin", is_admin=True)


@pytest.fixture
def client(monkeypatch, storage):
    """Create a test client for the FastAPI app backed by the fake S3 client."""
    monkeypatch.setattr(job_manager, "storage", storage)
    return TestClient(app)


@pytest.fixture
def gateway_key():
    return "test-gateway-key-12345"


@pytest.fixture
def master_key():
    """Return the master key used to bootstrap admins."""
    return "test-master-key-12345"


@pytest.fixture
def headers_for(gateway_key):
    """Build identity headers for a user; IDs are unique per test run."""

    def _headers(external_id, name="Test User", email=None):
        return {
            "X-API-Key": gateway_key,
            "X-User-Id": external_id,
            "X-User-Email": email or f"{external_id}@example.com",
            "X-User-Name": name,
        }

    return _headers


@pytest.fixture
def user_headers(headers_for):
    return headers_for(f"user_{uuid4().hex[:8]}", name="Alice")


@pytest.fixture
def other_headers(headers_for):
    return headers_for(f"user_{uuid4().hex[:8]}", name="Bob")


@pytest.fixture
def admin_headers(client, headers_for, master_key):
    """Headers for a user promoted to admin through the master key."""
    headers = headers_for(f"admin_{uuid4().hex[:8]}", name="Admin")
    assert client.post("/users/sync", headers=headers).status_code == 200
    response = client.put(
        f"/admin/users/{headers['X-User-Id']}/admin",
        json={"is_admin": True},
        headers={"X-Master-Key": master_key},
    )
    assert response.status_code == 200
    return headers
