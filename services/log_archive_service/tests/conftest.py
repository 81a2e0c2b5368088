import pytest
from fastapi.testclient import TestClient

from services.log_archive_service.main import create_app
from services.log_archive_service.src.config import Settings
from services.log_archive_service.tests.helpers import BUCKET, FakeStorageClient

@pytest.fixture
def storage_client():
    return FakeStorageClient()

@pytest.fixture
def settings():
    return Settings(target_bucket=BUCKET, service_name="log-archive-test")

@pytest.fixture
def client(settings, storage_client):
    with TestClient(create_app(settings, storage_client=storage_client)) as c:
        yield c
