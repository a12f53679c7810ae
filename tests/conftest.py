"""Shared pytest fixtures for upload gateway tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from api.config import Settings
from api.dependencies import get_object_store, get_upload_service
from api.main import app
from api.services.storage import ObjectStore
from api.services.uploads import UploadService, build_profiles
from fakes import FakeMinioClient


@pytest.fixture
def minio_client() -> FakeMinioClient:
    return FakeMinioClient()


@pytest.fixture
def store(minio_client: FakeMinioClient) -> ObjectStore:
    return ObjectStore(minio_client, base_url="http://localhost:9000")


@pytest.fixture
def make_client(store: ObjectStore) -> Iterator[Callable[..., TestClient]]:
    def _make(**overrides: object) -> TestClient:
        service = UploadService(store, build_profiles(Settings(**overrides)))
        app.dependency_overrides[get_upload_service] = lambda: service
        app.dependency_overrides[get_object_store] = lambda: store
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    return make_client()
