"""Pytest fixtures for server module testing."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from server.main import app


@pytest.fixture(autouse=True)
def server_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RTKLINK_DEVICE_HOST", raising=False)
    monkeypatch.setenv("RTKLINK_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("RTKLINK_QUEUE_SIZE", "10")


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
