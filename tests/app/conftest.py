"""Test fixtures for the web layer."""

import pytest
from fastapi.testclient import TestClient

from app.dependencies import get_store
from app.main import app


@pytest.fixture
def client(store):
    """Create a TestClient backed by the in-memory project store."""
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def created_project(client):
    """Create a project and return its id."""
    response = client.post("/api/projects", json={"title": "Test Web Project"})
    return response.json()["id"]
