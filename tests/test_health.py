# tests/test_health.py
from fastapi import status
from fastapi.testclient import TestClient


def test_health(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {"status": "ok"}


def test_root_responds(client: TestClient) -> None:
    """Verify that the root endpoint describes the service."""
    r = client.get("/")
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["docs"] == "/docs"


def test_system_health(client: TestClient) -> None:
    r = client.get("/api/v1/system/health")
    assert r.status_code == status.HTTP_200_OK
    data = r.json()
    assert data["status"] == "healthy"
    assert data["components"]["database"] == "healthy"
    assert data["components"]["fanout"] == {"subscribers": 0}


def test_system_config(client: TestClient) -> None:
    """The public config exposes limits but never connection strings."""
    r = client.get("/api/v1/system/config")
    assert r.status_code == status.HTTP_200_OK
    data = r.json()
    assert data["limits"]["query_max"] == 500
    assert data["limits"]["view_default"] == 100
    assert "database_url" not in r.text.lower()
