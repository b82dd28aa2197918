# tests/test_health.py
from fastapi import status
from fastapi.testclient import TestClient


def test_health_responds(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["status"] == "ok"


def test_root_describes_api(client: TestClient) -> None:
    """Verify that the root endpoint names the API and points at the docs."""
    r = client.get("/")
    assert r.status_code == status.HTTP_200_OK
    data = r.json()
    assert data["name"] == "NeuraPay"
    assert data["docs"] == "/docs"
