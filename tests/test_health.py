"""Tests for health endpoints."""

from fastapi.testclient import TestClient

from coursehub.main import create_app


def test_liveness(client: TestClient) -> None:
    """Test the liveness endpoint."""
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_readiness(client: TestClient) -> None:
    """Test the readiness endpoint."""
    response = client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["storage_backend"] == "memory"
    assert "environment" in data
    assert "debug" in data


def test_readiness_before_startup() -> None:
    """Without the lifespan the services are missing and the app is not ready."""
    test_client = TestClient(create_app())  # no context manager: lifespan never runs
    response = test_client.get("/health/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"


def test_health(client: TestClient) -> None:
    """Test the general health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["app_name"] == "coursehub"
    assert "version" in data
    assert "environment" in data


def test_root(client: TestClient) -> None:
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "CourseHub" in data["message"]
    assert "version" in data


def test_request_id_header(client: TestClient) -> None:
    """Every response carries a request id."""
    response = client.get("/health/live")
    assert response.headers.get("X-Request-ID")
