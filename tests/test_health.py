"""Tests for the /health endpoint."""

from fastapi.testclient import TestClient


def test_health_returns_ok(client: TestClient) -> None:
    """GET /health should return 200 with status 'ok'."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["database"] == "connected"


def test_health_reports_scheduler(client: TestClient) -> None:
    """스케줄러를 시작하지 않았으면 stopped"""
    data = client.get("/health").json()
    assert data["scheduler"] == "stopped"


def test_health_without_auth(client: TestClient) -> None:
    """헬스 체크는 인증 없이 호출 가능"""
    assert client.get("/health").status_code == 200
