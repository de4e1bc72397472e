from fastapi import status
from fastapi.testclient import TestClient

from app.core.config import settings


class TestHealthCheckAPI:
    """Test cases for the /health endpoint"""

    def test_get_health(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert "application/json" in response.headers.get("content-type", "")
        assert response.json() == {"status": "oke"}

    def test_health_ignores_admin_auth(self, client: TestClient, monkeypatch, wallet):
        monkeypatch.setattr(settings, "ADMIN_WALLETS", wallet.address)

        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
