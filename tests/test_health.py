"""Health endpoint tests."""

from panic_button.core.config import settings


def test_health_returns_ok_and_backend(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "backend": settings.api_base_url}
