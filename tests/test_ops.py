import base64

import pytest
from fastapi.testclient import TestClient

from tests.conftest import build_app, make_settings


def _basic(username: str, password: str) -> dict:
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


class TestHealth:
    def test_healthy(self, client):
        """Database and cache both report connected."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected", "cache": "connected"}

    def test_cache_down_still_healthy(self, client, fake_redis):
        """Redis is optional."""
        fake_redis.down = True
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["cache"] == "disconnected"

    def test_database_failure(self, client, database):
        """A failing database makes the service unhealthy."""
        database.fail_on.add("ping")
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["database"] == "disconnected"

    def test_redis_unreachable_at_startup_disables_cache(self, database, fake_redis, ollama):
        """The API runs without Redis; every lookup is a miss."""
        fake_redis.down = True
        with TestClient(build_app(make_settings(), database, fake_redis, ollama)) as test_client:
            assert test_client.get("/api/v1/skills").status_code == 200
            fake_redis.down = False
            test_client.get("/api/v1/skills")
        assert fake_redis.data == {}


class TestMetrics:
    def test_open_when_no_credentials(self, client):
        """Without credentials configured /metrics is public."""
        client.get("/api/v1/projects")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert 'route="/api/v1/projects"' in response.text

    @pytest.fixture
    def secured_client(self, database, fake_redis, ollama):
        settings = make_settings(metrics_username="prom", metrics_password="scrape-secret")
        with TestClient(build_app(settings, database, fake_redis, ollama)) as test_client:
            yield test_client

    def test_requires_basic_auth(self, secured_client):
        """Configured credentials gate /metrics."""
        response = secured_client.get("/metrics")
        assert response.status_code == 401
        assert response.headers["www-authenticate"].startswith("Basic")

    def test_wrong_credentials(self, secured_client):
        assert secured_client.get("/metrics", headers=_basic("prom", "wrong")).status_code == 401

    def test_valid_credentials(self, secured_client):
        """The right credentials expose the exposition format."""
        response = secured_client.get("/metrics", headers=_basic("prom", "scrape-secret"))
        assert response.status_code == 200
        assert "http_request_duration_seconds" in response.text

    def test_route_template_label(self, client, admin_headers, sample_project):
        """Path parameters are collapsed into the route template."""
        project_id = client.post("/api/v1/projects", json=sample_project, headers=admin_headers).json()["id"]
        client.get(f"/api/v1/projects/{project_id}")
        assert 'route="/api/v1/projects/{project_id}"' in client.get("/metrics").text
