import pytest
from fastapi.testclient import TestClient
from policy_store import PolicyStore, set_policy_store


@pytest.fixture
def policy_file(tmp_path):
    path = tmp_path / "tls_policy"
    path.write_text("good.com secure\nmaybe.com may\n", encoding="utf-8")
    return path


@pytest.fixture
def store(policy_file):
    store = PolicyStore(f"texthash:{policy_file}")
    store.load()
    set_policy_store(store)
    yield store
    set_policy_store(None)


@pytest.fixture
def client(store):
    from main import app
    return TestClient(app)


@pytest.fixture
def auth_headers():
    from config import settings
    return {"Authorization": f"Bearer {settings.api_token}"}


class TestAuthentication:

    def test_missing_token_rejected(self, client):
        response = client.get("/api/v1/policy/status")
        assert response.status_code == 401

    def test_malformed_header_rejected(self, client):
        response = client.get(
            "/api/v1/policy/status",
            headers={"Authorization": "Token abc"},
        )
        assert response.status_code == 401

    def test_wrong_token_rejected(self, client):
        response = client.get(
            "/api/v1/policy/status",
            headers={"Authorization": "Bearer wrong-token"},
        )
        assert response.status_code == 401


class TestPolicyRoutes:

    def test_status(self, client, auth_headers, policy_file):
        response = client.get("/api/v1/policy/status", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["loaded"] is True
        assert data["entries"] == 2
        assert data["generation"] == 1
        assert data["source"] == f"texthash:{policy_file}"

    def test_capable_domain(self, client, auth_headers):
        response = client.get("/api/v1/policy/domains/good.com", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {
            "domain": "good.com",
            "policy": "secure",
            "enforced_capable": True,
        }

    def test_unknown_domain(self, client, auth_headers):
        response = client.get("/api/v1/policy/domains/unknown.example", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["policy"] is None
        assert data["enforced_capable"] is False

    def test_lookup_without_snapshot_unavailable(self, client, auth_headers):
        set_policy_store(PolicyStore())
        response = client.get("/api/v1/policy/domains/good.com", headers=auth_headers)
        assert response.status_code == 503

    def test_reload_installs_new_generation(self, client, auth_headers, policy_file):
        policy_file.write_text("maybe.com secure\n", encoding="utf-8")

        response = client.post("/api/v1/policy/reload", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["generation"] == 2

        response = client.get("/api/v1/policy/domains/maybe.com", headers=auth_headers)
        assert response.json()["enforced_capable"] is True

    def test_failed_reload_keeps_snapshot(self, client, auth_headers, policy_file, store):
        policy_file.unlink()

        response = client.post("/api/v1/policy/reload", headers=auth_headers)
        assert response.status_code == 503
        assert store.current().generation == 1


class TestFilterRoutes:

    def test_options(self, client, auth_headers):
        from config import settings
        response = client.get("/api/v1/filter/options", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["strict"] == settings.strict_mode
        assert data["unified"] == settings.unified_mode
        assert data["info_url"] == settings.info_url

    def test_stats(self, client, auth_headers):
        response = client.get("/api/v1/filter/stats", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert "started_at" in data
        assert isinstance(data["counters"], dict)


class TestHealthCheck:

    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["policy_loaded"] is True
