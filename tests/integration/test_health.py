"""Integration tests for GET /health."""

from tests.fakes import make_user


class TestHealthEndpoint:
    def test_healthy(self, harness):
        resp = harness.client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["checks"] == {
            "mongodb": "ok",
            "registration_store": "ok",
            "cleanup": "idle",
        }
        assert body["pending_registrations"] == 0
        assert body["authenticated"] is False

    def test_unhealthy_when_mongo_fails(self, make_harness):
        h = make_harness(mongo_ok=False)
        resp = h.client.get("/health")
        assert resp.status_code == 503
        body = resp.json()
        assert body["status"] == "unhealthy"
        assert body["checks"]["mongodb"] == "error"

    def test_degraded_near_capacity(self, harness):
        harness.app.state.registration_store.capacity = 1
        harness.client.post(
            "/auth/register",
            json={"email": "p@test.com", "password": "hunter2hunter2", "name": "Pat"},
        )
        resp = harness.client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "degraded"
        assert body["checks"]["registration_store"] == "near_capacity"
        assert body["pending_registrations"] == 1

    def test_authenticated_flag(self, harness):
        harness.repo.seed(make_user())
        token = harness.client.post(
            "/auth/login", json={"email": "owner@example.com", "password": "correct-horse-42"}
        ).json()["access_token"]
        resp = harness.client.get("/health", headers=harness.auth(token))
        assert resp.json()["authenticated"] is True

    def test_invalid_token_is_anonymous(self, harness):
        resp = harness.client.get("/health", headers=harness.auth("garbage"))
        assert resp.status_code == 200
        assert resp.json()["authenticated"] is False
