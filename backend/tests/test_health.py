"""
Health endpoint tests.
"""


class TestHealth:
    """/api/health"""

    def test_health_ok(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "ok"
        assert body["checks"]["database"]["status"] == "healthy"
        assert body["timestamp"].endswith("Z")

    def test_cors_headers(self, client, db_session, app):
        origin = app.config["CORS_ORIGINS"][0]
        resp = client.get("/api/health", headers={"Origin": origin})
        assert resp.headers.get("Access-Control-Allow-Origin") == origin
