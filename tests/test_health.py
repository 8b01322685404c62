"""
tests/test_health.py -- Integration tests for service-level endpoints and the
HTTP envelope that wraps every route.

Covers:
  - GET /api/health: 200 with status, version, uptime and database component
  - GET /api/health: database failure reported as degraded, not raised
  - GET /api/info: name, version and endpoint map, no auth required
  - Security headers on every response (including errors)
  - Unknown route -> 404 not_found, wrong method -> 405 method_not_allowed
  - Unexpected Host header rejected by TrustedHostMiddleware
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError


def test_health_returns_200_with_components(api):
    """Health endpoint returns 200 with status, version, and components."""
    resp = api.client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == "1.0.0"
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"
    assert data["uptime_seconds"] >= 0
    assert data["timestamp"]


def test_health_no_auth_required(api):
    """Health endpoint is accessible without any authentication headers."""
    resp = api.client.get("/api/health", headers={})
    assert resp.status_code == 200


def test_health_reports_database_error_as_degraded(api, monkeypatch):
    """A failing database ping is reported in the body, not as a 500."""

    def broken_ping():
        raise OperationalError("SELECT 1", {}, Exception("database is gone"))

    monkeypatch.setattr(api.product_store, "ping", broken_ping)
    resp = api.client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "error"
    assert "database is gone" not in resp.text


def test_info_lists_endpoints(api):
    resp = api.client.get("/api/info")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Inventory API"
    assert data["version"] == "1.0.0"
    assert "GET /api/products" in data["endpoints"]
    assert "POST /api/auth/login" in data["endpoints"]


class TestHttpEnvelope:
    """Cross-cutting behaviour applied by middleware and exception handlers."""

    def test_security_headers_present(self, api) -> None:
        resp = api.client.get("/api/health")
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert "Permissions-Policy" in resp.headers

    def test_security_headers_present_on_errors(self, api) -> None:
        resp = api.client.get("/api/products")
        assert resp.status_code == 401
        assert resp.headers["X-Frame-Options"] == "DENY"

    def test_unknown_route_is_not_found(self, api) -> None:
        resp = api.client.get("/api/nope")
        assert resp.status_code == 404
        assert resp.json() == {"error": "not_found", "message": "The requested resource was not found."}

    def test_wrong_method_is_method_not_allowed(self, api) -> None:
        resp = api.client.patch("/api/products", json={})
        assert resp.status_code == 405, f"Expected 405, got {resp.status_code}: {resp.text}"
        assert resp.json()["error"] == "method_not_allowed"
        assert "GET" in resp.headers["allow"]

    def test_untrusted_host_rejected(self, api) -> None:
        resp = api.client.get("/api/health", headers={"Host": "evil.example.com"})
        assert resp.status_code == 400
