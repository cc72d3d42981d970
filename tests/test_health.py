"""
tests/test_health.py -- Integration tests for GET /api/v1/health and the error envelope.

Covers:
  - 200 response with status and version fields
  - No authentication required
  - Framework 404s use the same {"error": {...}} envelope as AppError
"""

from __future__ import annotations


def test_health_returns_status_and_version(api):
    """Health endpoint returns 200 with status and version."""
    resp = api.client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["version"]


def test_health_no_auth_required(api):
    """Health endpoint is accessible without any authentication headers."""
    resp = api.client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_unknown_route_uses_error_envelope(api):
    resp = api.client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "http_404"
