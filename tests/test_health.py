"""
tests/test_health.py -- Integration tests for GET /health and GET /.

Covers:
  - 200 response with status and database fields
  - No authentication required
  - Database fault -> 503 in the same envelope
  - Unknown routes -> 404 envelope
"""

from __future__ import annotations

from unittest.mock import patch


def test_health_returns_200(api_client):
    resp = api_client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "data": {"status": "up", "database": "ok"}}


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    resp = api_client.get("/health", headers={})
    assert resp.status_code == 200


def test_health_reports_database_fault(api_client):
    with patch.object(api_client.app.state.store, "ping", return_value=False):
        resp = api_client.get("/health")
    assert resp.status_code == 503
    body = resp.json()
    assert body["success"] is False
    assert body["data"]["database"] == "error"


def test_root(api_client):
    resp = api_client.get("/")
    assert resp.status_code == 200
    assert resp.json()["data"]["message"] == "Tenant Auth API"


def test_unknown_route_uses_envelope(api_client):
    resp = api_client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json()["success"] is False
