"""
tests/test_health.py -- Integration tests for GET /api/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reflects UserStore.ping()
  - No authentication required
"""

from __future__ import annotations

from unittest.mock import patch


def test_health_returns_200_with_components(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"] == {"app": "ok", "database": "ok"}


def test_health_reports_database_error(client):
    store = client.app.state.user_store
    with patch.object(store, "ping", return_value=False):
        data = client.get("/api/health").json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "error"


def test_health_no_auth_required(client):
    resp = client.get("/api/health", headers={})
    assert resp.status_code == 200
