"""
tests/test_health.py -- Integration tests for GET /api/health.

Covers:
  - 200 response with status and version
  - No authentication required
"""

from __future__ import annotations


def test_health_returns_200(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "OK"
    assert "version" in data


def test_health_no_auth_required(client):
    resp = client.get("/api/health", headers={})
    assert resp.status_code == 200
