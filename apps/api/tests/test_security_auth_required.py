"""
Security Tests: Authentication Required

Every resource endpoint requires a valid bearer token. Public endpoints
(/health, /ping) stay open.

Run with: pytest tests/test_security_auth_required.py -v
"""

import pytest
from uuid import uuid4


PROTECTED = [
    ("get", "/v1/exercises"),
    ("post", "/v1/exercises"),
    ("get", "/v1/training-plans"),
    ("post", "/v1/training-plans"),
    ("get", f"/v1/training-plans/{uuid4()}"),
    ("put", f"/v1/training-plans/{uuid4()}/progressions/{uuid4()}"),
    ("get", "/v1/training-sessions"),
    ("post", "/v1/training-sessions"),
    ("post", f"/v1/training-sessions/{uuid4()}/complete"),
    ("patch", f"/v1/training-sessions/{uuid4()}/sets/{uuid4()}/complete"),
    ("get", f"/v1/user-profiles/{uuid4()}"),
    ("put", f"/v1/user-profiles/{uuid4()}"),
]


class TestAuthRequired:
    """Requests without a token are rejected with 401."""

    @pytest.mark.parametrize("method,path", PROTECTED)
    def test_requires_auth(self, client, method, path):
        response = client.request(method.upper(), path, json={})
        assert response.status_code == 401, f"Expected 401, got {response.status_code}"

    def test_invalid_token_rejected(self, client):
        response = client.get("/v1/exercises", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_token_without_uuid_subject_rejected(self, client):
        from core.security import create_access_token

        token = create_access_token(data={"sub": "not-a-uuid"})
        response = client.get("/v1/exercises", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestPublicEndpoints:
    """Health endpoints need no token."""

    def test_ping(self, client):
        response = client.get("/ping")
        assert response.status_code == 200
        assert response.json() == {"pong": True}

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health_reports_database_outage(self, client, monkeypatch):
        import main

        monkeypatch.setattr(main, "check_db_connection", lambda: False)
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["database"] == "unavailable"
