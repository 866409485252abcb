"""Tests for bearer-token authentication and role checks."""

from datetime import timedelta

from app.auth import create_access_token
from app.config import get_settings


class TestAuthentication:
    def test_missing_token_is_401(self, client):
        response = client.get("/api/v1/jobs")
        assert response.status_code == 401

    def test_garbage_token_is_401(self, client):
        response = client.get("/api/v1/jobs", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert "invalid" in response.json()["detail"].lower()

    def test_expired_token_is_401(self, client):
        token = create_access_token(
            "cust_1", "customer", get_settings(), expires_delta=timedelta(minutes=-1)
        )
        response = client.get("/api/v1/jobs", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_token_signed_with_other_secret_is_401(self, client):
        from jose import jwt

        token = jwt.encode({"sub": "cust_1", "role": "customer"}, "wrong-secret", algorithm="HS256")
        response = client.get("/api/v1/jobs", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_system_role_cannot_be_claimed(self, client, make_headers):
        response = client.get("/api/v1/jobs", headers=make_headers("svc", "system"))
        assert response.status_code == 403

    def test_unknown_role_is_403(self, client, make_headers):
        response = client.get("/api/v1/jobs", headers=make_headers("x", "superuser"))
        assert response.status_code == 403


class TestRoleChecks:
    def test_electrician_cannot_create_job(self, client, electrician_headers):
        response = client.post("/api/v1/jobs", json={"base_price": "30"}, headers=electrician_headers)
        assert response.status_code == 403

    def test_customer_cannot_use_dispatch(self, client, customer_headers):
        response = client.post(
            "/api/v1/dispatch/availability", json={"available": True}, headers=customer_headers
        )
        assert response.status_code == 403

    def test_non_admin_cannot_force(self, client, customer_headers):
        response = client.post(
            "/api/v1/admin/jobs/any/force",
            json={"status": "CANCELLED", "reason": "x"},
            headers=customer_headers,
        )
        assert response.status_code == 403
