"""
Security Test Suite: JWT Authentication

Tests that the centralized JWT verification in dependencies.py correctly:
- Rejects missing Authorization headers
- Rejects malformed tokens
- Rejects expired tokens
- Rejects tokens with invalid signatures or issuers
- Accepts properly signed tokens

Also covers the shared secret on payment gateway callbacks.
"""

from unittest.mock import patch
from uuid import UUID, uuid4

import pytest
from fastapi import FastAPI, Depends
from fastapi.testclient import TestClient

from app.api.dependencies import get_current_user_id, verify_payments_secret
from app.config.settings import Settings


# ---------------------------------------------------------------------------
# Minimal app that uses the real dependencies
# ---------------------------------------------------------------------------

test_app = FastAPI()


@test_app.get("/protected")
async def protected_endpoint(user_id: UUID = Depends(get_current_user_id)):
    return {"user_id": str(user_id)}


@test_app.post("/callback", dependencies=[Depends(verify_payments_secret)])
async def callback_endpoint():
    return {"ok": True}


client = TestClient(test_app, raise_server_exceptions=False)


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Tests: rejection scenarios
# ---------------------------------------------------------------------------


class TestJWTRejection:
    """Verify that invalid/missing JWTs are rejected with 401."""

    def test_no_auth_header(self):
        resp = client.get("/protected")
        assert resp.status_code == 401

    def test_empty_bearer(self):
        resp = client.get("/protected", headers={"Authorization": "Bearer "})
        assert resp.status_code == 401

    def test_malformed_scheme(self):
        resp = client.get("/protected", headers={"Authorization": "Basic abc123"})
        assert resp.status_code == 401

    def test_garbage_token(self):
        resp = client.get("/protected", headers=_bearer("not.a.jwt"))
        assert resp.status_code == 401

    def test_wrong_secret(self, token_factory):
        token = token_factory(uuid4(), secret="some-other-secret-of-enough-length")
        resp = client.get("/protected", headers=_bearer(token))
        assert resp.status_code == 401

    def test_expired_token(self, token_factory):
        """An expired token (even with the correct secret) must be rejected."""
        resp = client.get("/protected", headers=_bearer(token_factory(uuid4(), expires_in=-60)))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token has expired"

    def test_wrong_issuer(self, token_factory):
        token = token_factory(uuid4(), iss="https://elsewhere.test")
        resp = client.get("/protected", headers=_bearer(token))
        assert resp.status_code == 401

    def test_wrong_audience(self, token_factory):
        token = token_factory(uuid4(), aud="anon")
        resp = client.get("/protected", headers=_bearer(token))
        assert resp.status_code == 401

    def test_non_uuid_subject(self, token_factory):
        resp = client.get("/protected", headers=_bearer(token_factory("service-account")))
        assert resp.status_code == 401

    def test_raw_uuid_rejected(self):
        """'Bearer <raw-uuid>' is not a token."""
        resp = client.get(
            "/protected",
            headers=_bearer("00000000-0000-0000-0000-000000000001"),
        )
        assert resp.status_code == 401

    def test_unconfigured_secret(self, token_factory):
        with patch("app.api.dependencies.get_settings", return_value=Settings(_env_file=None, jwt_secret=None)):
            resp = client.get("/protected", headers=_bearer(token_factory(uuid4())))
        assert resp.status_code == 503


# ---------------------------------------------------------------------------
# Tests: acceptance scenarios
# ---------------------------------------------------------------------------


class TestJWTAcceptance:
    """Verify that valid JWTs are accepted."""

    def test_valid_token(self, token_factory):
        user_id = uuid4()
        resp = client.get("/protected", headers=_bearer(token_factory(user_id)))
        assert resp.status_code == 200
        assert resp.json()["user_id"] == str(user_id)


# ---------------------------------------------------------------------------
# Tests: payment gateway shared secret
# ---------------------------------------------------------------------------


class TestPaymentsSecret:

    @pytest.fixture
    def configured(self):
        settings = Settings(_env_file=None, payments_webhook_secret="hook-secret")
        with patch("app.api.dependencies.get_settings", return_value=settings):
            yield

    def test_correct_secret(self, configured):
        resp = client.post("/callback", headers={"X-Payments-Secret": "hook-secret"})
        assert resp.status_code == 200

    def test_wrong_secret(self, configured):
        resp = client.post("/callback", headers={"X-Payments-Secret": "guess"})
        assert resp.status_code == 401

    def test_missing_secret(self, configured):
        resp = client.post("/callback")
        assert resp.status_code == 401

    def test_unconfigured_outside_production(self):
        with patch("app.api.dependencies.get_settings", return_value=Settings(_env_file=None)):
            resp = client.post("/callback")
        assert resp.status_code == 200
