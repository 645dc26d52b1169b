"""
Integration tests for the API endpoints.

Tests the full request/response cycle with the services mocked out.
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.domain.ai_model import AIModelDescriptor, ModelSource, ResolvedAIModel
from app.domain.referral import ReferralSummary
from app.domain.subscription import (
    ActivationOutcome,
    ActivationResult,
    EntitlementSnapshot,
    SelectionUpdateResult,
)
from app.infrastructure.db.database import get_session
from app.infrastructure.db.dependencies import (
    get_activation_service,
    get_ai_model_service,
    get_referral_service,
    get_selection_service,
)
from app.infrastructure.exceptions import (
    InsufficientPointsError,
    NotFoundError,
    ReferralAwardError,
)


@pytest.fixture
def activation_service(app):
    service = AsyncMock()
    app.dependency_overrides[get_activation_service] = lambda: service
    return service


@pytest.fixture
def referral_service(app):
    service = AsyncMock()
    app.dependency_overrides[get_referral_service] = lambda: service
    return service


@pytest.fixture
def selection_service(app):
    service = AsyncMock()
    app.dependency_overrides[get_selection_service] = lambda: service
    return service


@pytest.fixture
def ai_model_service(app):
    service = AsyncMock()
    app.dependency_overrides[get_ai_model_service] = lambda: service
    return service


@pytest.fixture
def db_session(app):
    session = AsyncMock()
    session.add = MagicMock()

    async def _session():
        yield session

    app.dependency_overrides[get_session] = _session
    return session


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, client: TestClient):
        """Root endpoint should return welcome message."""
        response = client.get("/")
        assert response.status_code == 200
        assert "message" in response.json()

    def test_health_endpoint(self, client: TestClient):
        """Health endpoint should return healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "study-subscriptions"


class TestAuthentication:
    """User routes refuse requests without a valid token."""

    @pytest.mark.parametrize("method,path", [
        ("get", "/api/subscriptions/entitlement"),
        ("post", "/api/subscriptions/free"),
        ("post", "/api/subscriptions/cancel"),
        ("get", "/api/referrals/summary"),
        ("post", "/api/referrals/code"),
        ("get", "/api/ai-models/resolved"),
    ])
    def test_requires_token(self, client, activation_service, referral_service, ai_model_service, method, path):
        response = getattr(client, method)(path)
        assert response.status_code == 401
        assert response.json()["detail"] == "Missing authorization token"

    def test_invalid_token(self, client, activation_service):
        response = client.get(
            "/api/subscriptions/entitlement",
            headers={"Authorization": "Bearer invalid.token.here"},
        )
        assert response.status_code == 401


class TestPaymentEndpoints:

    def test_completed_payment(self, client, db_session):
        transaction_id = uuid4()
        result = ActivationResult(
            activated=True,
            outcome=ActivationOutcome.ACTIVATED,
            transaction_id=str(transaction_id),
            subscription_id=str(uuid4()),
        )
        with patch("app.api.routes.payments.SubscriptionActivationService") as service_cls:
            service_cls.return_value.handle_payment_status = AsyncMock(return_value=result)
            response = client.post(
                f"/api/payments/{transaction_id}/status",
                json={"status": "completed"},
            )

        assert response.status_code == 200
        assert response.json()["outcome"] == "activated"
        service_cls.return_value.handle_payment_status.assert_awaited_once()

    def test_invalid_status(self, client, db_session):
        response = client.post(f"/api/payments/{uuid4()}/status", json={"status": "refunded-ish"})
        assert response.status_code == 422

    def test_unknown_transaction(self, client, db_session):
        with patch("app.api.routes.payments.SubscriptionActivationService") as service_cls:
            service_cls.return_value.handle_payment_status = AsyncMock(
                side_effect=NotFoundError("Payment transaction not found")
            )
            response = client.post(f"/api/payments/{uuid4()}/status", json={"status": "completed"})

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_award_failure_is_server_error(self, client, db_session):
        error = ReferralAwardError("Referral award failed: boom", subscription_id="sub-1")

        with patch("app.api.routes.payments.SubscriptionActivationService") as service_cls:
            service_cls.return_value.handle_payment_status = AsyncMock(side_effect=error)
            response = client.post(f"/api/payments/{uuid4()}/status", json={"status": "completed"})

        assert response.status_code == 500
        assert response.json()["error"] == "ReferralAwardError"
        assert response.json()["details"]["subscription_id"] == "sub-1"


class TestSubscriptionEndpoints:

    def test_entitlement(self, client, auth_headers, activation_service, mock_user_id):
        activation_service.get_entitlement.return_value = EntitlementSnapshot(
            user_id=str(mock_user_id),
            tier="pro",
            token_limit_effective=2600,
            tokens_used=100,
            tokens_remaining=2500,
        )

        response = client.get("/api/subscriptions/entitlement", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["tokens_remaining"] == 2500
        activation_service.get_entitlement.assert_awaited_once_with(mock_user_id)

    def test_selection_failure_is_not_an_error(self, client, auth_headers, selection_service):
        selection_service.update_selections.return_value = SelectionUpdateResult(
            success=False, message="You can only select up to 2 subjects"
        )

        response = client.put(
            "/api/subscriptions/selections",
            json={"grade_id": str(uuid4()), "subject_ids": [str(uuid4()) for _ in range(3)]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "message": "You can only select up to 2 subjects",
        }

    def test_cancel_without_subscription(self, client, auth_headers, activation_service):
        activation_service.cancel_subscription.return_value = False
        response = client.post("/api/subscriptions/cancel", headers=auth_headers)
        assert response.status_code == 404

    def test_cancel(self, client, auth_headers, activation_service):
        activation_service.cancel_subscription.return_value = True
        response = client.post("/api/subscriptions/cancel", headers=auth_headers)
        assert response.json() == {"cancelled": True}

    def test_usage_must_be_positive(self, client, auth_headers, activation_service):
        response = client.post("/api/subscriptions/usage", json={"tokens": 0}, headers=auth_headers)
        assert response.status_code == 422


class TestReferralEndpoints:

    def test_summary(self, client, auth_headers, referral_service, mock_user_id):
        referral_service.get_summary.return_value = ReferralSummary(user_id=str(mock_user_id))

        response = client.get("/api/referrals/summary", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["points_balance"] == 0

    def test_code(self, client, auth_headers, referral_service):
        referral_service.get_or_create_code.return_value = "A1B2C3D4"
        response = client.post("/api/referrals/code", headers=auth_headers)
        assert response.json() == {"code": "A1B2C3D4"}

    def test_apply(self, client, auth_headers, referral_service, mock_user_id):
        referral_service.apply_referral_code.return_value = False
        response = client.post("/api/referrals/apply", json={"code": "A1B2C3D4"}, headers=auth_headers)
        assert response.json() == {"applied": False}
        referral_service.apply_referral_code.assert_awaited_once_with(mock_user_id, "A1B2C3D4")

    def test_redeem_insufficient_points(self, client, auth_headers, referral_service):
        referral_service.redeem_points.side_effect = InsufficientPointsError(balance=100, required=500)

        response = client.post(
            "/api/referrals/redeem", json={"tier_id": str(uuid4())}, headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json()["details"]["required"] == 500

    def test_redeem_requires_uuid(self, client, auth_headers, referral_service):
        response = client.post("/api/referrals/redeem", json={"tier_id": "pro"}, headers=auth_headers)
        assert response.status_code == 422

    def test_transactions_limit_bounds(self, client, auth_headers, referral_service):
        response = client.get("/api/referrals/transactions?limit=0", headers=auth_headers)
        assert response.status_code == 422


class TestAIModelEndpoints:

    def test_resolved(self, client, auth_headers, ai_model_service):
        ai_model_service.resolve_for_user.return_value = ResolvedAIModel(
            model=AIModelDescriptor(
                id=str(uuid4()),
                provider="gemini",
                model_name="gemini-2.5-flash",
                display_name="Gemini 2.5 Flash",
                max_context_tokens=1000000,
                max_output_tokens=8192,
                input_token_cost_per_million=0.075,
                output_token_cost_per_million=0.30,
            ),
            source=ModelSource.SYSTEM_DEFAULT,
        )

        response = client.get("/api/ai-models/resolved", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["source"] == "system_default"

    def test_clear_preference(self, client, auth_headers, ai_model_service, mock_user_id):
        ai_model_service.set_preference.return_value = None

        response = client.put("/api/ai-models/preference", json={"ai_model_id": None}, headers=auth_headers)

        assert response.status_code == 200
        ai_model_service.set_preference.assert_awaited_once_with(mock_user_id, None)
