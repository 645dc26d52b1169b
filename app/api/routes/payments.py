"""
Payment API Routes

Status callbacks from the payment gateway. A payment moving into
"completed" activates the purchased subscription.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.dependencies import SessionDep, verify_payments_secret
from app.domain.subscription import ActivationResult, PaymentStatusUpdateRequest
from app.infrastructure.services.activation_service import SubscriptionActivationService


router = APIRouter()


@router.post(
    "/payments/{transaction_id}/status",
    response_model=ActivationResult,
    dependencies=[Depends(verify_payments_secret)],
)
async def update_payment_status(
    transaction_id: UUID,
    request: PaymentStatusUpdateRequest,
    session: SessionDep,
):
    """
    Apply a payment status change.

    A failed referral award rolls back the whole change, including the
    payment status, so the gateway can retry. The session keeps the
    failure in the award audit log.
    """
    service = SubscriptionActivationService(session)
    return await service.handle_payment_status(transaction_id, request.status)
