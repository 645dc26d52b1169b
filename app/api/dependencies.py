"""
API Dependencies

FastAPI dependency injection for authentication and common services.

Security: user tokens are verified cryptographically with the configured
JWT secret. Never decode without verification. Payment gateway callbacks
carry a shared secret instead of a user token.
"""

import hmac
import logging
from typing import Optional
from uuid import UUID

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.config.settings import get_settings


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _decode_token(token: str) -> dict:
    """Verify a JWT with the configured secret, issuer and audience."""
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication is not configured",
        )

    required = ["exp", "sub"]
    if settings.jwt_issuer:
        required.append("iss")
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        options={"require": required},
    )


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> UUID:
    """
    Extract and verify the user ID from a bearer JWT.

    Returns:
        Authenticated user ID (``sub`` claim).

    Raises:
        HTTPException 401: token missing, expired, or invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = _decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        )
    except jwt.InvalidTokenError as e:
        logger.warning("JWT verification failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or unverifiable token",
        )

    try:
        return UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user ID",
        )


async def verify_payments_secret(
    x_payments_secret: Optional[str] = Header(default=None),
) -> None:
    """
    Check the shared secret on payment gateway callbacks.

    Without a configured secret the check is skipped outside production.

    Raises:
        HTTPException 401: secret missing or wrong.
    """
    settings = get_settings()
    expected = settings.payments_webhook_secret
    if not expected:
        if settings.is_production:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Payment callbacks are not configured",
            )
        return

    if not x_payments_secret or not hmac.compare_digest(x_payments_secret, expected):
        logger.warning("Rejected payment callback with invalid secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid payments secret",
        )


# =============================================================================
# Re-export DB dependencies for a single import source
# Routers should import from api.dependencies, not db.dependencies directly.
# =============================================================================
from app.infrastructure.db.dependencies import (  # noqa: E402, F401
    SessionDep,
    ActivationServiceDep,
    ReferralServiceDep,
    SelectionServiceDep,
    AIModelServiceDep,
)
