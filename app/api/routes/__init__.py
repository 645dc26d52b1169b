# API Routes Module
from app.api.routes import (
    payments,
    subscriptions,
    referrals,
    ai_models,
)

__all__ = [
    "payments",
    "subscriptions",
    "referrals",
    "ai_models",
]
