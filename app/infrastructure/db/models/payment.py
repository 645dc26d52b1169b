"""
Payment SQLModels

Payment methods and the append-mostly payment transaction record whose
move into "completed" activates a subscription.
"""

from typing import Optional
from uuid import UUID

from sqlmodel import Field

from app.infrastructure.db.models.base import BaseModel, json_list_column


class PaymentMethod(BaseModel, table=True):
    """Payment method offered at checkout."""

    __tablename__ = "payment_methods"

    name: str = Field(..., max_length=50, unique=True)
    display_name: str = Field(..., max_length=100)
    is_active: bool = Field(default=True)


class PaymentTransaction(BaseModel, table=True):
    """A user's payment for a tier."""

    __tablename__ = "payment_transactions"

    user_id: UUID = Field(..., index=True, nullable=False)
    tier_id: UUID = Field(..., nullable=False)
    billing_cycle: str = Field(default="monthly", max_length=20)
    amount: float = Field(default=0)
    currency: str = Field(default="USD", max_length=3)
    status: str = Field(default="pending", max_length=20, index=True)
    payment_method_id: Optional[UUID] = Field(default=None, foreign_key="payment_methods.id")
    external_reference: Optional[str] = Field(default=None, max_length=255)

    # Selections chosen at checkout, copied onto the subscription
    selected_grade_id: Optional[UUID] = Field(default=None)
    selected_subject_ids: list = Field(default_factory=list, sa_column=json_list_column())
