"""
Custom Exceptions for Study Subscriptions

Hierarchical exception classes for proper error handling across layers.
"""

from typing import Optional, Dict, Any


class StudySubscriptionsError(Exception):
    """Base exception for all Study Subscriptions errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(StudySubscriptionsError):
    """Raised when input validation fails."""
    pass


class DatabaseError(StudySubscriptionsError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class NotFoundError(DatabaseError):
    """Raised when a requested resource is not found."""
    pass


class DuplicateError(DatabaseError):
    """Raised when attempting to create a duplicate resource."""
    pass


class ConfigurationError(StudySubscriptionsError):
    """Raised when configuration or reference data is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)


class LedgerError(StudySubscriptionsError):
    """Raised when a points ledger invariant would be violated."""

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        referral_id: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if user_id:
            details["user_id"] = user_id
        if referral_id:
            details["referral_id"] = referral_id
        super().__init__(message, details, original_error)


class ReferralAwardError(LedgerError):
    """
    Raised when the award sequence fails after the gate was passed.

    audit_entry holds the "error" audit record for the attempt. It is
    written by whoever owns the transaction, after rolling it back.
    """

    def __init__(
        self,
        message: str,
        subscription_id: Optional[str] = None,
        referral_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
        audit_entry: Optional[Any] = None
    ):
        super().__init__(message, referral_id=referral_id, original_error=original_error)
        self.audit_entry = audit_entry
        if subscription_id:
            self.details["subscription_id"] = subscription_id


class InsufficientPointsError(LedgerError):
    """Raised when a redemption costs more than the user's balance."""

    def __init__(
        self,
        message: str = "Insufficient points",
        user_id: Optional[str] = None,
        balance: int = 0,
        required: int = 0,
    ):
        super().__init__(message, user_id=user_id)
        self.details["balance"] = balance
        self.details["required"] = required
