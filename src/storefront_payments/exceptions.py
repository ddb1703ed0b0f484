"""
Storefront payment error hierarchy.

Every error carries a stable error code so callers and the reconciliation
journal can classify failures without parsing messages.
"""
from typing import Optional, Dict, Any


class PaymentError(Exception):
    """Base exception for payment and checkout failures."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a loggable error record."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class InitiationError(PaymentError):
    """
    The gateway redirect could not be prepared.

    Examples:
    - Backend answered with a non-2xx status
    - Response body is missing the payment form fields
    - Network failure or timeout

    Retryable by calling initiate again; no intent is stored.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("payment:initiation_failed", message, details)


class VerificationError(PaymentError):
    """
    Callback verification could not be completed.

    This means the outcome is unknown, not that the payment was rejected.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "payment:verification_failed",
    ):
        super().__init__(error_code, message, details)


class StatusCheckError(VerificationError):
    """Out-of-band payment status lookup failed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, error_code="payment:status_check_failed")


class MalformedCallback(PaymentError):
    """
    Redirect parameters could not be interpreted.

    Raised inside the callback parser only; the parser treats it as an
    empty payload.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("payment:malformed_callback", message, details)


class OrderServiceError(PaymentError):
    """Order creation or lookup failed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("order:service_error", message, details)
