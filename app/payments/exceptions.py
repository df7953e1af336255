"""
Payment-specific exceptions for webhook reconciliation.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentValidationError - Event payload validation failures
    │   └── MissingLinkageError - Event lacks required clinic linkage
    └── PaymentProcessingError - Processor call failures
        ├── FeeNotApplicableError - Fee strategy does not apply (moves to next tier)
        └── StripeError - Base for all Stripe errors
            ├── StripeCardDeclinedError - Card declined (permanent)
            ├── StripeInvalidRequestError - Invalid request / missing resource (permanent)
            ├── StripeAuthenticationError - Bad API key (permanent)
            ├── StripeRateLimitError - Rate limited (transient, retry)
            ├── StripeAPIUnavailableError - API unavailable (transient, retry)
            └── StripeTimeoutError - Request timeout (transient, retry)

    InvalidStateTransitionError - Status transition not allowed (inherits ConflictError)

Usage:
    from payments.exceptions import MissingLinkageError, StripeError

    if not clinic_id:
        raise MissingLinkageError(
            "Missing clinicId in payment intent metadata",
            details={"payment_intent_id": intent_id},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    All payment-specific exceptions inherit from this class,
    which itself inherits from BaseApplicationError for
    consistent error responses.
    """

    default_error_code: str = "PAYMENT_ERROR"



class PaymentValidationError(PaymentError):
    """
    Raised when event data fails validation.

    Use for:
    - Non-integer or negative monetary amounts
    - Malformed event envelopes
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class MissingLinkageError(PaymentValidationError):
    """
    Raised when an event cannot be tied to a clinic.

    Fatal for the event: no ledger row is written.
    """

    default_error_code: str = "MISSING_LINKAGE"


class PaymentProcessingError(PaymentError):
    """
    Raised when a payment processor call fails.
    """

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


class FeeNotApplicableError(PaymentProcessingError):
    """
    Raised when a fee lookup strategy does not apply to a charge or refund.

    Example: the charge carries no application fee. The refund fee chain
    moves on to its next strategy without retrying.
    """

    default_error_code: str = "FEE_NOT_APPLICABLE"


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(PaymentProcessingError):
    """
    Base exception for all Stripe-related errors.

    Provides common attributes for Stripe error handling:
    - stripe_code: Stripe's internal error code
    - decline_code: Card decline code (if applicable)
    - is_retryable: Whether the operation can be retried

    Use is_retryable to determine retry behavior:
    - True: Transient error, safe to retry with backoff
    - False: Permanent error, fall through to the next fallback instead
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(StripeError):
    """
    Card was declined by the issuing bank.

    Lookups never raise this; it exists so that every CardError coming out
    of the SDK maps to a permanent domain error.
    """

    default_error_code: str = "CARD_DECLINED"
    is_retryable: bool = False


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe.

    Raised for lookups of objects that do not exist (resource_missing),
    for charges without an application fee, and for failed webhook
    signature verification. Never retried.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    is_retryable: bool = False


class StripeAuthenticationError(StripeError):
    """
    Stripe rejected the API key.

    Operational problem: retrying will not help.
    """

    default_error_code: str = "STRIPE_AUTHENTICATION_FAILED"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    """
    Rate limited by Stripe API.

    Retried by call_with_retry with exponential backoff.
    """

    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """
    Stripe API is temporarily unavailable.

    This covers:
    - Network connectivity issues
    - Stripe server errors (5xx)
    - DNS resolution failures
    """

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe API call timed out.

    The request was sent but no response was received within
    STRIPE_API_TIMEOUT_SECONDS. All lookups are read-only, so a
    retry is always safe.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# State Machine Exceptions
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a status transition is not allowed.

    Raised by the pure transition functions in
    payments.state_machines.transitions and wraps django-fsm's
    TransitionNotAllowed.

    Attributes:
        details: Contains current_state and event
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentValidationError",
    "MissingLinkageError",
    "PaymentProcessingError",
    "FeeNotApplicableError",
    # Stripe-specific
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInvalidRequestError",
    "StripeAuthenticationError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
    # State machines
    "InvalidStateTransitionError",
]
