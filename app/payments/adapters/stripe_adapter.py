"""
Stripe API adapter for webhook reconciliation lookups.

This module provides the StripeAdapter class which encapsulates all
Stripe API interactions. All Stripe calls go through this adapter to
ensure consistent error handling, timeouts, retries, and observability.
Every call made here is a read-only lookup; nothing mutates state on
the Stripe side.

Features:
- Configurable timeouts on all API calls
- Automatic error translation to domain exceptions
- Bounded retry with exponential backoff for transient failures only
- Structured logging with timing metrics
- Thread-safe for use from Celery workers

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: Max attempts for transient failures (default: 3)
- STRIPE_RETRY_BASE_DELAY_SECONDS: Backoff base delay (default: 0.5)

Usage:
    from payments.adapters import StripeAdapter

    charge = StripeAdapter.retrieve_charge("ch_xxx")
    if charge.balance_transaction_id:
        txn = StripeAdapter.retrieve_balance_transaction(charge.balance_transaction_id)
"""

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeAuthenticationError,
    StripeCardDeclinedError,
    StripeError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class ChargeResult:
    """
    Result from a Stripe Charge lookup.

    Attributes:
        id: Charge ID (ch_xxx)
        amount: Charged amount in minor units
        amount_refunded: Cumulative refunded amount in minor units
        payment_intent_id: PaymentIntent that produced the charge
        balance_transaction_id: Balance transaction recording fee and net
        application_fee_id: Platform application fee (Connect charges only)
        created: Unix timestamp
    """

    id: str
    amount: int
    amount_refunded: int = 0
    payment_intent_id: str | None = None
    balance_transaction_id: str | None = None
    application_fee_id: str | None = None
    created: int | None = None


@dataclass
class BalanceTransactionResult:
    """
    Result from a Stripe BalanceTransaction lookup.

    Attributes:
        id: Balance transaction ID (txn_xxx)
        amount: Gross amount in minor units (negative for refunds)
        fee: Stripe fee in minor units (may be negative for refunds)
        net: Net amount in minor units
    """

    id: str
    amount: int
    fee: int
    net: int


@dataclass
class FeeRefundResult:
    """
    One refund of an application fee.

    Attributes:
        id: Fee refund ID (fr_xxx)
        amount: Refunded platform fee in minor units
        created: Unix timestamp, used to match the refund that caused it
    """

    id: str
    amount: int
    created: int


@dataclass
class ApplicationFeeResult:
    """
    Result from a Stripe ApplicationFee lookup (refunds expanded).

    Attributes:
        id: Application fee ID (fee_xxx)
        amount: Platform fee in minor units
        amount_refunded: Cumulative refunded platform fee
        refunds: Fee refunds included in the response
    """

    id: str
    amount: int
    amount_refunded: int = 0
    refunds: list[FeeRefundResult] = field(default_factory=list)


@dataclass
class PaymentIntentResult:
    """
    Result from a Stripe PaymentIntent lookup.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        status: Current status (succeeded, requires_payment_method, ...)
        amount: Amount in minor units
        latest_charge_id: Most recent charge for the intent
        metadata: Attached metadata
    """

    id: str
    status: str
    amount: int
    latest_charge_id: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class RefundResult:
    """
    Result from a Stripe Refund lookup.

    Attributes:
        id: Refund ID (re_xxx)
        amount: Refunded amount in minor units
        status: Refund status (succeeded, pending, failed)
        charge_id: Refunded charge
        payment_intent_id: Original PaymentIntent ID
        balance_transaction_id: Balance transaction recording the refund fee
        created: Unix timestamp
    """

    id: str
    amount: int
    status: str
    charge_id: str | None = None
    payment_intent_id: str | None = None
    balance_transaction_id: str | None = None
    created: int | None = None


# =============================================================================
# Field Access Helpers
# =============================================================================


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a StripeObject or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def expandable_id(value: Any) -> str | None:
    """
    Return the ID of an expandable Stripe field.

    Expandable fields are either an ID string or the expanded object.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    return _field(value, "id")


# =============================================================================
# Retry Logic Helpers
# =============================================================================


def is_retryable_stripe_error(error: Exception) -> bool:
    """
    Check if a Stripe error is retryable.

    Only transient failures (rate limiting, connectivity, timeouts) are
    retryable. Business-class failures such as a missing object fall
    through to the caller's fallback instead.

    Args:
        error: The exception to check

    Returns:
        True if the error is a transient Stripe error that can be retried
    """
    if isinstance(error, StripeError):
        return getattr(error, "is_retryable", False)
    return False


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Jitter prevents thundering herd when multiple workers retry simultaneously.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)

    Returns:
        Delay in seconds with jitter (0-25% of calculated delay)

    Example:
        # Attempt 0: 1.0 - 1.25 seconds
        # Attempt 1: 2.0 - 2.5 seconds
        # Attempt 2: 4.0 - 5.0 seconds
        delay = backoff_delay(attempt=2)
    """
    delay = min(base * (2**attempt), max_delay)
    # Add jitter (0-25% of delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


def call_with_retry(
    func: Callable[[], T],
    operation: str = "stripe_call",
    max_attempts: int | None = None,
    base_delay: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``func`` and retry it on transient Stripe errors.

    Args:
        func: Zero-argument callable performing one attempt
        operation: Operation name for logging
        max_attempts: Total attempts including the first
            (default: settings.STRIPE_MAX_RETRIES)
        base_delay: Backoff base in seconds
            (default: settings.STRIPE_RETRY_BASE_DELAY_SECONDS)
        sleep: Sleep function, injectable for tests

    Returns:
        Whatever ``func`` returns

    Raises:
        The last error once attempts are exhausted, or any
        non-retryable error immediately.
    """
    if max_attempts is None:
        max_attempts = getattr(settings, "STRIPE_MAX_RETRIES", 3)
    if base_delay is None:
        base_delay = getattr(settings, "STRIPE_RETRY_BASE_DELAY_SECONDS", 0.5)
    max_attempts = max(1, max_attempts)

    logger = logging.getLogger(__name__)

    for attempt in range(max_attempts):
        try:
            return func()
        except Exception as e:
            if not is_retryable_stripe_error(e) or attempt + 1 >= max_attempts:
                raise
            delay = backoff_delay(attempt, base=base_delay)
            logger.warning(
                f"Transient Stripe error, retrying {operation}",
                extra={
                    "operation": operation,
                    "attempt": attempt + 1,
                    "max_attempts": max_attempts,
                    "delay_seconds": round(delay, 3),
                    "error_code": getattr(e, "error_code", None),
                },
            )
            sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError(f"call_with_retry exhausted without result for {operation}")


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API lookups.

    All methods are classmethods - no instance state is maintained, so the
    class itself satisfies the PaymentProcessor protocol and can be passed
    wherever a processor is injected.

    Usage:
        charge = StripeAdapter.retrieve_charge("ch_xxx")
        fee = StripeAdapter.retrieve_application_fee(charge.application_fee_id)
    """

    _configured_timeout: int | None = None

    # =========================================================================
    # Configuration
    # =========================================================================

    @classmethod
    def _configure_stripe(cls) -> None:
        """Configure Stripe client with API key and timeout."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        if cls._configured_timeout != timeout:
            stripe.default_http_client = stripe.new_default_http_client(timeout=timeout)
            cls._configured_timeout = timeout

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def missing_configuration(cls) -> list[str]:
        """
        List the Stripe settings that are not configured.

        Returns:
            Names of empty settings; an empty list means fully configured
        """
        return [
            name
            for name in ("STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET")
            if not getattr(settings, name, "")
        ]

    @classmethod
    def _execute(
        cls,
        operation: str,
        log_context: dict[str, Any],
        call: Callable[[], Any],
    ) -> Any:
        """
        Run one Stripe SDK call with timing, logging and error translation.

        Transient failures are retried through call_with_retry.
        """
        cls._configure_stripe()
        logger = cls.get_logger()
        log_context = {"operation": operation, **log_context}

        def attempt() -> Any:
            start_time = time.time()
            logger.debug("Starting Stripe operation", extra=log_context)
            try:
                response = call()
            except Exception as e:
                duration_ms = (time.time() - start_time) * 1000
                cls._handle_stripe_error(e, log_context, duration_ms)
                raise
            duration_ms = (time.time() - start_time) * 1000
            logger.debug(
                "Stripe operation completed",
                extra={**log_context, "duration_ms": duration_ms},
            )
            return response

        return call_with_retry(attempt, operation=operation)

    # =========================================================================
    # Lookups
    # =========================================================================

    @classmethod
    def retrieve_charge(cls, charge_id: str) -> ChargeResult:
        """
        Retrieve a Charge by ID.

        Args:
            charge_id: Stripe Charge ID (ch_xxx)

        Returns:
            ChargeResult with fee linkage IDs

        Raises:
            StripeInvalidRequestError: Charge not found
        """
        charge = cls._execute(
            "retrieve_charge",
            {"charge_id": charge_id},
            lambda: stripe.Charge.retrieve(charge_id),
        )
        return ChargeResult(
            id=_field(charge, "id"),
            amount=_field(charge, "amount", 0),
            amount_refunded=_field(charge, "amount_refunded", 0),
            payment_intent_id=expandable_id(_field(charge, "payment_intent")),
            balance_transaction_id=expandable_id(_field(charge, "balance_transaction")),
            application_fee_id=expandable_id(_field(charge, "application_fee")),
            created=_field(charge, "created"),
        )

    @classmethod
    def retrieve_balance_transaction(cls, balance_transaction_id: str) -> BalanceTransactionResult:
        """
        Retrieve a BalanceTransaction by ID.

        Args:
            balance_transaction_id: Stripe BalanceTransaction ID (txn_xxx)

        Returns:
            BalanceTransactionResult with fee and net amounts
        """
        txn = cls._execute(
            "retrieve_balance_transaction",
            {"balance_transaction_id": balance_transaction_id},
            lambda: stripe.BalanceTransaction.retrieve(balance_transaction_id),
        )
        return BalanceTransactionResult(
            id=_field(txn, "id"),
            amount=_field(txn, "amount", 0),
            fee=_field(txn, "fee", 0),
            net=_field(txn, "net", 0),
        )

    @classmethod
    def retrieve_application_fee(cls, application_fee_id: str) -> ApplicationFeeResult:
        """
        Retrieve an ApplicationFee by ID with its refunds expanded.

        Args:
            application_fee_id: Stripe ApplicationFee ID (fee_xxx)

        Returns:
            ApplicationFeeResult including fee refunds
        """
        fee = cls._execute(
            "retrieve_application_fee",
            {"application_fee_id": application_fee_id},
            lambda: stripe.ApplicationFee.retrieve(application_fee_id, expand=["refunds"]),
        )
        refunds = _field(_field(fee, "refunds"), "data", [])
        return ApplicationFeeResult(
            id=_field(fee, "id"),
            amount=_field(fee, "amount", 0),
            amount_refunded=_field(fee, "amount_refunded", 0),
            refunds=[cls._fee_refund(item) for item in refunds],
        )

    @classmethod
    def list_application_fee_refunds(
        cls,
        application_fee_id: str,
        limit: int = 100,
    ) -> list[FeeRefundResult]:
        """
        List the refunds of an application fee.

        Args:
            application_fee_id: Stripe ApplicationFee ID (fee_xxx)
            limit: Maximum number of refunds to return (max 100)

        Returns:
            List of FeeRefundResult, newest first as returned by Stripe
        """
        response = cls._execute(
            "list_application_fee_refunds",
            {"application_fee_id": application_fee_id, "limit": limit},
            lambda: stripe.ApplicationFee.list_refunds(application_fee_id, limit=min(limit, 100)),
        )
        return [cls._fee_refund(item) for item in _field(response, "data", [])]

    @classmethod
    def retrieve_payment_intent(cls, payment_intent_id: str) -> PaymentIntentResult:
        """
        Retrieve a PaymentIntent by ID.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)

        Returns:
            PaymentIntentResult with the latest charge ID
        """
        intent = cls._execute(
            "retrieve_payment_intent",
            {"payment_intent_id": payment_intent_id},
            lambda: stripe.PaymentIntent.retrieve(payment_intent_id),
        )
        return PaymentIntentResult(
            id=_field(intent, "id"),
            status=_field(intent, "status", ""),
            amount=_field(intent, "amount", 0),
            latest_charge_id=expandable_id(_field(intent, "latest_charge")),
            metadata=dict(_field(intent, "metadata", {})),
        )

    @classmethod
    def retrieve_refund(cls, refund_id: str) -> RefundResult:
        """
        Retrieve a Refund by ID.

        Args:
            refund_id: Stripe Refund ID (re_xxx)

        Returns:
            RefundResult with its balance transaction ID
        """
        refund = cls._execute(
            "retrieve_refund",
            {"refund_id": refund_id},
            lambda: stripe.Refund.retrieve(refund_id),
        )
        return RefundResult(
            id=_field(refund, "id"),
            amount=_field(refund, "amount", 0),
            status=_field(refund, "status", ""),
            charge_id=expandable_id(_field(refund, "charge")),
            payment_intent_id=expandable_id(_field(refund, "payment_intent")),
            balance_transaction_id=expandable_id(_field(refund, "balance_transaction")),
            created=_field(refund, "created"),
        )

    @staticmethod
    def _fee_refund(item: Any) -> FeeRefundResult:
        return FeeRefundResult(
            id=_field(item, "id"),
            amount=_field(item, "amount", 0),
            created=_field(item, "created", 0),
        )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        The signature is checked against the raw body before anything is
        parsed; the verified body is then decoded into a plain dict.

        Args:
            payload: Raw webhook payload bytes
            signature: Stripe-Signature header value

        Returns:
            Parsed event data dict

        Raises:
            StripeInvalidRequestError: Invalid signature or malformed payload
        """
        if hasattr(payload, "decode"):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise StripeInvalidRequestError(
                    "Invalid webhook payload",
                    stripe_code="invalid_payload",
                    details={"error": str(e)},
                )

        try:
            stripe.WebhookSignature.verify_header(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
        except stripe.SignatureVerificationError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            )

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook payload",
                stripe_code="invalid_payload",
                details={"error": str(e)},
            )
        if not isinstance(event, dict):
            raise StripeInvalidRequestError(
                "Invalid webhook payload",
                stripe_code="invalid_payload",
            )
        return event

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Maps Stripe SDK errors to appropriate domain exceptions
        with proper error categorization for retry decisions.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidRequestError: Invalid request or missing resource
            StripeAuthenticationError: Invalid API key
            StripeRateLimitError: Rate limited
            StripeTimeoutError: Request timed out
            StripeAPIUnavailableError: API unavailable
        """
        logger = cls.get_logger()

        # Add timing to context
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, StripeError):
            # Already translated
            raise error

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            )

        elif isinstance(error, stripe.InvalidRequestError):
            # Invalid parameters or resource not found - never retried
            logger.warning(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise StripeInvalidRequestError(
                str(error),
                stripe_code=error.code,
            )

        elif isinstance(error, stripe.RateLimitError):
            logger.warning(
                "Rate limited by Stripe",
                extra=log_context,
            )
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            )

        elif isinstance(error, stripe.APIConnectionError):
            if "timed out" in str(error).lower() or "timeout" in str(error).lower():
                logger.warning(
                    "Stripe request timed out",
                    extra=log_context,
                )
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                )
            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            )

        elif isinstance(error, stripe.AuthenticationError):
            # Invalid API key - permanent, operational issue
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeAuthenticationError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            )

        elif isinstance(error, stripe.APIError):
            # Stripe server error - retry with backoff
            logger.error(
                "Stripe API error",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            )

        else:
            # Unknown error - log and wrap
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            )
