"""
Payment adapters for external services.

This module provides adapters for external payment services like Stripe.
All external payment API calls should go through these adapters to ensure
consistent error handling, timeouts, retries, and observability.

Usage:
    from payments.adapters import StripeAdapter

    charge = StripeAdapter.retrieve_charge("ch_xxx")
"""

from payments.adapters.stripe_adapter import (
    ApplicationFeeResult,
    BalanceTransactionResult,
    ChargeResult,
    FeeRefundResult,
    PaymentIntentResult,
    RefundResult,
    StripeAdapter,
    backoff_delay,
    call_with_retry,
    expandable_id,
    is_retryable_stripe_error,
)

__all__ = [
    "ApplicationFeeResult",
    "BalanceTransactionResult",
    "ChargeResult",
    "FeeRefundResult",
    "PaymentIntentResult",
    "RefundResult",
    "StripeAdapter",
    "backoff_delay",
    "call_with_retry",
    "expandable_id",
    "is_retryable_stripe_error",
]
