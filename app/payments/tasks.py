"""
Celery tasks for payment processing.

This module provides async tasks for:
- Refreshing the platform fee returned by a refund, when Stripe had not
  yet created the application-fee refund while the webhook was handled

Usage:
    from payments.tasks import refresh_refund_fee

    # Queue a delayed fee refresh
    refresh_refund_fee.apply_async(args=[str(payment.id), refund_id], countdown=5)
"""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task

from payments.adapters import StripeAdapter
from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeRateLimitError,
    StripeTimeoutError,
)
from payments.models import Payment
from payments.services import RefundFeeResolver

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_FEE_REFRESH_RETRIES = 3


# =============================================================================
# Refund Fee Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(StripeAPIUnavailableError, StripeRateLimitError, StripeTimeoutError),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_FEE_REFRESH_RETRIES},
    acks_late=True,
)
def refresh_refund_fee(self, payment_id: str, refund_id: str) -> dict:
    """
    Resolve and store the refund fee for a payment after a delay.

    This task:
    1. Loads the Payment by ID
    2. Retrieves the refund and its charge from Stripe
    3. Runs the refund fee resolver
    4. Stores the fee when one was found

    A fee of 0 is left as it is; the payment is never otherwise touched.

    Args:
        payment_id: UUID of the Payment
        refund_id: Stripe Refund ID (re_xxx)

    Returns:
        Dict with the refresh result status
    """
    if isinstance(payment_id, str):
        payment_id = UUID(payment_id)

    log_context = {"payment_id": str(payment_id), "refund_id": refund_id}
    logger.info("Refreshing refund fee", extra=log_context)

    try:
        payment = Payment.objects.get(id=payment_id)
    except Payment.DoesNotExist:
        logger.error("Payment not found for refund fee refresh", extra=log_context)
        return {"status": "not_found", "payment_id": str(payment_id)}

    refund = StripeAdapter.retrieve_refund(refund_id)
    charge_id = refund.charge_id or payment.stripe_charge_id
    if not charge_id:
        logger.warning("Refund has no charge, fee cannot be resolved", extra=log_context)
        return {"status": "no_charge", "payment_id": str(payment_id)}

    charge = StripeAdapter.retrieve_charge(charge_id)
    result = RefundFeeResolver.resolve(StripeAdapter, refund, charge)
    amount = result.data.amount if result.data else 0

    if amount <= 0:
        logger.warning(
            "Refund fee still unavailable",
            extra={**log_context, "error_code": result.error_code},
        )
        return {"status": "unresolved", "payment_id": str(payment_id)}

    Payment.objects.filter(id=payment.id).update(stripe_refund_fee=amount)
    logger.info(
        "Refund fee stored",
        extra={**log_context, "stripe_refund_fee": amount, "source": result.data.source},
    )
    return {"status": "updated", "payment_id": str(payment_id), "stripe_refund_fee": amount}
