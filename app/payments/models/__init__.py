"""
Payment domain models.

This module contains all payment ledger models:
- Payment: One row per collected charge, mutated in place by refunds
- PaymentRequest: Outstanding ask for money, mirrors its payment's status
- PaymentActivity: Append-only audit log
- WebhookEvent: Stripe webhook event tracking for idempotent processing
"""

from payments.models.activity import PaymentActivity
from payments.models.payment import Payment
from payments.models.payment_request import PaymentRequest
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Payment",
    "PaymentActivity",
    "PaymentRequest",
    "WebhookEvent",
]
