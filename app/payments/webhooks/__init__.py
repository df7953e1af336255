"""
Webhook handling for payment events from Stripe.

This module provides the view, the handler registry and the handlers for
processing Stripe webhooks. Importing the package registers every handler.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from payments.webhooks.handlers import (
    WEBHOOK_HANDLERS,
    WebhookHandler,
    WebhookOutcome,
    dispatch_webhook,
    register_handler,
)
from payments.webhooks.payment_handlers import PaymentFailedHandler, PaymentSucceededHandler
from payments.webhooks.refund_handlers import RefundUpdatedHandler
from payments.webhooks.views import stripe_webhook

__all__ = [
    "WEBHOOK_HANDLERS",
    "PaymentFailedHandler",
    "PaymentSucceededHandler",
    "RefundUpdatedHandler",
    "WebhookHandler",
    "WebhookOutcome",
    "dispatch_webhook",
    "register_handler",
    "stripe_webhook",
]
