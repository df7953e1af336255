"""
Payments app configuration.

This app provides the payment ledger and its Stripe reconciliation:
- Payment, PaymentRequest and PaymentActivity models
- Stripe webhook endpoint and event handlers
- Fee and refund fee resolution against the Stripe API
"""

import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        """Register webhook handlers and warn about missing Stripe settings."""
        from payments import webhooks  # noqa: F401
        from payments.adapters import StripeAdapter

        missing = StripeAdapter.missing_configuration()
        if missing:
            logger.warning(
                "Stripe is not fully configured; webhooks will be rejected with 500",
                extra={"missing_settings": missing},
            )
