"""
Webhook endpoint views for Stripe.

This module provides the HTTP endpoint for receiving Stripe webhooks.
The view:
1. Checks the Stripe configuration is present
2. Verifies the webhook signature against the raw body
3. Creates/retrieves the WebhookEvent record (idempotent)
4. Dispatches the event to its handler in-request
5. Acknowledges every authenticated event with 200

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeAdapter
from payments.exceptions import StripeInvalidRequestError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.webhooks.handlers import dispatch_webhook


logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive, verify and process Stripe webhook events.

    Security:
    - Signature verification against the raw body prevents spoofed webhooks
    - Nothing is parsed or stored before the signature checks out
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency:
    - WebhookEvent.stripe_event_id is unique
    - An event already processed is acknowledged without dispatch
    - Handlers dedup again on the Payment / refund level

    Returns:
        JsonResponse with status:
        - 200: Event authenticated ({"received": true}), whatever the
          handler outcome
        - 400: Missing or invalid signature, or malformed envelope
        - 500: Stripe secrets not configured
    """
    missing = StripeAdapter.missing_configuration()
    if missing:
        logger.error(
            "Stripe webhook received but configuration is missing",
            extra={"missing_settings": missing},
        )
        return JsonResponse({"error": "Server configuration error"}, status=500)

    payload = request.body
    signature = request.headers.get("Stripe-Signature", "")

    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return JsonResponse({"error": "Missing signature"}, status=400)

    # Step 1: Verify signature
    try:
        event_data = StripeAdapter.verify_webhook_signature(payload, signature)
    except StripeInvalidRequestError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error": str(e)},
        )
        return JsonResponse({"error": "Invalid signature"}, status=400)
    except Exception as e:
        logger.error(
            f"Unexpected error verifying webhook: {type(e).__name__}",
            exc_info=True,
        )
        return JsonResponse({"error": "Verification error"}, status=400)

    stripe_event_id = event_data.get("id")
    event_type = event_data.get("type")

    if not stripe_event_id or not event_type:
        logger.warning("Webhook missing required fields")
        return JsonResponse({"error": "Invalid event"}, status=400)

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={
            "stripe_event_id": stripe_event_id,
            "event_type": event_type,
        },
    )

    # Step 2: Create/get WebhookEvent (idempotent)
    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event_id,
        defaults={
            "event_type": event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    # Step 3: If already processed, acknowledge without dispatch
    if not created and webhook_event.is_processed:
        logger.info(
            "Webhook already processed, returning success",
            extra={"stripe_event_id": stripe_event_id},
        )
        return JsonResponse({"received": True, "duplicate": True})

    # Step 4: Dispatch in-request
    webhook_event.mark_processing()
    webhook_event.save(update_fields=["status", "delivery_count", "updated_at"])

    result = dispatch_webhook(webhook_event)

    if result.success:
        webhook_event.mark_processed(outcome=result.data.status if result.data else "")
        logger.info(
            f"Webhook processed: {webhook_event.outcome}",
            extra={
                "stripe_event_id": stripe_event_id,
                "event_type": event_type,
                "outcome": webhook_event.outcome,
                "degraded_steps": result.data.degraded_steps if result.data else [],
            },
        )
    else:
        webhook_event.mark_failed(result.error or "Unknown error")
        logger.error(
            f"Webhook processing failed: {result.error}",
            extra={
                "stripe_event_id": stripe_event_id,
                "event_type": event_type,
                "error_code": result.error_code,
            },
        )
    webhook_event.save()

    # Step 5: Application-level failures never trigger processor redelivery
    return JsonResponse({"received": True})
