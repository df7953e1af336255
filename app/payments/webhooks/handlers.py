"""
Webhook handler registry and dispatch for Stripe events.

This module provides a handler registry, the base class shared by every
handler and the WebhookOutcome each handler returns.

The handler registry allows:
- Clean separation between event routing and handling
- Easy extension for new event types
- Centralized error handling at the dispatch boundary

Handlers receive their collaborators through the constructor (processor
port, clock, fee services, plan service, patient resolver, notification
enqueuer), so tests can pass fakes for any of them.

Usage:
    from payments.webhooks.handlers import WebhookHandler, dispatch_webhook, register_handler

    @register_handler("custom.event")
    class CustomEventHandler(WebhookHandler):
        def handle(self, webhook_event: WebhookEvent) -> ServiceResult[WebhookOutcome]:
            ...

    # Dispatch an event to its handler
    result = dispatch_webhook(webhook_event, processor=FakeProcessor())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from clinics.services import PatientResolver
from core.services import BaseService, ServiceResult
from notifications.services import NotificationEnqueuer
from plans.services import PlanAggregationService

from payments.adapters import StripeAdapter
from payments.protocols import SystemClock
from payments.services import ChargeFeeService, RefundFeeResolver
from payments.state_machines import WebhookOutcomeStatus

if TYPE_CHECKING:
    from payments.models import Payment, WebhookEvent
    from payments.protocols import Clock, PaymentProcessor


logger = logging.getLogger(__name__)


# =============================================================================
# Outcome
# =============================================================================


@dataclass
class WebhookOutcome:
    """
    What a handler did with one event.

    Attributes:
        status: processed, duplicate, ignored or dropped
        payment: The payment written or matched, if any
        steps: Result of every best-effort sub-step, keyed by step name
        reason: Why the event was a duplicate, ignored or dropped
    """

    status: WebhookOutcomeStatus
    payment: Payment | None = None
    steps: dict[str, ServiceResult] = field(default_factory=dict)
    reason: str = ""

    @property
    def degraded_steps(self) -> list[str]:
        """Names of the sub-steps that did not succeed."""
        return [name for name, result in self.steps.items() if not result.success]


# =============================================================================
# Base Handler
# =============================================================================


class WebhookHandler(BaseService):
    """
    Base class for webhook event handlers.

    Subclasses implement handle(). Every collaborator defaults to its
    production implementation.
    """

    event_type: str = ""

    def __init__(
        self,
        processor: PaymentProcessor | None = None,
        clock: Clock | None = None,
        fees: type[ChargeFeeService] | None = None,
        refund_fees: type[RefundFeeResolver] | None = None,
        plans: type[PlanAggregationService] | None = None,
        patients: type[PatientResolver] | None = None,
        notifier: type[NotificationEnqueuer] | None = None,
    ):
        self.processor = processor or StripeAdapter
        self.clock = clock or SystemClock()
        self.fees = fees or ChargeFeeService
        self.refund_fees = refund_fees or RefundFeeResolver
        self.plans = plans or PlanAggregationService
        self.patients = patients or PatientResolver
        self.notifier = notifier or NotificationEnqueuer

    def handle(self, webhook_event: WebhookEvent) -> ServiceResult[WebhookOutcome]:
        raise NotImplementedError

    def run_step(
        self,
        outcome: WebhookOutcome,
        name: str,
        func: Callable[[], ServiceResult],
        log_context: dict[str, Any] | None = None,
    ) -> ServiceResult:
        """
        Run one best-effort sub-step inside its own transaction.

        The step's result is recorded in outcome.steps. An exception
        rolls back only this step and is recorded as a degraded result;
        sibling steps and the already written payment are unaffected.
        """
        try:
            with self.atomic():
                result = func()
        except Exception as e:
            self.get_logger().error(
                f"Webhook sub-step '{name}' failed: {e}",
                extra={**(log_context or {}), "step": name},
                exc_info=True,
            )
            result = ServiceResult.degraded(
                f"{name}: {e}",
                error_code=getattr(e, "error_code", None) or e.__class__.__name__.upper(),
            )
        outcome.steps[name] = result
        return result


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler classes
WEBHOOK_HANDLERS: dict[str, type[WebhookHandler]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler class.

    Usage:
        @register_handler("payment_intent.succeeded")
        class PaymentSucceededHandler(WebhookHandler):
            ...

    Args:
        event_type: The Stripe event type (e.g., "payment_intent.succeeded")

    Returns:
        Decorator function that registers the handler
    """

    def decorator(handler_cls: type[WebhookHandler]) -> type[WebhookHandler]:
        handler_cls.event_type = event_type
        WEBHOOK_HANDLERS[event_type] = handler_cls
        logger.debug(f"Registered webhook handler for {event_type}")
        return handler_cls

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent, **dependencies: Any) -> ServiceResult[WebhookOutcome]:
    """
    Dispatch a webhook event to the appropriate handler.

    Looks up the handler by event type and calls it. If no handler
    is registered, logs and returns success with an IGNORED outcome
    (unknown events are acknowledged, never failed).

    No exception escapes this function: an authenticated delivery is
    always acknowledged, and a handler crash is returned as a failure.

    Args:
        webhook_event: The WebhookEvent to process
        **dependencies: Collaborators passed to the handler constructor

    Returns:
        ServiceResult[WebhookOutcome] from the handler
    """
    handler_cls = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler_cls:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(
            WebhookOutcome(
                status=WebhookOutcomeStatus.IGNORED,
                reason=f"Unhandled event type {webhook_event.event_type}",
            )
        )

    logger.info(
        f"Dispatching {webhook_event.event_type} to {handler_cls.__name__}",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )

    try:
        return handler_cls(**dependencies).handle(webhook_event)
    except Exception as e:
        logger.error(
            f"Unhandled error in {handler_cls.__name__}: {e}",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "event_type": webhook_event.event_type,
            },
            exc_info=True,
        )
        return ServiceResult.from_exception(e)
