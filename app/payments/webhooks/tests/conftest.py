"""
Pytest fixtures for webhook tests.

Provides builders for Stripe event payloads and stored WebhookEvent rows,
plus a linked clinic/patient/request/plan setup shared by the handler,
view and scenario tests.
"""

import datetime
import json
from unittest.mock import patch

import pytest

from payments.models import WebhookEvent
from payments.state_machines import InstallmentStatus, PaymentRequestStatus
from payments.tests.conftest import clock, paid_payment, partially_refunded_payment, processor  # noqa: F401
from payments.tests.factories import PaymentRequestFactory
from payments.webhooks.views import stripe_webhook
from plans.tests.factories import PlanFactory, PlanInstallmentFactory


# =============================================================================
# Payload Builders
# =============================================================================


def make_event(event_type: str, obj: dict, event_id: str | None = None) -> WebhookEvent:
    """Store a WebhookEvent whose payload wraps ``obj`` as data.object."""
    event_id = event_id or f"evt_{event_type.replace('.', '_')}_{obj.get('id', 'x')}"
    return WebhookEvent.objects.create(
        stripe_event_id=event_id,
        event_type=event_type,
        payload={"id": event_id, "type": event_type, "data": {"object": obj}},
    )


def intent_object(
    intent_id: str = "pi_1",
    amount: int = 5000,
    latest_charge: str | None = "ch_1",
    **metadata,
) -> dict:
    """A payment_intent object as delivered in webhook payloads."""
    return {
        "id": intent_id,
        "object": "payment_intent",
        "amount": amount,
        "currency": "gbp",
        "status": "succeeded",
        "latest_charge": latest_charge,
        "description": "Physiotherapy session",
        "metadata": {key: str(value) for key, value in metadata.items()},
    }


def refund_object(
    refund_id: str = "re_1",
    amount: int = 5000,
    status: str = "succeeded",
    charge: str | None = "ch_1",
    payment_intent: str | None = "pi_1",
    balance_transaction: str | None = "txn_re_1",
    created: int = 1700000500,
) -> dict:
    """A refund object as delivered in refund.updated payloads."""
    return {
        "id": refund_id,
        "object": "refund",
        "amount": amount,
        "status": status,
        "charge": charge,
        "payment_intent": payment_intent,
        "balance_transaction": balance_transaction,
        "created": created,
    }


# =============================================================================
# Linked Data Fixtures
# =============================================================================


@pytest.fixture
def payment_request(db, clinic, patient):
    """Request R1 for £50.00 sent to the patient."""
    return PaymentRequestFactory(
        clinic=clinic,
        patient=patient,
        payment_link_id="link_r1",
        amount=5000,
        status=PaymentRequestStatus.SENT,
    )


@pytest.fixture
def plan_with_installments(db, clinic, patient):
    """
    Plan P1 with 4 monthly installments; the first is already paid.

    Returns (plan, [installment_1, ..., installment_4]).
    """
    plan = PlanFactory(clinic=clinic, patient=patient, total_installments=4, paid_installments=1, progress=25)
    start = datetime.date.today()
    installments = []
    for number in range(1, 5):
        request = PaymentRequestFactory(clinic=clinic, patient=patient, payment_link_id=plan.payment_link_id)
        installments.append(
            PlanInstallmentFactory(
                plan=plan,
                payment_request=request,
                payment_number=number,
                total_payments=4,
                due_date=start + datetime.timedelta(days=30 * (number - 1)),
                status=InstallmentStatus.PAID if number == 1 else InstallmentStatus.SENT,
            )
        )
    return plan, installments


# =============================================================================
# HTTP Fixtures
# =============================================================================


@pytest.fixture
def deliver(rf, processor):
    """
    POST an event envelope to the webhook view.

    Signature verification is patched to accept the body as-is and the
    production processor is swapped for the FakeProcessor.
    """

    def _deliver(event_type: str, obj: dict, event_id: str):
        envelope = {"id": event_id, "type": event_type, "data": {"object": obj}}
        request = rf.post(
            "/api/v1/payments/webhooks/stripe/",
            data=json.dumps(envelope),
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE="t=1,v1=test",
        )
        with (
            patch(
                "payments.webhooks.views.StripeAdapter.verify_webhook_signature",
                side_effect=lambda payload, signature: json.loads(payload),
            ),
            patch("payments.webhooks.handlers.StripeAdapter", processor),
        ):
            return stripe_webhook(request)

    return _deliver
