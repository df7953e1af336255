"""
Factory Boy factories for payment test data.

Usage:
    from payments.tests.factories import (
        PaymentFactory,
        PaymentRequestFactory,
        WebhookEventFactory,
    )

    # Create a basic paid payment
    payment = PaymentFactory()

    # Create a payment for a specific clinic and patient
    payment = PaymentFactory(clinic=clinic, patient=patient, amount_paid=5000)

    # Create a stored webhook delivery
    event = WebhookEventFactory(event_type="refund.updated", payload=payload)
"""

import factory
from django.utils import timezone

from clinics.tests.factories import ClinicFactory
from payments.models import Payment, PaymentRequest, WebhookEvent
from payments.state_machines import (
    PaymentRequestStatus,
    PaymentStatus,
    WebhookEventStatus,
)


class PaymentFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating Payment instances.

    Default payment is PAID for £50.00 with Stripe's UK card fee applied.
    """

    class Meta:
        model = Payment

    stripe_payment_id = factory.Sequence(lambda n: f"pi_test_{n:06d}")
    stripe_charge_id = factory.Sequence(lambda n: f"ch_test_{n:06d}")
    clinic = factory.SubFactory(ClinicFactory)
    patient = None
    payment_reference = factory.Sequence(lambda n: f"REF{n:05d}")
    patient_name = "Jane Doe"
    patient_email = "jane@example.com"
    patient_phone = "447700900123"
    amount_paid = 5000
    currency = "gbp"
    stripe_fee = 95
    net_amount = 4905
    platform_fee = 0
    status = PaymentStatus.PAID
    paid_at = factory.LazyFunction(timezone.now)


class PaymentRequestFactory(factory.django.DjangoModelFactory):
    """Factory for creating PaymentRequest instances."""

    class Meta:
        model = PaymentRequest

    clinic = factory.SubFactory(ClinicFactory)
    patient = None
    payment_link_id = factory.Sequence(lambda n: f"link_{n:06d}")
    amount = 5000
    description = "Physiotherapy session"
    status = PaymentRequestStatus.SENT


class WebhookEventFactory(factory.django.DjangoModelFactory):
    """Factory for creating WebhookEvent instances."""

    class Meta:
        model = WebhookEvent

    stripe_event_id = factory.Sequence(lambda n: f"evt_test_{n:06d}")
    event_type = "payment_intent.succeeded"
    payload = factory.LazyAttribute(
        lambda o: {
            "id": o.stripe_event_id,
            "type": o.event_type,
            "data": {"object": {}},
        }
    )
    status = WebhookEventStatus.PENDING
