"""
Test configuration and fixtures for notification tests.

Usage:
    def test_example(payment, fees):
        results = NotificationEnqueuer.enqueue_payment_success(payment, fees)
"""

import pytest

from payments.services import FeeBreakdown
from payments.tests.factories import PaymentFactory


@pytest.fixture
def payment(db, clinic, patient):
    """A £50.00 payment with a full checkout snapshot."""
    return PaymentFactory(
        clinic=clinic,
        patient=patient,
        payment_reference="REF00001",
        platform_fee=150,
    )


@pytest.fixture
def anonymous_payment(db, clinic):
    """A payment with no patient and no contact snapshot."""
    return PaymentFactory(
        clinic=clinic,
        patient=None,
        patient_name="",
        patient_email="",
        patient_phone="",
    )


@pytest.fixture
def fees():
    return FeeBreakdown(stripe_fee=95, net_amount=4905, platform_fee=150)
