"""
Pytest fixtures for payment tests.

Fixtures provide a processor fake pre-loaded with a standard card charge,
a pinned clock and payments in each refund state.

Usage:
    def test_refund(paid_payment, processor):
        ...
"""

import pytest

from payments.adapters import BalanceTransactionResult, ChargeResult
from payments.state_machines import PaymentStatus
from payments.tests.factories import PaymentFactory
from payments.tests.fakes import FakeProcessor, FixedClock


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def processor():
    """A FakeProcessor holding charge ch_1 (£50.00, £0.95 fee, no application fee)."""
    fake = FakeProcessor()
    fake.add_charge(
        ChargeResult(
            id="ch_1",
            amount=5000,
            payment_intent_id="pi_1",
            balance_transaction_id="txn_1",
            created=1700000000,
        )
    )
    fake.add_balance_transaction(
        BalanceTransactionResult(id="txn_1", amount=5000, fee=95, net=4905)
    )
    return fake


@pytest.fixture
def clock():
    return FixedClock()


# =============================================================================
# Payment Fixtures
# =============================================================================


@pytest.fixture
def paid_payment(db, clinic, patient):
    """A £50.00 payment for pi_1 / ch_1 in PAID state."""
    return PaymentFactory(
        clinic=clinic,
        patient=patient,
        stripe_payment_id="pi_1",
        stripe_charge_id="ch_1",
    )


@pytest.fixture
def partially_refunded_payment(db, clinic, patient):
    """A £50.00 payment with £20.00 refunded by re_1."""
    return PaymentFactory(
        clinic=clinic,
        patient=patient,
        stripe_payment_id="pi_1",
        stripe_charge_id="ch_1",
        status=PaymentStatus.PARTIALLY_REFUNDED,
        refund_amount=2000,
        stripe_refund_id="re_1",
        stripe_refund_ids=["re_1"],
    )
