"""
Tests for the fee services.

Tests cover:
- Charge fee lookup and each degraded fallback
- Refund fee strategy chain (application fee refund, then balance transaction)
- Fee refund matching by timestamp
"""

import pytest

from payments.adapters import (
    ApplicationFeeResult,
    BalanceTransactionResult,
    ChargeResult,
    FeeRefundResult,
    RefundResult,
)
from payments.exceptions import StripeAPIUnavailableError
from payments.services import (
    ApplicationFeeRefundStrategy,
    ChargeFeeService,
    FeeBreakdown,
    RefundFeeResolver,
)


# =============================================================================
# ChargeFeeService Tests
# =============================================================================


class TestChargeFeeService:
    """Tests for ChargeFeeService.lookup."""

    def test_resolves_stripe_fee_and_net(self, processor):
        result = ChargeFeeService.lookup(processor, "ch_1")

        assert result.success
        assert result.data == FeeBreakdown(stripe_fee=95, net_amount=4905, platform_fee=0)

    def test_resolves_platform_fee(self, processor):
        processor.add_charge(
            ChargeResult(
                id="ch_connect",
                amount=5000,
                balance_transaction_id="txn_1",
                application_fee_id="fee_1",
            )
        )
        processor.add_application_fee(ApplicationFeeResult(id="fee_1", amount=150))

        result = ChargeFeeService.lookup(processor, "ch_connect")

        assert result.data == FeeBreakdown(stripe_fee=95, net_amount=4905, platform_fee=150)

    def test_no_charge_degrades_to_zero(self, processor):
        result = ChargeFeeService.lookup(processor, None)

        assert result.is_degraded
        assert result.error_code == "CHARGE_MISSING"
        assert result.data == FeeBreakdown.zero()

    def test_charge_lookup_failure_degrades_to_zero(self, processor):
        processor.fail("retrieve_charge", StripeAPIUnavailableError("Stripe is down"))

        result = ChargeFeeService.lookup(processor, "ch_1")

        assert result.is_degraded
        assert result.error_code == "STRIPE_UNAVAILABLE"
        assert result.data == FeeBreakdown.zero()

    def test_unknown_charge_degrades_to_zero(self, processor):
        result = ChargeFeeService.lookup(processor, "ch_unknown")

        assert result.is_degraded
        assert result.data == FeeBreakdown.zero()

    def test_application_fee_failure_keeps_stripe_fee(self, processor):
        """Only the platform fee is lost when its lookup fails."""
        processor.add_charge(
            ChargeResult(
                id="ch_connect",
                amount=5000,
                balance_transaction_id="txn_1",
                application_fee_id="fee_missing",
            )
        )

        result = ChargeFeeService.lookup(processor, "ch_connect")

        assert result.is_degraded
        assert result.data == FeeBreakdown(stripe_fee=95, net_amount=4905, platform_fee=0)


# =============================================================================
# Refund Fee Tests
# =============================================================================


@pytest.fixture
def refund():
    return RefundResult(
        id="re_1",
        amount=5000,
        status="succeeded",
        charge_id="ch_1",
        payment_intent_id="pi_1",
        balance_transaction_id="txn_re_1",
        created=1700000500,
    )


@pytest.fixture
def connect_charge(processor):
    charge = processor.add_charge(
        ChargeResult(
            id="ch_connect",
            amount=5000,
            amount_refunded=5000,
            payment_intent_id="pi_1",
            balance_transaction_id="txn_1",
            application_fee_id="fee_1",
        )
    )
    return charge


class TestSelectFeeRefund:
    """Tests for ApplicationFeeRefundStrategy.select_fee_refund."""

    def test_closest_within_tolerance(self):
        fee_refunds = [
            FeeRefundResult(id="fr_early", amount=50, created=1700000000),
            FeeRefundResult(id="fr_match", amount=150, created=1700000503),
            FeeRefundResult(id="fr_late", amount=75, created=1700009999),
        ]

        match = ApplicationFeeRefundStrategy.select_fee_refund(fee_refunds, 1700000500, 10)

        assert match.id == "fr_match"

    def test_falls_back_to_most_recent(self):
        fee_refunds = [
            FeeRefundResult(id="fr_old", amount=50, created=1700000000),
            FeeRefundResult(id="fr_new", amount=75, created=1700009999),
        ]

        match = ApplicationFeeRefundStrategy.select_fee_refund(fee_refunds, 1700005000, 10)

        assert match.id == "fr_new"


class TestRefundFeeResolver:
    """Tests for RefundFeeResolver.resolve."""

    def test_application_fee_refund_tier(self, processor, refund, connect_charge):
        processor.add_application_fee(
            ApplicationFeeResult(
                id="fee_1",
                amount=150,
                amount_refunded=150,
                refunds=[FeeRefundResult(id="fr_1", amount=150, created=1700000501)],
            )
        )

        result = RefundFeeResolver.resolve(processor, refund, connect_charge)

        assert result.success
        assert result.data.amount == 150
        assert result.data.source == "application_fee_refund"
        assert processor.called("retrieve_balance_transaction") == []

    def test_lists_fee_refunds_when_not_expanded(self, processor, refund, connect_charge):
        processor.add_application_fee(ApplicationFeeResult(id="fee_1", amount=150))
        processor.fee_refunds["fee_1"] = [FeeRefundResult(id="fr_1", amount=-150, created=1700000500)]

        result = RefundFeeResolver.resolve(processor, refund, connect_charge)

        assert result.data.amount == 150
        assert processor.called("list_application_fee_refunds") == ["fee_1"]

    def test_balance_transaction_tier_without_application_fee(self, processor, refund):
        """A charge with no application fee goes straight to the refund's own fee."""
        processor.add_balance_transaction(
            BalanceTransactionResult(id="txn_re_1", amount=-5000, fee=-95, net=-4905)
        )
        charge = processor.charges["ch_1"]

        result = RefundFeeResolver.resolve(processor, refund, charge)

        assert result.success
        assert result.data.amount == 95
        assert result.data.source == "balance_transaction"

    def test_falls_through_when_application_fee_lookup_fails(
        self, processor, refund, connect_charge
    ):
        processor.fail("retrieve_application_fee", StripeAPIUnavailableError("down"))
        processor.add_balance_transaction(
            BalanceTransactionResult(id="txn_re_1", amount=-5000, fee=0, net=-5000)
        )

        result = RefundFeeResolver.resolve(processor, refund, connect_charge)

        assert result.success
        assert result.data.amount == 0
        assert result.data.source == "balance_transaction"

    def test_retrieves_refund_when_payload_lacks_balance_transaction(self, processor, refund):
        refund.balance_transaction_id = None
        processor.add_refund(
            RefundResult(
                id="re_1",
                amount=5000,
                status="succeeded",
                balance_transaction_id="txn_re_1",
            )
        )
        processor.add_balance_transaction(
            BalanceTransactionResult(id="txn_re_1", amount=-5000, fee=-20, net=-4980)
        )

        result = RefundFeeResolver.resolve(processor, refund, None)

        assert result.data.amount == 20
        assert processor.called("retrieve_refund") == ["re_1"]

    def test_all_tiers_fail_degrades_to_zero(self, processor, refund, connect_charge):
        processor.fail("retrieve_application_fee", StripeAPIUnavailableError("down"))
        processor.fail("retrieve_balance_transaction", StripeAPIUnavailableError("down"))

        result = RefundFeeResolver.resolve(processor, refund, connect_charge)

        assert result.is_degraded
        assert result.error_code == "REFUND_FEE_UNRESOLVED"
        assert result.data.amount == 0
        assert result.data.source is None
