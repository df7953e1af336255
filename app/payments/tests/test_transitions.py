"""
Tests for the pure status transition functions.

Tests cover:
- Full/partial refund classification on cumulative totals
- Payment, request and installment transitions
- Plan status derivation, including paused/cancelled and refunds
"""

import pytest

from payments.exceptions import InvalidStateTransitionError
from payments.state_machines import (
    InstallmentStatus,
    LedgerEvent,
    PaymentRequestStatus,
    PaymentStatus,
    PlanEvent,
    PlanStatus,
    classify_refund,
    next_installment_status,
    next_payment_status,
    next_plan_status,
    next_request_status,
)


# =============================================================================
# Refund Classification
# =============================================================================


class TestClassifyRefund:
    """Tests for classify_refund."""

    def test_full_when_total_reaches_amount(self):
        assert classify_refund(5000, 5000) == LedgerEvent.REFUND_FULL

    def test_full_when_total_exceeds_amount(self):
        assert classify_refund(5001, 5000) == LedgerEvent.REFUND_FULL

    def test_partial_below_amount(self):
        assert classify_refund(4999, 5000) == LedgerEvent.REFUND_PARTIAL

    def test_second_partial_completing_the_amount_is_full(self):
        """Two partial refunds summing to the amount classify as full."""
        assert classify_refund(2000 + 3000, 5000) == LedgerEvent.REFUND_FULL


# =============================================================================
# Payment Transitions
# =============================================================================


class TestNextPaymentStatus:
    """Tests for next_payment_status."""

    def test_new_payment_is_paid(self):
        assert next_payment_status(None, LedgerEvent.PAYMENT_SUCCEEDED) == PaymentStatus.PAID

    def test_success_for_existing_payment_is_rejected(self):
        with pytest.raises(InvalidStateTransitionError):
            next_payment_status(PaymentStatus.PAID, LedgerEvent.PAYMENT_SUCCEEDED)

    @pytest.mark.parametrize(
        "current,event,expected",
        [
            (PaymentStatus.PAID, LedgerEvent.REFUND_FULL, PaymentStatus.REFUNDED),
            (PaymentStatus.PAID, LedgerEvent.REFUND_PARTIAL, PaymentStatus.PARTIALLY_REFUNDED),
            (PaymentStatus.PARTIALLY_REFUNDED, LedgerEvent.REFUND_FULL, PaymentStatus.REFUNDED),
            (
                PaymentStatus.PARTIALLY_REFUNDED,
                LedgerEvent.REFUND_PARTIAL,
                PaymentStatus.PARTIALLY_REFUNDED,
            ),
            (PaymentStatus.REFUNDED, LedgerEvent.REFUND_PARTIAL, PaymentStatus.REFUNDED),
            (PaymentStatus.REFUNDED, LedgerEvent.REFUND_FULL, PaymentStatus.REFUNDED),
        ],
    )
    def test_refunds(self, current, event, expected):
        assert next_payment_status(current, event) == expected

    def test_refund_never_returns_to_paid(self):
        for current in PaymentStatus.values:
            for event in (LedgerEvent.REFUND_FULL, LedgerEvent.REFUND_PARTIAL):
                assert next_payment_status(current, event) != PaymentStatus.PAID

    def test_unknown_event_rejected(self):
        with pytest.raises(InvalidStateTransitionError):
            next_payment_status(PaymentStatus.PAID, LedgerEvent.DUE_DATE_PASSED)


# =============================================================================
# Request and Installment Transitions
# =============================================================================


class TestNextRequestStatus:
    """Tests for next_request_status."""

    @pytest.mark.parametrize("current", [PaymentRequestStatus.PENDING, PaymentRequestStatus.SENT])
    def test_success_marks_paid(self, current):
        assert next_request_status(current, LedgerEvent.PAYMENT_SUCCEEDED) == PaymentRequestStatus.PAID

    def test_late_success_does_not_overwrite_refund(self):
        assert (
            next_request_status(PaymentRequestStatus.REFUNDED, LedgerEvent.PAYMENT_SUCCEEDED)
            == PaymentRequestStatus.REFUNDED
        )

    def test_refunds(self):
        assert (
            next_request_status(PaymentRequestStatus.PAID, LedgerEvent.REFUND_PARTIAL)
            == PaymentRequestStatus.PARTIALLY_REFUNDED
        )
        assert (
            next_request_status(PaymentRequestStatus.PARTIALLY_REFUNDED, LedgerEvent.REFUND_FULL)
            == PaymentRequestStatus.REFUNDED
        )
        assert (
            next_request_status(PaymentRequestStatus.REFUNDED, LedgerEvent.REFUND_PARTIAL)
            == PaymentRequestStatus.REFUNDED
        )


class TestNextInstallmentStatus:
    """Tests for next_installment_status."""

    @pytest.mark.parametrize(
        "current",
        [InstallmentStatus.PENDING, InstallmentStatus.SENT, InstallmentStatus.OVERDUE],
    )
    def test_success_marks_paid(self, current):
        assert next_installment_status(current, LedgerEvent.PAYMENT_SUCCEEDED) == InstallmentStatus.PAID

    def test_due_date_passed(self):
        assert (
            next_installment_status(InstallmentStatus.SENT, LedgerEvent.DUE_DATE_PASSED)
            == InstallmentStatus.OVERDUE
        )
        assert (
            next_installment_status(InstallmentStatus.PAID, LedgerEvent.DUE_DATE_PASSED)
            == InstallmentStatus.PAID
        )

    def test_refunds(self):
        assert (
            next_installment_status(InstallmentStatus.PAID, LedgerEvent.REFUND_FULL)
            == InstallmentStatus.REFUNDED
        )
        assert (
            next_installment_status(InstallmentStatus.PAID, LedgerEvent.REFUND_PARTIAL)
            == InstallmentStatus.PARTIALLY_REFUNDED
        )

    def test_refunded_statuses_count_as_paid(self):
        assert set(InstallmentStatus.counted_as_paid()) == {
            InstallmentStatus.PAID,
            InstallmentStatus.REFUNDED,
            InstallmentStatus.PARTIALLY_REFUNDED,
        }


# =============================================================================
# Plan Transitions
# =============================================================================


class TestNextPlanStatus:
    """Tests for next_plan_status."""

    def test_completed_when_all_paid(self):
        status = next_plan_status(PlanStatus.ACTIVE, PlanEvent.PAYMENT_RECORDED, 3, 3)

        assert status == PlanStatus.COMPLETED

    def test_active_while_in_progress(self):
        assert next_plan_status(PlanStatus.ACTIVE, PlanEvent.PAYMENT_RECORDED, 1, 3) == PlanStatus.ACTIVE

    def test_overdue_when_unpaid_installment_past_due(self):
        status = next_plan_status(PlanStatus.ACTIVE, PlanEvent.SCHEDULE_CHECKED, 1, 3, has_overdue=True)

        assert status == PlanStatus.OVERDUE

    def test_overdue_back_to_active(self):
        status = next_plan_status(PlanStatus.OVERDUE, PlanEvent.PAYMENT_RECORDED, 2, 3, has_overdue=False)

        assert status == PlanStatus.ACTIVE

    @pytest.mark.parametrize("current", [PlanStatus.PAUSED, PlanStatus.CANCELLED])
    def test_clinic_statuses_are_kept(self, current):
        assert next_plan_status(current, PlanEvent.PAYMENT_RECORDED, 1, 3, has_overdue=True) == current

    @pytest.mark.parametrize("current", [PlanStatus.PAUSED, PlanStatus.CANCELLED])
    def test_clinic_statuses_complete_when_all_paid(self, current):
        assert next_plan_status(current, PlanEvent.PAYMENT_RECORDED, 3, 3) == PlanStatus.COMPLETED

    def test_refund_never_uncompletes(self):
        """paid is never decremented, so a completed plan stays completed."""
        status = next_plan_status(PlanStatus.COMPLETED, PlanEvent.REFUND_RECORDED, 3, 3)

        assert status == PlanStatus.COMPLETED

    def test_zero_total_is_not_completed(self):
        assert next_plan_status(PlanStatus.ACTIVE, PlanEvent.PAYMENT_RECORDED, 0, 0) == PlanStatus.ACTIVE
