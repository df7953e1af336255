"""
Pure status transition functions for the payment ledger.

One function per entity computes the next status from the current status
and the event kind. Handlers and services never compare status strings
themselves; they ask these functions.

Policies encoded here:
    - A refund never moves a payment, request or installment back to PAID.
    - A partial refund after a full refund leaves the row REFUNDED.
    - A plan is COMPLETED iff paid >= total. Refunds do not reduce the paid
      count, so a refund never un-completes a plan.
    - PAUSED and CANCELLED plans keep their status unless a payment
      completes them.

Usage:
    from payments.state_machines import LedgerEvent, classify_refund, next_payment_status

    event = classify_refund(refund_total=5000, amount_paid=5000)
    new_status = next_payment_status(payment.status, event)
"""

from __future__ import annotations

from payments.exceptions import InvalidStateTransitionError
from payments.state_machines.states import (
    InstallmentStatus,
    LedgerEvent,
    PaymentRequestStatus,
    PaymentStatus,
    PlanEvent,
    PlanStatus,
)

# Sources for the django-fsm transitions on Payment.status
REFUND_FULL_SOURCES = (
    PaymentStatus.PAID,
    PaymentStatus.PARTIALLY_REFUNDED,
    PaymentStatus.REFUNDED,
)
REFUND_PARTIAL_SOURCES = (
    PaymentStatus.PAID,
    PaymentStatus.PARTIALLY_REFUNDED,
)

_REFUND_EVENTS = (LedgerEvent.REFUND_FULL, LedgerEvent.REFUND_PARTIAL)


def classify_refund(refund_total: int, amount_paid: int) -> LedgerEvent:
    """
    Classify a refund as full or partial.

    Both values are integer minor units, so the comparison is exact.

    Args:
        refund_total: Total refunded so far for the payment
        amount_paid: Amount originally paid

    Returns:
        LedgerEvent.REFUND_FULL or LedgerEvent.REFUND_PARTIAL
    """
    if refund_total >= amount_paid:
        return LedgerEvent.REFUND_FULL
    return LedgerEvent.REFUND_PARTIAL


def _refund_target(current: str, event: str, refunded: str, partially_refunded: str) -> str:
    if event == LedgerEvent.REFUND_FULL:
        return refunded
    if current == refunded:
        return refunded
    return partially_refunded


def next_payment_status(current: str | None, event: str) -> PaymentStatus:
    """
    Compute a payment's next status.

    Args:
        current: Current status, or None for a payment not yet recorded
        event: LedgerEvent value

    Raises:
        InvalidStateTransitionError: The event cannot apply to the payment
    """
    if event == LedgerEvent.PAYMENT_SUCCEEDED:
        if current is None:
            return PaymentStatus.PAID
        raise InvalidStateTransitionError(
            "Payment is already recorded",
            details={"current_state": current, "event": event},
        )

    if event == LedgerEvent.REFUND_FULL and current in REFUND_FULL_SOURCES:
        return PaymentStatus.REFUNDED
    if event == LedgerEvent.REFUND_PARTIAL and current in REFUND_FULL_SOURCES:
        # A partial refund arriving after the full one leaves the payment refunded
        if current == PaymentStatus.REFUNDED:
            return PaymentStatus.REFUNDED
        return PaymentStatus.PARTIALLY_REFUNDED

    raise InvalidStateTransitionError(
        f"Cannot apply {event} to payment in '{current}' state",
        details={"current_state": current, "event": event},
    )


def next_request_status(current: str, event: str) -> PaymentRequestStatus:
    """
    Compute a payment request's next status.

    A late success delivery for an already refunded request does not
    overwrite the refund.
    """
    refunded_states = (PaymentRequestStatus.REFUNDED, PaymentRequestStatus.PARTIALLY_REFUNDED)

    if event == LedgerEvent.PAYMENT_SUCCEEDED:
        if current in refunded_states:
            return PaymentRequestStatus(current)
        return PaymentRequestStatus.PAID

    if event in _REFUND_EVENTS:
        return PaymentRequestStatus(
            _refund_target(
                current,
                event,
                PaymentRequestStatus.REFUNDED,
                PaymentRequestStatus.PARTIALLY_REFUNDED,
            )
        )

    raise InvalidStateTransitionError(
        f"Cannot apply {event} to payment request in '{current}' state",
        details={"current_state": current, "event": event},
    )


def next_installment_status(current: str, event: str) -> InstallmentStatus:
    """Compute an installment's next status."""
    refunded_states = (InstallmentStatus.REFUNDED, InstallmentStatus.PARTIALLY_REFUNDED)

    if event == LedgerEvent.PAYMENT_SUCCEEDED:
        if current in refunded_states:
            return InstallmentStatus(current)
        return InstallmentStatus.PAID

    if event in _REFUND_EVENTS:
        return InstallmentStatus(
            _refund_target(
                current,
                event,
                InstallmentStatus.REFUNDED,
                InstallmentStatus.PARTIALLY_REFUNDED,
            )
        )

    if event == LedgerEvent.DUE_DATE_PASSED:
        if current in (InstallmentStatus.PENDING, InstallmentStatus.SENT):
            return InstallmentStatus.OVERDUE
        return InstallmentStatus(current)

    raise InvalidStateTransitionError(
        f"Cannot apply {event} to installment in '{current}' state",
        details={"current_state": current, "event": event},
    )


def next_plan_status(
    current: str,
    event: str,
    paid_installments: int,
    total_installments: int,
    has_overdue: bool = False,
) -> PlanStatus:
    """
    Compute a plan's next status from its recomputed counters.

    Args:
        current: Current plan status
        event: PlanEvent that triggered the recomputation
        paid_installments: Installments counted as paid
        total_installments: Installments in the plan
        has_overdue: Whether an unpaid installment is past its due date

    Returns:
        The plan status to store
    """
    if total_installments > 0 and paid_installments >= total_installments:
        return PlanStatus.COMPLETED

    if current in (PlanStatus.PAUSED, PlanStatus.CANCELLED):
        return PlanStatus(current)

    # Only the forward-looking statuses are recomputed after a refund
    if event == PlanEvent.REFUND_RECORDED and current not in (PlanStatus.ACTIVE, PlanStatus.OVERDUE):
        return PlanStatus(current)

    if has_overdue:
        return PlanStatus.OVERDUE
    return PlanStatus.ACTIVE
