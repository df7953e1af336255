"""
State enums for the payment ledger.

This module defines every status enum used by the ledger models. These are
Django TextChoices for database storage and admin integration. Transition
rules live in payments.state_machines.transitions.

State Machines Overview:

Payment Status:
    (created) → paid
    paid → partially_refunded → refunded
    paid → refunded

Payment Request / Installment Status:
    pending/sent/overdue → paid → partially_refunded → refunded
    pending/sent → overdue (installments only, due date passed)

Plan Status:
    active ⇄ overdue
    active/overdue/paused/cancelled → completed (all installments paid)
    paused/cancelled are only set by clinic action
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    Status of a recorded Payment.

    Failed payment attempts are never persisted as Payment rows, so
    every payment starts life as PAID.
    """

    PAID = "paid", "Paid"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"
    REFUNDED = "refunded", "Refunded"


class PaymentRequestStatus(models.TextChoices):
    """
    Status of a PaymentRequest.

    Mirrors the linked payment once one exists.
    """

    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"
    PAID = "paid", "Paid"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"
    REFUNDED = "refunded", "Refunded"
    CANCELLED = "cancelled", "Cancelled"


class InstallmentStatus(models.TextChoices):
    """
    Status of one scheduled installment of a plan.

    PAID, REFUNDED and PARTIALLY_REFUNDED all count as a paid installment
    when plan progress is computed.
    """

    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"
    PAID = "paid", "Paid"
    OVERDUE = "overdue", "Overdue"
    REFUNDED = "refunded", "Refunded"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"
    CANCELLED = "cancelled", "Cancelled"

    @classmethod
    def counted_as_paid(cls) -> tuple[str, ...]:
        """Statuses that count towards a plan's paid installments."""
        return (cls.PAID, cls.REFUNDED, cls.PARTIALLY_REFUNDED)

    @classmethod
    def awaiting_payment(cls) -> tuple[str, ...]:
        """Statuses of installments that still expect a payment."""
        return (cls.PENDING, cls.SENT, cls.OVERDUE)


class PlanStatus(models.TextChoices):
    """
    Lifecycle status of an installment plan.

    COMPLETED holds iff paid_installments >= total_installments.
    PAUSED and CANCELLED are clinic decisions and are never derived.
    """

    ACTIVE = "active", "Active"
    PAUSED = "paused", "Paused"
    CANCELLED = "cancelled", "Cancelled"
    COMPLETED = "completed", "Completed"
    OVERDUE = "overdue", "Overdue"


class LedgerEvent(models.TextChoices):
    """Events that move payment, request and installment statuses."""

    PAYMENT_SUCCEEDED = "payment_succeeded", "Payment Succeeded"
    REFUND_FULL = "refund_full", "Full Refund"
    REFUND_PARTIAL = "refund_partial", "Partial Refund"
    DUE_DATE_PASSED = "due_date_passed", "Due Date Passed"


class PlanEvent(models.TextChoices):
    """Events that trigger a plan status recomputation."""

    PAYMENT_RECORDED = "payment_recorded", "Payment Recorded"
    REFUND_RECORDED = "refund_recorded", "Refund Recorded"
    SCHEDULE_CHECKED = "schedule_checked", "Schedule Checked"


class ActivityType(models.TextChoices):
    """Action types written to the append-only payment activity log."""

    PAYMENT_MADE = "payment_made", "Installment Payment Made"
    PAYMENT_RECEIVED = "payment_received", "Payment Received"
    PAYMENT_REFUNDED = "payment_refunded", "Payment Refunded"
    PAYMENT_PARTIALLY_REFUNDED = "payment_partially_refunded", "Payment Partially Refunded"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (redelivery retries)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


class WebhookOutcomeStatus(models.TextChoices):
    """What a handler did with an authenticated event."""

    PROCESSED = "processed", "Processed"
    DUPLICATE = "duplicate", "Duplicate"
    IGNORED = "ignored", "Ignored"
    DROPPED = "dropped", "Dropped"


__all__ = [
    "PaymentStatus",
    "PaymentRequestStatus",
    "InstallmentStatus",
    "PlanStatus",
    "LedgerEvent",
    "PlanEvent",
    "ActivityType",
    "WebhookEventStatus",
    "WebhookOutcomeStatus",
]
