"""
Payment model - one row per successfully collected charge.

A Payment is created the first time a payment_intent.succeeded event is
processed for a given PaymentIntent and is mutated in place by refund
events. Rows are never deleted.

All money columns hold integer minor units (pence) exactly as reported
by Stripe.

Usage:
    from payments.models import Payment

    payment = Payment.objects.filter(stripe_payment_id="pi_xxx").first()
    if payment:
        payment.refund_partial()
        payment.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.money import format_minor_units
from payments.state_machines import (
    REFUND_FULL_SOURCES,
    REFUND_PARTIAL_SOURCES,
    PaymentStatus,
)


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    A collected payment and its fee breakdown.

    Fields:
        stripe_payment_id: PaymentIntent ID (pi_xxx), unique - dedup key
        stripe_charge_id: Charge that settled the intent
        clinic: Clinic that received the payment (required)
        patient: Paying patient, backfilled by refund handling when absent
        payment_link_id: Payment link the patient paid through
        plan_installment: Installment settled by this payment, if any
        payment_reference: Human-friendly 8 character reference
        amount_paid: Gross amount in minor units
        stripe_fee: Stripe processing fee in minor units
        net_amount: Net settlement in minor units
        platform_fee: Platform application fee in minor units
        refund_amount: Cumulative refunded amount in minor units
        stripe_refund_fee: Platform fee returned by the latest refund
        status: paid, partially_refunded or refunded (django-fsm)

    State Transitions:
        PAID -> PARTIALLY_REFUNDED (refund_partial)
        PAID/PARTIALLY_REFUNDED/REFUNDED -> REFUNDED (refund_full)
    """

    # ==========================================================================
    # Processor Identifiers
    # ==========================================================================

    stripe_payment_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe PaymentIntent ID (pi_xxx) - unique for deduplication",
    )

    stripe_charge_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe Charge ID (ch_xxx)",
    )

    # ==========================================================================
    # Linkage
    # ==========================================================================

    clinic = models.ForeignKey(
        "clinics.Clinic",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Clinic that received the payment",
    )

    patient = models.ForeignKey(
        "clinics.Patient",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Paying patient (backfilled on refund when missing)",
    )

    payment_link_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Payment link the patient paid through",
    )

    plan_installment = models.ForeignKey(
        "plans.PlanInstallment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Installment this payment settled, for plan payments",
    )

    payment_reference = models.CharField(
        max_length=32,
        db_index=True,
        help_text="Human-friendly payment reference shown to patients",
    )

    description = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Payment description from the intent",
    )

    # ==========================================================================
    # Patient Contact Snapshot
    # ==========================================================================

    patient_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Patient name supplied at checkout",
    )

    patient_email = models.EmailField(
        blank=True,
        default="",
        help_text="Patient email supplied at checkout",
    )

    patient_phone = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Patient phone supplied at checkout",
    )

    # ==========================================================================
    # Money (integer minor units)
    # ==========================================================================

    amount_paid = models.PositiveIntegerField(
        help_text="Gross amount paid in minor units (pence)",
    )

    currency = models.CharField(
        max_length=3,
        default="gbp",
        help_text="ISO 4217 currency code (lowercase)",
    )

    stripe_fee = models.PositiveIntegerField(
        default=0,
        help_text="Stripe processing fee in minor units (0 when lookup failed)",
    )

    net_amount = models.IntegerField(
        default=0,
        help_text="Net settlement amount in minor units",
    )

    platform_fee = models.PositiveIntegerField(
        default=0,
        help_text="Platform application fee in minor units",
    )

    refund_amount = models.PositiveIntegerField(
        default=0,
        help_text="Cumulative refunded amount in minor units",
    )

    stripe_refund_fee = models.PositiveIntegerField(
        default=0,
        help_text="Platform fee returned with the refund, in minor units",
    )

    # ==========================================================================
    # Status
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PAID,
        choices=PaymentStatus.choices,
        db_index=True,
        help_text="Payment status (managed by FSM)",
    )

    paid_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the payment succeeded",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the latest refund succeeded",
    )

    stripe_refund_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe Refund ID (re_xxx) of the latest refund",
    )

    stripe_refund_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Every Stripe Refund ID already applied to this payment",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["clinic", "status"]),
            models.Index(fields=["clinic", "paid_at"]),
        ]

    def __str__(self) -> str:
        """Return string representation with reference, status and amount."""
        return f"Payment({self.payment_reference}, {self.status}, {format_minor_units(self.amount_paid)})"

    @property
    def is_refunded(self) -> bool:
        return self.status in (PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED)

    @property
    def applied_refund_ids(self) -> set[str]:
        applied = set(self.stripe_refund_ids or [])
        if self.stripe_refund_id:
            applied.add(self.stripe_refund_id)
        return applied

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=list(REFUND_FULL_SOURCES),
        target=PaymentStatus.REFUNDED,
    )
    def refund_full(self, refunded_at=None):
        """
        Mark as fully refunded.

        Transition: PAID/PARTIALLY_REFUNDED/REFUNDED -> REFUNDED
        """
        self.refunded_at = refunded_at or timezone.now()

    @transition(
        field=status,
        source=list(REFUND_PARTIAL_SOURCES),
        target=PaymentStatus.PARTIALLY_REFUNDED,
    )
    def refund_partial(self, refunded_at=None):
        """
        Mark as partially refunded.

        Transition: PAID/PARTIALLY_REFUNDED -> PARTIALLY_REFUNDED
        """
        self.refunded_at = refunded_at or timezone.now()
