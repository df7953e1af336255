"""
Payment plan models.

Plan is a rollup over its PlanInstallment rows. The installment rows are
the source of truth: paid_installments, progress, next_due_date and
status on the plan are recomputed from them by PlanAggregationService
and never incremented in place.

Usage:
    from plans.models import Plan, PlanInstallment

    installment = PlanInstallment.objects.filter(payment_request_id=request_id).first()
    if installment:
        PlanAggregationService.recompute_after_payment(installment.plan)
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import InstallmentStatus, PlanStatus


class Plan(UUIDPrimaryKeyMixin, BaseModel):
    """
    A multi-installment payment arrangement.

    Fields:
        clinic: Clinic running the plan
        patient: Patient paying the plan
        payment_link_id: Payment link the plan was created from
        title: Display title
        total_installments: Number of installments in the plan
        paid_installments: Installments counted as paid (derived)
        progress: Percentage 0-100 (derived)
        next_due_date: Earliest due date still awaiting payment (derived)
        status: active, paused, cancelled, completed, overdue

    Invariant:
        status == COMPLETED iff paid_installments >= total_installments
    """

    # ==========================================================================
    # Linkage
    # ==========================================================================

    clinic = models.ForeignKey(
        "clinics.Clinic",
        on_delete=models.CASCADE,
        related_name="plans",
        help_text="Clinic running the plan",
    )

    patient = models.ForeignKey(
        "clinics.Patient",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="plans",
        help_text="Patient paying the plan",
    )

    payment_link_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Payment link the plan was created from",
    )

    title = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Display title",
    )

    # ==========================================================================
    # Aggregates (derived from installments)
    # ==========================================================================

    total_installments = models.PositiveSmallIntegerField(
        help_text="Number of installments in the plan",
    )

    paid_installments = models.PositiveSmallIntegerField(
        default=0,
        help_text="Installments counted as paid (recomputed from installment rows)",
    )

    progress = models.PositiveSmallIntegerField(
        default=0,
        help_text="Percentage of installments paid, 0-100",
    )

    next_due_date = models.DateField(
        null=True,
        blank=True,
        help_text="Earliest due date still awaiting payment",
    )

    status = models.CharField(
        max_length=20,
        choices=PlanStatus.choices,
        default=PlanStatus.ACTIVE,
        db_index=True,
        help_text="Plan lifecycle status",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Plan"
        verbose_name_plural = "Plans"
        indexes = [
            models.Index(fields=["clinic", "status"]),
        ]

    def __str__(self) -> str:
        return f"Plan({self.title or self.id}, {self.paid_installments}/{self.total_installments}, {self.status})"

    @property
    def is_completed(self) -> bool:
        return self.status == PlanStatus.COMPLETED


class PlanInstallment(UUIDPrimaryKeyMixin, BaseModel):
    """
    One scheduled payment within a plan (a payment_schedule row).

    Fields:
        plan: Parent plan
        payment_request: Request sent to collect this installment
        clinic: Clinic running the plan
        patient: Patient paying the plan
        payment_link_id: Payment link of the plan
        amount: Installment amount in minor units
        due_date: When the installment is due
        payment_number: 1-based position within the plan
        total_payments: Number of installments in the plan
        status: pending, sent, paid, overdue, refunded,
            partially_refunded, cancelled
    """

    plan = models.ForeignKey(
        Plan,
        on_delete=models.CASCADE,
        related_name="installments",
        help_text="Parent plan",
    )

    payment_request = models.ForeignKey(
        "payments.PaymentRequest",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="installments",
        help_text="Payment request collecting this installment",
    )

    clinic = models.ForeignKey(
        "clinics.Clinic",
        on_delete=models.CASCADE,
        related_name="plan_installments",
    )

    patient = models.ForeignKey(
        "clinics.Patient",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="plan_installments",
    )

    payment_link_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
    )

    amount = models.PositiveIntegerField(
        default=0,
        help_text="Installment amount in minor units (pence)",
    )

    due_date = models.DateField(
        help_text="When the installment is due",
    )

    payment_number = models.PositiveSmallIntegerField(
        help_text="1-based position within the plan",
    )

    total_payments = models.PositiveSmallIntegerField(
        help_text="Number of installments in the plan",
    )

    status = models.CharField(
        max_length=20,
        choices=InstallmentStatus.choices,
        default=InstallmentStatus.PENDING,
        db_index=True,
        help_text="Installment status",
    )

    class Meta:
        ordering = ["plan", "payment_number"]
        verbose_name = "Plan Installment"
        verbose_name_plural = "Plan Installments"
        indexes = [
            models.Index(fields=["plan", "status"]),
            models.Index(fields=["status", "due_date"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["plan", "payment_number"],
                name="plan_installment_number_unique",
            ),
        ]

    def __str__(self) -> str:
        return f"PlanInstallment({self.payment_number}/{self.total_payments}, {self.status})"
