"""
PaymentActivity model - append-only audit log of payment events.

Entries are written once and never updated or deleted. Corrections are
recorded as new entries.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.exceptions import ConflictError
from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import ActivityType


class PaymentActivity(UUIDPrimaryKeyMixin, BaseModel):
    """
    One audit log entry.

    Fields:
        clinic: Clinic the activity belongs to
        patient: Patient involved, if known
        payment: Payment the activity concerns
        payment_link_id: Payment link involved, if any
        plan: Plan involved, for installment payments
        action_type: payment_made, payment_received, payment_refunded,
            payment_partially_refunded
        details: Event-specific JSON (amounts in minor units)
        timestamp: When the activity happened
    """

    clinic = models.ForeignKey(
        "clinics.Clinic",
        on_delete=models.PROTECT,
        related_name="payment_activities",
    )

    patient = models.ForeignKey(
        "clinics.Patient",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_activities",
    )

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="activities",
    )

    payment_link_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
    )

    plan = models.ForeignKey(
        "plans.Plan",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activities",
    )

    action_type = models.CharField(
        max_length=40,
        choices=ActivityType.choices,
        db_index=True,
        help_text="Kind of activity",
    )

    details = models.JSONField(
        default=dict,
        blank=True,
        help_text="Event details; monetary values in minor units",
    )

    timestamp = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="When the activity happened",
    )

    class Meta:
        ordering = ["-timestamp"]
        verbose_name = "Payment Activity"
        verbose_name_plural = "Payment Activities"
        indexes = [
            models.Index(fields=["clinic", "timestamp"]),
            models.Index(fields=["patient", "timestamp"]),
        ]

    def __str__(self) -> str:
        return f"PaymentActivity({self.action_type}, {self.timestamp:%Y-%m-%d %H:%M})"

    def save(self, *args, **kwargs):
        """Insert only; an existing entry cannot be rewritten."""
        if not self._state.adding:
            raise ConflictError(
                "Payment activity entries are append-only",
                details={"activity_id": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ConflictError(
            "Payment activity entries cannot be deleted",
            details={"activity_id": str(self.pk)},
        )
