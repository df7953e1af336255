"""
PaymentRequest model - an outstanding ask for money.

A request optionally belongs to a payment link and may back one
installment of a plan. Its status mirrors the status of the payment
that settled it.
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import PaymentRequestStatus


class PaymentRequest(UUIDPrimaryKeyMixin, BaseModel):
    """
    A request for payment sent to a patient.

    Fields:
        clinic: Requesting clinic
        patient: Patient asked to pay
        payment_link_id: Payment link the request was sent through
        amount: Requested amount in minor units
        status: pending, sent, paid, partially_refunded, refunded, cancelled
        payment: Payment that settled the request
        paid_at: When the request was paid
    """

    clinic = models.ForeignKey(
        "clinics.Clinic",
        on_delete=models.CASCADE,
        related_name="payment_requests",
        help_text="Requesting clinic",
    )

    patient = models.ForeignKey(
        "clinics.Patient",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_requests",
        help_text="Patient asked to pay",
    )

    payment_link_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Payment link this request was sent through",
    )

    amount = models.PositiveIntegerField(
        default=0,
        help_text="Requested amount in minor units (pence)",
    )

    description = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="What the patient is paying for",
    )

    status = models.CharField(
        max_length=20,
        choices=PaymentRequestStatus.choices,
        default=PaymentRequestStatus.PENDING,
        db_index=True,
        help_text="Request status, mirrors the settling payment",
    )

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_requests",
        help_text="Payment that settled this request",
    )

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the request was paid",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Request"
        verbose_name_plural = "Payment Requests"
        indexes = [
            models.Index(fields=["clinic", "status"]),
        ]

    def __str__(self) -> str:
        return f"PaymentRequest({self.id}, {self.status})"
