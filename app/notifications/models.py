"""
Notification queue model.

Rows are inserted by the Notification Enqueuer and drained later by the
notification dispatcher. The reconciliation engine only ever inserts.

Usage:
    from notifications.models import NotificationQueueEntry, NotificationType, RecipientType

    NotificationQueueEntry.objects.create(
        type=NotificationType.PAYMENT_SUCCESS,
        recipient_type=RecipientType.PATIENT,
        payload=payload,
        payment=payment,
        clinic=payment.clinic,
    )
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


# =============================================================================
# Enums
# =============================================================================


class NotificationType(models.TextChoices):
    """Kinds of payment notifications."""

    PAYMENT_SUCCESS = "payment_success", "Payment Success"
    PAYMENT_FAILED = "payment_failed", "Payment Failed"
    REFUND_PROCESSED = "refund_processed", "Refund Processed"


class RecipientType(models.TextChoices):
    """Who a queued notification is addressed to."""

    PATIENT = "patient", "Patient"
    CLINIC = "clinic", "Clinic"


class QueueStatus(models.TextChoices):
    """
    Queue entry status.

    The enqueuer writes PENDING; the other values belong to the dispatcher.
    """

    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"


# =============================================================================
# Models
# =============================================================================


class NotificationQueueEntry(UUIDPrimaryKeyMixin, BaseModel):
    """
    One queued notification for one recipient.

    Fields:
        type: payment_success, payment_failed or refund_processed
        recipient_type: patient or clinic
        payload: Normalized notification payload (JSON). Monetary values
            are in minor units, flagged by monetary_values_in_pence.
        payment: Payment the notification is about (None for failures)
        clinic: Clinic the notification belongs to
        status: Delivery status, PENDING when enqueued
    """

    type = models.CharField(
        max_length=30,
        choices=NotificationType.choices,
        db_index=True,
        help_text="Notification kind",
    )

    recipient_type = models.CharField(
        max_length=10,
        choices=RecipientType.choices,
        help_text="Recipient of the notification",
    )

    payload = models.JSONField(
        help_text="Normalized payload; monetary values in minor units",
    )

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
        help_text="Payment the notification is about",
    )

    clinic = models.ForeignKey(
        "clinics.Clinic",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
        help_text="Clinic the notification belongs to",
    )

    status = models.CharField(
        max_length=20,
        choices=QueueStatus.choices,
        default=QueueStatus.PENDING,
        db_index=True,
        help_text="Delivery status",
    )

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Queued Notification"
        verbose_name_plural = "Notification Queue"
        indexes = [
            models.Index(fields=["status", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"NotificationQueueEntry({self.type}, {self.recipient_type}, {self.status})"
