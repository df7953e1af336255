"""
Clinic and patient models.

Clinics are read-only from the webhook reconciliation path: handlers look
up the clinic named by event metadata for notification preferences and
contact details. Patients are created opportunistically by the Patient
Resolver when a payment or refund carries contact details for someone the
clinic has not recorded yet.

Usage:
    from clinics.models import Clinic, Patient

    clinic = Clinic.objects.get(id=metadata["clinicId"])
    patient = Patient.objects.filter(clinic=clinic, email=email).first()
"""

from __future__ import annotations

import re

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


def normalize_phone(phone: str | None) -> str | None:
    """
    Strip every non-digit character from a phone number.

    Returns None for empty input or input without any digits.
    """
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    return digits or None


class Clinic(UUIDPrimaryKeyMixin, BaseModel):
    """
    A clinic collecting payments from its patients.

    Fields:
        name: Display name used in notifications
        email: Clinic contact email (clinic-facing notifications)
        phone: Clinic contact phone (clinic-facing SMS)
        email_notifications: Clinic wants email notifications
        sms_notifications: Clinic wants SMS notifications
        stripe_account_id: Connected Stripe account receiving payouts
    """

    # ==========================================================================
    # Identity & Contact
    # ==========================================================================

    name = models.CharField(
        max_length=255,
        help_text="Clinic display name",
    )

    email = models.EmailField(
        blank=True,
        default="",
        help_text="Clinic contact email",
    )

    phone = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Clinic contact phone",
    )

    # ==========================================================================
    # Notification Preferences
    # ==========================================================================

    email_notifications = models.BooleanField(
        default=True,
        help_text="Send clinic-facing payment notifications by email",
    )

    sms_notifications = models.BooleanField(
        default=False,
        help_text="Send clinic-facing payment notifications by SMS",
    )

    # ==========================================================================
    # Processor Linkage
    # ==========================================================================

    stripe_account_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe Connect account ID (acct_xxx)",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "Clinic"
        verbose_name_plural = "Clinics"

    def __str__(self) -> str:
        return self.name


class Patient(UUIDPrimaryKeyMixin, BaseModel):
    """
    A patient of a single clinic.

    Patients are matched per clinic by email first, then by phone. Phone
    numbers are stored digits-only so that "+44 7700 900123" and
    "447700900123" resolve to the same patient.
    """

    clinic = models.ForeignKey(
        Clinic,
        on_delete=models.CASCADE,
        related_name="patients",
        help_text="Clinic this patient belongs to",
    )

    name = models.CharField(
        max_length=255,
        help_text="Patient full name",
    )

    email = models.EmailField(
        null=True,
        blank=True,
        help_text="Patient email address",
    )

    phone = models.CharField(
        max_length=32,
        null=True,
        blank=True,
        help_text="Patient phone number, digits only",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "Patient"
        verbose_name_plural = "Patients"
        indexes = [
            models.Index(fields=["clinic", "email"]),
            models.Index(fields=["clinic", "phone"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.clinic_id})"

    def save(self, *args, **kwargs):
        self.phone = normalize_phone(self.phone)
        super().save(*args, **kwargs)
