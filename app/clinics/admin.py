"""Clinic admin configuration."""

from django.contrib import admin

from clinics.models import Clinic, Patient


@admin.register(Clinic)
class ClinicAdmin(admin.ModelAdmin):
    """Admin configuration for Clinic."""

    list_display = [
        "name",
        "email",
        "phone",
        "email_notifications",
        "sms_notifications",
        "stripe_account_id",
        "created_at",
    ]
    list_filter = ["email_notifications", "sms_notifications"]
    search_fields = ["id", "name", "email", "stripe_account_id"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    """Admin configuration for Patient."""

    list_display = ["name", "email", "phone", "clinic", "created_at"]
    list_select_related = ["clinic"]
    search_fields = ["id", "name", "email", "phone"]
    readonly_fields = ["id", "created_at", "updated_at"]
