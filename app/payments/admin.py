"""
Payment admin configuration.

Registers the payment ledger models with the Django admin. Ledger rows are
written by webhook handlers only, so money and status fields are read-only
and nothing can be deleted from here.
"""

from django.contrib import admin

from payments.models import Payment, PaymentActivity, PaymentRequest, WebhookEvent
from payments.money import format_minor_units

__all__ = [
    "PaymentAdmin",
    "PaymentRequestAdmin",
    "PaymentActivityAdmin",
    "WebhookEventAdmin",
]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Provides visibility into collected payments and their fee breakdown.
    State changes happen through webhook handling, not admin.
    """

    list_display = [
        "payment_reference",
        "clinic",
        "patient_name",
        "amount_display",
        "status",
        "paid_at",
    ]
    list_filter = ["status", "currency", "paid_at"]
    search_fields = [
        "id",
        "payment_reference",
        "stripe_payment_id",
        "stripe_charge_id",
        "patient_email",
    ]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "stripe_payment_id",
        "stripe_charge_id",
        "amount_paid",
        "stripe_fee",
        "net_amount",
        "platform_fee",
        "refund_amount",
        "stripe_refund_fee",
        "stripe_refund_id",
        "stripe_refund_ids",
        "status",
        "paid_at",
        "refunded_at",
    ]
    date_hierarchy = "paid_at"
    ordering = ["-paid_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "payment_reference", "clinic", "patient", "status"),
            },
        ),
        (
            "Stripe",
            {
                "fields": ("stripe_payment_id", "stripe_charge_id", "payment_link_id"),
            },
        ),
        (
            "Amounts (minor units)",
            {
                "fields": (
                    "amount_paid",
                    "currency",
                    "stripe_fee",
                    "net_amount",
                    "platform_fee",
                ),
            },
        ),
        (
            "Refund",
            {
                "fields": (
                    "refund_amount",
                    "stripe_refund_fee",
                    "stripe_refund_id",
                    "stripe_refund_ids",
                    "refunded_at",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "Patient Contact",
            {
                "fields": ("patient_name", "patient_email", "patient_phone"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("paid_at", "created_at", "updated_at"),
            },
        ),
    )

    def amount_display(self, obj: Payment) -> str:
        """Display the amount formatted as currency."""
        return f"{format_minor_units(obj.amount_paid)} {obj.currency.upper()}"

    amount_display.short_description = "Amount"

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payments (audit trail)."""
        return False


@admin.register(PaymentRequest)
class PaymentRequestAdmin(admin.ModelAdmin):
    """Admin configuration for PaymentRequest."""

    list_display = ["id", "clinic", "patient", "amount", "status", "paid_at", "created_at"]
    list_filter = ["status", "created_at"]
    search_fields = ["id", "payment_link_id", "patient__email"]
    readonly_fields = ["id", "created_at", "updated_at", "payment", "paid_at"]
    ordering = ["-created_at"]


@admin.register(PaymentActivity)
class PaymentActivityAdmin(admin.ModelAdmin):
    """
    Admin configuration for PaymentActivity.

    The activity log is append-only: nothing can be added, changed or
    deleted from admin.
    """

    list_display = ["timestamp", "action_type", "clinic", "patient", "payment"]
    list_filter = ["action_type", "timestamp"]
    search_fields = ["payment__payment_reference", "payment_link_id"]
    date_hierarchy = "timestamp"
    ordering = ["-timestamp"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "stripe_event_id",
        "event_type",
        "status",
        "outcome",
        "delivery_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "outcome", "event_type", "created_at"]
    search_fields = ["id", "stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "stripe_event_id",
        "event_type",
        "payload",
        "outcome",
        "delivery_count",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "stripe_event_id", "event_type", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("outcome", "processed_at", "delivery_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )
