"""Admin configuration for the notification queue."""

from django.contrib import admin

from notifications.models import NotificationQueueEntry


@admin.register(NotificationQueueEntry)
class NotificationQueueEntryAdmin(admin.ModelAdmin):
    """Read-only view of queued notifications."""

    list_display = ["id", "type", "recipient_type", "status", "payment", "clinic", "created_at"]
    list_filter = ["type", "recipient_type", "status"]
    search_fields = ["id", "payment__payment_reference"]
    list_select_related = ["payment", "clinic"]
    readonly_fields = ["id", "type", "recipient_type", "payload", "payment", "clinic", "status", "created_at", "updated_at"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
