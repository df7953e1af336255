"""Admin registrations for payment plans."""

from django.contrib import admin

from plans.models import Plan, PlanInstallment


class PlanInstallmentInline(admin.TabularInline):
    model = PlanInstallment
    extra = 0
    fields = ["payment_number", "total_payments", "amount", "due_date", "status", "payment_request"]
    readonly_fields = ["payment_request"]


@admin.register(Plan)
class PlanAdmin(admin.ModelAdmin):
    """Plans; aggregate fields are maintained by PlanAggregationService."""

    list_display = [
        "id",
        "title",
        "clinic",
        "patient",
        "paid_installments",
        "total_installments",
        "progress",
        "next_due_date",
        "status",
    ]
    list_filter = ["status"]
    search_fields = ["title", "payment_link_id"]
    readonly_fields = ["paid_installments", "progress", "next_due_date", "created_at", "updated_at"]
    inlines = [PlanInstallmentInline]


@admin.register(PlanInstallment)
class PlanInstallmentAdmin(admin.ModelAdmin):
    list_display = ["id", "plan", "payment_number", "total_payments", "amount", "due_date", "status"]
    list_filter = ["status"]
    search_fields = ["payment_link_id"]
    raw_id_fields = ["plan", "payment_request", "patient"]
