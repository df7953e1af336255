"""
Plan Aggregation Service.

Recomputes a plan's derived fields from its installment rows:

- paid_installments: COUNT of installments whose status is paid,
  refunded or partially_refunded (never an increment, so duplicate or
  racing deliveries converge on the same value)
- progress: round(paid / total * 100), half-up, capped at 100
- next_due_date: earliest due date among installments still awaiting
  payment, or None
- status: via payments.state_machines.next_plan_status

Refund policy: a refunded installment still counts as paid, so a refund
never lowers paid_installments and never un-completes a plan. Only the
forward-looking statuses (active/overdue) are recomputed after a refund.

Usage:
    from plans.services import PlanAggregationService

    result = PlanAggregationService.recompute_after_payment(plan)
    if result.success:
        plan = result.data
"""

from __future__ import annotations

import datetime

from django.db.models import Q
from django.utils import timezone

from core.services import BaseService, ServiceResult

from payments.state_machines import (
    InstallmentStatus,
    LedgerEvent,
    PlanEvent,
    PlanStatus,
    next_installment_status,
    next_plan_status,
)
from plans.models import Plan, PlanInstallment


def compute_progress(paid_installments: int, total_installments: int) -> int:
    """
    Percentage of installments paid, rounded half-up and capped at 100.

    Integer arithmetic only: 1/3 -> 33, 2/3 -> 67, 1/8 -> 13.
    """
    if total_installments <= 0:
        return 0
    progress = (paid_installments * 100 * 2 + total_installments) // (total_installments * 2)
    return min(progress, 100)


class PlanAggregationService(BaseService):
    """Single writer of Plan aggregate fields."""

    # =========================================================================
    # Installments
    # =========================================================================

    @classmethod
    def apply_installment_event(
        cls,
        installment: PlanInstallment,
        event: LedgerEvent,
    ) -> PlanInstallment:
        """
        Move an installment to the status implied by a ledger event.

        Saves only when the status changes.
        """
        new_status = next_installment_status(installment.status, event)
        if new_status != installment.status:
            previous = installment.status
            installment.status = new_status
            installment.save(update_fields=["status", "updated_at"])
            cls.get_logger().info(
                f"Installment {installment.payment_number}/{installment.total_payments} "
                f"moved from {previous} to {new_status}",
                extra={
                    "installment_id": str(installment.id),
                    "plan_id": str(installment.plan_id),
                    "event": str(event),
                },
            )
        return installment

    # =========================================================================
    # Plan Recomputation
    # =========================================================================

    @classmethod
    def recompute_after_payment(
        cls,
        plan: Plan,
        today: datetime.date | None = None,
    ) -> ServiceResult[Plan]:
        """
        Recompute a plan after one of its installments was paid.

        Args:
            plan: Plan to recompute
            today: Reference date for overdue detection (default: today)

        Returns:
            ServiceResult with the saved plan
        """
        return cls._recompute(plan, PlanEvent.PAYMENT_RECORDED, today)

    @classmethod
    def apply_refund_adjustment(
        cls,
        plan: Plan,
        today: datetime.date | None = None,
    ) -> ServiceResult[Plan]:
        """
        Adjust a plan after one of its installments was refunded.

        paid_installments is deliberately not decremented: refunded
        installments keep counting as paid, and the stored value is
        never lowered by a refund.
        """
        return cls._recompute(plan, PlanEvent.REFUND_RECORDED, today)

    @classmethod
    def refresh_overdue(cls, today: datetime.date | None = None) -> ServiceResult[int]:
        """
        Mark installments past their due date as overdue and recompute
        every plan that can still change status.

        Args:
            today: Reference date (default: today)

        Returns:
            ServiceResult with the number of plans recomputed
        """
        logger = cls.get_logger()
        today = today or timezone.localdate()

        overdue_status = next_installment_status(InstallmentStatus.PENDING, LedgerEvent.DUE_DATE_PASSED)
        with cls.atomic():
            marked = PlanInstallment.objects.filter(
                status__in=[InstallmentStatus.PENDING, InstallmentStatus.SENT],
                due_date__lt=today,
            ).update(status=overdue_status, updated_at=timezone.now())

        plans = Plan.objects.filter(status__in=[PlanStatus.ACTIVE, PlanStatus.OVERDUE])
        recomputed = 0
        for plan in plans.iterator():
            result = cls._recompute(plan, PlanEvent.SCHEDULE_CHECKED, today)
            if result.success:
                recomputed += 1

        logger.info(
            f"Overdue sweep marked {marked} installments, recomputed {recomputed} plans",
            extra={"installments_marked": marked, "plans_recomputed": recomputed, "today": str(today)},
        )
        return ServiceResult.success(recomputed)

    @classmethod
    def _recompute(
        cls,
        plan: Plan,
        event: PlanEvent,
        today: datetime.date | None,
    ) -> ServiceResult[Plan]:
        logger = cls.get_logger()
        today = today or timezone.localdate()

        with cls.atomic():
            # Re-read under lock; the caller's instance may be stale
            locked = Plan.objects.select_for_update().get(pk=plan.pk)
            installments = PlanInstallment.objects.filter(plan=locked)

            counted = installments.filter(status__in=InstallmentStatus.counted_as_paid()).count()
            if event == PlanEvent.REFUND_RECORDED:
                paid = max(locked.paid_installments, counted)
            else:
                paid = counted

            total = locked.total_installments or installments.count()

            awaiting = installments.filter(status__in=InstallmentStatus.awaiting_payment())
            next_due_date = awaiting.order_by("due_date").values_list("due_date", flat=True).first()
            has_overdue = awaiting.filter(
                Q(status=InstallmentStatus.OVERDUE) | Q(due_date__lt=today)
            ).exists()

            previous_status = locked.status
            locked.paid_installments = paid
            locked.progress = compute_progress(paid, total)
            locked.next_due_date = next_due_date
            locked.status = next_plan_status(
                locked.status,
                event,
                paid_installments=paid,
                total_installments=total,
                has_overdue=has_overdue,
            )
            locked.save(
                update_fields=[
                    "paid_installments",
                    "progress",
                    "next_due_date",
                    "status",
                    "updated_at",
                ]
            )

        logger.info(
            f"Recomputed plan {locked.id}: {paid}/{total} paid, {locked.progress}%, "
            f"status {previous_status} -> {locked.status}",
            extra={
                "plan_id": str(locked.id),
                "event": str(event),
                "paid_installments": paid,
                "total_installments": total,
                "progress": locked.progress,
                "next_due_date": str(next_due_date) if next_due_date else None,
                "status": str(locked.status),
            },
        )
        return ServiceResult.success(locked)
