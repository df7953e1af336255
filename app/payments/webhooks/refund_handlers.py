"""
Handler for refund.updated.

Flow (per event):
    1. Ignore refunds whose status is not succeeded
    2. Resolve the Payment: refund -> charge -> payment intent -> Payment.
       No match means the refund is logged and dropped
    3. Classify full vs partial on the cumulative refunded total
    4. Update the Payment (status, refund amount, refund ID, refunded_at)
    5. Backfill the patient through the Patient Resolver    (best-effort)
    6. Append the refund activity entry                     (best-effort)
    7. Update requests and installments, adjust the plan    (best-effort)
    8. Resolve the refund fee through the strategy chain    (best-effort)
    9. Queue patient and clinic refund notifications        (best-effort)

The plan's paid_installments is never decremented by a refund.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.conf import settings

from core.services import ServiceResult
from plans.models import PlanInstallment

from payments.adapters import RefundResult, expandable_id
from payments.exceptions import InvalidStateTransitionError, PaymentError, PaymentValidationError
from payments.models import Payment, PaymentActivity, PaymentRequest
from payments.money import ensure_minor_units, format_minor_units
from payments.state_machines import (
    ActivityType,
    LedgerEvent,
    PaymentStatus,
    WebhookOutcomeStatus,
    classify_refund,
    next_payment_status,
    next_request_status,
)
from payments.webhooks.handlers import WebhookHandler, WebhookOutcome, register_handler

if TYPE_CHECKING:
    from payments.adapters import ChargeResult
    from payments.models import WebhookEvent

REFUND_SUCCEEDED = "succeeded"


def refund_from_payload(obj: dict[str, Any]) -> RefundResult:
    """Build a RefundResult from the refund object of a webhook payload."""
    return RefundResult(
        id=obj.get("id"),
        amount=obj.get("amount"),
        status=obj.get("status") or "",
        charge_id=expandable_id(obj.get("charge")),
        payment_intent_id=expandable_id(obj.get("payment_intent")),
        balance_transaction_id=expandable_id(obj.get("balance_transaction")),
        created=obj.get("created"),
    )


@register_handler("refund.updated")
class RefundUpdatedHandler(WebhookHandler):
    """Reconciles a succeeded refund into the ledger."""

    def handle(self, webhook_event: WebhookEvent) -> ServiceResult[WebhookOutcome]:
        logger = self.get_logger()
        refund = refund_from_payload(webhook_event.get_object())
        log_context = {
            "stripe_event_id": webhook_event.stripe_event_id,
            "refund_id": refund.id,
            "charge_id": refund.charge_id,
        }

        # Step 1: only terminal success is acted upon
        if refund.status != REFUND_SUCCEEDED:
            logger.info(f"Ignoring refund in status '{refund.status}'", extra=log_context)
            return ServiceResult.success(
                WebhookOutcome(
                    status=WebhookOutcomeStatus.IGNORED,
                    reason=f"Refund status is {refund.status or 'missing'}",
                )
            )

        try:
            refund_amount = ensure_minor_units(refund.amount, field="amount")
        except PaymentValidationError as e:
            logger.error(f"Cannot reconcile refund: {e.message}", extra=log_context)
            return ServiceResult.failure(e.message, error_code=e.error_code)

        # Step 2: find the original payment
        charge = self.retrieve_charge(refund, log_context)
        payment = self.find_payment(refund, charge)
        if payment is None:
            logger.warning(
                "No payment matches refund, dropping for manual reconciliation",
                extra={**log_context, "payment_intent_id": refund.payment_intent_id},
            )
            return ServiceResult.success(
                WebhookOutcome(
                    status=WebhookOutcomeStatus.DROPPED,
                    reason="No payment matches the refunded charge",
                )
            )
        log_context["payment_id"] = str(payment.id)

        # Steps 3 and 4: classify and update under the row lock
        try:
            with self.atomic():
                locked = Payment.objects.select_for_update().get(pk=payment.pk)
                if refund.id in locked.applied_refund_ids:
                    logger.info("Refund already reconciled, skipping", extra=log_context)
                    return ServiceResult.success(
                        WebhookOutcome(
                            status=WebhookOutcomeStatus.DUPLICATE,
                            payment=locked,
                            reason="Refund already reconciled",
                        )
                    )
                refund_total = self.refund_total(locked, refund_amount, charge)
                event = classify_refund(refund_total, locked.amount_paid)
                payment = self.apply_refund(locked, refund, refund_total, event)
        except InvalidStateTransitionError as e:
            logger.error(f"Cannot apply refund: {e.message}", extra={**log_context, **e.details})
            return ServiceResult.failure(e.message, error_code=e.error_code)

        logger.info(
            f"Recorded {'full' if event == LedgerEvent.REFUND_FULL else 'partial'} refund of "
            f"{format_minor_units(refund_amount)} on payment {payment.payment_reference}",
            extra={
                **log_context,
                "refund_amount": refund_amount,
                "refund_total": refund_total,
                "amount_paid": payment.amount_paid,
                "status": str(payment.status),
            },
        )

        outcome = WebhookOutcome(status=WebhookOutcomeStatus.PROCESSED, payment=payment)

        # Step 5: patient backfill
        if payment.patient_id is None:
            self.run_step(outcome, "patient", lambda: self.backfill_patient(payment), log_context)

        # Step 6: activity
        self.run_step(
            outcome,
            "activity",
            lambda: self.record_refund_activity(payment, refund, refund_amount, refund_total, event),
            log_context,
        )

        # Step 7: requests, installments and plans
        self.run_step(
            outcome,
            "payment_request",
            lambda: self.update_requests(payment, event),
            log_context,
        )
        self.run_step(
            outcome,
            "plan",
            lambda: self.update_installments(payment, event),
            log_context,
        )

        # Step 8: refund fee
        fee_result = self.run_step(
            outcome,
            "refund_fee",
            lambda: self.store_refund_fee(payment, refund, charge),
            log_context,
        )
        refund_fee = fee_result.data.amount if fee_result.data else 0
        if refund_fee == 0 and getattr(settings, "REFUND_FEE_RETRY_ENABLED", False):
            self.run_step(
                outcome,
                "refund_fee_retry",
                lambda: self.schedule_fee_refresh(payment, refund),
                log_context,
            )

        # Step 9: notifications
        notifications = self.notifier.enqueue_refund(payment, refund_amount, refund_fee)
        for recipient, result in notifications.items():
            outcome.steps[f"notify_{recipient}"] = result

        if outcome.degraded_steps:
            logger.warning(
                "Refund recorded with degraded sub-steps",
                extra={**log_context, "degraded_steps": outcome.degraded_steps},
            )
        return ServiceResult.success(outcome)

    # =========================================================================
    # Payment Resolution
    # =========================================================================

    def retrieve_charge(self, refund: RefundResult, log_context: dict[str, Any]) -> ChargeResult | None:
        if not refund.charge_id:
            return None
        try:
            return self.processor.retrieve_charge(refund.charge_id)
        except PaymentError as e:
            self.get_logger().warning(
                f"Could not retrieve refunded charge: {e}",
                extra={**log_context, "error_code": e.error_code},
            )
            return None

    def find_payment(self, refund: RefundResult, charge: ChargeResult | None) -> Payment | None:
        """Walk charge -> payment intent -> Payment, then fall back to the charge ID."""
        payment_intent_id = (charge.payment_intent_id if charge else None) or refund.payment_intent_id
        payment = None
        if payment_intent_id:
            payment = Payment.objects.filter(stripe_payment_id=payment_intent_id).first()
        if payment is None and refund.charge_id:
            payment = Payment.objects.filter(stripe_charge_id=refund.charge_id).first()
        return payment

    @staticmethod
    def refund_total(payment: Payment, refund_amount: int, charge: ChargeResult | None) -> int:
        """
        Cumulative refunded amount after a refund not yet applied to the payment.

        The charge's amount_refunded is authoritative when available.
        Without it the refund adds to the stored total. The result never
        falls below what is already recorded.
        """
        if charge is not None and charge.amount_refunded:
            total = charge.amount_refunded
        else:
            total = payment.refund_amount + refund_amount
        return max(total, refund_amount, payment.refund_amount)

    def apply_refund(
        self,
        locked: Payment,
        refund: RefundResult,
        refund_total: int,
        event: LedgerEvent,
    ) -> Payment:
        """Move the locked payment to its refunded status and record the refund."""
        target = next_payment_status(locked.status, event)
        refunded_at = self.clock.now()

        if target != locked.status:
            if target == PaymentStatus.REFUNDED:
                locked.refund_full(refunded_at=refunded_at)
            else:
                locked.refund_partial(refunded_at=refunded_at)
        else:
            locked.refunded_at = refunded_at

        locked.refund_amount = refund_total
        locked.stripe_refund_id = refund.id
        if refund.id:
            locked.stripe_refund_ids = [*locked.stripe_refund_ids, refund.id]
        locked.save(
            update_fields=[
                "status",
                "refund_amount",
                "refunded_at",
                "stripe_refund_id",
                "stripe_refund_ids",
                "updated_at",
            ]
        )
        return locked

    # =========================================================================
    # Sub-steps
    # =========================================================================

    def backfill_patient(self, payment: Payment) -> ServiceResult:
        result = self.patients.find_or_create(
            clinic_id=payment.clinic_id,
            name=payment.patient_name or None,
            email=payment.patient_email or None,
            phone=payment.patient_phone or None,
        )
        if result.success:
            payment.patient = result.data
            payment.save(update_fields=["patient", "updated_at"])
        return result

    def record_refund_activity(
        self,
        payment: Payment,
        refund: RefundResult,
        refund_amount: int,
        refund_total: int,
        event: LedgerEvent,
    ) -> ServiceResult[PaymentActivity]:
        installment = payment.plan_installment
        activity = PaymentActivity.objects.create(
            clinic_id=payment.clinic_id,
            patient_id=payment.patient_id,
            payment=payment,
            payment_link_id=payment.payment_link_id,
            plan_id=installment.plan_id if installment else None,
            action_type=(
                ActivityType.PAYMENT_REFUNDED
                if event == LedgerEvent.REFUND_FULL
                else ActivityType.PAYMENT_PARTIALLY_REFUNDED
            ),
            details={
                "payment_reference": payment.payment_reference,
                "original_amount": payment.amount_paid,
                "refund_amount": refund_amount,
                "total_refunded": refund_total,
                "refund_id": refund.id,
                "payment_id": str(payment.id),
            },
            timestamp=self.clock.now(),
        )
        return ServiceResult.success(activity)

    def update_requests(self, payment: Payment, event: LedgerEvent) -> ServiceResult[int]:
        updated = 0
        for payment_request in PaymentRequest.objects.select_for_update().filter(payment=payment):
            new_status = next_request_status(payment_request.status, event)
            if new_status != payment_request.status:
                payment_request.status = new_status
                payment_request.save(update_fields=["status", "updated_at"])
                updated += 1
        return ServiceResult.success(updated)

    def update_installments(self, payment: Payment, event: LedgerEvent) -> ServiceResult[int]:
        """
        Mark the payment's installments refunded and adjust their plans.

        Installments are found through the payment itself or through the
        requests it settled.
        """
        installment_ids = set(
            PlanInstallment.objects.filter(payment_request__payment=payment).values_list("id", flat=True)
        )
        if payment.plan_installment_id:
            installment_ids.add(payment.plan_installment_id)

        plans = {}
        for installment in PlanInstallment.objects.filter(id__in=installment_ids).select_related("plan"):
            self.plans.apply_installment_event(installment, event)
            plans[installment.plan_id] = installment.plan

        for plan in plans.values():
            result = self.plans.apply_refund_adjustment(plan, today=self.clock.today())
            if not result.success:
                return result
        return ServiceResult.success(len(plans))

    def store_refund_fee(
        self,
        payment: Payment,
        refund: RefundResult,
        charge: ChargeResult | None,
    ) -> ServiceResult:
        result = self.refund_fees.resolve(self.processor, refund, charge)
        amount = result.data.amount if result.data else 0
        Payment.objects.filter(pk=payment.pk).update(stripe_refund_fee=amount)
        payment.stripe_refund_fee = amount
        return result

    def schedule_fee_refresh(self, payment: Payment, refund: RefundResult) -> ServiceResult:
        from payments.tasks import refresh_refund_fee

        delay = getattr(settings, "REFUND_FEE_RETRY_DELAY_SECONDS", 5)
        refresh_refund_fee.apply_async(args=[str(payment.id), refund.id], countdown=delay)
        self.get_logger().info(
            f"Scheduled refund fee refresh in {delay}s",
            extra={"payment_id": str(payment.id), "refund_id": refund.id},
        )
        return ServiceResult.success(delay)
