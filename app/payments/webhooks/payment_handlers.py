"""
Handlers for payment_intent.succeeded and payment_intent.payment_failed.

Succeeded flow (per event):
    1. Dedup by PaymentIntent ID - an existing Payment ends processing
    2. Resolve linkage from metadata (clinicId required; requestId and
       payment_schedule_id optional, request-derived linkage wins)
    3. Resolve fees via the charge (best-effort, zeros on failure)
    4. Insert the Payment row - the durable fact
    5. Advance the PaymentRequest                        (best-effort)
    6. Advance the installment and recompute the plan    (best-effort)
    7. Append the activity entry                         (best-effort)
    8. Queue patient and clinic notifications            (best-effort)

Nothing after step 4 can roll the Payment back: each later step runs in
its own transaction and records its result in WebhookOutcome.steps.

Failed flow: no ledger mutation; a patient notification is queued.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError

from clinics.models import Clinic, Patient
from core.services import ServiceResult
from notifications.services import ContactDetails, PaymentFailure
from plans.models import PlanInstallment

from payments.exceptions import MissingLinkageError, PaymentValidationError
from payments.models import Payment, PaymentActivity, PaymentRequest
from payments.money import ensure_minor_units, format_minor_units, generate_payment_reference
from payments.services import FeeBreakdown
from payments.state_machines import (
    ActivityType,
    LedgerEvent,
    PaymentRequestStatus,
    WebhookOutcomeStatus,
    next_payment_status,
    next_request_status,
)
from payments.webhooks.handlers import WebhookHandler, WebhookOutcome, register_handler

if TYPE_CHECKING:
    from payments.models import WebhookEvent


def _lookup(model, pk: Any, **filters: Any):
    """
    Fetch a row by primary key, treating malformed IDs as missing.

    Metadata values are free-form strings; a value that is not a valid
    UUID must read as "not found" rather than raise.
    """
    if not pk:
        return None
    try:
        return model.objects.filter(pk=pk, **filters).first()
    except (DjangoValidationError, ValueError):
        return None


def _blank_to_none(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass
class PaymentLinkage:
    """
    Where a successful payment belongs.

    Attributes:
        clinic: Clinic named by metadata.clinicId (required)
        payment_request: Request named by metadata.requestId
        payment_link_id: Request's link if any, else metadata.paymentLinkId
        installment: Installment linked directly or through the request
        patient: Patient known from the request or installment
    """

    clinic: Clinic
    payment_request: PaymentRequest | None = None
    payment_link_id: str | None = None
    installment: PlanInstallment | None = None
    patient: Patient | None = None


# =============================================================================
# payment_intent.succeeded
# =============================================================================


@register_handler("payment_intent.succeeded")
class PaymentSucceededHandler(WebhookHandler):
    """Records a successful payment and everything that follows from it."""

    def handle(self, webhook_event: WebhookEvent) -> ServiceResult[WebhookOutcome]:
        logger = self.get_logger()
        intent = webhook_event.get_object()
        intent_id = intent.get("id")
        metadata = intent.get("metadata") or {}
        log_context = {
            "stripe_event_id": webhook_event.stripe_event_id,
            "payment_intent_id": intent_id,
        }

        if not intent_id:
            logger.error("payment_intent.succeeded without a payment intent ID", extra=log_context)
            return ServiceResult.failure(
                "Could not extract payment_intent_id from webhook",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )

        # Step 1: dedup
        existing = Payment.objects.filter(stripe_payment_id=intent_id).first()
        if existing:
            logger.info(
                "Payment already recorded for intent, skipping",
                extra={**log_context, "payment_id": str(existing.id)},
            )
            return ServiceResult.success(
                WebhookOutcome(
                    status=WebhookOutcomeStatus.DUPLICATE,
                    payment=existing,
                    reason="Payment already recorded",
                )
            )

        # Step 2: linkage and amount validation (fatal, nothing written yet)
        try:
            amount = ensure_minor_units(intent.get("amount"), field="amount")
            linkage = self.resolve_linkage(metadata)
        except PaymentValidationError as e:
            logger.error(
                f"Cannot record payment: {e.message}",
                extra={**log_context, "error_code": e.error_code, **e.details},
            )
            return ServiceResult.failure(e.message, error_code=e.error_code)

        outcome = WebhookOutcome(status=WebhookOutcomeStatus.PROCESSED)

        # Step 3: fees (best-effort, zeros on failure)
        charge_id = _blank_to_none(intent.get("latest_charge"))
        fee_result = self.run_step(
            outcome,
            "fees",
            lambda: self.fees.lookup(self.processor, charge_id),
            log_context,
        )
        fees = fee_result.data or FeeBreakdown.zero()

        # Step 4: the durable payment fact
        try:
            with self.atomic():
                payment = Payment.objects.create(
                    stripe_payment_id=intent_id,
                    stripe_charge_id=charge_id,
                    clinic=linkage.clinic,
                    patient=linkage.patient,
                    payment_link_id=linkage.payment_link_id,
                    plan_installment=linkage.installment,
                    payment_reference=_blank_to_none(metadata.get("paymentReference"))
                    or generate_payment_reference(),
                    description=intent.get("description") or "",
                    patient_name=metadata.get("patientName") or "",
                    patient_email=metadata.get("patientEmail") or "",
                    patient_phone=metadata.get("patientPhone") or "",
                    amount_paid=amount,
                    currency=(intent.get("currency") or "gbp").lower(),
                    stripe_fee=fees.stripe_fee,
                    net_amount=fees.net_amount,
                    platform_fee=fees.platform_fee,
                    status=next_payment_status(None, LedgerEvent.PAYMENT_SUCCEEDED),
                    paid_at=self.clock.now(),
                )
        except IntegrityError:
            # A concurrent delivery inserted the same intent first
            existing = Payment.objects.filter(stripe_payment_id=intent_id).first()
            logger.info("Concurrent delivery already recorded the payment", extra=log_context)
            return ServiceResult.success(
                WebhookOutcome(
                    status=WebhookOutcomeStatus.DUPLICATE,
                    payment=existing,
                    reason="Payment recorded by a concurrent delivery",
                )
            )

        outcome.payment = payment
        log_context["payment_id"] = str(payment.id)
        logger.info(
            f"Recorded payment {payment.payment_reference} of {format_minor_units(amount)}",
            extra={
                **log_context,
                "clinic_id": str(linkage.clinic.id),
                "amount_paid": amount,
                "stripe_fee": fees.stripe_fee,
                "net_amount": fees.net_amount,
                "platform_fee": fees.platform_fee,
            },
        )

        # Step 5: payment request
        if linkage.payment_request:
            self.run_step(
                outcome,
                "payment_request",
                lambda: self.advance_request(linkage.payment_request, payment),
                log_context,
            )

        # Steps 6-7: installment, plan and activity
        if linkage.installment:
            installment_result = self.run_step(
                outcome,
                "installment",
                lambda: ServiceResult.success(
                    self.plans.apply_installment_event(linkage.installment, LedgerEvent.PAYMENT_SUCCEEDED)
                ),
                log_context,
            )
            plan_result = self.run_step(
                outcome,
                "plan",
                lambda: self.plans.recompute_after_payment(linkage.installment.plan, today=self.clock.today()),
                log_context,
            )
            if installment_result.success or plan_result.success:
                self.run_step(
                    outcome,
                    "activity",
                    lambda: self.record_installment_activity(payment, linkage.installment),
                    log_context,
                )
        else:
            self.run_step(
                outcome,
                "activity",
                lambda: self.record_payment_activity(payment),
                log_context,
            )

        # Step 8: notifications, regardless of fee availability
        notifications = self.notifier.enqueue_payment_success(payment, fees)
        for recipient, result in notifications.items():
            outcome.steps[f"notify_{recipient}"] = result

        if outcome.degraded_steps:
            logger.warning(
                "Payment recorded with degraded sub-steps",
                extra={**log_context, "degraded_steps": outcome.degraded_steps},
            )
        return ServiceResult.success(outcome)

    # =========================================================================
    # Linkage
    # =========================================================================

    def resolve_linkage(self, metadata: dict[str, Any]) -> PaymentLinkage:
        """
        Resolve clinic, request, link and installment from intent metadata.

        Raises:
            MissingLinkageError: clinicId is absent or names no clinic
        """
        clinic_id = _blank_to_none(metadata.get("clinicId"))
        if not clinic_id:
            raise MissingLinkageError(
                "Missing clinicId in payment intent metadata",
                details={"metadata_keys": sorted(metadata.keys())},
            )
        clinic = _lookup(Clinic, clinic_id)
        if clinic is None:
            raise MissingLinkageError(
                f"Unknown clinic {clinic_id}",
                details={"clinic_id": clinic_id},
            )

        linkage = PaymentLinkage(
            clinic=clinic,
            payment_link_id=_blank_to_none(metadata.get("paymentLinkId")),
        )

        request_id = _blank_to_none(metadata.get("requestId"))
        if request_id:
            payment_request = _lookup(PaymentRequest, request_id, clinic=clinic)
            if payment_request is None:
                self.get_logger().warning(
                    "Payment request from metadata not found for clinic",
                    extra={"request_id": request_id, "clinic_id": str(clinic.id)},
                )
            else:
                linkage.payment_request = payment_request
                # Request-derived linkage takes precedence over metadata
                if payment_request.payment_link_id:
                    linkage.payment_link_id = payment_request.payment_link_id
                linkage.patient = payment_request.patient

        schedule_id = _blank_to_none(metadata.get("payment_schedule_id"))
        if schedule_id:
            linkage.installment = _lookup(PlanInstallment, schedule_id, clinic=clinic)
        if linkage.installment is None and linkage.payment_request is not None:
            linkage.installment = (
                PlanInstallment.objects.filter(payment_request=linkage.payment_request)
                .select_related("plan")
                .first()
            )

        if linkage.installment is not None:
            linkage.patient = linkage.patient or linkage.installment.patient
            linkage.payment_link_id = linkage.payment_link_id or linkage.installment.payment_link_id

        if linkage.patient is None:
            resolved = self.patients.find_or_create(
                clinic_id=clinic.id,
                name=_blank_to_none(metadata.get("patientName")),
                email=_blank_to_none(metadata.get("patientEmail")),
                phone=_blank_to_none(metadata.get("patientPhone")),
                patient_id=_blank_to_none(metadata.get("patientId")),
            )
            if resolved.success:
                linkage.patient = resolved.data

        return linkage

    # =========================================================================
    # Sub-steps
    # =========================================================================

    def advance_request(
        self,
        payment_request: PaymentRequest,
        payment: Payment,
    ) -> ServiceResult[PaymentRequest]:
        locked = PaymentRequest.objects.select_for_update().get(pk=payment_request.pk)
        new_status = next_request_status(locked.status, LedgerEvent.PAYMENT_SUCCEEDED)
        locked.status = new_status
        locked.payment = payment
        if new_status == PaymentRequestStatus.PAID:
            locked.paid_at = payment.paid_at
        locked.save(update_fields=["status", "payment", "paid_at", "updated_at"])
        return ServiceResult.success(locked)

    def record_installment_activity(
        self,
        payment: Payment,
        installment: PlanInstallment,
    ) -> ServiceResult[PaymentActivity]:
        activity = PaymentActivity.objects.create(
            clinic=payment.clinic,
            patient=payment.patient,
            payment=payment,
            payment_link_id=payment.payment_link_id,
            plan_id=installment.plan_id,
            action_type=ActivityType.PAYMENT_MADE,
            details={
                "payment_reference": payment.payment_reference,
                "amount": payment.amount_paid,
                "payment_date": payment.paid_at.isoformat(),
                "payment_number": installment.payment_number,
                "total_payments": installment.total_payments,
                "payment_id": str(payment.id),
            },
            timestamp=self.clock.now(),
        )
        return ServiceResult.success(activity)

    def record_payment_activity(self, payment: Payment) -> ServiceResult[PaymentActivity]:
        activity = PaymentActivity.objects.create(
            clinic=payment.clinic,
            patient=payment.patient,
            payment=payment,
            payment_link_id=payment.payment_link_id,
            action_type=ActivityType.PAYMENT_RECEIVED,
            details={
                "payment_reference": payment.payment_reference,
                "amount": payment.amount_paid,
                "payment_date": payment.paid_at.isoformat(),
                "payment_id": str(payment.id),
            },
            timestamp=self.clock.now(),
        )
        return ServiceResult.success(activity)


# =============================================================================
# payment_intent.payment_failed
# =============================================================================


@register_handler("payment_intent.payment_failed")
class PaymentFailedHandler(WebhookHandler):
    """
    Queues a failure notification for the patient.

    A failed intent is a terminal processor-side outcome: nothing is
    written to the ledger and nothing is retried.
    """

    def handle(self, webhook_event: WebhookEvent) -> ServiceResult[WebhookOutcome]:
        logger = self.get_logger()
        intent = webhook_event.get_object()
        metadata = intent.get("metadata") or {}
        last_error = intent.get("last_payment_error") or {}

        message = last_error.get("message") or "Payment failed"
        code = last_error.get("code") or last_error.get("decline_code") or "unknown"
        clinic_id = _blank_to_none(metadata.get("clinicId"))
        payment_link_id = _blank_to_none(metadata.get("paymentLinkId"))

        try:
            amount = ensure_minor_units(intent.get("amount"), field="amount", default=0)
        except PaymentValidationError as e:
            logger.warning(f"Ignoring invalid amount on failed intent: {e.message}")
            amount = 0

        logger.info(
            f"Payment failed: {message}",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "payment_intent_id": intent.get("id"),
                "clinic_id": clinic_id,
                "payment_link_id": payment_link_id,
                "failure_code": code,
                "amount": amount,
            },
        )

        clinic = _lookup(Clinic, clinic_id)
        if clinic is None:
            logger.warning(
                "Failed payment has no known clinic, notifying without clinic details",
                extra={"clinic_id": clinic_id},
            )

        failure = PaymentFailure(
            clinic=clinic,
            amount=amount,
            patient=ContactDetails(
                name=_blank_to_none(metadata.get("patientName")),
                email=_blank_to_none(metadata.get("patientEmail")),
                phone=_blank_to_none(metadata.get("patientPhone")),
            ),
            payment_link_id=payment_link_id,
            message=message,
            code=code,
        )

        outcome = WebhookOutcome(status=WebhookOutcomeStatus.PROCESSED)
        for recipient, result in self.notifier.enqueue_payment_failure(failure).items():
            outcome.steps[f"notify_{recipient}"] = result
        return ServiceResult.success(outcome)
