"""
Notification Enqueuer.

Builds normalized notification payloads for payment events and inserts
one NotificationQueueEntry per recipient. Delivery is not attempted
here; a separate dispatcher drains the queue.

Payload shape:
    {
        "notification_type": "payment_success",
        "notification_method": {"email": bool, "sms": bool},
        "patient": {"name", "email", "phone"},
        "payment": {"reference", "amount", "refund_amount", "payment_link",
                    "message", "financial_details" (clinic only)},
        "clinic": {"name", "email", "phone"},
        "monetary_values_in_pence": True,
    }

Monetary values are carried in minor units, exactly as stored; the
dispatcher converts once using the monetary_values_in_pence flag.

Each recipient is inserted independently: a failed insert for one
recipient never prevents the other.

Usage:
    from notifications.services import NotificationEnqueuer

    results = NotificationEnqueuer.enqueue_payment_success(payment, fees)
    if results["patient"].is_degraded:
        logger.warning(results["patient"].error)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.conf import settings

from core.services import BaseService, ServiceResult

from notifications.models import NotificationQueueEntry, NotificationType, RecipientType

if TYPE_CHECKING:
    from clinics.models import Clinic
    from payments.models import Payment
    from payments.services import FeeBreakdown


PATIENT_CLINIC_FALLBACK_NAME = "Your healthcare provider"
CLINIC_FALLBACK_NAME = "Your clinic"


@dataclass(frozen=True)
class ContactDetails:
    """Name, email and phone of a notification subject."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None

    @property
    def has_channel(self) -> bool:
        return bool(self.email or self.phone)


@dataclass(frozen=True)
class PaymentFailure:
    """
    A failed payment attempt; nothing is stored in the ledger for it.

    Attributes:
        clinic: Clinic named by the intent metadata, if found
        amount: Attempted amount in minor units
        patient: Contact details from the intent metadata
        payment_link_id: Payment link to retry through
        message: Failure message from the processor
        code: Failure code from the processor
    """

    clinic: Clinic | None
    amount: int
    patient: ContactDetails
    payment_link_id: str | None = None
    message: str = "Payment failed"
    code: str = "unknown"


def payment_contact(payment: Payment) -> ContactDetails:
    """
    Contact details for the patient behind a payment.

    The checkout snapshot on the payment wins; the linked patient record
    fills any gaps.
    """
    patient = payment.patient
    return ContactDetails(
        name=payment.patient_name or (patient.name if patient else None) or None,
        email=payment.patient_email or (patient.email if patient else None) or None,
        phone=payment.patient_phone or (patient.phone if patient else None) or None,
    )


def receipt_link(payment: Payment) -> str:
    return settings.PAYMENT_RECEIPT_URL.format(payment_id=payment.id)


class NotificationEnqueuer(BaseService):
    """Builds payloads and inserts them into the notification queue."""

    # =========================================================================
    # Payload Construction
    # =========================================================================

    @staticmethod
    def build_payload(
        notification_type: str,
        notification_method: dict[str, bool],
        patient: ContactDetails,
        patient_fallback_name: str,
        payment: dict[str, Any],
        clinic: Clinic | None,
        clinic_fallback_name: str,
        **extra: Any,
    ) -> dict[str, Any]:
        """Assemble the normalized payload shared by every notification."""
        payload = {
            "notification_type": notification_type,
            "notification_method": notification_method,
            "patient": {
                "name": patient.name or patient_fallback_name,
                "email": patient.email,
                "phone": patient.phone,
            },
            "payment": payment,
            "clinic": {
                "name": (clinic.name if clinic else None) or clinic_fallback_name,
                "email": (clinic.email if clinic else None) or None,
                "phone": (clinic.phone if clinic else None) or None,
            },
            "monetary_values_in_pence": True,
        }
        payload.update(extra)
        return payload

    @staticmethod
    def patient_method(patient: ContactDetails) -> dict[str, bool]:
        """Email/SMS flags for a patient: a flag is set iff the channel exists."""
        return {"email": bool(patient.email), "sms": bool(patient.phone)}

    @staticmethod
    def clinic_method(clinic: Clinic | None) -> dict[str, bool]:
        """Email/SMS flags for a clinic: preference enabled and channel present."""
        if clinic is None:
            return {"email": False, "sms": False}
        return {
            "email": bool(clinic.email_notifications and clinic.email),
            "sms": bool(clinic.sms_notifications and clinic.phone),
        }

    # =========================================================================
    # Enqueue Operations
    # =========================================================================

    @classmethod
    def enqueue_payment_success(
        cls,
        payment: Payment,
        fees: FeeBreakdown,
    ) -> dict[str, ServiceResult[NotificationQueueEntry]]:
        """
        Queue patient and clinic notifications for a successful payment.

        Args:
            payment: The recorded payment
            fees: Fee breakdown (zeros when the lookup degraded)

        Returns:
            Per-recipient results keyed by "patient" and "clinic"
        """
        patient = payment_contact(payment)
        clinic = payment.clinic
        payment_block = {
            "reference": payment.payment_reference,
            "amount": payment.amount_paid,
            "refund_amount": None,
            "payment_link": receipt_link(payment),
        }

        results = {}
        results[RecipientType.PATIENT.value] = cls._insert_patient(
            NotificationType.PAYMENT_SUCCESS,
            patient,
            lambda: cls.build_payload(
                NotificationType.PAYMENT_SUCCESS.value,
                cls.patient_method(patient),
                patient,
                "Patient",
                {**payment_block, "message": "Your payment was successful"},
                clinic,
                PATIENT_CLINIC_FALLBACK_NAME,
            ),
            payment=payment,
            clinic=clinic,
        )
        results[RecipientType.CLINIC.value] = cls._insert(
            NotificationType.PAYMENT_SUCCESS,
            RecipientType.CLINIC,
            lambda: cls.build_payload(
                NotificationType.PAYMENT_SUCCESS.value,
                cls.clinic_method(clinic),
                patient,
                "Anonymous",
                {
                    **payment_block,
                    "message": "Payment received successfully",
                    "financial_details": {
                        "gross_amount": payment.amount_paid,
                        "stripe_fee": fees.stripe_fee,
                        "platform_fee": fees.platform_fee,
                        "net_amount": fees.net_amount,
                    },
                },
                clinic,
                CLINIC_FALLBACK_NAME,
            ),
            payment=payment,
            clinic=clinic,
        )
        return results

    @classmethod
    def enqueue_payment_failure(
        cls,
        failure: PaymentFailure,
    ) -> dict[str, ServiceResult[NotificationQueueEntry]]:
        """
        Queue a patient notification for a failed payment.

        Clinics are not notified of failed attempts.

        Returns:
            Results keyed by "patient"
        """
        payment_link = (
            settings.PAYMENT_LINK_URL.format(payment_link_id=failure.payment_link_id)
            if failure.payment_link_id
            else None
        )
        return {
            RecipientType.PATIENT.value: cls._insert_patient(
                NotificationType.PAYMENT_FAILED,
                failure.patient,
                lambda: cls.build_payload(
                    NotificationType.PAYMENT_FAILED.value,
                    cls.patient_method(failure.patient),
                    failure.patient,
                    "Patient",
                    {
                        "reference": "N/A",
                        "amount": failure.amount,
                        "refund_amount": None,
                        "payment_link": payment_link,
                        "message": f"Your payment has failed: {failure.message}",
                    },
                    failure.clinic,
                    PATIENT_CLINIC_FALLBACK_NAME,
                    error={"message": failure.message, "code": failure.code},
                ),
                payment=None,
                clinic=failure.clinic,
            ),
        }

    @classmethod
    def enqueue_refund(
        cls,
        payment: Payment,
        refund_amount: int,
        refund_fee: int = 0,
    ) -> dict[str, ServiceResult[NotificationQueueEntry]]:
        """
        Queue patient and clinic notifications for a processed refund.

        Args:
            payment: The refunded payment (already updated)
            refund_amount: Amount refunded in minor units
            refund_fee: Fee returned with the refund in minor units

        Returns:
            Per-recipient results keyed by "patient" and "clinic"
        """
        patient = payment_contact(payment)
        clinic = payment.clinic
        payment_block = {
            "reference": payment.payment_reference,
            "amount": payment.amount_paid,
            "refund_amount": refund_amount,
            "payment_link": receipt_link(payment),
        }

        results = {}
        results[RecipientType.PATIENT.value] = cls._insert_patient(
            NotificationType.REFUND_PROCESSED,
            patient,
            lambda: cls.build_payload(
                NotificationType.REFUND_PROCESSED.value,
                cls.patient_method(patient),
                patient,
                "Patient",
                {**payment_block, "message": "Your refund has been processed"},
                clinic,
                PATIENT_CLINIC_FALLBACK_NAME,
            ),
            payment=payment,
            clinic=clinic,
        )
        results[RecipientType.CLINIC.value] = cls._insert(
            NotificationType.REFUND_PROCESSED,
            RecipientType.CLINIC,
            lambda: cls.build_payload(
                NotificationType.REFUND_PROCESSED.value,
                cls.clinic_method(clinic),
                patient,
                "Anonymous",
                {
                    **payment_block,
                    "message": "A refund has been processed",
                    "financial_details": {
                        "gross_amount": payment.amount_paid,
                        "stripe_fee": payment.stripe_fee,
                        "platform_fee": payment.platform_fee,
                        "net_amount": payment.net_amount,
                        "refund_amount": refund_amount,
                        "refund_fee": refund_fee,
                    },
                },
                clinic,
                CLINIC_FALLBACK_NAME,
            ),
            payment=payment,
            clinic=clinic,
        )
        return results

    # =========================================================================
    # Insertion
    # =========================================================================

    @classmethod
    def _insert_patient(cls, notification_type, patient, build, payment, clinic):
        if not patient.has_channel:
            cls.get_logger().info(
                f"Skipping {notification_type} patient notification: no email or phone",
                extra={"payment_id": str(payment.id) if payment else None},
            )
            return ServiceResult.degraded(
                "Patient has no email or phone",
                error_code="NO_PATIENT_CONTACT",
            )
        return cls._insert(notification_type, RecipientType.PATIENT, build, payment, clinic)

    @classmethod
    def _insert(
        cls,
        notification_type: NotificationType,
        recipient_type: RecipientType,
        build,
        payment: Payment | None,
        clinic: Clinic | None,
    ) -> ServiceResult[NotificationQueueEntry]:
        """Insert one queue row inside its own savepoint."""
        logger = cls.get_logger()
        try:
            with cls.atomic():
                entry = NotificationQueueEntry.objects.create(
                    type=notification_type,
                    recipient_type=recipient_type,
                    payload=build(),
                    payment=payment,
                    clinic=clinic,
                )
        except Exception as e:
            return cls.handle_exception(
                e,
                f"Could not queue {notification_type} notification for {recipient_type}",
                degrade=True,
            )

        logger.info(
            f"Queued {notification_type} notification for {recipient_type}",
            extra={
                "notification_id": str(entry.id),
                "payment_id": str(payment.id) if payment else None,
                "recipient_type": str(recipient_type),
            },
        )
        return ServiceResult.success(entry)
