"""
Patient Resolver.

Finds or creates the patient behind a payment from the contact details the
payment carries. Used by the refund handler to backfill ``Payment.patient``
on rows recorded before the patient existed, so the activity log stays
queryable by patient.

Lookup order (all scoped to the clinic):
    1. An explicit patient ID, when it names a patient of this clinic
    2. Exact email match
    3. Phone match after stripping every non-digit character
    4. Create a new patient, only when a name is available

Usage:
    from clinics.services import PatientResolver

    result = PatientResolver.find_or_create(
        clinic_id=payment.clinic_id,
        name=payment.patient_name,
        email=payment.patient_email,
        phone=payment.patient_phone,
    )
    if result.success:
        payment.patient = result.data
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError

from core.services import BaseService, ServiceResult

from clinics.models import Patient, normalize_phone

if TYPE_CHECKING:
    from uuid import UUID


class PatientResolver(BaseService):
    """Find-or-create patients by clinic, email and phone."""

    @classmethod
    def find_or_create(
        cls,
        clinic_id: UUID | str,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        patient_id: UUID | str | None = None,
    ) -> ServiceResult[Patient]:
        """
        Resolve a patient for the given clinic.

        Args:
            clinic_id: Clinic the patient must belong to
            name: Patient name (required only to create a new patient)
            email: Patient email for lookup
            phone: Patient phone for lookup (normalized before use)
            patient_id: Known patient ID, used directly when valid

        Returns:
            ServiceResult with the Patient, or a degraded result with
            error_code PATIENT_UNRESOLVED when nothing matched and no
            name was available to create one.
        """
        logger = cls.get_logger()
        log_context = {"clinic_id": str(clinic_id)}

        if patient_id:
            try:
                patient = Patient.objects.filter(id=patient_id, clinic_id=clinic_id).first()
            except (DjangoValidationError, ValueError):
                patient = None
            if patient:
                logger.debug("Using provided patient ID", extra={**log_context, "patient_id": str(patient.id)})
                return ServiceResult.success(patient)
            logger.warning(
                "Provided patient ID does not belong to clinic, falling back to lookup",
                extra={**log_context, "patient_id": str(patient_id)},
            )

        if email:
            patient = Patient.objects.filter(clinic_id=clinic_id, email=email).first()
            if patient:
                logger.info("Found existing patient by email", extra={**log_context, "patient_id": str(patient.id)})
                return ServiceResult.success(patient)

        normalized_phone = normalize_phone(phone)
        if normalized_phone:
            patient = Patient.objects.filter(clinic_id=clinic_id, phone=normalized_phone).first()
            if patient:
                logger.info("Found existing patient by phone", extra={**log_context, "patient_id": str(patient.id)})
                return ServiceResult.success(patient)

        if not name:
            logger.info("Cannot create patient without a name", extra=log_context)
            return ServiceResult.degraded(
                "No matching patient and no name to create one",
                error_code="PATIENT_UNRESOLVED",
            )

        patient = Patient.objects.create(
            clinic_id=clinic_id,
            name=name,
            email=email or None,
            phone=normalized_phone,
        )
        logger.info("Created new patient", extra={**log_context, "patient_id": str(patient.id)})
        return ServiceResult.success(patient)
