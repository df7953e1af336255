"""
Tests for the Patient Resolver.

Tests cover:
- Lookup precedence (explicit ID, email, normalized phone)
- Clinic scoping of every lookup
- Creation with digits-only phone
- Degraded result when nothing matches and no name is known
"""

import uuid

import pytest

from clinics.models import Patient
from clinics.services import PatientResolver, normalize_phone
from clinics.tests.factories import ClinicFactory, PatientFactory


# =============================================================================
# normalize_phone Tests
# =============================================================================


class TestNormalizePhone:
    """Tests for phone normalization."""

    def test_strips_non_digits(self):
        """Should keep digits only."""
        assert normalize_phone("+44 (0) 7700-900 123") == "4407700900123"

    def test_empty_values(self):
        """Should return None for empty or digit-free input."""
        assert normalize_phone(None) is None
        assert normalize_phone("") is None
        assert normalize_phone("n/a") is None


@pytest.mark.django_db
class TestPatientPhoneStorage:
    """Tests for Patient.save phone normalization."""

    def test_phone_stored_digits_only(self, clinic):
        patient = PatientFactory(clinic=clinic, phone="+44 7700 900 321")

        patient.refresh_from_db()
        assert patient.phone == "447700900321"

    def test_phone_without_digits_stored_as_none(self, clinic):
        patient = PatientFactory(clinic=clinic, phone="n/a")

        patient.refresh_from_db()
        assert patient.phone is None


# =============================================================================
# PatientResolver Tests
# =============================================================================


@pytest.mark.django_db
class TestPatientResolver:
    """Tests for PatientResolver.find_or_create."""

    def test_uses_provided_patient_id(self, clinic, patient):
        """Should return the patient named by ID without further lookup."""
        result = PatientResolver.find_or_create(
            clinic_id=clinic.id,
            email="someone-else@example.com",
            patient_id=patient.id,
        )

        assert result.success
        assert result.data == patient

    def test_ignores_patient_id_from_other_clinic(self, clinic, patient):
        """Should fall back to lookup when the ID belongs to another clinic."""
        stranger = PatientFactory(clinic=ClinicFactory())

        result = PatientResolver.find_or_create(
            clinic_id=clinic.id,
            email=patient.email,
            patient_id=stranger.id,
        )

        assert result.data == patient

    def test_finds_by_email(self, clinic, patient):
        """Should match an existing patient by email."""
        result = PatientResolver.find_or_create(
            clinic_id=clinic.id,
            name="Jane D.",
            email="jane@example.com",
        )

        assert result.data == patient
        assert Patient.objects.filter(clinic=clinic).count() == 1

    def test_finds_by_normalized_phone(self, clinic, patient):
        """Should match by phone after stripping formatting."""
        result = PatientResolver.find_or_create(
            clinic_id=clinic.id,
            phone="+44 7700 900123",
        )

        assert result.data == patient

    def test_finds_patient_saved_with_formatted_phone(self, clinic):
        """A phone typed with formatting elsewhere still matches."""
        formatted = PatientFactory(clinic=clinic, email=None, phone="+44 (7700) 900-789")

        result = PatientResolver.find_or_create(
            clinic_id=clinic.id,
            phone="447700900789",
        )

        assert result.data == formatted

    def test_email_lookup_is_clinic_scoped(self, clinic, patient):
        """A patient of another clinic with the same email is not a match."""
        other_clinic = ClinicFactory()

        result = PatientResolver.find_or_create(
            clinic_id=other_clinic.id,
            name="Jane Doe",
            email=patient.email,
        )

        assert result.success
        assert result.data != patient
        assert result.data.clinic_id == other_clinic.id

    def test_creates_patient_with_digits_only_phone(self, clinic):
        """Should create a patient and store the normalized phone."""
        result = PatientResolver.find_or_create(
            clinic_id=clinic.id,
            name="John Smith",
            email="john@example.com",
            phone="+44 7700 900456",
        )

        assert result.success
        patient = Patient.objects.get(id=result.data.id)
        assert patient.clinic_id == clinic.id
        assert patient.phone == "447700900456"
        assert patient.email == "john@example.com"

    def test_degrades_without_name(self, clinic):
        """Should not create a patient when no name is available."""
        result = PatientResolver.find_or_create(
            clinic_id=clinic.id,
            email="unknown@example.com",
        )

        assert not result.success
        assert result.is_degraded
        assert result.error_code == "PATIENT_UNRESOLVED"
        assert not Patient.objects.filter(clinic=clinic).exists()

    def test_unknown_patient_id_without_details_degrades(self, clinic):
        """A dangling patient ID with no contact details resolves nothing."""
        result = PatientResolver.find_or_create(
            clinic_id=clinic.id,
            patient_id=uuid.uuid4(),
        )

        assert result.is_degraded

    def test_malformed_patient_id_falls_back_to_lookup(self, clinic, patient):
        """A patient ID that is not a UUID reads as not found."""
        result = PatientResolver.find_or_create(
            clinic_id=clinic.id,
            email=patient.email,
            patient_id="P-42",
        )

        assert result.data == patient
