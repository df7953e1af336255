"""
Project-wide pytest fixtures and hooks.

Provides:
- Test-only settings (Stripe secrets, no delayed Celery work)
- clinic / patient fixtures shared by every app
- Automatic unit/integration/e2e markers by filename
"""

import pytest


def pytest_configure():
    """Apply test-only settings."""
    from django.conf import settings

    settings.STRIPE_SECRET_KEY = "sk_test_dummy"
    settings.STRIPE_WEBHOOK_SECRET = "whsec_test_dummy"
    # Retries sleep between attempts; tests call fakes instead
    settings.STRIPE_RETRY_BASE_DELAY_SECONDS = 0
    settings.REFUND_FEE_RETRY_ENABLED = False


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_scenarios.py → e2e (full webhook journeys)
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_money.py, test_transitions.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_scenarios.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_fee_services.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_money.py",
        "test_transitions.py",
        "test_stripe_adapter.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)


def _patch_postgresql_flush_for_cascade():
    """
    Patch PostgreSQL flush to always use CASCADE.

    TransactionTestCase resets the database with TRUNCATE, which fails on
    PostgreSQL when tables are referenced by foreign keys.
    """
    from django.db.backends.postgresql import operations

    original_sql_flush = operations.DatabaseOperations.sql_flush

    def sql_flush_with_cascade(
        self, style, tables, *, reset_sequences=False, allow_cascade=False
    ):
        return original_sql_flush(
            self, style, tables, reset_sequences=reset_sequences, allow_cascade=True
        )

    operations.DatabaseOperations.sql_flush = sql_flush_with_cascade


_patch_postgresql_flush_for_cascade()


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture
def clinic(db):
    """A clinic that wants email notifications only."""
    from clinics.tests.factories import ClinicFactory

    return ClinicFactory(name="Harley Street Physio", email="reception@harleyphysio.example")


@pytest.fixture
def patient(db, clinic):
    """A patient of the clinic with email and phone on file."""
    from clinics.tests.factories import PatientFactory

    return PatientFactory(
        clinic=clinic,
        name="Jane Doe",
        email="jane@example.com",
        phone="447700900123",
    )
