"""
Pytest fixtures for Stripe adapter tests.

This module provides fixtures for testing the Stripe adapter, including
mock Stripe API responses and error conditions.

Sections:
    - Mock Stripe Response Fixtures
    - Mock Stripe Error Fixtures
    - Mock Stripe Client Fixtures
"""

from typing import Any
from unittest.mock import patch

import pytest
import stripe

from payments.adapters import StripeAdapter


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


class MockStripeObject:
    """
    Mock Stripe API object with attribute access.

    Values live under a private name so that Stripe's own ``data`` field
    (list responses) reads like any other attribute.
    """

    def __init__(self, values: dict[str, Any]):
        self._values = values

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._values.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self._values


@pytest.fixture
def mock_charge():
    """Create a mock Charge response."""

    def _create(
        id: str = "ch_test123456",
        amount: int = 5000,
        amount_refunded: int = 0,
        payment_intent: Any = "pi_test123456",
        balance_transaction: Any = "txn_test123456",
        application_fee: Any = None,
        created: int = 1700000000,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "charge",
                "amount": amount,
                "amount_refunded": amount_refunded,
                "payment_intent": payment_intent,
                "balance_transaction": balance_transaction,
                "application_fee": application_fee,
                "created": created,
            }
        )

    return _create


@pytest.fixture
def mock_balance_transaction():
    """Create a mock BalanceTransaction response."""

    def _create(
        id: str = "txn_test123456",
        amount: int = 5000,
        fee: int = 95,
        net: int = 4905,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "balance_transaction",
                "amount": amount,
                "fee": fee,
                "net": net,
            }
        )

    return _create


@pytest.fixture
def mock_application_fee():
    """Create a mock ApplicationFee response with refunds expanded."""

    def _create(
        id: str = "fee_test123456",
        amount: int = 150,
        amount_refunded: int = 0,
        refunds: list[dict] | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "application_fee",
                "amount": amount,
                "amount_refunded": amount_refunded,
                "refunds": {"object": "list", "data": refunds or []},
            }
        )

    return _create


@pytest.fixture
def mock_payment_intent():
    """Create a mock PaymentIntent response."""

    def _create(
        id: str = "pi_test123456",
        status: str = "succeeded",
        amount: int = 5000,
        latest_charge: Any = "ch_test123456",
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "latest_charge": latest_charge,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_refund():
    """Create a mock Refund response."""

    def _create(
        id: str = "re_test123456",
        amount: int = 5000,
        status: str = "succeeded",
        charge: Any = "ch_test123456",
        payment_intent: Any = "pi_test123456",
        balance_transaction: Any = "txn_refund123456",
        created: int = 1700000500,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "refund",
                "amount": amount,
                "status": status,
                "charge": charge,
                "payment_intent": payment_intent,
                "balance_transaction": balance_transaction,
                "created": created,
            }
        )

    return _create


# =============================================================================
# Mock Stripe Error Fixtures
# =============================================================================


@pytest.fixture
def card_error():
    """Create a Stripe CardError."""
    error = stripe.CardError(
        message="Your card was declined.",
        param=None,
        code="card_declined",
    )
    error.decline_code = "generic_decline"
    return error


@pytest.fixture
def invalid_request_error():
    """Create a Stripe InvalidRequestError."""

    def _create(
        message: str = "No such charge: 'ch_missing'",
        param: str | None = "id",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(
            message=message,
            param=param,
            code=code,
        )

    return _create


@pytest.fixture
def rate_limit_error():
    """Create a Stripe RateLimitError."""
    return stripe.RateLimitError(
        message="Too many requests hit the API too quickly.",
    )


@pytest.fixture
def api_connection_error():
    """Create a Stripe APIConnectionError."""
    return stripe.APIConnectionError(
        message="Could not connect to Stripe.",
    )


@pytest.fixture
def timeout_error():
    """Create a Stripe APIConnectionError caused by a timeout."""
    return stripe.APIConnectionError(
        message="Request to Stripe timed out.",
    )


@pytest.fixture
def api_error():
    """Create a Stripe APIError."""
    return stripe.APIError(
        message="Something went wrong on Stripe's end.",
    )


@pytest.fixture
def authentication_error():
    """Create a Stripe AuthenticationError."""
    return stripe.AuthenticationError(
        message="Invalid API Key provided.",
    )


@pytest.fixture
def signature_verification_error():
    """Create a Stripe SignatureVerificationError."""
    return stripe.SignatureVerificationError(
        message="Unable to verify webhook signature.",
        sig_header="bad_signature",
    )


# =============================================================================
# Mock Stripe Client Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def mock_stripe_http_client():
    """Mock the Stripe HTTP client factory and reset the cached timeout."""
    StripeAdapter._configured_timeout = None
    with patch("stripe.new_default_http_client") as mock:
        yield mock
    StripeAdapter._configured_timeout = None


@pytest.fixture
def mock_stripe_charge(mock_charge):
    """Mock stripe.Charge API."""
    with patch("stripe.Charge") as mock:
        mock.retrieve.return_value = mock_charge()
        yield mock


@pytest.fixture
def mock_stripe_balance_transaction(mock_balance_transaction):
    """Mock stripe.BalanceTransaction API."""
    with patch("stripe.BalanceTransaction") as mock:
        mock.retrieve.return_value = mock_balance_transaction()
        yield mock


@pytest.fixture
def mock_stripe_application_fee(mock_application_fee):
    """Mock stripe.ApplicationFee API."""
    with patch("stripe.ApplicationFee") as mock:
        mock.retrieve.return_value = mock_application_fee()
        mock.list_refunds.return_value = MockStripeObject({"data": [], "has_more": False})
        yield mock


@pytest.fixture
def mock_stripe_payment_intent(mock_payment_intent):
    """Mock stripe.PaymentIntent API."""
    with patch("stripe.PaymentIntent") as mock:
        mock.retrieve.return_value = mock_payment_intent()
        yield mock


@pytest.fixture
def mock_stripe_refund(mock_refund):
    """Mock stripe.Refund API."""
    with patch("stripe.Refund") as mock:
        mock.retrieve.return_value = mock_refund()
        yield mock


@pytest.fixture
def mock_stripe_signature():
    """Mock stripe.WebhookSignature so any signature verifies."""
    with patch("stripe.WebhookSignature") as mock:
        mock.verify_header.return_value = True
        yield mock
