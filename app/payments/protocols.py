"""
Protocol definitions (ports) for the webhook reconciliation engine.

Handlers and services depend on these protocols rather than on the
Stripe SDK or on wall-clock time directly, so they can be exercised
with in-memory fakes.

Available Protocols:
    PaymentProcessor: Read-only processor lookups (implemented by StripeAdapter)
    Clock: Current time source (implemented by SystemClock)

Usage:
    from payments.protocols import PaymentProcessor

    def lookup_fees(processor: PaymentProcessor, charge_id: str):
        charge = processor.retrieve_charge(charge_id)
        ...

    # StripeAdapter satisfies PaymentProcessor through its classmethods,
    # so the class itself can be passed as the processor.
    lookup_fees(StripeAdapter, "ch_xxx")

Note:
    - @runtime_checkable allows isinstance() checks
    - Every processor method may raise payments.exceptions.StripeError
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from django.utils import timezone

if TYPE_CHECKING:
    from payments.adapters.stripe_adapter import (
        ApplicationFeeResult,
        BalanceTransactionResult,
        ChargeResult,
        FeeRefundResult,
        PaymentIntentResult,
        RefundResult,
    )


@runtime_checkable
class PaymentProcessor(Protocol):
    """
    Protocol for payment processor lookups.

    All methods are read-only; none mutate processor-side state.

    Example:
        class FakeProcessor:
            def retrieve_charge(self, charge_id: str) -> ChargeResult:
                return ChargeResult(id=charge_id, amount=5000)
            ...
    """

    def retrieve_charge(self, charge_id: str) -> ChargeResult:
        """
        Retrieve a charge.

        Args:
            charge_id: Processor charge ID

        Returns:
            ChargeResult with balance transaction and application fee IDs
        """
        ...

    def retrieve_balance_transaction(self, balance_transaction_id: str) -> BalanceTransactionResult:
        """
        Retrieve a balance transaction.

        Args:
            balance_transaction_id: Processor balance transaction ID

        Returns:
            BalanceTransactionResult with fee and net amounts
        """
        ...

    def retrieve_application_fee(self, application_fee_id: str) -> ApplicationFeeResult:
        """
        Retrieve an application fee with its refunds expanded.

        Args:
            application_fee_id: Processor application fee ID

        Returns:
            ApplicationFeeResult
        """
        ...

    def list_application_fee_refunds(
        self,
        application_fee_id: str,
        limit: int = 100,
    ) -> list[FeeRefundResult]:
        """
        List the refunds of an application fee.

        Args:
            application_fee_id: Processor application fee ID
            limit: Maximum number of refunds to return

        Returns:
            List of FeeRefundResult
        """
        ...

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentResult:
        """Retrieve a payment intent."""
        ...

    def retrieve_refund(self, refund_id: str) -> RefundResult:
        """Retrieve a refund."""
        ...


@runtime_checkable
class Clock(Protocol):
    """Protocol for the current time."""

    def now(self) -> datetime:
        """Return the current timezone-aware datetime."""
        ...

    def today(self) -> date:
        """Return the current local date."""
        ...


class SystemClock:
    """Clock backed by django.utils.timezone."""

    def now(self) -> datetime:
        return timezone.now()

    def today(self) -> date:
        return timezone.localdate()
