"""
Refund fee resolution via an ordered chain of strategies.

Strategies are tried in order and the first one that produces a fee
wins:

1. ApplicationFeeRefundStrategy - charge -> application fee -> fee
   refunds, picking the fee refund created within the match tolerance
   of the refund (closest first), otherwise the most recent one.
2. BalanceTransactionFeeStrategy - the refund's own balance transaction,
   taking the absolute value of its fee.

If every strategy fails the result is degraded with a zero fee. Fee
bookkeeping never blocks the refund itself.

Usage:
    from payments.services import RefundFeeResolver

    result = RefundFeeResolver.resolve(StripeAdapter, refund, charge)
    payment.stripe_refund_fee = result.data.amount
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings

from core.services import BaseService, ServiceResult

from payments.exceptions import FeeNotApplicableError, PaymentError

if TYPE_CHECKING:
    from payments.adapters import ChargeResult, FeeRefundResult, RefundResult
    from payments.protocols import PaymentProcessor


@dataclass(frozen=True)
class RefundFeeResolution:
    """
    Resolved refund fee.

    Attributes:
        amount: Fee in minor units (always non-negative)
        source: Name of the strategy that produced it, None when degraded
    """

    amount: int = 0
    source: str | None = None


# =============================================================================
# Strategies
# =============================================================================


class RefundFeeStrategy(ABC):
    """
    One tier of the refund fee chain.

    resolve() returns the fee in minor units or raises:
    - FeeNotApplicableError when the tier does not apply to this refund
    - PaymentError subclasses when a lookup fails
    """

    name: str = ""

    @abstractmethod
    def resolve(
        self,
        processor: PaymentProcessor,
        refund: RefundResult,
        charge: ChargeResult | None,
        tolerance_seconds: int,
    ) -> int:
        """Return the refund fee in minor units."""


class ApplicationFeeRefundStrategy(RefundFeeStrategy):
    """Connect-aware tier: match the application fee refund by timestamp."""

    name = "application_fee_refund"

    def resolve(self, processor, refund, charge, tolerance_seconds):
        if charge is None or not charge.application_fee_id:
            raise FeeNotApplicableError(
                "Charge has no application fee",
                details={"refund_id": refund.id},
            )

        application_fee = processor.retrieve_application_fee(charge.application_fee_id)
        fee_refunds = application_fee.refunds or processor.list_application_fee_refunds(
            charge.application_fee_id
        )
        if not fee_refunds:
            raise FeeNotApplicableError(
                "Application fee has no refunds",
                details={"application_fee_id": charge.application_fee_id},
            )

        match = self.select_fee_refund(fee_refunds, refund.created, tolerance_seconds)
        return abs(match.amount)

    @staticmethod
    def select_fee_refund(
        fee_refunds: list[FeeRefundResult],
        refund_created: int | None,
        tolerance_seconds: int,
    ) -> FeeRefundResult:
        """
        Pick the fee refund belonging to a refund.

        The fee refund created closest to the refund, within the tolerance,
        wins. Without a match the most recently created one is used.
        """
        if refund_created is not None:
            within = [
                fee_refund
                for fee_refund in fee_refunds
                if abs(fee_refund.created - refund_created) <= tolerance_seconds
            ]
            if within:
                return min(within, key=lambda fr: abs(fr.created - refund_created))
        return max(fee_refunds, key=lambda fr: fr.created)


class BalanceTransactionFeeStrategy(RefundFeeStrategy):
    """Fallback tier: the fee on the refund's own balance transaction."""

    name = "balance_transaction"

    def resolve(self, processor, refund, charge, tolerance_seconds):
        balance_transaction_id = refund.balance_transaction_id
        if not balance_transaction_id:
            # The event payload may predate the balance transaction
            balance_transaction_id = processor.retrieve_refund(refund.id).balance_transaction_id
        if not balance_transaction_id:
            raise FeeNotApplicableError(
                "Refund has no balance transaction",
                details={"refund_id": refund.id},
            )
        txn = processor.retrieve_balance_transaction(balance_transaction_id)
        return abs(txn.fee or 0)


DEFAULT_STRATEGIES: tuple[RefundFeeStrategy, ...] = (
    ApplicationFeeRefundStrategy(),
    BalanceTransactionFeeStrategy(),
)


# =============================================================================
# Resolver
# =============================================================================


class RefundFeeResolver(BaseService):
    """Runs the refund fee strategies in order; first success wins."""

    @classmethod
    def resolve(
        cls,
        processor: PaymentProcessor,
        refund: RefundResult,
        charge: ChargeResult | None,
        tolerance_seconds: int | None = None,
        strategies: tuple[RefundFeeStrategy, ...] = DEFAULT_STRATEGIES,
    ) -> ServiceResult[RefundFeeResolution]:
        """
        Resolve the fee returned with a refund.

        Args:
            processor: Processor port used for the lookups
            refund: The refund being reconciled
            charge: The refunded charge, if it could be retrieved
            tolerance_seconds: Timestamp match window
                (default: settings.REFUND_FEE_MATCH_TOLERANCE_SECONDS)
            strategies: Ordered strategies to try

        Returns:
            ServiceResult[RefundFeeResolution]; degraded with a zero fee
            when no strategy succeeds.
        """
        logger = cls.get_logger()
        if tolerance_seconds is None:
            tolerance_seconds = getattr(settings, "REFUND_FEE_MATCH_TOLERANCE_SECONDS", 10)

        failures: list[str] = []
        for strategy in strategies:
            try:
                amount = strategy.resolve(processor, refund, charge, tolerance_seconds)
            except FeeNotApplicableError as e:
                logger.debug(
                    f"Refund fee strategy {strategy.name} not applicable: {e.message}",
                    extra={"refund_id": refund.id, "strategy": strategy.name},
                )
                failures.append(f"{strategy.name}: {e.message}")
                continue
            except PaymentError as e:
                logger.warning(
                    f"Refund fee strategy {strategy.name} failed: {e}",
                    extra={"refund_id": refund.id, "strategy": strategy.name, "error_code": e.error_code},
                )
                failures.append(f"{strategy.name}: {e}")
                continue

            logger.info(
                f"Resolved refund fee via {strategy.name}",
                extra={"refund_id": refund.id, "strategy": strategy.name, "refund_fee": amount},
            )
            return ServiceResult.success(RefundFeeResolution(amount=amount, source=strategy.name))

        logger.warning(
            "Could not resolve refund fee, recording zero",
            extra={"refund_id": refund.id, "failures": failures},
        )
        return ServiceResult.degraded(
            "; ".join(failures) or "No refund fee strategy configured",
            error_code="REFUND_FEE_UNRESOLVED",
            data=RefundFeeResolution(),
        )
