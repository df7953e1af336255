"""
Charge fee lookup for successful payments.

Walks charge -> balance transaction (Stripe fee, net) -> application fee
(platform fee). The lookup is best-effort: a failure yields a degraded
result carrying whatever was found, with zero for the rest, so that
recording the payment itself is never blocked.

Usage:
    from payments.services import ChargeFeeService

    result = ChargeFeeService.lookup(StripeAdapter, "ch_xxx")
    fees = result.data  # FeeBreakdown, zeros when degraded
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult

from payments.exceptions import PaymentError
from payments.money import ensure_minor_units, format_minor_units

if TYPE_CHECKING:
    from payments.protocols import PaymentProcessor


@dataclass(frozen=True)
class FeeBreakdown:
    """
    Fees for one charge, in minor units.

    Attributes:
        stripe_fee: Stripe processing fee
        net_amount: Net amount settled to the clinic
        platform_fee: Platform application fee
    """

    stripe_fee: int = 0
    net_amount: int = 0
    platform_fee: int = 0

    @classmethod
    def zero(cls) -> FeeBreakdown:
        return cls()


class ChargeFeeService(BaseService):
    """Looks up the fee breakdown of a charge."""

    @classmethod
    def lookup(
        cls,
        processor: PaymentProcessor,
        charge_id: str | None,
    ) -> ServiceResult[FeeBreakdown]:
        """
        Resolve the fee breakdown for a charge.

        Args:
            processor: Processor port used for the lookups
            charge_id: Charge to inspect; None degrades immediately

        Returns:
            ServiceResult[FeeBreakdown]. Degraded results still carry a
            FeeBreakdown (zeros for whatever could not be resolved).
        """
        logger = cls.get_logger()

        if not charge_id:
            logger.warning("No charge on payment intent, recording zero fees")
            return ServiceResult.degraded(
                "Payment intent has no charge",
                error_code="CHARGE_MISSING",
                data=FeeBreakdown.zero(),
            )

        try:
            charge = processor.retrieve_charge(charge_id)
        except PaymentError as e:
            return cls.handle_exception(
                e,
                f"Charge lookup failed for {charge_id}",
                degrade=True,
                fallback=FeeBreakdown.zero(),
            )

        stripe_fee = 0
        net_amount = 0
        if charge.balance_transaction_id:
            try:
                txn = processor.retrieve_balance_transaction(charge.balance_transaction_id)
                stripe_fee = ensure_minor_units(txn.fee, field="fee", default=0)
                net_amount = txn.net or 0
            except PaymentError as e:
                return cls.handle_exception(
                    e,
                    f"Balance transaction lookup failed for {charge_id}",
                    degrade=True,
                    fallback=FeeBreakdown.zero(),
                )

        platform_fee = 0
        if charge.application_fee_id:
            try:
                application_fee = processor.retrieve_application_fee(charge.application_fee_id)
                platform_fee = ensure_minor_units(application_fee.amount, field="application_fee", default=0)
            except PaymentError as e:
                # Stripe fee and net were found; only the platform fee is lost
                return cls.handle_exception(
                    e,
                    f"Application fee lookup failed for {charge_id}",
                    degrade=True,
                    fallback=FeeBreakdown(stripe_fee=stripe_fee, net_amount=net_amount),
                )

        fees = FeeBreakdown(
            stripe_fee=stripe_fee,
            net_amount=net_amount,
            platform_fee=platform_fee,
        )
        logger.info(
            f"Resolved fees for charge {charge_id}: Stripe fee {format_minor_units(stripe_fee)}, "
            f"net {format_minor_units(net_amount)}, platform fee {format_minor_units(platform_fee)}",
            extra={
                "charge_id": charge_id,
                "stripe_fee": stripe_fee,
                "net_amount": net_amount,
                "platform_fee": platform_fee,
            },
        )
        return ServiceResult.success(fees)
