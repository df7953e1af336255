"""
Payment services for webhook reconciliation.

This module provides:
- ChargeFeeService: Fee breakdown (Stripe fee, net, platform fee) of a charge
- RefundFeeResolver: Two-tier refund fee chain

Usage:
    from payments.services import ChargeFeeService, RefundFeeResolver

    fees = ChargeFeeService.lookup(StripeAdapter, "ch_xxx").data
"""

from payments.services.fee_service import ChargeFeeService, FeeBreakdown
from payments.services.refund_fee_service import (
    DEFAULT_STRATEGIES,
    ApplicationFeeRefundStrategy,
    BalanceTransactionFeeStrategy,
    RefundFeeResolution,
    RefundFeeResolver,
    RefundFeeStrategy,
)

__all__ = [
    "ApplicationFeeRefundStrategy",
    "BalanceTransactionFeeStrategy",
    "ChargeFeeService",
    "DEFAULT_STRATEGIES",
    "FeeBreakdown",
    "RefundFeeResolution",
    "RefundFeeResolver",
    "RefundFeeStrategy",
]
