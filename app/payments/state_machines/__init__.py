"""
State machine enums and transition functions for the payment ledger.

Enums are defined in states.py; transitions.py holds one pure function per
entity computing its next status.
"""

from payments.state_machines.states import (
    ActivityType,
    InstallmentStatus,
    LedgerEvent,
    PaymentRequestStatus,
    PaymentStatus,
    PlanEvent,
    PlanStatus,
    WebhookEventStatus,
    WebhookOutcomeStatus,
)
from payments.state_machines.transitions import (
    REFUND_FULL_SOURCES,
    REFUND_PARTIAL_SOURCES,
    classify_refund,
    next_installment_status,
    next_payment_status,
    next_plan_status,
    next_request_status,
)

__all__ = [
    "ActivityType",
    "InstallmentStatus",
    "LedgerEvent",
    "PaymentRequestStatus",
    "PaymentStatus",
    "PlanEvent",
    "PlanStatus",
    "WebhookEventStatus",
    "WebhookOutcomeStatus",
    "REFUND_FULL_SOURCES",
    "REFUND_PARTIAL_SOURCES",
    "classify_refund",
    "next_installment_status",
    "next_payment_status",
    "next_plan_status",
    "next_request_status",
]
