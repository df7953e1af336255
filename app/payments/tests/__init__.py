"""
Tests for payments app.

This package contains test modules for:
- test_models.py: Payment, PaymentRequest, PaymentActivity, WebhookEvent model tests
- test_money.py: Minor-unit validation and formatting
- test_transitions.py: Status transition functions
- test_fee_services.py: Charge fee lookup and refund fee resolution
- test_tasks.py: Refund fee refresh task

Webhook handler and endpoint tests live in payments/webhooks/tests/,
Stripe adapter tests in payments/adapters/tests/.

Usage:
    pytest payments/
    pytest payments/tests/test_models.py
"""
