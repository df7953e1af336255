"""
Payments app for Stripe reconciliation.

This app handles:
- Recording successful payments with their fee breakdown
- Applying full and partial refunds to recorded payments
- Keeping payment requests in step with their payments
- Webhook event storage, verification and dispatch

Related apps:
    - clinics: Clinic and Patient records a payment links to
    - plans: Installment plans advanced by payments and refunds
    - notifications: Patient and clinic notifications queued per event

Usage:
    from payments.webhooks import dispatch_webhook

    # Process a stored webhook event
    result = dispatch_webhook(webhook_event)
    if result.success:
        webhook_event.mark_processed(outcome=result.data.status)
"""
