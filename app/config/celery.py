"""
Celery configuration for the clinic payments backend.

Webhook events are reconciled inside the request that delivers them; Celery
only runs the deferred work around them:
- Delayed refund-fee refresh after a refund whose fee was not yet available
- Periodic overdue sweep over installment plans (celery beat)

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps.

Usage:
    from payments.tasks import refresh_refund_fee

    refresh_refund_fee.apply_async(args=[str(payment.id), refund_id], countdown=5)

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
