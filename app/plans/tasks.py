"""
Celery tasks for payment plans.

Usage:
    # Scheduled by celery-beat (CELERY_BEAT_SCHEDULE["refresh-plan-statuses"])
    from plans.tasks import refresh_plan_statuses
    refresh_plan_statuses.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from plans.services import PlanAggregationService

logger = logging.getLogger(__name__)


@shared_task(acks_late=True)
def refresh_plan_statuses() -> dict:
    """
    Mark past-due installments overdue and recompute open plans.

    Returns:
        Dict with the number of plans recomputed
    """
    result = PlanAggregationService.refresh_overdue()
    logger.info(
        "Plan status refresh finished",
        extra={"plans_recomputed": result.data},
    )
    return {"status": "ok", "plans_recomputed": result.data}
