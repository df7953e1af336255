"""Tests for plan Celery tasks."""

import datetime
from unittest.mock import patch

import pytest

from core.services import ServiceResult
from payments.state_machines import InstallmentStatus, PlanStatus
from plans.tasks import refresh_plan_statuses
from plans.tests.factories import PlanFactory, PlanInstallmentFactory


@pytest.mark.django_db
class TestRefreshPlanStatuses:
    """Tests for refresh_plan_statuses."""

    def test_marks_overdue_plans(self):
        plan = PlanFactory(total_installments=2)
        PlanInstallmentFactory(
            plan=plan,
            payment_number=1,
            due_date=datetime.date.today() - datetime.timedelta(days=3),
            status=InstallmentStatus.SENT,
        )

        result = refresh_plan_statuses()

        assert result == {"status": "ok", "plans_recomputed": 1}
        plan.refresh_from_db()
        assert plan.status == PlanStatus.OVERDUE

    def test_delegates_to_service(self):
        with patch(
            "plans.tasks.PlanAggregationService.refresh_overdue",
            return_value=ServiceResult.success(5),
        ) as mock_refresh:
            result = refresh_plan_statuses()

        mock_refresh.assert_called_once_with()
        assert result["plans_recomputed"] == 5
