"""
Scheduler timer: NCRONTAB derivation and handler results.
"""

from unittest.mock import MagicMock

import pytest

from core.models import TickResult
from triggers.timers.scheduler_timer import (
    SchedulerTimerHandler,
    create_scheduler_blueprint,
    schedule_for_interval,
)


@pytest.mark.parametrize("interval_ms,expected", [
    (60000, "0 */1 * * * *"),
    (300000, "0 */5 * * * *"),
    (30000, "*/30 * * * * *"),
    (90000, "*/90 * * * * *"),
    (10000, "*/10 * * * * *"),
])
def test_schedule_for_interval(interval_ms, expected):
    assert schedule_for_interval(interval_ms) == expected


class TestSchedulerTimerHandler:

    def test_reports_tick_result(self):
        scheduler = MagicMock()
        scheduler.run_tick.return_value = TickResult(
            processed_count=3, skipped_count=1, errors=["rel-1: boom"], duration_ms=42,
        )

        result = SchedulerTimerHandler(scheduler).handle(MagicMock(past_due=True))

        assert result["success"] is True
        assert result["processed_count"] == 3
        assert result["skipped_count"] == 1
        assert result["errors"] == ["rel-1: boom"]
        assert "duration_seconds" in result

    def test_exception_becomes_failure(self):
        scheduler = MagicMock()
        scheduler.run_tick.side_effect = RuntimeError("database down")

        result = SchedulerTimerHandler(scheduler).handle(MagicMock(past_due=False))

        assert result == {"success": False, "error": "database down"}

    def test_blueprint_built_from_config(self, orchestrator):
        assert create_scheduler_blueprint(orchestrator) is not None
