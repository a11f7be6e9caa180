"""
Scheduler Timer.

In-app alternative to the external tick caller (SCHEDULER_TYPE=timer):
runs TickScheduler.run_tick() on an NCRONTAB schedule derived from
SCHEDULER_INTERVAL_MS.

Usage in function_app.py:
    if config.scheduler.scheduler_type == "timer":
        app.register_functions(create_scheduler_blueprint(orchestrator))

Exports:
    SchedulerTimerHandler: Timer handler running one tick
    schedule_for_interval: NCRONTAB expression for an interval
    create_scheduler_blueprint: Blueprint holding the timer function
"""

from typing import Any, Dict

import azure.functions as func
from azure.functions import Blueprint

from triggers.timer_base import TimerHandlerBase


def schedule_for_interval(interval_ms: int) -> str:
    """
    Six-field NCRONTAB for an interval.

    Whole minutes run at second 0 ("0 */1 * * * *"); anything else runs
    every N seconds.
    """
    seconds = max(1, interval_ms // 1000)
    if seconds % 60 == 0:
        return f"0 */{seconds // 60} * * * *"
    return f"*/{seconds} * * * * *"


class SchedulerTimerHandler(TimerHandlerBase):

    name = "SchedulerTimer"

    def __init__(self, scheduler):
        super().__init__()
        self.scheduler = scheduler

    def execute(self) -> Dict[str, Any]:
        result = self.scheduler.run_tick()
        return {
            "success": result.success,
            "processed_count": result.processed_count,
            "skipped_count": result.skipped_count,
            "errors": list(result.errors),
            "duration_ms": result.duration_ms,
        }


def create_scheduler_blueprint(orchestrator) -> Blueprint:
    handler = SchedulerTimerHandler(orchestrator.scheduler)
    schedule = schedule_for_interval(orchestrator.config.scheduler.interval_ms)

    bp = Blueprint()

    @bp.timer_trigger(
        schedule=schedule,
        arg_name="timer",
        run_on_startup=False
    )
    def release_scheduler_timer(timer: func.TimerRequest) -> None:
        """Tick every eligible release."""
        handler.handle(timer)

    return bp


__all__ = ['SchedulerTimerHandler', 'schedule_for_interval', 'create_scheduler_blueprint']
