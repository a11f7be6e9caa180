"""Timer-triggered entry points."""

from .scheduler_timer import SchedulerTimerHandler, create_scheduler_blueprint, schedule_for_interval

__all__ = ['SchedulerTimerHandler', 'create_scheduler_blueprint', 'schedule_for_interval']
