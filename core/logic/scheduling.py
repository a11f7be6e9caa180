"""
Release Time Rules.

When a PENDING release may start and when regression slots come due.
Slots are due once their scheduled time has passed, so a tick that ran
late still opens the cycle.

Exports:
    is_ready_to_start: PENDING release has reached its start time
    sort_slots: Slots in scheduled order
    pop_due_slot: Earliest due slot and the remaining list
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from ..models.cron_job import CronJobRecord, RegressionSlot
from ..models.enums import CronStatus
from ..models.release import ReleaseRecord


def is_ready_to_start(
    release: ReleaseRecord,
    cron_job: CronJobRecord,
    now: datetime,
    reminder_lead: timedelta = timedelta(0)
) -> bool:
    """
    A PENDING, non-archived release is ready once its kickoff time has
    passed. With the kickoff reminder enabled it starts reminder_lead
    earlier so the reminder task can run before kickoff.
    """
    if cron_job.cron_status != CronStatus.PENDING or release.archived:
        return False
    start_at = release.kickoff_at
    if cron_job.cron_config.kick_off_reminder:
        start_at = start_at - reminder_lead
    return now >= start_at


def sort_slots(slots: List[RegressionSlot], kickoff_at: datetime) -> List[RegressionSlot]:
    return sorted(slots, key=lambda slot: slot.scheduled_at(kickoff_at))


def pop_due_slot(
    slots: List[RegressionSlot],
    kickoff_at: datetime,
    now: datetime
) -> Tuple[Optional[RegressionSlot], List[RegressionSlot]]:
    """
    Take the earliest slot whose scheduled time is <= now.

    Returns (slot, remaining) or (None, slots) when nothing is due yet.
    """
    ordered = sort_slots(slots, kickoff_at)
    if ordered and ordered[0].scheduled_at(kickoff_at) <= now:
        return ordered[0], ordered[1:]
    return None, ordered


__all__ = [
    'is_ready_to_start',
    'sort_slots',
    'pop_due_slot',
]
