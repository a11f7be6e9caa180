"""
Release Task Sequencing.

Fixed per-stage task order, which tasks a release needs, and why a
given task can or cannot run right now. Pure functions over task
records; the executor decides what to do with the answers.

Exports:
    TASK_ORDER: Ordered task types per TaskStage
    TaskRequirementContext: Inputs deciding which tasks are required
    BlockReason: Why a task cannot (or can) execute
    is_task_required, get_required_task_types, get_ordered_tasks,
    are_previous_tasks_complete, get_task_block_reason, is_stage_complete
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..models.cron_job import CronConfig, RegressionSlotConfig
from ..models.enums import Platform, TaskStage, TaskStatus, TaskType
from ..models.task import ReleaseTaskRecord


TASK_ORDER: Dict[TaskStage, List[TaskType]] = {
    TaskStage.KICKOFF: [
        TaskType.PRE_KICK_OFF_REMINDER,
        TaskType.FORK_BRANCH,
        TaskType.CREATE_PROJECT_MANAGEMENT_TICKET,
        TaskType.CREATE_TEST_SUITE,
        TaskType.TRIGGER_PRE_REGRESSION_BUILDS,
    ],
    TaskStage.REGRESSION: [
        TaskType.RESET_TEST_SUITE,
        TaskType.CREATE_RC_TAG,
        TaskType.CREATE_RELEASE_NOTES,
        TaskType.TRIGGER_REGRESSION_BUILDS,
        TaskType.TRIGGER_AUTOMATION_RUNS,
        TaskType.AUTOMATION_RUNS,
        TaskType.SEND_REGRESSION_BUILD_MESSAGE,
    ],
    TaskStage.PRE_RELEASE: [
        TaskType.PRE_RELEASE_CHERRY_PICKS_REMINDER,
        TaskType.CREATE_RELEASE_TAG,
        TaskType.CREATE_FINAL_RELEASE_NOTES,
        TaskType.TRIGGER_TEST_FLIGHT_BUILD,
        TaskType.CREATE_AAB_BUILD,
        TaskType.SEND_PRE_RELEASE_MESSAGE,
        TaskType.CHECK_PROJECT_RELEASE_APPROVAL,
    ],
}

# Kickoff tasks that may run before the kickoff time
PRE_KICKOFF_TASK_TYPES = frozenset({TaskType.PRE_KICK_OFF_REMINDER})


class BlockReason(str, Enum):
    """Result of get_task_block_reason."""

    ALREADY_COMPLETED = "already_completed"
    FAILED = "failed"
    AWAITING_CALLBACK = "awaiting_callback"
    IN_PROGRESS = "in_progress"
    NOT_REQUIRED = "not_required"
    PREVIOUS_INCOMPLETE = "previous_incomplete"
    NOT_TIME_YET = "not_time_yet"
    EXECUTABLE = "executable"


@dataclass
class TaskRequirementContext:
    """Everything is_task_required looks at."""

    cron_config: CronConfig = field(default_factory=CronConfig)
    platforms: List[Platform] = field(default_factory=list)
    has_project_management: bool = False
    has_test_management: bool = False
    is_subsequent_cycle: bool = False
    slot_config: Optional[RegressionSlotConfig] = None


def is_task_required(task_type: TaskType, ctx: TaskRequirementContext) -> bool:
    """
    Whether a release needs this task at all.

    Tasks not listed below are always required.
    """
    cron = ctx.cron_config
    slot = ctx.slot_config or RegressionSlotConfig()

    if task_type == TaskType.PRE_KICK_OFF_REMINDER:
        return cron.kick_off_reminder
    if task_type in (TaskType.CREATE_PROJECT_MANAGEMENT_TICKET, TaskType.CHECK_PROJECT_RELEASE_APPROVAL):
        return ctx.has_project_management
    if task_type == TaskType.CREATE_TEST_SUITE:
        return ctx.has_test_management
    if task_type == TaskType.TRIGGER_PRE_REGRESSION_BUILDS:
        return cron.pre_regression_builds
    if task_type == TaskType.RESET_TEST_SUITE:
        return ctx.is_subsequent_cycle and ctx.has_test_management
    if task_type == TaskType.TRIGGER_REGRESSION_BUILDS:
        return slot.regression_builds
    if task_type == TaskType.CREATE_RELEASE_NOTES:
        return slot.post_release_notes
    if task_type == TaskType.TRIGGER_AUTOMATION_RUNS:
        return cron.automation_builds and slot.automation_builds
    if task_type == TaskType.AUTOMATION_RUNS:
        return cron.automation_runs and slot.automation_runs
    if task_type == TaskType.TRIGGER_TEST_FLIGHT_BUILD:
        return Platform.IOS in ctx.platforms and cron.test_flight_builds
    if task_type == TaskType.CREATE_AAB_BUILD:
        return Platform.ANDROID in ctx.platforms and cron.aab_builds
    return True


def get_required_task_types(stage: TaskStage, ctx: TaskRequirementContext) -> List[TaskType]:
    """Task types to create when a stage or regression cycle begins, in order."""
    return [t for t in TASK_ORDER[stage] if is_task_required(t, ctx)]


def get_task_order_index(task_type: TaskType, stage: TaskStage) -> int:
    order = TASK_ORDER.get(stage, [])
    return order.index(task_type) if task_type in order else -1


def get_ordered_tasks(tasks: List[ReleaseTaskRecord], stage: TaskStage) -> List[ReleaseTaskRecord]:
    """Sort tasks by TASK_ORDER; unknown types keep their relative order at the end."""
    order = TASK_ORDER.get(stage, [])

    def key(task: ReleaseTaskRecord) -> int:
        return order.index(task.task_type) if task.task_type in order else len(order)

    return sorted(tasks, key=key)


def are_previous_tasks_complete(
    task: ReleaseTaskRecord,
    all_tasks: List[ReleaseTaskRecord],
    stage: TaskStage,
    ctx: TaskRequirementContext
) -> bool:
    """
    Every required task type ahead of this one is COMPLETED.

    A required predecessor that was never created counts as incomplete.
    """
    index = get_task_order_index(task.task_type, stage)
    if index == -1:
        return True

    by_type = {t.task_type: t for t in all_tasks}
    for previous_type in TASK_ORDER[stage][:index]:
        if not is_task_required(previous_type, ctx):
            continue
        previous = by_type.get(previous_type)
        if previous is None or previous.task_status != TaskStatus.COMPLETED:
            return False
    return True


def get_task_block_reason(
    task: ReleaseTaskRecord,
    all_tasks: List[ReleaseTaskRecord],
    stage: TaskStage,
    ctx: TaskRequirementContext,
    is_time_to_execute: Optional[Callable[[ReleaseTaskRecord], bool]] = None
) -> BlockReason:
    """
    Why a task can or cannot execute now.

    IN_PROGRESS tasks are reported as such; the executor re-dispatches
    them because a task stays IN_PROGRESS after a collaborator answered
    "pending" or a transient error exhausted its retries.
    """
    status = task.task_status
    if status == TaskStatus.COMPLETED:
        return BlockReason.ALREADY_COMPLETED
    if status == TaskStatus.FAILED:
        return BlockReason.FAILED
    if status == TaskStatus.AWAITING_CALLBACK:
        return BlockReason.AWAITING_CALLBACK
    if status == TaskStatus.IN_PROGRESS:
        return BlockReason.IN_PROGRESS

    if not is_task_required(task.task_type, ctx):
        return BlockReason.NOT_REQUIRED

    if not are_previous_tasks_complete(task, all_tasks, stage, ctx):
        return BlockReason.PREVIOUS_INCOMPLETE

    if is_time_to_execute is not None and not is_time_to_execute(task):
        return BlockReason.NOT_TIME_YET

    return BlockReason.EXECUTABLE


def kickoff_time_gate(kickoff_at: datetime, now: datetime) -> Callable[[ReleaseTaskRecord], bool]:
    """Time gate for kickoff tasks: only the reminder may run before kickoff."""
    def is_time(task: ReleaseTaskRecord) -> bool:
        return task.task_type in PRE_KICKOFF_TASK_TYPES or now >= kickoff_at
    return is_time


def is_stage_complete(tasks: List[ReleaseTaskRecord], ctx: TaskRequirementContext) -> bool:
    """All required tasks exist and are COMPLETED. An empty required set is complete."""
    required = [t for t in tasks if is_task_required(t.task_type, ctx)]
    return all(t.task_status == TaskStatus.COMPLETED for t in required)


__all__ = [
    'TASK_ORDER',
    'PRE_KICKOFF_TASK_TYPES',
    'BlockReason',
    'TaskRequirementContext',
    'is_task_required',
    'get_required_task_types',
    'get_task_order_index',
    'get_ordered_tasks',
    'are_previous_tasks_complete',
    'get_task_block_reason',
    'kickoff_time_gate',
    'is_stage_complete',
]
