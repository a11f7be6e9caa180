"""
State Transition Logic for Tasks, Cron Jobs, Stages and Submissions.

Contains business rules for valid state transitions.
Separated from data models for clean architecture.

Exports:
    can_task_transition: Check if task state transition is valid
    can_cron_transition: Check if cron status transition is valid
    can_stage_transition: Check if stage status transition is valid
    can_submission_transition: Check if submission status transition is valid
    get_task_terminal_states, get_task_active_states, is_task_terminal
    get_cron_terminal_states, is_cron_terminal
    get_submission_terminal_states

Dependencies:
    core.models.enums: TaskStatus, CronStatus, StageStatus, SubmissionStatus
"""

from typing import List

from ..models.enums import CronStatus, StageStatus, SubmissionStatus, TaskStatus


def can_task_transition(current: TaskStatus, target: TaskStatus) -> bool:
    """
    Check if a task can transition from current to target status.

    Args:
        current: Current task status
        target: Target task status

    Returns:
        True if transition is valid, False otherwise
    """
    # Same status is always allowed (no-op)
    if current == target:
        return True

    transitions = {
        TaskStatus.PENDING: [TaskStatus.IN_PROGRESS],
        TaskStatus.IN_PROGRESS: [
            TaskStatus.COMPLETED,
            TaskStatus.FAILED,
            TaskStatus.AWAITING_CALLBACK
        ],
        TaskStatus.AWAITING_CALLBACK: [TaskStatus.COMPLETED, TaskStatus.FAILED],
        TaskStatus.FAILED: [TaskStatus.PENDING],  # Operator retry only
        TaskStatus.COMPLETED: []  # Terminal state
    }

    return target in transitions.get(current, [])


def can_cron_transition(current: CronStatus, target: CronStatus) -> bool:
    """
    Check if a cron job can transition from current to target status.

    COMPLETED is reachable from every state because archival completes
    a release immediately.
    """
    if current == target:
        return True

    transitions = {
        CronStatus.PENDING: [CronStatus.RUNNING, CronStatus.COMPLETED],
        CronStatus.RUNNING: [CronStatus.PAUSED, CronStatus.COMPLETED],
        CronStatus.PAUSED: [CronStatus.RUNNING, CronStatus.COMPLETED],
        CronStatus.COMPLETED: []  # Terminal state
    }

    return target in transitions.get(current, [])


def can_stage_transition(current: StageStatus, target: StageStatus) -> bool:
    """Stages only move forward: PENDING -> IN_PROGRESS -> COMPLETED."""
    if current == target:
        return True

    transitions = {
        StageStatus.PENDING: [StageStatus.IN_PROGRESS],
        StageStatus.IN_PROGRESS: [StageStatus.COMPLETED],
        StageStatus.COMPLETED: []
    }

    return target in transitions.get(current, [])


def can_submission_transition(current: SubmissionStatus, target: SubmissionStatus) -> bool:
    """
    Check if a submission can transition from current to target status.

    Platform rules (Android pauses to HALTED, iOS to PAUSED) and the
    irreversibility of an emergency halt are enforced by the rollout
    controller on top of this table.
    """
    if current == target:
        return True

    transitions = {
        SubmissionStatus.PENDING: [SubmissionStatus.SUBMITTED, SubmissionStatus.CANCELLED],
        SubmissionStatus.SUBMITTED: [
            SubmissionStatus.IN_REVIEW,
            SubmissionStatus.REJECTED,
            SubmissionStatus.CANCELLED
        ],
        SubmissionStatus.IN_REVIEW: [
            SubmissionStatus.APPROVED,
            SubmissionStatus.REJECTED,
            SubmissionStatus.CANCELLED
        ],
        SubmissionStatus.APPROVED: [
            SubmissionStatus.LIVE,
            SubmissionStatus.HALTED,
            SubmissionStatus.CANCELLED
        ],
        SubmissionStatus.LIVE: [SubmissionStatus.PAUSED, SubmissionStatus.HALTED],
        SubmissionStatus.PAUSED: [SubmissionStatus.LIVE, SubmissionStatus.HALTED],
        SubmissionStatus.HALTED: [SubmissionStatus.LIVE],  # Android resume after pause
        SubmissionStatus.REJECTED: [],
        SubmissionStatus.CANCELLED: []
    }

    return target in transitions.get(current, [])


def get_task_terminal_states() -> List[TaskStatus]:
    """
    Get list of terminal states for tasks.

    FAILED is terminal for the executor; only an operator retry reopens it.
    """
    return [
        TaskStatus.COMPLETED,
        TaskStatus.FAILED
    ]


def get_task_active_states() -> List[TaskStatus]:
    """Get list of active (non-terminal) states for tasks."""
    return [
        TaskStatus.PENDING,
        TaskStatus.IN_PROGRESS,
        TaskStatus.AWAITING_CALLBACK
    ]


def get_cron_terminal_states() -> List[CronStatus]:
    return [CronStatus.COMPLETED]


def get_submission_terminal_states() -> List[SubmissionStatus]:
    """HALTED is terminal only with a halt severity; see SubmissionRecord."""
    return [
        SubmissionStatus.REJECTED,
        SubmissionStatus.CANCELLED
    ]


def is_task_terminal(status: TaskStatus) -> bool:
    """Check if a task status is terminal."""
    return status in get_task_terminal_states()


def is_cron_terminal(status: CronStatus) -> bool:
    return status in get_cron_terminal_states()


__all__ = [
    'can_task_transition',
    'can_cron_transition',
    'can_stage_transition',
    'can_submission_transition',
    'get_task_terminal_states',
    'get_task_active_states',
    'get_cron_terminal_states',
    'get_submission_terminal_states',
    'is_task_terminal',
    'is_cron_terminal',
]
