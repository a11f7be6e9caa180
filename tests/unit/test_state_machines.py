"""
Exhaustive state machine transition tests.

Anti-overfitting: Every (current, target) enum pair is tested.
No cherry-picked transitions; all combinations covered.
"""

import pytest

from core.models.enums import CronStatus, StageStatus, SubmissionStatus, TaskStatus
from core.logic.transitions import (
    can_cron_transition,
    can_stage_transition,
    can_submission_transition,
    can_task_transition,
    get_task_active_states,
    get_task_terminal_states,
    is_cron_terminal,
    is_task_terminal,
)


# ============================================================================
# DATA: Expected transition maps (source of truth for tests)
# ============================================================================

_TASK_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS},
    TaskStatus.IN_PROGRESS: {
        TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.AWAITING_CALLBACK,
    },
    TaskStatus.AWAITING_CALLBACK: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.FAILED: {TaskStatus.PENDING},
    TaskStatus.COMPLETED: set(),
}

_CRON_TRANSITIONS = {
    CronStatus.PENDING: {CronStatus.RUNNING, CronStatus.COMPLETED},
    CronStatus.RUNNING: {CronStatus.PAUSED, CronStatus.COMPLETED},
    CronStatus.PAUSED: {CronStatus.RUNNING, CronStatus.COMPLETED},
    CronStatus.COMPLETED: set(),
}

_STAGE_TRANSITIONS = {
    StageStatus.PENDING: {StageStatus.IN_PROGRESS},
    StageStatus.IN_PROGRESS: {StageStatus.COMPLETED},
    StageStatus.COMPLETED: set(),
}

_SUBMISSION_TRANSITIONS = {
    SubmissionStatus.PENDING: {SubmissionStatus.SUBMITTED, SubmissionStatus.CANCELLED},
    SubmissionStatus.SUBMITTED: {
        SubmissionStatus.IN_REVIEW, SubmissionStatus.REJECTED, SubmissionStatus.CANCELLED,
    },
    SubmissionStatus.IN_REVIEW: {
        SubmissionStatus.APPROVED, SubmissionStatus.REJECTED, SubmissionStatus.CANCELLED,
    },
    SubmissionStatus.APPROVED: {
        SubmissionStatus.LIVE, SubmissionStatus.HALTED, SubmissionStatus.CANCELLED,
    },
    SubmissionStatus.LIVE: {SubmissionStatus.PAUSED, SubmissionStatus.HALTED},
    SubmissionStatus.PAUSED: {SubmissionStatus.LIVE, SubmissionStatus.HALTED},
    SubmissionStatus.HALTED: {SubmissionStatus.LIVE},
    SubmissionStatus.REJECTED: set(),
    SubmissionStatus.CANCELLED: set(),
}


def _pairs(enum_cls):
    return [(current, target) for current in enum_cls for target in enum_cls]


def _expected(table, current, target) -> bool:
    if current == target:
        return True
    return target in table.get(current, set())


# ============================================================================
# TESTS
# ============================================================================

class TestTaskTransitions:

    @pytest.mark.parametrize("current,target", _pairs(TaskStatus))
    def test_every_pair(self, current, target):
        assert can_task_transition(current, target) == _expected(_TASK_TRANSITIONS, current, target)

    def test_table_covers_every_status(self):
        assert set(_TASK_TRANSITIONS) == set(TaskStatus)

    def test_terminal_and_active_partition(self):
        terminal = set(get_task_terminal_states())
        active = set(get_task_active_states())
        assert terminal.isdisjoint(active)
        assert terminal | active == set(TaskStatus)

    @pytest.mark.parametrize("status", list(TaskStatus))
    def test_is_task_terminal(self, status):
        assert is_task_terminal(status) == (status in (TaskStatus.COMPLETED, TaskStatus.FAILED))


class TestCronTransitions:

    @pytest.mark.parametrize("current,target", _pairs(CronStatus))
    def test_every_pair(self, current, target):
        assert can_cron_transition(current, target) == _expected(_CRON_TRANSITIONS, current, target)

    @pytest.mark.parametrize("status", list(CronStatus))
    def test_completed_reachable_from_every_state(self, status):
        assert can_cron_transition(status, CronStatus.COMPLETED)

    def test_only_completed_is_terminal(self):
        assert [s for s in CronStatus if is_cron_terminal(s)] == [CronStatus.COMPLETED]


class TestStageTransitions:

    @pytest.mark.parametrize("current,target", _pairs(StageStatus))
    def test_every_pair(self, current, target):
        assert can_stage_transition(current, target) == _expected(_STAGE_TRANSITIONS, current, target)


class TestSubmissionTransitions:

    @pytest.mark.parametrize("current,target", _pairs(SubmissionStatus))
    def test_every_pair(self, current, target):
        assert can_submission_transition(current, target) == _expected(
            _SUBMISSION_TRANSITIONS, current, target
        )
