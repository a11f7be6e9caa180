"""
Base Repository - Pure Abstract Class.

Abstract base repository class that the PostgreSQL and in-memory
repositories inherit from. Contains NO storage implementation details,
only common validation logic, error handling patterns, and logging.

Architecture:
    BaseRepository (this file - pure abstract)
        |
    Storage-specific bases (PostgreSQLRepository, InMemoryStore)
        |
    Domain-specific repositories (CronJobRepository, TaskRepository, ...)

Exports:
    BaseRepository: Abstract base class for repositories
"""

from abc import ABC
from contextlib import contextmanager
from typing import Optional
import logging

from exceptions import ContractViolationError
from core.logic.transitions import (
    can_cron_transition,
    can_stage_transition,
    can_submission_transition,
)
from core.models import (
    CronJobRecord,
    CronStatus,
    PauseType,
    ReleaseStage,
    ReleaseTaskRecord,
    StageStatus,
    SubmissionRecord,
    SubmissionStatus,
    TaskStatus,
)
from util_logger import LoggerFactory, ComponentType


class BaseRepository(ABC):
    """
    Pure abstract base repository with common validation logic.

    Responsibilities:
    - Logging setup
    - Error handling with consistent patterns
    - Task, cron job and submission transition validation

    NOT Responsible For:
    - Connection management
    - Query execution
    - Transaction management
    """

    def __init__(self):
        """Subclasses MUST call super().__init__() before any storage setup."""
        self.logger = self._setup_logger()
        self.logger.debug(f"🏛️ {self.__class__.__name__} base initialized")

    def _setup_logger(self) -> logging.Logger:
        return LoggerFactory.create_logger(
            ComponentType.REPOSITORY,
            self.__class__.__name__
        )

    @contextmanager
    def _error_context(self, operation: str, entity_id: Optional[str] = None):
        """
        Log and re-raise any failure of the wrapped operation.

        Usage:
            with self._error_context("task transition", task_id):
                ...
        """
        try:
            yield
        except Exception as e:
            error_msg = f"❌ {operation} failed"
            if entity_id:
                error_msg += f" for {entity_id}"
            self.logger.error(f"{error_msg}: {e}")
            raise

    def _validate_task_transition(
        self,
        current_record: ReleaseTaskRecord,
        new_status: TaskStatus
    ) -> None:
        """
        Reject task status changes the task state machine does not allow.

        Raises:
            ContractViolationError: Caller asked for an illegal transition
        """
        if not isinstance(new_status, TaskStatus):
            raise ContractViolationError(
                f"new_status must be TaskStatus, got {type(new_status).__name__}"
            )
        if not current_record.can_transition_to(new_status):
            raise ContractViolationError(
                f"Invalid task transition for {current_record.task_id}: "
                f"{current_record.task_status.value} → {new_status.value}"
            )

    def _validate_cron_job_write(
        self,
        previous: CronJobRecord,
        updated: CronJobRecord,
        archived: bool
    ) -> None:
        """
        Reject a cron job write that breaks the stage or cron state machines.

        Checks, against the stored row:
        - cron_status and every stage status move along allowed edges
        - a stage leaves PENDING only after the one before it COMPLETED
        - pause_type is set only while PAUSED
        - COMPLETED needs stage 4 COMPLETED or an archived release

        Raises:
            ContractViolationError: Caller tried to persist an illegal state
        """
        release_id = updated.release_id
        if not can_cron_transition(previous.cron_status, updated.cron_status):
            raise ContractViolationError(
                f"Invalid cron transition for {release_id}: "
                f"{previous.cron_status.value} → {updated.cron_status.value}"
            )

        for stage in ReleaseStage:
            before = previous.stage_status(stage)
            after = updated.stage_status(stage)
            if not can_stage_transition(before, after):
                raise ContractViolationError(
                    f"Invalid stage {stage.value} transition for {release_id}: "
                    f"{before.value} → {after.value}"
                )
            if stage != ReleaseStage.KICKOFF and after != StageStatus.PENDING:
                prior = updated.stage_status(ReleaseStage(stage.value - 1))
                if prior != StageStatus.COMPLETED:
                    raise ContractViolationError(
                        f"Stage {stage.value} of {release_id} is {after.value} "
                        f"while stage {stage.value - 1} is {prior.value}"
                    )
        updated.current_stage()

        if updated.cron_status != CronStatus.PAUSED and updated.pause_type != PauseType.NONE:
            raise ContractViolationError(
                f"Cron job {release_id} has pause_type {updated.pause_type.value} "
                f"while {updated.cron_status.value}"
            )
        if (updated.cron_status == CronStatus.COMPLETED
                and updated.stage_status(ReleaseStage.DISTRIBUTION) != StageStatus.COMPLETED
                and not archived):
            raise ContractViolationError(
                f"Cron job {release_id} completed before distribution on an active release"
            )

    def _validate_submission_write(
        self,
        updated: SubmissionRecord,
        expected_status: SubmissionStatus
    ) -> None:
        """
        Raises:
            ContractViolationError: Status change the submission table does not allow
        """
        if not can_submission_transition(expected_status, updated.status):
            raise ContractViolationError(
                f"Invalid submission transition for {updated.submission_id}: "
                f"{expected_status.value} → {updated.status.value}"
            )


__all__ = ['BaseRepository']
