"""
Collaborator Interfaces.

The orchestrator performs side effects (forking branches, tickets, CI
builds, messages, store rollouts, poller scheduling) only through these
interfaces. HTTP implementations live beside this module; the logging
implementations here are used when an endpoint is not configured, which
keeps local runs and tests free of network access.

Exports:
    DispatchOutcome, DispatchResult: Result of dispatching one task
    NotificationEvent: Events sent to the notification channel
    TaskCollaborator, NotificationClient, WorkflowPollerClient, StoreClient
    LoggingTaskCollaborator, LoggingNotificationClient,
    LoggingWorkflowPollerClient, LoggingStoreClient
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from core.models import HaltSeverity, ReleaseRecord, ReleaseTaskRecord, SubmissionRecord
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "collaborators")


class DispatchOutcome(str, Enum):
    """What the collaborator reports after a dispatch."""

    COMPLETED = "completed"
    PENDING = "pending"                      # still working; dispatch again next tick
    AWAITING_CALLBACK = "awaiting_callback"  # CI triggered; completion arrives by callback
    FAILED = "failed"


@dataclass
class DispatchResult:
    outcome: DispatchOutcome
    external_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


class NotificationEvent(str, Enum):
    TASK_FAILED = "task_failed"
    MANUAL_BUILD_REQUIRED = "manual_build_required"
    STAGE_COMPLETED = "stage_completed"
    AWAITING_STAGE_TRIGGER = "awaiting_stage_trigger"
    REGRESSION_CYCLE_STARTED = "regression_cycle_started"
    RELEASE_COMPLETED = "release_completed"
    ROLLOUT_HALTED = "rollout_halted"


# ============================================================================
# INTERFACES
# ============================================================================

class TaskCollaborator(ABC):
    """Performs the external side effect behind a release task."""

    @abstractmethod
    def dispatch(self, release: ReleaseRecord, task: ReleaseTaskRecord,
                 payload: Dict[str, Any]) -> DispatchResult:
        """
        Raises:
            TransientIntegrationError: Retry later; the task is not failed
            TaskFailureError: Business failure; the task is failed
        """
        pass


class NotificationClient(ABC):

    @abstractmethod
    def notify(self, event: NotificationEvent, release_id: str,
               payload: Optional[Dict[str, Any]] = None) -> None:
        pass


class WorkflowPollerClient(ABC):
    """Schedules the per-release CI status pollers."""

    @abstractmethod
    def create_pollers(self, release_id: str) -> None:
        pass

    @abstractmethod
    def delete_pollers(self, release_id: str) -> None:
        pass


class StoreClient(ABC):
    """Store-side rollout controls (Play Console, App Store Connect)."""

    @abstractmethod
    def update_rollout(self, submission: SubmissionRecord, percentage: float) -> None:
        pass

    @abstractmethod
    def pause_rollout(self, submission: SubmissionRecord) -> None:
        pass

    @abstractmethod
    def resume_rollout(self, submission: SubmissionRecord) -> None:
        pass

    @abstractmethod
    def halt_rollout(self, submission: SubmissionRecord,
                     severity: HaltSeverity, reason: str) -> None:
        pass


# ============================================================================
# LOGGING IMPLEMENTATIONS
# ============================================================================

class LoggingTaskCollaborator(TaskCollaborator):
    """Completes every task immediately and logs what would have been sent."""

    def dispatch(self, release: ReleaseRecord, task: ReleaseTaskRecord,
                 payload: Dict[str, Any]) -> DispatchResult:
        logger.info(
            f"📝 [dry-run] {task.task_type.value} for release {release.release_id} "
            f"(task {task.task_id})"
        )
        return DispatchResult(outcome=DispatchOutcome.COMPLETED, data={"dry_run": True})


class LoggingNotificationClient(NotificationClient):

    def notify(self, event: NotificationEvent, release_id: str,
               payload: Optional[Dict[str, Any]] = None) -> None:
        logger.info(f"📣 {event.value} for release {release_id}: {payload or {}}")


class LoggingWorkflowPollerClient(WorkflowPollerClient):

    def create_pollers(self, release_id: str) -> None:
        logger.info(f"⏰ [dry-run] create pollers for release {release_id}")

    def delete_pollers(self, release_id: str) -> None:
        logger.info(f"⏰ [dry-run] delete pollers for release {release_id}")


class LoggingStoreClient(StoreClient):

    def update_rollout(self, submission: SubmissionRecord, percentage: float) -> None:
        logger.info(f"🏪 [dry-run] {submission.submission_id} rollout → {percentage}%")

    def pause_rollout(self, submission: SubmissionRecord) -> None:
        logger.info(f"🏪 [dry-run] {submission.submission_id} rollout paused")

    def resume_rollout(self, submission: SubmissionRecord) -> None:
        logger.info(f"🏪 [dry-run] {submission.submission_id} rollout resumed")

    def halt_rollout(self, submission: SubmissionRecord,
                     severity: HaltSeverity, reason: str) -> None:
        logger.info(
            f"🏪 [dry-run] {submission.submission_id} halted ({severity.value}): {reason}"
        )


__all__ = [
    'DispatchOutcome',
    'DispatchResult',
    'NotificationEvent',
    'TaskCollaborator',
    'NotificationClient',
    'WorkflowPollerClient',
    'StoreClient',
    'LoggingTaskCollaborator',
    'LoggingNotificationClient',
    'LoggingWorkflowPollerClient',
    'LoggingStoreClient',
]
