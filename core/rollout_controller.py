"""
Rollout Controller - Store Submission Rollout Actions.

Platform rules:

    Android         update 0..100 (fractional) while LIVE
                    pause  LIVE -> HALTED (no severity)
                    resume HALTED (no severity) -> LIVE
    iOS phased      update to exactly 100 while LIVE
                    pause  LIVE -> PAUSED, resume PAUSED -> LIVE
    iOS non-phased  already fully live; no update/pause/resume

Emergency halt (both platforms) needs a severity and a non-empty reason,
sets HALTED with both, and is one-way: nothing else is legal afterwards.
The remedy is a new submission.

Every action is validated before the store is called and before
anything is persisted, then recorded in the submission's action_history.

Exports:
    RolloutAction: Action names used by available_actions
    RolloutController
"""

from datetime import datetime, timezone
from typing import Callable, List, Optional

from exceptions import (
    DatabaseError,
    IllegalRolloutActionError,
    ResourceNotFoundError,
    ValidationError,
)
from infrastructure.interface_repository import ISubmissionRepository
from services.collaborators import NotificationClient, NotificationEvent, StoreClient
from util_logger import LoggerFactory, ComponentType
from .models import (
    HaltSeverity,
    Platform,
    SubmissionAction,
    SubmissionActionType,
    SubmissionRecord,
    SubmissionStatus,
)

logger = LoggerFactory.create_logger(ComponentType.ORCHESTRATOR, "RolloutController")


class RolloutAction:
    UPDATE = "update_rollout"
    PAUSE = "pause"
    RESUME = "resume"
    HALT = "halt"


# Released statuses an emergency halt may start from
_HALTABLE_STATUSES = frozenset({
    SubmissionStatus.APPROVED,
    SubmissionStatus.LIVE,
    SubmissionStatus.PAUSED,
    SubmissionStatus.HALTED,
})


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RolloutController:
    """
    Rollout actions on one submission at a time.

    Args:
        submissions: Submission repository
        store: StoreClient performing the store-side change
        notifier: Receives ROLLOUT_HALTED
        clock: Injected for tests
    """

    def __init__(self, submissions: ISubmissionRepository, store: StoreClient,
                 notifier: NotificationClient, clock: Callable[[], datetime] = _utc_now):
        self.submissions = submissions
        self.store = store
        self.notifier = notifier
        self.clock = clock

    # ========================================================================
    # LEGALITY
    # ========================================================================

    @staticmethod
    def can_increase_rollout(submission: SubmissionRecord) -> bool:
        return submission.status == SubmissionStatus.LIVE and submission.rollout_percentage < 100

    def available_actions(self, submission: SubmissionRecord) -> List[str]:
        """Actions currently legal for the submission, in display order."""
        actions = []
        for action, check in (
            (RolloutAction.UPDATE, self._update_error),
            (RolloutAction.PAUSE, self._pause_error),
            (RolloutAction.RESUME, self._resume_error),
        ):
            if check(submission) is None:
                actions.append(action)
        if self._halt_error(submission) is None:
            actions.append(RolloutAction.HALT)
        return actions

    @staticmethod
    def _update_error(submission: SubmissionRecord) -> Optional[str]:
        if submission.is_emergency_halted:
            return "submission was halted; create a new submission"
        if submission.platform == Platform.IOS and not submission.phased_release:
            return "iOS release without phased release is already fully live"
        if submission.status != SubmissionStatus.LIVE:
            return f"rollout can only change while LIVE (status {submission.status.value})"
        if submission.platform == Platform.IOS and submission.rollout_percentage >= 100:
            return "phased release already completed"
        return None

    @staticmethod
    def _pause_error(submission: SubmissionRecord) -> Optional[str]:
        if submission.is_emergency_halted:
            return "submission was halted; create a new submission"
        if submission.platform == Platform.IOS and not submission.phased_release:
            return "iOS release without phased release cannot be paused"
        if submission.status != SubmissionStatus.LIVE:
            return f"only a LIVE rollout can be paused (status {submission.status.value})"
        return None

    @staticmethod
    def _resume_error(submission: SubmissionRecord) -> Optional[str]:
        if submission.is_emergency_halted:
            return "submission was halted; create a new submission"
        if submission.platform == Platform.IOS:
            if not submission.phased_release:
                return "iOS release without phased release cannot be resumed"
            paused_status = SubmissionStatus.PAUSED
        else:
            paused_status = SubmissionStatus.HALTED
        if submission.status != paused_status:
            return f"only a paused rollout can be resumed (status {submission.status.value})"
        return None

    @staticmethod
    def _halt_error(submission: SubmissionRecord) -> Optional[str]:
        if submission.is_emergency_halted:
            return "submission is already halted"
        if submission.status not in _HALTABLE_STATUSES:
            return f"status {submission.status.value} is not a released status"
        return None

    # ========================================================================
    # ACTIONS
    # ========================================================================

    def update_rollout(self, submission_id: str, percentage: float) -> SubmissionRecord:
        """
        Set the rollout percentage.

        Raises:
            ValidationError: percentage outside 0..100
            IllegalRolloutActionError: not legal for platform or status
        """
        submission = self._load(submission_id)
        try:
            percentage = float(percentage)
        except (TypeError, ValueError):
            raise ValidationError(f"Rollout percentage must be a number, got {percentage!r}")
        if not 0.0 <= percentage <= 100.0:
            raise ValidationError(f"Rollout percentage must be between 0 and 100, got {percentage}")

        self._check(RolloutAction.UPDATE, submission, self._update_error(submission))
        if submission.platform == Platform.IOS and percentage != 100.0:
            raise IllegalRolloutActionError(
                RolloutAction.UPDATE, submission_id,
                "phased release can only be completed (100%), not set to a partial percentage"
            )

        self.store.update_rollout(submission, percentage)
        updated = self._apply(
            submission, SubmissionActionType.UPDATE_ROLLOUT, SubmissionStatus.LIVE, percentage
        )
        if percentage >= 100.0:
            logger.info(f"✅ Submission {submission_id} rollout complete")
        else:
            logger.info(f"Submission {submission_id} rollout at {percentage}%")
        return updated

    def pause(self, submission_id: str, reason: Optional[str] = None) -> SubmissionRecord:
        submission = self._load(submission_id)
        self._check(RolloutAction.PAUSE, submission, self._pause_error(submission))

        paused_status = (
            SubmissionStatus.PAUSED if submission.platform == Platform.IOS
            else SubmissionStatus.HALTED
        )
        self.store.pause_rollout(submission)
        logger.info(f"⏸️ Submission {submission_id} rollout paused")
        return self._apply(
            submission, SubmissionActionType.PAUSED, paused_status,
            submission.rollout_percentage, reason=reason,
        )

    def resume(self, submission_id: str) -> SubmissionRecord:
        submission = self._load(submission_id)
        self._check(RolloutAction.RESUME, submission, self._resume_error(submission))

        self.store.resume_rollout(submission)
        logger.info(f"▶️ Submission {submission_id} rollout resumed")
        return self._apply(
            submission, SubmissionActionType.RESUMED, SubmissionStatus.LIVE,
            submission.rollout_percentage,
        )

    def halt(self, submission_id: str, severity, reason: str) -> SubmissionRecord:
        """
        Emergency halt. Irreversible.

        Raises:
            ValidationError: Unknown severity or empty reason
            IllegalRolloutActionError: Already halted or not released
        """
        try:
            severity = HaltSeverity(severity.lower() if isinstance(severity, str) else severity)
        except ValueError:
            raise ValidationError(
                f"Halt severity must be one of {[s.value for s in HaltSeverity]}, got {severity!r}"
            )
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Halt reason is required")

        submission = self._load(submission_id)
        self._check(RolloutAction.HALT, submission, self._halt_error(submission))

        self.store.halt_rollout(submission, severity, reason)
        updated = self._apply(
            submission, SubmissionActionType.HALTED, SubmissionStatus.HALTED,
            submission.rollout_percentage, reason=reason,
            extra={"halt_severity": severity, "halt_reason": reason},
        )
        logger.warning(
            f"🛑 Submission {submission_id} halted ({severity.value}): {reason}"
        )
        self.notifier.notify(NotificationEvent.ROLLOUT_HALTED, submission.release_id, {
            "submissionId": submission_id,
            "platform": submission.platform.value,
            "severity": severity.value,
            "reason": reason,
        })
        return updated

    # ========================================================================
    # HELPERS
    # ========================================================================

    def get_submission(self, submission_id: str) -> SubmissionRecord:
        return self._load(submission_id)

    def _load(self, submission_id: str) -> SubmissionRecord:
        submission = self.submissions.get_submission(submission_id)
        if submission is None:
            raise ResourceNotFoundError(f"Submission {submission_id} not found")
        return submission

    @staticmethod
    def _check(action: str, submission: SubmissionRecord, error: Optional[str]) -> None:
        if error is not None:
            logger.warning(f"⚠️ {action} rejected for submission {submission.submission_id}: {error}")
            raise IllegalRolloutActionError(action, submission.submission_id, error)

    def _apply(self, submission: SubmissionRecord, action: SubmissionActionType,
               new_status: SubmissionStatus, percentage: float,
               reason: Optional[str] = None, extra: Optional[dict] = None) -> SubmissionRecord:
        now = self.clock()
        entry = SubmissionAction(
            action=action,
            previous_status=submission.status,
            new_status=new_status,
            rollout_percentage=percentage,
            reason=reason,
            performed_at=now,
        )
        update = {
            "status": new_status,
            "rollout_percentage": percentage,
            "action_history": submission.action_history + [entry],
            "updated_at": now,
        }
        if extra:
            update.update(extra)
        updated = submission.model_copy(update=update)

        if not self.submissions.save_submission(updated, expected_status=submission.status):
            raise DatabaseError(
                f"Submission {submission.submission_id} changed while {action.value} was applied"
            )
        return updated


__all__ = ['RolloutAction', 'RolloutController']
