"""
Rollout controller: per-platform legality, emergency halt.
"""

from unittest.mock import MagicMock

import pytest

from core.models import (
    HaltSeverity,
    Platform,
    SubmissionActionType,
    SubmissionRecord,
    SubmissionStatus,
)
from core.rollout_controller import RolloutAction, RolloutController
from exceptions import (
    IllegalRolloutActionError,
    ResourceNotFoundError,
    TransientIntegrationError,
    ValidationError,
)
from services.collaborators import NotificationEvent
from tests.factories.model_factories import make_submission


@pytest.fixture
def store():
    return MagicMock()


@pytest.fixture
def controller(repos, store, notifier, clock):
    return RolloutController(repos.submissions, store, notifier, clock=clock)


@pytest.fixture
def submit(repos):
    """Factory fixture: store a submission and return it."""
    def _submit(platform, status=SubmissionStatus.LIVE, **overrides):
        submission = SubmissionRecord(**make_submission("rel-rollout", platform, status, **overrides))
        repos.submissions.create_submission(submission)
        return submission
    return _submit


class TestAndroid:

    def test_fractional_update(self, controller, submit, store):
        submission = submit(Platform.ANDROID, rollout_percentage=10.0)

        updated = controller.update_rollout(submission.submission_id, 37.5)

        assert updated.rollout_percentage == 37.5
        assert updated.status == SubmissionStatus.LIVE
        store.update_rollout.assert_called_once()
        assert controller.get_submission(submission.submission_id).rollout_percentage == 37.5

    @pytest.mark.parametrize("percentage", [-1, 100.5, "lots"])
    def test_update_out_of_range(self, controller, submit, store, percentage):
        submission = submit(Platform.ANDROID)
        with pytest.raises(ValidationError):
            controller.update_rollout(submission.submission_id, percentage)
        store.update_rollout.assert_not_called()

    def test_pause_halts_without_severity_and_resumes(self, controller, submit):
        submission = submit(Platform.ANDROID)

        paused = controller.pause(submission.submission_id, reason="crash spike")
        assert paused.status == SubmissionStatus.HALTED
        assert paused.halt_severity is None
        assert controller.available_actions(paused) == [RolloutAction.RESUME, RolloutAction.HALT]

        resumed = controller.resume(submission.submission_id)
        assert resumed.status == SubmissionStatus.LIVE
        assert resumed.rollout_percentage == submission.rollout_percentage

    def test_update_rejected_while_paused(self, controller, submit):
        submission = submit(Platform.ANDROID)
        controller.pause(submission.submission_id)
        with pytest.raises(IllegalRolloutActionError):
            controller.update_rollout(submission.submission_id, 50)


class TestIos:

    def test_phased_release_only_completes(self, controller, submit):
        submission = submit(Platform.IOS, phased_release=True, rollout_percentage=20.0)

        with pytest.raises(IllegalRolloutActionError):
            controller.update_rollout(submission.submission_id, 50)
        updated = controller.update_rollout(submission.submission_id, 100)

        assert updated.is_fully_live

    def test_phased_pause_and_resume(self, controller, submit):
        submission = submit(Platform.IOS, phased_release=True)

        assert controller.pause(submission.submission_id).status == SubmissionStatus.PAUSED
        assert controller.resume(submission.submission_id).status == SubmissionStatus.LIVE

    @pytest.mark.parametrize("action", ["update", "pause", "resume"])
    def test_non_phased_rejects_rollout_controls(self, controller, submit, store, action):
        submission = submit(Platform.IOS, phased_release=False, rollout_percentage=100.0)
        calls = {
            "update": lambda: controller.update_rollout(submission.submission_id, 100),
            "pause": lambda: controller.pause(submission.submission_id),
            "resume": lambda: controller.resume(submission.submission_id),
        }
        with pytest.raises(IllegalRolloutActionError):
            calls[action]()
        assert store.method_calls == []

    def test_non_phased_only_halt_available(self, controller, submit):
        submission = submit(Platform.IOS, phased_release=False, rollout_percentage=100.0)
        assert controller.available_actions(submission) == [RolloutAction.HALT]


class TestEmergencyHalt:

    def test_halt_records_severity_and_notifies(self, controller, submit, notifier):
        submission = submit(Platform.ANDROID)

        halted = controller.halt(submission.submission_id, "critical", "  data loss  ")

        assert halted.status == SubmissionStatus.HALTED
        assert halted.halt_severity == HaltSeverity.CRITICAL
        assert halted.halt_reason == "data loss"
        event, release_id, payload = notifier.notify.call_args.args
        assert event == NotificationEvent.ROLLOUT_HALTED
        assert release_id == "rel-rollout"
        assert payload["severity"] == "critical"

    @pytest.mark.parametrize("severity", ["CRITICAL", "Critical", HaltSeverity.CRITICAL])
    def test_halt_severity_ignores_case(self, controller, submit, store, severity):
        submission = submit(Platform.ANDROID)

        halted = controller.halt(submission.submission_id, severity, "crash on launch")

        assert halted.halt_severity == HaltSeverity.CRITICAL
        assert store.halt_rollout.call_args.args[1] == HaltSeverity.CRITICAL

    @pytest.mark.parametrize("platform,extra", [
        (Platform.ANDROID, {}),
        (Platform.IOS, {"phased_release": True}),
    ])
    def test_halt_is_irreversible(self, controller, submit, platform, extra):
        submission = submit(platform, **extra)
        halted = controller.halt(submission.submission_id, HaltSeverity.HIGH, "bad build")

        assert controller.available_actions(halted) == []
        for attempt in (
            lambda: controller.resume(submission.submission_id),
            lambda: controller.update_rollout(submission.submission_id, 100),
            lambda: controller.pause(submission.submission_id),
            lambda: controller.halt(submission.submission_id, "high", "again"),
        ):
            with pytest.raises(IllegalRolloutActionError):
                attempt()

    def test_halt_paused_rollout(self, controller, submit):
        submission = submit(Platform.ANDROID)
        controller.pause(submission.submission_id)

        halted = controller.halt(submission.submission_id, "medium", "regression found")

        assert halted.is_emergency_halted

    @pytest.mark.parametrize("severity,reason", [
        ("catastrophic", "bad build"),
        ("high", ""),
        ("high", "   "),
        ("high", None),
    ])
    def test_halt_requires_severity_and_reason(self, controller, submit, store, severity, reason):
        submission = submit(Platform.ANDROID)
        with pytest.raises(ValidationError):
            controller.halt(submission.submission_id, severity, reason)
        store.halt_rollout.assert_not_called()

    def test_unreleased_submission_cannot_halt(self, controller, submit):
        submission = submit(Platform.ANDROID, status=SubmissionStatus.IN_REVIEW)
        with pytest.raises(IllegalRolloutActionError):
            controller.halt(submission.submission_id, "high", "pulled")


class TestBookkeeping:

    def test_action_history_appended(self, controller, submit, clock):
        submission = submit(Platform.ANDROID, rollout_percentage=5.0)

        controller.update_rollout(submission.submission_id, 25)
        controller.pause(submission.submission_id, reason="crashes")
        stored = controller.resume(submission.submission_id)

        assert [a.action for a in stored.action_history] == [
            SubmissionActionType.UPDATE_ROLLOUT,
            SubmissionActionType.PAUSED,
            SubmissionActionType.RESUMED,
        ]
        pause = stored.action_history[1]
        assert pause.previous_status == SubmissionStatus.LIVE
        assert pause.new_status == SubmissionStatus.HALTED
        assert pause.reason == "crashes"
        assert pause.performed_at == clock.now

    def test_store_failure_persists_nothing(self, controller, submit, store):
        submission = submit(Platform.ANDROID, rollout_percentage=5.0)
        store.update_rollout.side_effect = TransientIntegrationError("store unavailable", 503)

        with pytest.raises(TransientIntegrationError):
            controller.update_rollout(submission.submission_id, 50)

        stored = controller.get_submission(submission.submission_id)
        assert stored.rollout_percentage == 5.0
        assert stored.action_history == []

    def test_unknown_submission(self, controller):
        with pytest.raises(ResourceNotFoundError):
            controller.pause("sub-missing")


class TestCanIncreaseRollout:

    @pytest.mark.parametrize("status,percentage,expected", [
        (SubmissionStatus.LIVE, 0.0, True),
        (SubmissionStatus.LIVE, 99.9, True),
        (SubmissionStatus.LIVE, 100.0, False),
        (SubmissionStatus.PAUSED, 40.0, False),
        (SubmissionStatus.HALTED, 40.0, False),
        (SubmissionStatus.APPROVED, 0.0, False),
    ])
    def test_can_increase_rollout(self, status, percentage, expected):
        submission = SubmissionRecord(**make_submission(
            "rel-rollout", Platform.ANDROID, status, rollout_percentage=percentage
        ))
        assert RolloutController.can_increase_rollout(submission) is expected
