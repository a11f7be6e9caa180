"""
Release state machine: stage progression, pauses, operator actions.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from core.models import (
    CronConfig,
    CronStatus,
    DistributionStageData,
    JenkinsBuildConfig,
    PauseType,
    Platform,
    PreReleaseStageData,
    RegressionCycleStatus,
    RegressionSlot,
    RegressionStageData,
    ReleaseRecord,
    ReleaseStage,
    ReleaseType,
    StageStatus,
    SubmissionRecord,
    SubmissionStatus,
    TaskStage,
    TaskStatus,
    TaskType,
)
from core.state_machine import ReleaseStateMachine
from core.task_executor import TaskExecutor, task_id_for
from exceptions import (
    ContractViolationError,
    LockContentionError,
    ResourceNotFoundError,
    TaskFailureError,
    ValidationError,
)
from services.collaborators import DispatchOutcome, DispatchResult, NotificationEvent
from tests.factories.model_factories import make_release, make_submission

CI = JenkinsBuildConfig(job_url="https://ci.example.com/job/app", credentials_ref="ci-token")


def _events(notifier):
    return [c.args[0] for c in notifier.notify.call_args_list]


def _slot(offset, time="09:00"):
    return RegressionSlot(offset_from_kickoff=offset, time=time)


def _go_live(repos, release_id, created_at, platforms=(Platform.ANDROID, Platform.IOS)):
    for platform in platforms:
        repos.submissions.create_submission(SubmissionRecord(**make_submission(
            release_id, platform, status=SubmissionStatus.LIVE, rollout_percentage=100.0,
            created_at=created_at,
        )))


@pytest.fixture
def machine_with(repos, notifier, pollers, gate, lock_manager, clock):
    """Factory fixture: state machine over a given task collaborator."""
    def _build(collaborator):
        executor = TaskExecutor(
            repos, collaborator, notifier, gate,
            sleep=lambda _: None, clock=clock,
        )
        return ReleaseStateMachine(
            repos, executor, notifier, pollers, lock_manager,
            instance_id="test-instance", clock=clock,
            cycle_id_factory=lambda: "cycleX",
        )
    return _build


class TestCreateRelease:

    def _release(self, clock, **overrides):
        overrides.setdefault("release_type", ReleaseType.MINOR)
        return ReleaseRecord(**make_release(kickoff_at=clock.now, **overrides))

    def test_creates_pending_cron_job(self, repos, state_machine, clock):
        release = self._release(clock, version="2.0.0")

        created, cron_job = state_machine.create_release(
            release, upcoming_regressions=[_slot(1), _slot(3)],
            cron_config=CronConfig(pre_regression_builds=True),
            auto_transition_to_stage2=True,
        )

        assert created.version == "2.0.0"
        assert repos.releases.get_release(release.release_id) == created
        assert cron_job == repos.cron_jobs.get_cron_job(release.release_id)
        assert cron_job.cron_status == CronStatus.PENDING
        assert cron_job.pause_type == PauseType.NONE
        assert [s.offset_from_kickoff for s in cron_job.upcoming_regressions] == [1, 3]
        assert cron_job.cron_config.pre_regression_builds
        assert cron_job.auto_transition_to_stage2
        assert not cron_job.auto_transition_to_stage3

    def test_created_release_starts_on_tick(self, repos, state_machine, clock):
        release, _ = state_machine.create_release(self._release(clock))

        state_machine.tick(release.release_id)

        cron_job = repos.cron_jobs.get_cron_job(release.release_id)
        assert cron_job.cron_status != CronStatus.PENDING
        assert cron_job.stage1_status != StageStatus.PENDING

    @pytest.mark.parametrize("initial,latest,expected", [
        ("1.0.0", "1.4.0", "1.5.0"),
        ("3.0.0", "1.4.0", "3.0.0"),
        ("v1.5.0", "1.4.0", "v1.5.0"),
    ])
    def test_version_never_goes_backwards(self, state_machine, seed_release, clock,
                                          initial, latest, expected):
        seed_release(tenant_id="tenant-a", version=latest)
        seed_release(tenant_id="tenant-b", version="9.0.0")

        created, _ = state_machine.create_release(
            self._release(clock, tenant_id="tenant-a", version=initial)
        )

        assert created.version == expected

    @pytest.mark.parametrize("version,slots,target_after_kickoff", [
        ("1.2", [], timedelta(days=7)),
        ("2.0.0", [_slot(30)], timedelta(days=7)),
        ("2.0.0", [], timedelta(hours=-1)),
    ])
    def test_invalid_release_stores_nothing(self, repos, state_machine, clock,
                                            version, slots, target_after_kickoff):
        release = self._release(
            clock, version=version, target_release_at=clock.now + target_after_kickoff
        )

        with pytest.raises(ValidationError):
            state_machine.create_release(release, upcoming_regressions=slots)

        assert repos.releases.get_release(release.release_id) is None
        assert repos.cron_jobs.get_cron_job(release.release_id) is None

    def test_duplicate_release_rejected(self, repos, state_machine, seed_release, clock):
        existing = seed_release()
        before = repos.cron_jobs.get_cron_job(existing.release_id)

        with pytest.raises(ValidationError):
            state_machine.create_release(self._release(clock, release_id=existing.release_id))

        assert repos.cron_jobs.get_cron_job(existing.release_id) == before

    def test_cron_job_failure_rolls_back_release(self, repos, state_machine, clock, monkeypatch):
        release = self._release(clock)
        monkeypatch.setattr(repos.cron_jobs, "create_cron_job", lambda cron_job: False)

        with pytest.raises(ValidationError):
            state_machine.create_release(release)

        assert repos.releases.get_release(release.release_id) is None


class TestKickoff:

    def test_waits_for_kickoff(self, repos, state_machine, seed_release, clock):
        release = seed_release(kickoff_at=clock.now + timedelta(hours=1))

        outcome = state_machine.tick(release.release_id)

        assert outcome.action == "noop"
        assert outcome.detail == "waiting for kickoff"
        assert repos.cron_jobs.get_cron_job(release.release_id).cron_status == CronStatus.PENDING

    def test_start_and_complete_kickoff_awaits_trigger(self, repos, state_machine, seed_release,
                                                       notifier, pollers):
        release = seed_release()

        outcome = state_machine.tick(release.release_id)

        cron_job = repos.cron_jobs.get_cron_job(release.release_id)
        assert outcome.action == "stage_completed"
        assert cron_job.stage1_status == StageStatus.COMPLETED
        assert cron_job.stage2_status == StageStatus.PENDING
        assert cron_job.cron_status == CronStatus.PAUSED
        assert cron_job.pause_type == PauseType.AWAITING_STAGE_TRIGGER
        assert _events(notifier) == [
            NotificationEvent.STAGE_COMPLETED, NotificationEvent.AWAITING_STAGE_TRIGGER,
        ]
        pollers.create_pollers.assert_called_once_with(release.release_id)

    def test_paused_release_is_not_advanced(self, state_machine, seed_release):
        release = seed_release()
        state_machine.tick(release.release_id)

        outcome = state_machine.tick(release.release_id)

        assert outcome.action == "noop"
        assert outcome.detail == "paused: awaiting_stage_trigger"

    def test_late_start_recorded(self, repos, state_machine, seed_release, clock):
        release = seed_release(kickoff_at=clock.now - timedelta(hours=3))

        state_machine.start(release.release_id)

        assert repos.cron_jobs.get_cron_job(release.release_id).stage_data.late_start

    def test_operator_start_before_kickoff_holds_fork(self, repos, state_machine, seed_release, clock):
        release = seed_release(kickoff_at=clock.now + timedelta(days=1))

        cron_job = state_machine.start(release.release_id)
        state_machine.tick(release.release_id)

        assert cron_job.cron_status == CronStatus.RUNNING
        assert cron_job.stage1_status == StageStatus.IN_PROGRESS
        fork = repos.tasks.get_task(task_id_for(release.release_id, TaskType.FORK_BRANCH))
        assert fork.task_status == TaskStatus.PENDING

    def test_start_rejects_slot_after_target(self, state_machine, seed_release):
        release = seed_release(cron_overrides={"upcoming_regressions": [_slot(30)]})
        with pytest.raises(ValidationError):
            state_machine.start(release.release_id)

    def test_start_rejects_non_pending(self, state_machine, seed_release):
        release = seed_release()
        state_machine.tick(release.release_id)
        with pytest.raises(ValidationError):
            state_machine.start(release.release_id)


class TestFullRelease:

    def test_auto_transitions_through_all_stages(self, repos, state_machine, seed_release,
                                                 notifier, pollers, clock):
        release = seed_release(
            build_config=CI,
            cron_overrides={
                "auto_transition_to_stage2": True,
                "auto_transition_to_stage3": True,
                "upcoming_regressions": [_slot(0)],
            },
        )
        rid = release.release_id

        assert state_machine.tick(rid).stage == ReleaseStage.KICKOFF
        cron_job = repos.cron_jobs.get_cron_job(rid)
        assert cron_job.stage2_status == StageStatus.IN_PROGRESS
        assert cron_job.cron_status == CronStatus.RUNNING

        outcome = state_machine.tick(rid)
        assert outcome.action == "stage_completed"
        assert outcome.stage == ReleaseStage.REGRESSION
        cron_job = repos.cron_jobs.get_cron_job(rid)
        assert cron_job.stage3_status == StageStatus.IN_PROGRESS
        assert cron_job.stage_data == PreReleaseStageData(regression_cycle_count=1)
        assert cron_job.upcoming_regressions == []

        outcome = state_machine.tick(rid)
        assert outcome.stage == ReleaseStage.PRE_RELEASE
        cron_job = repos.cron_jobs.get_cron_job(rid)
        assert cron_job.stage4_status == StageStatus.IN_PROGRESS
        assert isinstance(cron_job.stage_data, DistributionStageData)
        pre_release = repos.tasks.list_tasks(rid, TaskStage.PRE_RELEASE)
        assert {t.task_type for t in pre_release} >= {
            TaskType.CREATE_RELEASE_TAG, TaskType.TRIGGER_TEST_FLIGHT_BUILD, TaskType.CREATE_AAB_BUILD,
        }

        outcome = state_machine.tick(rid)
        assert outcome.action == "noop"
        assert "android" in outcome.detail and "ios" in outcome.detail

        _go_live(repos, rid, clock.now)
        outcome = state_machine.tick(rid)

        assert outcome.action == "completed"
        cron_job = repos.cron_jobs.get_cron_job(rid)
        assert cron_job.cron_status == CronStatus.COMPLETED
        assert cron_job.stage4_status == StageStatus.COMPLETED
        pollers.delete_pollers.assert_called_once_with(rid)
        assert _events(notifier)[-1] == NotificationEvent.RELEASE_COMPLETED

    def test_distribution_waits_for_latest_submission(self, repos, state_machine, seed_release, clock):
        release = seed_release(
            build_config=CI,
            platforms=[Platform.ANDROID],
            cron_overrides={"auto_transition_to_stage2": True, "auto_transition_to_stage3": True},
        )
        rid = release.release_id
        for _ in range(3):
            state_machine.tick(rid)
        assert repos.cron_jobs.get_cron_job(rid).stage4_status == StageStatus.IN_PROGRESS

        _go_live(repos, rid, clock.now, [Platform.ANDROID])
        repos.submissions.create_submission(SubmissionRecord(**make_submission(
            rid, Platform.ANDROID, status=SubmissionStatus.LIVE, rollout_percentage=20.0,
            created_at=clock.now + timedelta(days=1),
        )))

        assert state_machine.tick(rid).action == "noop"


class TestRegression:

    def _enter_regression(self, state_machine, seed_release, slots, **overrides):
        release = seed_release(
            build_config=CI,
            cron_overrides={"auto_transition_to_stage2": True, "upcoming_regressions": slots},
            **overrides,
        )
        state_machine.tick(release.release_id)
        return release

    def test_cycles_open_as_slots_come_due(self, repos, state_machine, seed_release, clock, notifier):
        release = self._enter_regression(state_machine, seed_release, [_slot(1), _slot(0)])
        rid = release.release_id

        state_machine.tick(rid)
        data = repos.cron_jobs.get_cron_job(rid).stage_data
        assert [c.status for c in data.cycles] == [RegressionCycleStatus.DONE]
        assert not data.cycles[0].is_subsequent

        outcome = state_machine.tick(rid)
        assert outcome.action == "noop"
        assert outcome.detail.startswith("next slot at")

        clock.advance(timedelta(days=1))
        outcome = state_machine.tick(rid)

        cron_job = repos.cron_jobs.get_cron_job(rid)
        assert outcome.action == "stage_completed"
        assert cron_job.is_paused(PauseType.AWAITING_STAGE_TRIGGER)
        assert isinstance(cron_job.stage_data, RegressionStageData)
        cycles = cron_job.stage_data.cycles
        assert len(cycles) == 2
        assert cycles[1].is_subsequent
        assert _events(notifier).count(NotificationEvent.REGRESSION_CYCLE_STARTED) == 2

        cycle_ids = {c.cycle_id for c in cycles}
        tagged = {t.cycle_id for t in repos.tasks.list_tasks(rid, TaskStage.REGRESSION)
                  if t.task_type == TaskType.CREATE_RC_TAG}
        assert tagged == cycle_ids

    def test_no_slots_completes_immediately(self, repos, state_machine, seed_release):
        release = self._enter_regression(state_machine, seed_release, [])

        outcome = state_machine.tick(release.release_id)

        assert outcome.action == "stage_completed"
        assert repos.cron_jobs.get_cron_job(release.release_id).stage2_status == StageStatus.COMPLETED

    def test_trigger_next_stage_enters_pre_release(self, repos, state_machine, seed_release):
        release = self._enter_regression(state_machine, seed_release, [_slot(0)])
        state_machine.tick(release.release_id)

        cron_job = state_machine.trigger_next_stage(release.release_id)

        assert cron_job.cron_status == CronStatus.RUNNING
        assert cron_job.stage3_status == StageStatus.IN_PROGRESS
        assert cron_job.stage_data.regression_cycle_count == 1

    def test_add_slot_during_regression(self, repos, state_machine, seed_release):
        release = self._enter_regression(state_machine, seed_release, [_slot(2)])

        cron_job = state_machine.add_regression_slot(release.release_id, _slot(3, "08:00"))

        assert [s.offset_from_kickoff for s in cron_job.upcoming_regressions] == [2, 3]

    def test_add_slot_after_target_rejected(self, state_machine, seed_release):
        release = self._enter_regression(state_machine, seed_release, [_slot(2)])
        with pytest.raises(ValidationError):
            state_machine.add_regression_slot(release.release_id, _slot(7, "10:00"))

    def test_add_slot_after_regression_rejected(self, state_machine, seed_release):
        release = self._enter_regression(state_machine, seed_release, [])
        state_machine.tick(release.release_id)
        with pytest.raises(ValidationError):
            state_machine.add_regression_slot(release.release_id, _slot(1))


class TestPauses:

    def test_operator_pause_and_resume(self, repos, state_machine, seed_release):
        release = seed_release(cron_overrides={
            "auto_transition_to_stage2": True, "upcoming_regressions": [_slot(2)],
        })
        rid = release.release_id
        state_machine.tick(rid)

        paused = state_machine.pause(rid)
        assert paused.pause_type == PauseType.USER_REQUESTED
        assert state_machine.tick(rid).detail == "paused: user_requested"

        resumed = state_machine.resume(rid)
        assert resumed.cron_status == CronStatus.RUNNING
        assert resumed.pause_type == PauseType.NONE

    def test_pause_requires_running(self, state_machine, seed_release):
        release = seed_release()
        with pytest.raises(ValidationError):
            state_machine.pause(release.release_id)

    def test_resume_rejects_stage_trigger_pause(self, state_machine, seed_release):
        release = seed_release()
        state_machine.tick(release.release_id)
        with pytest.raises(ValidationError):
            state_machine.resume(release.release_id)

    def test_task_failure_pauses_until_retry(self, repos, machine_with, seed_release, notifier):
        collaborator = MagicMock()
        collaborator.dispatch.side_effect = [
            TaskFailureError("branch already exists"),
            DispatchResult(outcome=DispatchOutcome.COMPLETED),
        ]
        machine = machine_with(collaborator)
        release = seed_release()
        rid = release.release_id
        fork_id = task_id_for(rid, TaskType.FORK_BRANCH)

        outcome = machine.tick(rid)
        assert outcome.action == "paused"
        cron_job = repos.cron_jobs.get_cron_job(rid)
        assert cron_job.is_paused(PauseType.TASK_FAILURE)
        assert NotificationEvent.TASK_FAILED in _events(notifier)

        assert machine.tick(rid).action == "noop"
        with pytest.raises(ValidationError):
            machine.resume(rid)

        task = machine.retry_task(rid, fork_id)
        assert task.task_status == TaskStatus.PENDING
        assert repos.cron_jobs.get_cron_job(rid).cron_status == CronStatus.RUNNING

        assert machine.tick(rid).action == "stage_completed"

    def test_retry_task_of_other_release_not_found(self, state_machine, seed_release):
        release = seed_release()
        with pytest.raises(ResourceNotFoundError):
            state_machine.retry_task(release.release_id, "other:fork-branch")


class TestArchive:

    def test_archive_running_release(self, repos, state_machine, seed_release, pollers):
        release = seed_release(cron_overrides={
            "auto_transition_to_stage2": True, "upcoming_regressions": [_slot(2)],
        })
        state_machine.tick(release.release_id)

        first = state_machine.archive(release.release_id)
        second = state_machine.archive(release.release_id)

        assert first.cron_status == CronStatus.COMPLETED
        assert second.cron_status == CronStatus.COMPLETED
        assert repos.releases.get_release(release.release_id).archived
        pollers.delete_pollers.assert_called_once_with(release.release_id)
        assert state_machine.tick(release.release_id).detail == "completed"

    def test_tick_completes_release_archived_elsewhere(self, repos, state_machine, seed_release):
        release = seed_release()
        repos.releases.mark_archived(release.release_id)

        outcome = state_machine.tick(release.release_id)

        assert outcome.action == "completed"
        assert outcome.detail == "archived"
        assert repos.cron_jobs.get_cron_job(release.release_id).cron_status == CronStatus.COMPLETED


class TestAtomicity:

    def test_failed_tick_rolls_back(self, repos, machine_with, seed_release):
        collaborator = MagicMock()
        collaborator.dispatch.side_effect = ContractViolationError("bad payload")
        machine = machine_with(collaborator)
        release = seed_release()

        with pytest.raises(ContractViolationError):
            machine.tick(release.release_id)

        cron_job = repos.cron_jobs.get_cron_job(release.release_id)
        assert cron_job.cron_status == CronStatus.PENDING
        assert cron_job.row_version == 0
        assert repos.tasks.list_tasks(release.release_id) == []

    def test_operator_action_rejected_while_locked(self, state_machine, seed_release, lock_manager):
        release = seed_release()
        lock_manager.acquire(release.release_id, "other-instance:1", 300)

        with pytest.raises(LockContentionError):
            state_machine.start(release.release_id)

    def test_unknown_release(self, state_machine):
        with pytest.raises(ResourceNotFoundError):
            state_machine.tick("missing")
