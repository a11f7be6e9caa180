"""
Release State Machine - One Release, One Step.

tick() moves a single release forward by whatever is due right now and
persists the result in one transaction. The caller (TickScheduler) holds
the release's lock for the duration.

Stages:
    1 KICKOFF       kickoff tasks
    2 REGRESSION    one task set per regression cycle, cycles opened as
                    their slots come due
    3 PRE_RELEASE   pre-release tasks
    4 DISTRIBUTION  waits until every platform's latest submission is
                    live at 100%

Pause reasons:
    AWAITING_STAGE_TRIGGER  stage 1 or 2 finished without auto-transition
    USER_REQUESTED          operator pause
    TASK_FAILURE            a task FAILED; needs an operator retry

Operator actions (start, pause, resume, trigger_next_stage, archive,
add_regression_slot, retry_task, handle_build_callback) take the same
per-release lock as the scheduler so they never interleave with a tick.
create_release needs no lock: nothing can tick a release before its
cron job row exists.

Exports:
    ReleaseStateMachine
"""

import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from exceptions import (
    BusinessLogicError,
    ContractViolationError,
    LockContentionError,
    ResourceNotFoundError,
    ValidationError,
)
from services.collaborators import NotificationClient, NotificationEvent, WorkflowPollerClient
from util_logger import LoggerFactory, ComponentType
from .lock_manager import LockManager, new_lock_owner
from .logic.scheduling import is_ready_to_start, pop_due_slot
from .logic.versioning import VersionResolver
from .models import (
    CronConfig,
    CronJobRecord,
    CronStatus,
    DistributionStageData,
    KickoffStageData,
    PauseType,
    PreReleaseStageData,
    RegressionCycle,
    RegressionCycleStatus,
    RegressionSlot,
    RegressionStageData,
    ReleaseRecord,
    ReleaseStage,
    ReleaseTaskRecord,
    StageStatus,
    TaskStage,
    TaskStatus,
    TickOutcome,
)
from .task_executor import TaskExecutor

logger = LoggerFactory.create_logger(ComponentType.ORCHESTRATOR, "ReleaseStateMachine")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_cycle_id() -> str:
    return uuid.uuid4().hex[:12]


class ReleaseStateMachine:
    """
    Per-release stage and pause transitions.

    Args:
        repos: ReleaseRepositories
        executor: TaskExecutor for the task-running stages
        notifier: Stage and release notifications
        pollers: Workflow poller scheduling
        lock_manager: Per-release lock, used by operator actions
        instance_id: Prefix of lock owner ids
        lock_timeout_seconds: Timeout of locks taken by operator actions
        reminder_lead: How long before kickoff a release with the kickoff
            reminder enabled starts
        clock, cycle_id_factory: Injected for tests
    """

    def __init__(self, repos, executor: TaskExecutor, notifier: NotificationClient,
                 pollers: WorkflowPollerClient, lock_manager: LockManager,
                 instance_id: str, lock_timeout_seconds: int = 300,
                 reminder_lead: timedelta = timedelta(hours=24),
                 clock: Callable[[], datetime] = _utc_now,
                 cycle_id_factory: Callable[[], str] = _new_cycle_id):
        self.repos = repos
        self.executor = executor
        self.notifier = notifier
        self.pollers = pollers
        self.lock_manager = lock_manager
        self.instance_id = instance_id
        self.lock_timeout_seconds = lock_timeout_seconds
        self.reminder_lead = reminder_lead
        self.clock = clock
        self.cycle_id_factory = cycle_id_factory

    # ========================================================================
    # TICK
    # ========================================================================

    def tick(self, release_id: str) -> TickOutcome:
        """
        Perform whatever is due for one release.

        Every write happens inside one transaction; an exception rolls all
        of them back and propagates to the scheduler.
        """
        with self.repos.transaction():
            cron_job = self._load_cron_job(release_id)
            release = self._load_release(release_id)

            if cron_job.cron_status == CronStatus.COMPLETED:
                return self._outcome(cron_job, "noop", detail="completed")
            if release.archived:
                return self._complete_archived(cron_job)
            if cron_job.cron_status == CronStatus.PAUSED:
                return self._outcome(cron_job, "noop", detail=f"paused: {cron_job.pause_type.value}")

            if cron_job.cron_status == CronStatus.PENDING:
                if not is_ready_to_start(release, cron_job, self.clock(), self.reminder_lead):
                    return self._outcome(cron_job, "noop", detail="waiting for kickoff")
                cron_job = self._start(release, cron_job)

            stage = cron_job.current_stage()
            if stage is None:
                raise ContractViolationError(
                    f"Cron job {release_id} is RUNNING with no stage IN_PROGRESS"
                )

            handlers = {
                ReleaseStage.KICKOFF: self._run_kickoff,
                ReleaseStage.REGRESSION: self._run_regression,
                ReleaseStage.PRE_RELEASE: self._run_pre_release,
                ReleaseStage.DISTRIBUTION: self._run_distribution,
            }
            return handlers[stage](release, cron_job)

    # ------------------------------------------------------------------
    # Stage 1
    # ------------------------------------------------------------------

    def _run_kickoff(self, release: ReleaseRecord, cron_job: CronJobRecord) -> TickOutcome:
        result = self.executor.advance(release, cron_job, TaskStage.KICKOFF)

        if result.has_failure:
            return self._pause_for_failure(cron_job, ReleaseStage.KICKOFF, result.failed)
        if not result.all_required_complete:
            return self._outcome(cron_job, "advanced", ReleaseStage.KICKOFF)

        cron_job = cron_job.with_stage_status(ReleaseStage.KICKOFF, StageStatus.COMPLETED)
        self._notify(NotificationEvent.STAGE_COMPLETED, release.release_id, {"stage": 1})
        if cron_job.auto_transition_to_stage2:
            cron_job = self._enter_regression(cron_job)
        else:
            cron_job = self._await_trigger(cron_job, ReleaseStage.KICKOFF)
        cron_job = self.repos.cron_jobs.save_cron_job(cron_job)
        return self._outcome(cron_job, "stage_completed", ReleaseStage.KICKOFF)

    # ------------------------------------------------------------------
    # Stage 2
    # ------------------------------------------------------------------

    def _run_regression(self, release: ReleaseRecord, cron_job: CronJobRecord) -> TickOutcome:
        data = cron_job.stage_data
        if not isinstance(data, RegressionStageData):
            raise ContractViolationError(
                f"Cron job {release.release_id} in regression with {data.kind} stage data"
            )

        dirty = False
        active = data.active_cycle()
        if active is None or active.status == RegressionCycleStatus.DONE:
            slot, remaining = pop_due_slot(cron_job.upcoming_regressions, release.kickoff_at, self.clock())
            if slot is not None:
                cron_job, active = self._open_cycle(release, cron_job, slot, remaining)
                dirty = True
            elif not remaining:
                return self._complete_regression(release, cron_job)
            else:
                return self._outcome(
                    cron_job, "noop", ReleaseStage.REGRESSION,
                    detail=f"next slot at {remaining[0].scheduled_at(release.kickoff_at).isoformat()}"
                )

        result = self.executor.advance(release, cron_job, TaskStage.REGRESSION, active.cycle_id)

        if result.has_failure:
            return self._pause_for_failure(cron_job, ReleaseStage.REGRESSION, result.failed)

        if result.all_required_complete:
            done = active.model_copy(update={
                "status": RegressionCycleStatus.DONE,
                "completed_at": self.clock(),
            })
            data = cron_job.stage_data
            cron_job = cron_job.model_copy(update={"stage_data": data.model_copy(update={
                "cycles": [done if c.cycle_id == done.cycle_id else c for c in data.cycles],
            })})
            logger.info(f"✅ Regression cycle {active.cycle_id} of {release.release_id} done")
            if not cron_job.upcoming_regressions:
                return self._complete_regression(release, cron_job)
            dirty = True

        if dirty:
            cron_job = self.repos.cron_jobs.save_cron_job(cron_job)
        return self._outcome(cron_job, "advanced", ReleaseStage.REGRESSION)

    def _open_cycle(self, release: ReleaseRecord, cron_job: CronJobRecord,
                    slot: RegressionSlot, remaining: list) -> tuple:
        data = cron_job.stage_data
        cycle = RegressionCycle(
            cycle_id=self.cycle_id_factory(),
            slot=slot,
            is_subsequent=len(data.cycles) > 0,
            started_at=self.clock(),
        )
        cron_job = cron_job.model_copy(update={
            "upcoming_regressions": remaining,
            "stage_data": data.model_copy(update={
                "cycles": data.cycles + [cycle],
                "active_cycle_id": cycle.cycle_id,
            }),
        })
        self.executor.build_stage_tasks(release, cron_job, TaskStage.REGRESSION, cycle)
        self._notify(NotificationEvent.REGRESSION_CYCLE_STARTED, release.release_id, {
            "cycleId": cycle.cycle_id,
            "cycleNumber": len(data.cycles) + 1,
        })
        logger.info(f"Opened regression cycle {cycle.cycle_id} for {release.release_id}")
        return cron_job, cycle

    def _complete_regression(self, release: ReleaseRecord, cron_job: CronJobRecord) -> TickOutcome:
        cron_job = cron_job.with_stage_status(ReleaseStage.REGRESSION, StageStatus.COMPLETED)
        self._notify(NotificationEvent.STAGE_COMPLETED, release.release_id, {"stage": 2})
        if cron_job.auto_transition_to_stage3:
            cron_job = self._enter_pre_release(cron_job)
        else:
            cron_job = self._await_trigger(cron_job, ReleaseStage.REGRESSION)
        cron_job = self.repos.cron_jobs.save_cron_job(cron_job)
        return self._outcome(cron_job, "stage_completed", ReleaseStage.REGRESSION)

    # ------------------------------------------------------------------
    # Stage 3
    # ------------------------------------------------------------------

    def _run_pre_release(self, release: ReleaseRecord, cron_job: CronJobRecord) -> TickOutcome:
        data = cron_job.stage_data
        if not isinstance(data, PreReleaseStageData):
            raise ContractViolationError(
                f"Cron job {release.release_id} in pre-release with {data.kind} stage data"
            )

        if not data.tasks_created:
            self.executor.build_stage_tasks(release, cron_job, TaskStage.PRE_RELEASE)
            cron_job = self.repos.cron_jobs.save_cron_job(cron_job.model_copy(update={
                "stage_data": data.model_copy(update={"tasks_created": True}),
            }))

        result = self.executor.advance(release, cron_job, TaskStage.PRE_RELEASE)

        if result.has_failure:
            return self._pause_for_failure(cron_job, ReleaseStage.PRE_RELEASE, result.failed)
        if not result.all_required_complete:
            return self._outcome(cron_job, "advanced", ReleaseStage.PRE_RELEASE)

        cron_job = cron_job.with_stage_status(ReleaseStage.PRE_RELEASE, StageStatus.COMPLETED)
        cron_job = cron_job.with_stage_status(ReleaseStage.DISTRIBUTION, StageStatus.IN_PROGRESS)
        cron_job = cron_job.model_copy(update={
            "stage_data": DistributionStageData(entered_at=self.clock()),
        })
        cron_job = self.repos.cron_jobs.save_cron_job(cron_job)
        self._notify(NotificationEvent.STAGE_COMPLETED, release.release_id, {"stage": 3})
        return self._outcome(cron_job, "stage_completed", ReleaseStage.PRE_RELEASE)

    # ------------------------------------------------------------------
    # Stage 4
    # ------------------------------------------------------------------

    def _run_distribution(self, release: ReleaseRecord, cron_job: CronJobRecord) -> TickOutcome:
        pending = []
        for platform in release.platforms:
            submissions = self.repos.submissions.list_submissions(release.release_id, platform)
            if not submissions or not submissions[0].is_fully_live:
                pending.append(platform.value)

        if pending:
            return self._outcome(
                cron_job, "noop", ReleaseStage.DISTRIBUTION,
                detail=f"waiting for full rollout: {', '.join(pending)}"
            )

        cron_job = cron_job.with_stage_status(ReleaseStage.DISTRIBUTION, StageStatus.COMPLETED)
        cron_job = cron_job.model_copy(update={
            "cron_status": CronStatus.COMPLETED,
            "pause_type": PauseType.NONE,
        })
        cron_job = self.repos.cron_jobs.save_cron_job(cron_job)
        self._delete_pollers(release.release_id)
        self._notify(NotificationEvent.RELEASE_COMPLETED, release.release_id, {"version": release.version})
        logger.info(f"✅ Release {release.release_id} completed")
        return self._outcome(cron_job, "completed", ReleaseStage.DISTRIBUTION)

    # ------------------------------------------------------------------
    # Shared transitions
    # ------------------------------------------------------------------

    def _start(self, release: ReleaseRecord, cron_job: CronJobRecord) -> CronJobRecord:
        VersionResolver.parse(release.version)
        for slot in cron_job.upcoming_regressions:
            slot.validate_against_target(release.kickoff_at, release.target_release_at)

        now = self.clock()
        cron_job = cron_job.with_stage_status(ReleaseStage.KICKOFF, StageStatus.IN_PROGRESS)
        cron_job = cron_job.model_copy(update={
            "cron_status": CronStatus.RUNNING,
            "pause_type": PauseType.NONE,
            "stage_data": KickoffStageData(started_at=now, late_start=now > release.kickoff_at),
        })
        self.executor.build_stage_tasks(release, cron_job, TaskStage.KICKOFF)
        cron_job = self.repos.cron_jobs.save_cron_job(cron_job)
        self._create_pollers(release.release_id)
        logger.info(f"🚀 Release {release.release_id} ({release.version}) started")
        return cron_job

    def _enter_regression(self, cron_job: CronJobRecord) -> CronJobRecord:
        cron_job = cron_job.with_stage_status(ReleaseStage.REGRESSION, StageStatus.IN_PROGRESS)
        return cron_job.model_copy(update={
            "cron_status": CronStatus.RUNNING,
            "pause_type": PauseType.NONE,
            "stage_data": RegressionStageData(),
        })

    def _enter_pre_release(self, cron_job: CronJobRecord) -> CronJobRecord:
        cycles = getattr(cron_job.stage_data, "cycles", [])
        cron_job = cron_job.with_stage_status(ReleaseStage.PRE_RELEASE, StageStatus.IN_PROGRESS)
        return cron_job.model_copy(update={
            "cron_status": CronStatus.RUNNING,
            "pause_type": PauseType.NONE,
            "stage_data": PreReleaseStageData(regression_cycle_count=len(cycles)),
        })

    def _await_trigger(self, cron_job: CronJobRecord, finished: ReleaseStage) -> CronJobRecord:
        self._notify(NotificationEvent.AWAITING_STAGE_TRIGGER, cron_job.release_id, {
            "completedStage": finished.value,
        })
        logger.info(f"⏸️ Release {cron_job.release_id} waiting for stage {finished.value + 1} trigger")
        return cron_job.model_copy(update={
            "cron_status": CronStatus.PAUSED,
            "pause_type": PauseType.AWAITING_STAGE_TRIGGER,
        })

    def _pause_for_failure(self, cron_job: CronJobRecord, stage: ReleaseStage,
                           failed_task_ids: list) -> TickOutcome:
        cron_job = self.repos.cron_jobs.save_cron_job(cron_job.model_copy(update={
            "cron_status": CronStatus.PAUSED,
            "pause_type": PauseType.TASK_FAILURE,
        }))
        logger.warning(
            f"⏸️ Release {cron_job.release_id} paused: task failure in stage {stage.value} "
            f"({failed_task_ids})"
        )
        return self._outcome(cron_job, "paused", stage, detail="task failure")

    def _complete_archived(self, cron_job: CronJobRecord) -> TickOutcome:
        cron_job = self.repos.cron_jobs.save_cron_job(cron_job.model_copy(update={
            "cron_status": CronStatus.COMPLETED,
            "pause_type": PauseType.NONE,
        }))
        self._delete_pollers(cron_job.release_id)
        logger.info(f"Release {cron_job.release_id} archived; orchestration stopped")
        return self._outcome(cron_job, "completed", detail="archived")

    # ========================================================================
    # OPERATOR ACTIONS
    # ========================================================================

    @contextmanager
    def _operator_action(self, release_id: str):
        """Hold the release lock and one transaction for an operator action."""
        owner = new_lock_owner(self.instance_id)
        try:
            with self.lock_manager.hold(release_id, owner, self.lock_timeout_seconds):
                with self.repos.transaction():
                    yield
        except LockContentionError:
            logger.warning(f"🔒 Operator action on {release_id} rejected: release is busy")
            raise

    def create_release(self, release: ReleaseRecord,
                       upcoming_regressions: Optional[List[RegressionSlot]] = None,
                       cron_config: Optional[CronConfig] = None,
                       auto_transition_to_stage2: bool = False,
                       auto_transition_to_stage3: bool = False) -> Tuple[ReleaseRecord, CronJobRecord]:
        """
        Register a release and its PENDING cron job in one transaction.

        release.version is the initial version. When the tenant already
        has releases, the bump of the latest one replaces it if higher,
        so a tenant's versions never go backwards.

        Raises:
            ValidationError: Bad version, target before kickoff, a slot
                after the target release, or the release already exists
        """
        slots = list(upcoming_regressions or [])
        VersionResolver.parse(release.version)
        if release.target_release_at <= release.kickoff_at:
            raise ValidationError(
                f"Target release {release.target_release_at.isoformat()} is not after "
                f"kickoff {release.kickoff_at.isoformat()}"
            )
        for slot in slots:
            slot.validate_against_target(release.kickoff_at, release.target_release_at)

        with self.repos.transaction():
            latest = self.repos.releases.get_latest_version(release.tenant_id)
            version = VersionResolver.resolve_first_scheduled_version(
                release.version, latest, release.release_type
            )
            release = release.model_copy(update={"version": version, "archived": False})
            if not self.repos.releases.create_release(release):
                raise ValidationError(f"Release {release.release_id} already exists")

            cron_job = CronJobRecord(
                release_id=release.release_id,
                cron_config=cron_config or CronConfig(),
                upcoming_regressions=slots,
                auto_transition_to_stage2=auto_transition_to_stage2,
                auto_transition_to_stage3=auto_transition_to_stage3,
                lock_timeout_seconds=self.lock_timeout_seconds,
            )
            if not self.repos.cron_jobs.create_cron_job(cron_job):
                raise ValidationError(f"Cron job for release {release.release_id} already exists")
            cron_job = self._load_cron_job(release.release_id)

        logger.info(
            f"✅ Release {release.release_id} ({version}) created for tenant "
            f"{release.tenant_id}, kickoff {release.kickoff_at.isoformat()}"
        )
        return release, cron_job

    def start(self, release_id: str) -> CronJobRecord:
        """
        Start a PENDING release now, regardless of its kickoff time.

        Raises:
            ValidationError: Not PENDING, archived, bad version or slots
        """
        with self._operator_action(release_id):
            cron_job = self._load_cron_job(release_id)
            release = self._load_release(release_id)
            if release.archived:
                raise ValidationError(f"Release {release_id} is archived")
            if cron_job.cron_status != CronStatus.PENDING:
                raise ValidationError(
                    f"Release {release_id} is {cron_job.cron_status.value}; only PENDING releases start"
                )
            return self._start(release, cron_job)

    def pause(self, release_id: str) -> CronJobRecord:
        with self._operator_action(release_id):
            cron_job = self._load_cron_job(release_id)
            if cron_job.cron_status != CronStatus.RUNNING:
                raise ValidationError(
                    f"Release {release_id} is {cron_job.cron_status.value}; only RUNNING releases pause"
                )
            logger.info(f"⏸️ Release {release_id} paused by operator")
            return self.repos.cron_jobs.save_cron_job(cron_job.model_copy(update={
                "cron_status": CronStatus.PAUSED,
                "pause_type": PauseType.USER_REQUESTED,
            }))

    def resume(self, release_id: str) -> CronJobRecord:
        """
        Clear a USER_REQUESTED or TASK_FAILURE pause.

        TASK_FAILURE clears only when no FAILED task remains. A release
        waiting for a stage trigger resumes through trigger_next_stage.
        """
        with self._operator_action(release_id):
            cron_job = self._load_cron_job(release_id)
            if cron_job.cron_status != CronStatus.PAUSED:
                raise ValidationError(f"Release {release_id} is not paused")
            if cron_job.pause_type == PauseType.AWAITING_STAGE_TRIGGER:
                raise ValidationError(
                    f"Release {release_id} is waiting for a stage trigger; use trigger-next-stage"
                )
            if cron_job.pause_type == PauseType.TASK_FAILURE:
                failed = self._failed_tasks(release_id)
                if failed:
                    raise ValidationError(
                        f"Release {release_id} still has failed tasks: "
                        f"{', '.join(t.task_id for t in failed)}"
                    )
            return self._resume(cron_job)

    def trigger_next_stage(self, release_id: str) -> CronJobRecord:
        """Leave an AWAITING_STAGE_TRIGGER pause by starting the next stage."""
        with self._operator_action(release_id):
            cron_job = self._load_cron_job(release_id)
            if not cron_job.is_paused(PauseType.AWAITING_STAGE_TRIGGER):
                raise ValidationError(f"Release {release_id} is not waiting for a stage trigger")

            if cron_job.stage_status(ReleaseStage.REGRESSION) == StageStatus.PENDING:
                cron_job = self._enter_regression(cron_job)
            elif cron_job.stage_status(ReleaseStage.PRE_RELEASE) == StageStatus.PENDING:
                cron_job = self._enter_pre_release(cron_job)
            else:
                raise ContractViolationError(
                    f"Cron job {release_id} awaits a trigger with no pending stage"
                )
            logger.info(f"▶️ Release {release_id} moved to stage {cron_job.current_stage().value}")
            return self.repos.cron_jobs.save_cron_job(cron_job)

    def archive(self, release_id: str) -> CronJobRecord:
        """Archive the release and stop orchestrating it. Idempotent."""
        with self._operator_action(release_id):
            cron_job = self._load_cron_job(release_id)
            self.repos.releases.mark_archived(release_id)
            if cron_job.cron_status == CronStatus.COMPLETED:
                return cron_job
            cron_job = self.repos.cron_jobs.save_cron_job(cron_job.model_copy(update={
                "cron_status": CronStatus.COMPLETED,
                "pause_type": PauseType.NONE,
            }))
            self._delete_pollers(release_id)
            logger.info(f"Release {release_id} archived by operator")
            return cron_job

    def add_regression_slot(self, release_id: str, slot: RegressionSlot) -> CronJobRecord:
        """
        Schedule another regression cycle.

        Raises:
            ValidationError: Slot after the target release, regression
                already completed, or orchestration finished
        """
        with self._operator_action(release_id):
            cron_job = self._load_cron_job(release_id)
            release = self._load_release(release_id)
            if cron_job.cron_status == CronStatus.COMPLETED:
                raise ValidationError(f"Release {release_id} is completed")
            if cron_job.stage_status(ReleaseStage.REGRESSION) == StageStatus.COMPLETED:
                raise ValidationError(f"Regression of release {release_id} is already completed")
            slot.validate_against_target(release.kickoff_at, release.target_release_at)

            logger.info(
                f"Regression slot added to {release_id}: day {slot.offset_from_kickoff} at {slot.time}"
            )
            return self.repos.cron_jobs.save_cron_job(cron_job.model_copy(update={
                "upcoming_regressions": cron_job.upcoming_regressions + [slot],
            }))

    def retry_task(self, release_id: str, task_id: str) -> ReleaseTaskRecord:
        """Retry a FAILED task; a TASK_FAILURE pause clears once no failure remains."""
        with self._operator_action(release_id):
            self._load_task(release_id, task_id)
            task = self.executor.retry_task(task_id)
            cron_job = self._load_cron_job(release_id)
            if cron_job.is_paused(PauseType.TASK_FAILURE) and not self._failed_tasks(release_id):
                self._resume(cron_job)
            return task

    def handle_build_callback(self, release_id: str, task_id: str, succeeded: bool,
                              detail: Optional[Dict[str, Any]] = None) -> ReleaseTaskRecord:
        with self._operator_action(release_id):
            self._load_task(release_id, task_id)
            return self.executor.handle_build_callback(task_id, succeeded, detail)

    def _resume(self, cron_job: CronJobRecord) -> CronJobRecord:
        logger.info(f"▶️ Release {cron_job.release_id} resumed ({cron_job.pause_type.value})")
        return self.repos.cron_jobs.save_cron_job(cron_job.model_copy(update={
            "cron_status": CronStatus.RUNNING,
            "pause_type": PauseType.NONE,
        }))

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _load_cron_job(self, release_id: str) -> CronJobRecord:
        cron_job = self.repos.cron_jobs.get_cron_job(release_id)
        if cron_job is None:
            raise ResourceNotFoundError(f"No cron job for release {release_id}")
        return cron_job

    def _load_release(self, release_id: str) -> ReleaseRecord:
        release = self.repos.releases.get_release(release_id)
        if release is None:
            raise ResourceNotFoundError(f"Release {release_id} not found")
        return release

    def _load_task(self, release_id: str, task_id: str) -> ReleaseTaskRecord:
        task = self.repos.tasks.get_task(task_id)
        if task is None or task.release_id != release_id:
            raise ResourceNotFoundError(f"Task {task_id} not found for release {release_id}")
        return task

    def _failed_tasks(self, release_id: str) -> list:
        return [
            t for t in self.repos.tasks.list_tasks(release_id)
            if t.task_status == TaskStatus.FAILED
        ]

    def _notify(self, event: NotificationEvent, release_id: str, payload: dict) -> None:
        self.notifier.notify(event, release_id, payload)

    def _create_pollers(self, release_id: str) -> None:
        try:
            self.pollers.create_pollers(release_id)
        except BusinessLogicError as e:
            logger.warning(f"⚠️ Could not create pollers for {release_id}: {e}")

    def _delete_pollers(self, release_id: str) -> None:
        try:
            self.pollers.delete_pollers(release_id)
        except BusinessLogicError as e:
            logger.warning(f"⚠️ Could not delete pollers for {release_id}: {e}")

    @staticmethod
    def _outcome(cron_job: CronJobRecord, action: str, stage: Optional[ReleaseStage] = None,
                 detail: Optional[str] = None) -> TickOutcome:
        return TickOutcome(
            release_id=cron_job.release_id,
            action=action,
            stage=stage,
            cron_status=cron_job.cron_status,
            pause_type=cron_job.pause_type,
            detail=detail,
        )


__all__ = ['ReleaseStateMachine']
