"""
Task Executor - Advances the Tasks of One Stage.

One call to advance() makes a single ordered pass over a stage's (or a
regression cycle's) tasks:

    1. AWAITING_CALLBACK build tasks of manual-upload releases go through
       the ManualBuildGate.
    2. Every task whose predecessors are COMPLETED is moved PENDING ->
       IN_PROGRESS and dispatched. Tasks already IN_PROGRESS (collaborator
       said "pending", or transient errors used up their attempts) are
       dispatched again.

Error policy:
    TransientIntegrationError -> retried with exponential backoff inside
                                 the call, then left IN_PROGRESS for the
                                 next tick; never FAILED
    TaskFailureError, other   -> task FAILED with error_details and a
                                 failure notification
    ContractViolationError    -> propagates (programming bug)

Exports:
    TaskExecutor
    task_id_for: Deterministic task id
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from exceptions import (
    ContractViolationError,
    ResourceNotFoundError,
    TaskFailureError,
    TransientIntegrationError,
    ValidationError,
)
from services.collaborators import (
    DispatchOutcome,
    NotificationClient,
    NotificationEvent,
    TaskCollaborator,
)
from util_logger import LoggerFactory, ComponentType
from .logic.sequencing import (
    BlockReason,
    TaskRequirementContext,
    get_ordered_tasks,
    get_required_task_types,
    get_task_block_reason,
    is_stage_complete,
    kickoff_time_gate,
)
from .logic.versioning import VersionResolver
from .manual_build_gate import MANUAL_BUILD_TASK_TYPES, ManualBuildGate, required_platforms_for
from .models import (
    CronJobRecord,
    RegressionCycle,
    RegressionStageData,
    ReleaseRecord,
    ReleaseTaskRecord,
    StageAdvanceResult,
    TaskStage,
    TaskStatus,
    TaskType,
)

logger = LoggerFactory.create_logger(ComponentType.ORCHESTRATOR, "TaskExecutor")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def task_id_for(release_id: str, task_type: TaskType, cycle_id: Optional[str] = None) -> str:
    """Same inputs, same id, so re-creating a stage's tasks is a no-op."""
    if cycle_id:
        return f"{release_id}:{cycle_id}:{task_type.value}"
    return f"{release_id}:{task_type.value}"


class TaskExecutor:
    """
    Creates and advances release tasks.

    Args:
        repos: ReleaseRepositories
        collaborator: Performs each task's external side effect
        notifier: Receives failure and manual-build notifications
        gate: ManualBuildGate for manual-upload releases
        max_attempts: Dispatch attempts per call for transient errors
        retry_base_delay: First backoff delay in seconds (doubles per attempt)
        retry_max_delay: Cap on one backoff delay
        sleep, clock: Injected for tests
    """

    def __init__(self, repos, collaborator: TaskCollaborator,
                 notifier: NotificationClient, gate: ManualBuildGate,
                 max_attempts: int = 3, retry_base_delay: float = 1.0,
                 retry_max_delay: float = 10.0,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], datetime] = _utc_now):
        self.repos = repos
        self.collaborator = collaborator
        self.notifier = notifier
        self.gate = gate
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.sleep = sleep
        self.clock = clock

    # ========================================================================
    # TASK CREATION
    # ========================================================================

    def requirement_context(self, release: ReleaseRecord, cron_job: CronJobRecord,
                            cycle: Optional[RegressionCycle] = None) -> TaskRequirementContext:
        return TaskRequirementContext(
            cron_config=cron_job.cron_config,
            platforms=list(release.platforms),
            has_project_management=release.project_management_enabled,
            has_test_management=release.test_management_enabled,
            is_subsequent_cycle=cycle.is_subsequent if cycle else False,
            slot_config=cycle.slot.config if cycle else None,
        )

    def build_stage_tasks(self, release: ReleaseRecord, cron_job: CronJobRecord,
                          stage: TaskStage,
                          cycle: Optional[RegressionCycle] = None) -> List[ReleaseTaskRecord]:
        """Create the required tasks of a stage, or of one regression cycle."""
        if stage == TaskStage.REGRESSION and cycle is None:
            raise ContractViolationError("Regression tasks are created per cycle")

        ctx = self.requirement_context(release, cron_job, cycle)
        cycle_id = cycle.cycle_id if cycle else None
        now = self.clock()
        tasks = [
            ReleaseTaskRecord(
                task_id=task_id_for(release.release_id, task_type, cycle_id),
                release_id=release.release_id,
                stage=stage,
                task_type=task_type,
                cycle_id=cycle_id,
                created_at=now,
                updated_at=now,
            )
            for task_type in get_required_task_types(stage, ctx)
        ]
        created = self.repos.tasks.create_tasks(tasks)
        logger.info(
            f"Created {created} {stage.value} task(s) for release {release.release_id}"
            + (f" cycle {cycle_id}" if cycle_id else "")
        )
        return tasks

    # ========================================================================
    # ADVANCE
    # ========================================================================

    def advance(self, release: ReleaseRecord, cron_job: CronJobRecord,
                stage: TaskStage, cycle_id: Optional[str] = None) -> StageAdvanceResult:
        cycle = self._find_cycle(cron_job, cycle_id)
        ctx = self.requirement_context(release, cron_job, cycle)
        result = StageAdvanceResult()

        tasks = self.repos.tasks.list_tasks(release.release_id, stage, cycle_id)

        for task_id, gate_result in self.gate.process_awaiting_tasks(release, tasks).items():
            if gate_result.consumed:
                result.completed.append(task_id)
        if result.completed:
            tasks = self.repos.tasks.list_tasks(release.release_id, stage, cycle_id)

        time_gate = None
        if stage == TaskStage.KICKOFF:
            time_gate = kickoff_time_gate(release.kickoff_at, self.clock())

        current = {task.task_id: task for task in tasks}
        for task in get_ordered_tasks(tasks, stage):
            reason = get_task_block_reason(
                current[task.task_id], list(current.values()), stage, ctx, time_gate
            )

            if reason == BlockReason.EXECUTABLE:
                if not self.repos.tasks.transition_task(
                        task.task_id, TaskStatus.PENDING, TaskStatus.IN_PROGRESS):
                    continue
                running = current[task.task_id].model_copy(
                    update={"task_status": TaskStatus.IN_PROGRESS}
                )
            elif reason == BlockReason.IN_PROGRESS:
                running = current[task.task_id]
            else:
                if reason == BlockReason.NOT_TIME_YET:
                    logger.debug(f"Task {task.task_id} waits for kickoff at {release.kickoff_at}")
                continue

            if task.task_type == TaskType.FORK_BRANCH and self._started_late(cron_job):
                logger.warning(
                    f"⚠️ Release {release.release_id} started after kickoff; "
                    f"forking branch as catch-up"
                )

            current[task.task_id] = self._execute(release, cron_job, running)
            status = current[task.task_id].task_status
            if status == TaskStatus.COMPLETED:
                result.completed.append(task.task_id)
            elif status == TaskStatus.FAILED:
                result.failed.append(task.task_id)

        final = list(current.values())
        result.awaiting = [t.task_id for t in final if t.task_status == TaskStatus.AWAITING_CALLBACK]
        result.has_failure = any(t.task_status == TaskStatus.FAILED for t in final)
        result.all_required_complete = is_stage_complete(final, ctx)

        logger.debug(
            f"Advanced {stage.value} of {release.release_id}: "
            f"completed={len(result.completed)} failed={len(result.failed)} "
            f"awaiting={len(result.awaiting)} done={result.all_required_complete}"
        )
        return result

    def _execute(self, release: ReleaseRecord, cron_job: CronJobRecord,
                 task: ReleaseTaskRecord) -> ReleaseTaskRecord:
        """Run one IN_PROGRESS task and return it with its new status."""
        if release.has_manual_build_upload and task.task_type in MANUAL_BUILD_TASK_TYPES:
            return self._await_manual_build(release, task)

        payload = self.build_payload(release, cron_job, task)
        attempts = task.attempts
        last_error: Optional[TransientIntegrationError] = None

        for attempt in range(self.max_attempts):
            attempts += 1
            try:
                dispatch = self.collaborator.dispatch(release, task, payload)
                break
            except TransientIntegrationError as e:
                last_error = e
                if attempt < self.max_attempts - 1:
                    delay = min(self.retry_base_delay * (2 ** attempt), self.retry_max_delay)
                    logger.warning(
                        f"⚠️ {task.task_type.value} ({task.task_id}) attempt {attempt + 1}/"
                        f"{self.max_attempts} failed: {e}; retrying in {delay:.1f}s"
                    )
                    self.sleep(delay)
            except TaskFailureError as e:
                return self._fail(release, task, str(e), attempts)
            except ContractViolationError:
                raise
            except Exception as e:
                logger.exception(f"❌ Unexpected error dispatching {task.task_id}")
                return self._fail(release, task, f"{type(e).__name__}: {e}", attempts)
        else:
            logger.warning(
                f"⚠️ {task.task_type.value} ({task.task_id}) still failing after "
                f"{self.max_attempts} attempts: {last_error}; will retry next tick"
            )
            return self._move(task, task.task_status, {"attempts": attempts})

        updates = {"attempts": attempts, "external_data": dispatch.data}
        if dispatch.external_id:
            updates["external_id"] = dispatch.external_id

        if dispatch.outcome == DispatchOutcome.COMPLETED:
            return self._move(task, TaskStatus.COMPLETED, updates)
        if dispatch.outcome == DispatchOutcome.AWAITING_CALLBACK:
            return self._move(task, TaskStatus.AWAITING_CALLBACK, updates)
        if dispatch.outcome == DispatchOutcome.FAILED:
            return self._fail(release, task, dispatch.error or "Collaborator reported failure", attempts)

        logger.debug(f"{task.task_id} still running at the collaborator")
        return task

    def _await_manual_build(self, release: ReleaseRecord,
                            task: ReleaseTaskRecord) -> ReleaseTaskRecord:
        waiting = self._move(task, TaskStatus.AWAITING_CALLBACK, {})
        platforms = required_platforms_for(task.task_type, release.platforms)
        gate_result = self.gate.check_and_consume(
            release.release_id, task.task_id, task.task_type, task.cycle_id, platforms
        )
        if gate_result.consumed:
            return self.repos.tasks.get_task(task.task_id)

        self.notifier.notify(NotificationEvent.MANUAL_BUILD_REQUIRED, release.release_id, {
            "taskId": task.task_id,
            "taskType": task.task_type.value,
            "platforms": [p.value for p in gate_result.missing_platforms],
        })
        return waiting

    def _move(self, task: ReleaseTaskRecord, new_status: TaskStatus,
              updates: Dict[str, Any]) -> ReleaseTaskRecord:
        if not self.repos.tasks.transition_task(task.task_id, task.task_status, new_status, updates):
            return self.repos.tasks.get_task(task.task_id) or task
        merged = dict(updates)
        if "external_data" in merged:
            merged["external_data"] = {**task.external_data, **(merged["external_data"] or {})}
        merged["task_status"] = new_status
        return task.model_copy(update=merged)

    def _fail(self, release: ReleaseRecord, task: ReleaseTaskRecord,
              message: str, attempts: int) -> ReleaseTaskRecord:
        logger.error(f"❌ Task {task.task_id} ({task.task_type.value}) failed: {message}")
        failed = self._move(task, TaskStatus.FAILED, {"error_details": message, "attempts": attempts})
        self.notifier.notify(NotificationEvent.TASK_FAILED, release.release_id, {
            "taskId": task.task_id,
            "taskType": task.task_type.value,
            "error": message,
        })
        return failed

    # ========================================================================
    # PAYLOADS
    # ========================================================================

    def build_payload(self, release: ReleaseRecord, cron_job: CronJobRecord,
                      task: ReleaseTaskRecord) -> Dict[str, Any]:
        """Inputs the collaborator needs for a task, including tag names."""
        version = VersionResolver.format(*VersionResolver.parse(release.version))
        release_tag = f"v{version}"
        payload: Dict[str, Any] = {
            "version": version,
            "releaseType": release.release_type.value,
            "platforms": [p.value for p in release.platforms],
            "branch": release.branch or f"release/{release_tag}",
            "buildProvider": release.build_config.provider,
        }

        rc_number = self._cycle_number(cron_job, task.cycle_id)
        if task.task_type == TaskType.CREATE_RC_TAG:
            payload["tag"] = f"{release_tag}-rc{rc_number}"
        elif task.task_type == TaskType.CREATE_RELEASE_NOTES:
            payload["currentTag"] = f"{release_tag}-rc{rc_number}"
            payload["previousTag"] = f"{release_tag}-rc{rc_number - 1}" if rc_number > 1 else None
        elif task.task_type == TaskType.CREATE_RELEASE_TAG:
            payload["tag"] = release_tag
        elif task.task_type == TaskType.CREATE_FINAL_RELEASE_NOTES:
            cycles = self._cycle_count(cron_job)
            payload["currentTag"] = release_tag
            payload["previousTag"] = f"{release_tag}-rc{cycles}" if cycles else None
        return payload

    @staticmethod
    def _find_cycle(cron_job: CronJobRecord, cycle_id: Optional[str]) -> Optional[RegressionCycle]:
        if cycle_id is None or not isinstance(cron_job.stage_data, RegressionStageData):
            return None
        return next((c for c in cron_job.stage_data.cycles if c.cycle_id == cycle_id), None)

    @staticmethod
    def _cycle_number(cron_job: CronJobRecord, cycle_id: Optional[str]) -> int:
        if cycle_id is None or not isinstance(cron_job.stage_data, RegressionStageData):
            return 0
        ids = [c.cycle_id for c in cron_job.stage_data.cycles]
        return ids.index(cycle_id) + 1 if cycle_id in ids else 0

    @staticmethod
    def _cycle_count(cron_job: CronJobRecord) -> int:
        return getattr(cron_job.stage_data, "regression_cycle_count", 0)

    @staticmethod
    def _started_late(cron_job: CronJobRecord) -> bool:
        return bool(getattr(cron_job.stage_data, "late_start", False))

    # ========================================================================
    # EXTERNAL EVENTS
    # ========================================================================

    def handle_build_callback(self, task_id: str, succeeded: bool,
                              detail: Optional[Dict[str, Any]] = None) -> ReleaseTaskRecord:
        """
        Complete or fail a task waiting on CI.

        Idempotent: a task that is already COMPLETED or FAILED is returned
        unchanged. Build tasks of manual-upload releases never trust the
        caller: a successful callback only re-runs the upload gate.

        Raises:
            ResourceNotFoundError: Unknown task
            ValidationError: Task has not been dispatched yet, or its
                manual builds have not all been uploaded
        """
        task = self.repos.tasks.get_task(task_id)
        if task is None:
            raise ResourceNotFoundError(f"Task {task_id} not found")
        if task.is_terminal:
            logger.info(f"Callback for {task_id} ignored; task already {task.task_status.value}")
            return task
        if task.task_status not in (TaskStatus.AWAITING_CALLBACK, TaskStatus.IN_PROGRESS):
            raise ValidationError(f"Task {task_id} is {task.task_status.value}; no build is running")

        release = self.repos.releases.get_release(task.release_id)
        if (release is not None and release.has_manual_build_upload
                and task.task_type in MANUAL_BUILD_TASK_TYPES):
            return self._manual_build_callback(release, task, succeeded)

        if succeeded:
            logger.info(f"✅ Build callback completed {task_id}")
            return self._move(task, TaskStatus.COMPLETED, {"external_data": {"callback": detail or {}}})

        message = (detail or {}).get("error") or "CI build failed"
        logger.error(f"❌ Build callback failed {task_id}: {message}")
        failed = self._move(task, TaskStatus.FAILED, {
            "error_details": message,
            "external_data": {"callback": detail or {}},
        })
        self.notifier.notify(NotificationEvent.TASK_FAILED, task.release_id, {
            "taskId": task.task_id,
            "taskType": task.task_type.value,
            "error": message,
        })
        return failed

    def _manual_build_callback(self, release: ReleaseRecord, task: ReleaseTaskRecord,
                               succeeded: bool) -> ReleaseTaskRecord:
        if not succeeded:
            raise ValidationError(
                f"Task {task.task_id} builds from manual uploads; CI failures do not apply"
            )
        gate_result = self.gate.check_and_consume(
            release.release_id, task.task_id, task.task_type, task.cycle_id,
            required_platforms_for(task.task_type, release.platforms),
        )
        if not gate_result.all_ready:
            missing = [p.value for p in gate_result.missing_platforms]
            raise ValidationError(
                f"Task {task.task_id} completes from manual uploads; still missing {missing}"
            )
        logger.info(f"📦 Build callback for {task.task_id} resolved through the upload gate")
        return self.repos.tasks.get_task(task.task_id)

    def retry_task(self, task_id: str) -> ReleaseTaskRecord:
        """
        Operator retry: FAILED -> PENDING.

        Raises:
            ResourceNotFoundError: Unknown task
            ValidationError: Task is not FAILED
        """
        task = self.repos.tasks.get_task(task_id)
        if task is None:
            raise ResourceNotFoundError(f"Task {task_id} not found")
        if task.task_status != TaskStatus.FAILED:
            raise ValidationError(f"Only FAILED tasks can be retried; {task_id} is {task.task_status.value}")

        logger.info(f"🔄 Retrying task {task_id} ({task.task_type.value})")
        return self._move(task, TaskStatus.PENDING, {"error_details": None})


__all__ = ['TaskExecutor', 'task_id_for']
