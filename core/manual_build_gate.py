"""
Manual Build Gate.

In manual-upload mode a build task does not call CI. It waits in
AWAITING_CALLBACK until an upload exists for every platform it needs,
then consumes exactly one upload per platform and completes.

Consumption is all-or-nothing and happens at most once: the uploads are
flipped with a compare-and-set on used = false, and the task completion
runs in the same transaction, so a lost race or a failure leaves both
untouched for the next tick.

Exports:
    MANUAL_BUILD_TASK_TYPES: Task types that produce builds
    TASK_TYPE_TO_UPLOAD_STAGE: Upload stage each build task consumes
    required_platforms_for: Platforms a build task needs uploads for
    ManualBuildGate: check_and_consume / process_awaiting_tasks
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from exceptions import DatabaseError
from util_logger import LoggerFactory, ComponentType
from .models import (
    GateResult,
    Platform,
    ReleaseRecord,
    ReleaseTaskRecord,
    TaskStatus,
    TaskType,
    UploadStage,
)

logger = LoggerFactory.create_logger(ComponentType.ORCHESTRATOR, "ManualBuildGate")


TASK_TYPE_TO_UPLOAD_STAGE: Dict[TaskType, UploadStage] = {
    TaskType.TRIGGER_PRE_REGRESSION_BUILDS: UploadStage.PRE_REGRESSION,
    TaskType.TRIGGER_REGRESSION_BUILDS: UploadStage.REGRESSION,
    TaskType.TRIGGER_TEST_FLIGHT_BUILD: UploadStage.PRE_RELEASE,
    TaskType.CREATE_AAB_BUILD: UploadStage.PRE_RELEASE,
}

MANUAL_BUILD_TASK_TYPES = frozenset(TASK_TYPE_TO_UPLOAD_STAGE)


def required_platforms_for(task_type: TaskType, platforms: List[Platform]) -> List[Platform]:
    """TestFlight needs iOS only, AAB needs Android only, the rest need every release platform."""
    if task_type == TaskType.TRIGGER_TEST_FLIGHT_BUILD:
        return [Platform.IOS] if Platform.IOS in platforms else []
    if task_type == TaskType.CREATE_AAB_BUILD:
        return [Platform.ANDROID] if Platform.ANDROID in platforms else []
    return list(platforms)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ManualBuildGate:
    """
    Upload gate for build tasks of manual-upload releases.

    Args:
        repos: ReleaseRepositories (tasks, uploads and transaction())
        clock: Source of the consumption timestamp
    """

    def __init__(self, repos, clock: Callable[[], datetime] = _utc_now):
        self.repos = repos
        self.clock = clock

    def check_and_consume(self, release_id: str, task_id: str, task_type: TaskType,
                          cycle_id: Optional[str],
                          required_platforms: List[Platform]) -> GateResult:
        """
        Consume one upload per required platform and complete the task.

        Idempotent: a task that is already COMPLETED reports ready without
        consuming anything.
        """
        if task_type not in MANUAL_BUILD_TASK_TYPES:
            return GateResult(all_ready=False, consumed=False)

        with self.repos.transaction():
            task = self.repos.tasks.get_task(task_id)
            if task is not None and task.task_status == TaskStatus.COMPLETED:
                return GateResult(all_ready=True, consumed=False)
            if task is None or task.task_status != TaskStatus.AWAITING_CALLBACK:
                return GateResult(all_ready=False, consumed=False)

            stage = TASK_TYPE_TO_UPLOAD_STAGE[task_type]
            available = self.repos.uploads.list_unused(release_id, stage)

            chosen = []
            missing = []
            for platform in required_platforms:
                upload = next((u for u in available if u.platform == platform), None)
                if upload is None:
                    missing.append(platform)
                else:
                    chosen.append(upload)

            if missing:
                logger.debug(
                    f"📦 Task {task_id} waiting for {stage.value} uploads: "
                    f"{[p.value for p in missing]}"
                )
                return GateResult(all_ready=False, consumed=False, missing_platforms=missing)

            now = self.clock()
            upload_ids = [u.upload_id for u in chosen]
            if not self.repos.uploads.mark_used_atomic(upload_ids, task_id, cycle_id, now):
                return GateResult(all_ready=False, consumed=False)

            completed = self.repos.tasks.transition_task(
                task_id, TaskStatus.AWAITING_CALLBACK, TaskStatus.COMPLETED,
                updates={"external_data": {
                    "uploads": [
                        {"upload_id": u.upload_id, "platform": u.platform.value,
                         "artifact_path": u.artifact_path}
                        for u in chosen
                    ],
                }},
            )
            if not completed:
                raise DatabaseError(
                    f"Task {task_id} left AWAITING_CALLBACK while its uploads were consumed"
                )

        consumed = [
            u.model_copy(update={
                "used": True, "used_by_task_id": task_id,
                "used_in_cycle_id": cycle_id, "used_at": now,
            })
            for u in chosen
        ]
        logger.info(f"📦 Task {task_id} ({task_type.value}) completed from uploads {upload_ids}")
        return GateResult(all_ready=True, consumed=True, uploads=consumed)

    def process_awaiting_tasks(self, release: ReleaseRecord,
                               tasks: List[ReleaseTaskRecord]) -> Dict[str, GateResult]:
        """Run the gate for every AWAITING_CALLBACK build task of a manual-upload release."""
        if not release.has_manual_build_upload:
            return {}

        results = {}
        for task in tasks:
            if task.task_status != TaskStatus.AWAITING_CALLBACK:
                continue
            if task.task_type not in MANUAL_BUILD_TASK_TYPES:
                continue
            results[task.task_id] = self.check_and_consume(
                release.release_id, task.task_id, task.task_type, task.cycle_id,
                required_platforms_for(task.task_type, release.platforms),
            )
        return results


__all__ = [
    'MANUAL_BUILD_TASK_TYPES',
    'TASK_TYPE_TO_UPLOAD_STAGE',
    'required_platforms_for',
    'ManualBuildGate',
]
