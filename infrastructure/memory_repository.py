"""
In-Memory Repositories - Local Runs and Tests.

All five repositories share one InMemoryStore. Every operation runs under
the store's re-entrant lock, so each compare-and-set is atomic across
threads. transaction() holds the lock for its whole body and restores a
snapshot when the body raises, which gives the same all-or-nothing tick
as the PostgreSQL backend (ticks of different releases serialize).

Selected with STORAGE_BACKEND=memory.

Exports:
    InMemoryStore: Shared state and transaction boundary
    InMemoryCronJobRepository, InMemoryReleaseRepository,
    InMemoryTaskRepository, InMemoryUploadRepository,
    InMemorySubmissionRepository
"""

import copy
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from exceptions import ContractViolationError, DatabaseError
from core.logic.versioning import latest_version
from core.models import (
    CronJobRecord,
    CronStatus,
    Platform,
    ReleaseRecord,
    ReleaseTaskRecord,
    ReleaseUploadRecord,
    SubmissionRecord,
    SubmissionStatus,
    TaskStage,
    TaskStatus,
    UploadStage,
)
from .base import BaseRepository
from .interface_repository import (
    ICronJobRepository,
    IReleaseRepository,
    ITaskRepository,
    IUploadRepository,
    ISubmissionRepository,
)

_UPDATABLE_TASK_FIELDS = ("external_id", "external_data", "error_details", "attempts")


class InMemoryStore:
    """Tables as dicts keyed by primary key, guarded by one RLock."""

    def __init__(self):
        self.lock = threading.RLock()
        self.cron_jobs: Dict[str, CronJobRecord] = {}
        self.releases: Dict[str, ReleaseRecord] = {}
        self.tasks: Dict[str, ReleaseTaskRecord] = {}
        self.uploads: Dict[str, ReleaseUploadRecord] = {}
        self.submissions: Dict[str, SubmissionRecord] = {}
        self._depth = 0

    def _tables(self) -> tuple:
        return (self.cron_jobs, self.releases, self.tasks, self.uploads, self.submissions)

    @contextmanager
    def transaction(self):
        """Serialize the body; restore every table if it raises. Nested calls join."""
        with self.lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = copy.deepcopy(self._tables())
            self._depth = 1
            try:
                yield self
            except Exception:
                for table, saved in zip(self._tables(), snapshot):
                    table.clear()
                    table.update(saved)
                raise
            finally:
                self._depth = 0


class _InMemoryRepository(BaseRepository):

    def __init__(self, store: InMemoryStore):
        super().__init__()
        self.store = store

    @contextmanager
    def transaction(self):
        with self.store.transaction():
            yield self.store


# ============================================================================
# CRON JOBS
# ============================================================================

class InMemoryCronJobRepository(_InMemoryRepository, ICronJobRepository):

    def create_cron_job(self, cron_job: CronJobRecord) -> bool:
        with self.store.lock:
            if cron_job.release_id in self.store.cron_jobs:
                return False
            self.store.cron_jobs[cron_job.release_id] = cron_job.model_copy(
                update={"row_version": 0, "locked_by": None, "locked_at": None},
                deep=True,
            )
            return True

    def get_cron_job(self, release_id: str) -> Optional[CronJobRecord]:
        with self.store.lock:
            record = self.store.cron_jobs.get(release_id)
            return record.model_copy(deep=True) if record else None

    def save_cron_job(self, cron_job: CronJobRecord) -> CronJobRecord:
        with self.store.lock:
            stored = self.store.cron_jobs.get(cron_job.release_id)
            if stored is None or stored.row_version != cron_job.row_version:
                raise DatabaseError(
                    f"Cron job {cron_job.release_id} changed since row_version "
                    f"{cron_job.row_version} was read"
                )
            release = self.store.releases.get(cron_job.release_id)
            self._validate_cron_job_write(
                stored, cron_job, archived=release is not None and release.archived
            )
            saved = cron_job.model_copy(update={
                "locked_by": stored.locked_by,
                "locked_at": stored.locked_at,
                "lock_timeout_seconds": stored.lock_timeout_seconds,
                "row_version": stored.row_version + 1,
                "updated_at": datetime.now(timezone.utc),
            }, deep=True)
            self.store.cron_jobs[cron_job.release_id] = saved
            return cron_job.model_copy(update={
                "row_version": saved.row_version,
                "updated_at": saved.updated_at,
            })

    def list_schedulable_cron_jobs(self) -> List[CronJobRecord]:
        with self.store.lock:
            jobs = [
                job.model_copy(deep=True) for job in self.store.cron_jobs.values()
                if job.cron_status in (CronStatus.RUNNING, CronStatus.PENDING)
            ]
        return sorted(jobs, key=lambda job: job.created_at)

    def try_acquire_lock(self, release_id: str, owner_id: str,
                         timeout_seconds: int, now: datetime) -> bool:
        with self.store.lock:
            stored = self.store.cron_jobs.get(release_id)
            if stored is None:
                return False
            if stored.locked_by is not None and stored.locked_at is not None:
                if now < stored.locked_at + timedelta(seconds=stored.lock_timeout_seconds):
                    return False
            self.store.cron_jobs[release_id] = stored.model_copy(update={
                "locked_by": owner_id,
                "locked_at": now,
                "lock_timeout_seconds": timeout_seconds,
            })
            return True

    def release_lock(self, release_id: str, owner_id: str) -> bool:
        with self.store.lock:
            stored = self.store.cron_jobs.get(release_id)
            if stored is None or stored.locked_by != owner_id:
                return False
            self.store.cron_jobs[release_id] = stored.model_copy(update={
                "locked_by": None,
                "locked_at": None,
            })
            return True


# ============================================================================
# RELEASES
# ============================================================================

class InMemoryReleaseRepository(_InMemoryRepository, IReleaseRepository):

    def create_release(self, release: ReleaseRecord) -> bool:
        with self.store.lock:
            if release.release_id in self.store.releases:
                return False
            self.store.releases[release.release_id] = release.model_copy(deep=True)
            return True

    def get_release(self, release_id: str) -> Optional[ReleaseRecord]:
        with self.store.lock:
            release = self.store.releases.get(release_id)
            return release.model_copy(deep=True) if release else None

    def mark_archived(self, release_id: str) -> bool:
        with self.store.lock:
            release = self.store.releases.get(release_id)
            if release is None or release.archived:
                return False
            self.store.releases[release_id] = release.model_copy(update={"archived": True})
            return True

    def get_latest_version(self, tenant_id: str) -> Optional[str]:
        with self.store.lock:
            versions = [
                r.version for r in self.store.releases.values() if r.tenant_id == tenant_id
            ]
        return latest_version(versions)


# ============================================================================
# TASKS
# ============================================================================

class InMemoryTaskRepository(_InMemoryRepository, ITaskRepository):

    def create_tasks(self, tasks: List[ReleaseTaskRecord]) -> int:
        inserted = 0
        with self.store.lock:
            for task in tasks:
                if task.task_id in self.store.tasks:
                    continue
                self.store.tasks[task.task_id] = task.model_copy(deep=True)
                inserted += 1
        return inserted

    def get_task(self, task_id: str) -> Optional[ReleaseTaskRecord]:
        with self.store.lock:
            task = self.store.tasks.get(task_id)
            return task.model_copy(deep=True) if task else None

    def list_tasks(self, release_id: str, stage: Optional[TaskStage] = None,
                   cycle_id: Optional[str] = None) -> List[ReleaseTaskRecord]:
        with self.store.lock:
            tasks = [
                task.model_copy(deep=True) for task in self.store.tasks.values()
                if task.release_id == release_id
                and (stage is None or task.stage == stage)
                and (cycle_id is None or task.cycle_id == cycle_id)
            ]
        return sorted(tasks, key=lambda task: (task.created_at, task.task_id))

    def transition_task(self, task_id: str, expected_status: TaskStatus,
                        new_status: TaskStatus, updates: Optional[dict] = None) -> bool:
        updates = updates or {}
        unknown = set(updates) - set(_UPDATABLE_TASK_FIELDS)
        if unknown:
            raise ContractViolationError(f"Cannot update task fields {sorted(unknown)}")

        with self.store.lock:
            stored = self.store.tasks.get(task_id)
            if stored is None or stored.task_status != expected_status:
                return False
            self._validate_task_transition(stored, new_status)

            changes = {"task_status": new_status, "updated_at": datetime.now(timezone.utc)}
            for field, value in updates.items():
                if field == "external_data":
                    changes[field] = {**stored.external_data, **(value or {})}
                else:
                    changes[field] = value
            self.store.tasks[task_id] = stored.model_copy(update=changes, deep=True)
            return True


# ============================================================================
# UPLOADS
# ============================================================================

class InMemoryUploadRepository(_InMemoryRepository, IUploadRepository):

    def create_upload(self, upload: ReleaseUploadRecord) -> bool:
        with self.store.lock:
            if upload.upload_id in self.store.uploads:
                return False
            self.store.uploads[upload.upload_id] = upload.model_copy(deep=True)
            return True

    def list_unused(self, release_id: str, stage: UploadStage) -> List[ReleaseUploadRecord]:
        return [
            upload for upload in self.list_uploads(release_id)
            if upload.stage == stage and not upload.used
        ]

    def list_uploads(self, release_id: str) -> List[ReleaseUploadRecord]:
        with self.store.lock:
            uploads = [
                upload.model_copy(deep=True) for upload in self.store.uploads.values()
                if upload.release_id == release_id
            ]
        return sorted(uploads, key=lambda upload: (upload.created_at, upload.upload_id))

    def mark_used_atomic(self, upload_ids: List[str], task_id: str,
                         cycle_id: Optional[str], now: datetime) -> bool:
        if not upload_ids:
            return False
        with self.store.lock:
            stored = [self.store.uploads.get(upload_id) for upload_id in upload_ids]
            if any(upload is None or upload.used for upload in stored):
                return False
            for upload in stored:
                self.store.uploads[upload.upload_id] = upload.model_copy(update={
                    "used": True,
                    "used_by_task_id": task_id,
                    "used_in_cycle_id": cycle_id,
                    "used_at": now,
                })
            return True


# ============================================================================
# SUBMISSIONS
# ============================================================================

class InMemorySubmissionRepository(_InMemoryRepository, ISubmissionRepository):

    def create_submission(self, submission: SubmissionRecord) -> bool:
        with self.store.lock:
            if submission.submission_id in self.store.submissions:
                return False
            self.store.submissions[submission.submission_id] = submission.model_copy(deep=True)
            return True

    def get_submission(self, submission_id: str) -> Optional[SubmissionRecord]:
        with self.store.lock:
            submission = self.store.submissions.get(submission_id)
            return submission.model_copy(deep=True) if submission else None

    def list_submissions(self, release_id: str,
                         platform: Optional[Platform] = None) -> List[SubmissionRecord]:
        with self.store.lock:
            submissions = [
                s.model_copy(deep=True) for s in self.store.submissions.values()
                if s.release_id == release_id and (platform is None or s.platform == platform)
            ]
        return sorted(
            submissions, key=lambda s: (s.created_at, s.submission_id), reverse=True
        )

    def save_submission(self, submission: SubmissionRecord, expected_status) -> bool:
        with self.store.lock:
            stored = self.store.submissions.get(submission.submission_id)
            if stored is None or stored.status != SubmissionStatus(expected_status):
                return False
            self._validate_submission_write(submission, SubmissionStatus(expected_status))
            self.store.submissions[submission.submission_id] = submission.model_copy(
                update={"updated_at": datetime.now(timezone.utc)}, deep=True
            )
            return True


__all__ = [
    'InMemoryStore',
    'InMemoryCronJobRepository',
    'InMemoryReleaseRepository',
    'InMemoryTaskRepository',
    'InMemoryUploadRepository',
    'InMemorySubmissionRepository',
]
