"""
Repository Abstract Base Classes - Single Point of Truth.

Enforces exact method signatures across the PostgreSQL and in-memory
repository implementations. All parameter names, return types, and
method signatures are defined here and nowhere else.

Every mutating method that races with another instance is a
compare-and-set: it names the state it expects and returns False when
the row no longer matches.

Exports:
    ICronJobRepository: Cron job rows and the per-release lock
    IReleaseRepository: Release records
    ITaskRepository: Release tasks
    IUploadRepository: Manual build uploads
    ISubmissionRepository: Store submissions
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from core.models import (
    CronJobRecord,
    ReleaseRecord,
    ReleaseTaskRecord,
    ReleaseUploadRecord,
    SubmissionRecord,
    Platform,
    TaskStage,
    TaskStatus,
    UploadStage,
)


class ICronJobRepository(ABC):
    """Cron job persistence and the lock fields on the same row."""

    @abstractmethod
    def create_cron_job(self, cron_job: CronJobRecord) -> bool:
        """Insert; False when the release already has a cron job."""
        pass

    @abstractmethod
    def get_cron_job(self, release_id: str) -> Optional[CronJobRecord]:
        pass

    @abstractmethod
    def save_cron_job(self, cron_job: CronJobRecord) -> CronJobRecord:
        """
        Persist everything except the lock fields.

        Compare-and-set on row_version; returns the record with the new
        row_version. Raises DatabaseError when the row changed underneath.
        """
        pass

    @abstractmethod
    def list_schedulable_cron_jobs(self) -> List[CronJobRecord]:
        """Cron jobs that are RUNNING or PENDING."""
        pass

    @abstractmethod
    def try_acquire_lock(self, release_id: str, owner_id: str,
                         timeout_seconds: int, now: datetime) -> bool:
        """Take the lock iff it is absent or stale at now. One atomic statement."""
        pass

    @abstractmethod
    def release_lock(self, release_id: str, owner_id: str) -> bool:
        """Clear the lock iff owner_id still holds it."""
        pass


class IReleaseRepository(ABC):
    """Release records; created with their cron job, then read-mostly."""

    @abstractmethod
    def create_release(self, release: ReleaseRecord) -> bool:
        pass

    @abstractmethod
    def get_release(self, release_id: str) -> Optional[ReleaseRecord]:
        pass

    @abstractmethod
    def mark_archived(self, release_id: str) -> bool:
        """Set archived; False when already archived or missing."""
        pass

    @abstractmethod
    def get_latest_version(self, tenant_id: str) -> Optional[str]:
        """Highest parseable version among the tenant's releases, or None."""
        pass


class ITaskRepository(ABC):
    """Release task persistence."""

    @abstractmethod
    def create_tasks(self, tasks: List[ReleaseTaskRecord]) -> int:
        """Insert tasks; returns the number inserted."""
        pass

    @abstractmethod
    def get_task(self, task_id: str) -> Optional[ReleaseTaskRecord]:
        pass

    @abstractmethod
    def list_tasks(self, release_id: str, stage: Optional[TaskStage] = None,
                   cycle_id: Optional[str] = None) -> List[ReleaseTaskRecord]:
        pass

    @abstractmethod
    def transition_task(self, task_id: str, expected_status: TaskStatus,
                        new_status: TaskStatus, updates: Optional[dict] = None) -> bool:
        """
        Move a task from expected_status to new_status.

        updates may carry external_id, external_data (merged), error_details
        and attempts. False when the task is no longer in expected_status.
        """
        pass


class IUploadRepository(ABC):
    """Manual build uploads."""

    @abstractmethod
    def create_upload(self, upload: ReleaseUploadRecord) -> bool:
        pass

    @abstractmethod
    def list_unused(self, release_id: str, stage: UploadStage) -> List[ReleaseUploadRecord]:
        """Unused uploads for a release and stage, oldest first."""
        pass

    @abstractmethod
    def list_uploads(self, release_id: str) -> List[ReleaseUploadRecord]:
        pass

    @abstractmethod
    def mark_used_atomic(self, upload_ids: List[str], task_id: str,
                         cycle_id: Optional[str], now: datetime) -> bool:
        """
        Mark every upload used by task_id, all or nothing.

        False (and no change) if any of them was already used.
        """
        pass


class ISubmissionRepository(ABC):
    """Store submissions."""

    @abstractmethod
    def create_submission(self, submission: SubmissionRecord) -> bool:
        pass

    @abstractmethod
    def get_submission(self, submission_id: str) -> Optional[SubmissionRecord]:
        pass

    @abstractmethod
    def list_submissions(self, release_id: str,
                         platform: Optional[Platform] = None) -> List[SubmissionRecord]:
        """Newest first."""
        pass

    @abstractmethod
    def save_submission(self, submission: SubmissionRecord, expected_status) -> bool:
        """Persist iff the stored status still equals expected_status."""
        pass


__all__ = [
    'ICronJobRepository',
    'IReleaseRepository',
    'ITaskRepository',
    'IUploadRepository',
    'ISubmissionRepository',
]
