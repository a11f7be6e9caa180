"""
Per-Release Lock Manager.

At most one instance works on a release at a time. The lock lives on the
cron job row (locked_by, locked_at, lock_timeout_seconds) and is taken
with a single compare-and-set, so two instances can never both succeed.
A lock whose holder crashed goes stale after its timeout and can be
taken over.

Exports:
    LockManager: acquire / release / hold
    new_lock_owner: Owner id for one tick of one release
"""

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable

from exceptions import LockContentionError
from infrastructure.interface_repository import ICronJobRepository
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.ORCHESTRATOR, "LockManager")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_lock_owner(instance_id: str) -> str:
    """Owner id "{instance_id}:{uuid}"; unique per acquisition attempt."""
    return f"{instance_id}:{uuid.uuid4()}"


class LockManager:

    def __init__(self, cron_jobs: ICronJobRepository,
                 clock: Callable[[], datetime] = _utc_now):
        self.cron_jobs = cron_jobs
        self.clock = clock

    def acquire(self, release_id: str, owner_id: str, timeout_seconds: int) -> bool:
        """
        Take the lock iff no one holds it or the holder's lock is stale.

        Returns:
            True when owner_id now holds the lock
        """
        acquired = self.cron_jobs.try_acquire_lock(
            release_id, owner_id, timeout_seconds, self.clock()
        )
        if acquired:
            logger.debug(f"🔒 {owner_id} acquired lock on {release_id}")
        else:
            logger.info(f"🔒 Release {release_id} locked by another instance; skipping")
        return acquired

    def release(self, release_id: str, owner_id: str) -> bool:
        """Clear the lock iff owner_id still holds it."""
        released = self.cron_jobs.release_lock(release_id, owner_id)
        if released:
            logger.debug(f"🔓 {owner_id} released lock on {release_id}")
        return released

    @contextmanager
    def hold(self, release_id: str, owner_id: str, timeout_seconds: int):
        """
        Hold the lock for the body; always released afterwards.

        Raises:
            LockContentionError: The lock is held by someone else
        """
        if not self.acquire(release_id, owner_id, timeout_seconds):
            raise LockContentionError(release_id)
        try:
            yield owner_id
        finally:
            self.release(release_id, owner_id)


__all__ = ['LockManager', 'new_lock_owner']
