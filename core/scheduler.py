"""
Tick Scheduler - Batch Driver for Release Ticks.

One run_tick() call (from the cron HTTP endpoint or the timer trigger)
enumerates the releases that need work and ticks each under its lock:

    1. list RUNNING / PENDING cron jobs
    2. keep RUNNING ones and PENDING ones whose kickoff is due
    3. for each (bounded ThreadPoolExecutor):
         acquire lock -> state_machine.tick() -> release lock (finally)

Lock contention is a skip, not an error. A release whose tick raised is
reported as "{release_id}: {message}" and does not affect the others.

Exports:
    TickScheduler
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from config.scheduler_config import SchedulerConfig
from exceptions import ContractViolationError
from util_logger import LoggerFactory, ComponentType
from .lock_manager import LockManager, new_lock_owner
from .logic.scheduling import is_ready_to_start
from .models import CronJobRecord, CronStatus, PauseType, TickResult

logger = LoggerFactory.create_logger(ComponentType.ORCHESTRATOR, "TickScheduler")

_PROCESSED = "processed"
_SKIPPED = "skipped"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TickScheduler:
    """
    Runs one tick across all eligible releases.

    Args:
        repos: ReleaseRepositories
        state_machine: ReleaseStateMachine
        lock_manager: LockManager over repos.cron_jobs
        config: SchedulerConfig (parallelism, lock timeout, instance id)
        clock: Injected for tests
    """

    def __init__(self, repos, state_machine, lock_manager: LockManager,
                 config: SchedulerConfig, clock: Callable[[], datetime] = _utc_now):
        self.repos = repos
        self.state_machine = state_machine
        self.lock_manager = lock_manager
        self.config = config
        self.clock = clock
        self._running = threading.Lock()

    def run_tick(self) -> TickResult:
        """Tick every eligible release once. Never raises for per-release errors."""
        if not self._running.acquire(blocking=False):
            logger.warning("⏰ Tick already running in this process; skipping")
            return TickResult(success=True, processed_count=0)

        started = time.monotonic()
        try:
            try:
                cron_jobs = self.repos.cron_jobs.list_schedulable_cron_jobs()
            except ContractViolationError:
                raise
            except Exception as e:
                logger.error(f"❌ Could not enumerate releases: {e}")
                return TickResult(
                    success=False,
                    errors=[f"enumeration: {e}"],
                    duration_ms=self._elapsed_ms(started),
                )

            release_ids, eligibility_errors = self._eligible_release_ids(cron_jobs)
            outcomes = eligibility_errors + self._run_all(release_ids)
        finally:
            self._running.release()

        result = TickResult(
            success=True,
            processed_count=sum(1 for _, status, _ in outcomes if status == _PROCESSED),
            skipped_count=sum(1 for _, status, _ in outcomes if status == _SKIPPED),
            errors=[f"{release_id}: {error}" for release_id, _, error in outcomes if error],
            duration_ms=self._elapsed_ms(started),
        )
        logger.info(
            f"⏰ Tick done: {result.processed_count} processed, {result.skipped_count} skipped, "
            f"{len(result.errors)} errors in {result.duration_ms}ms"
        )
        return result

    def _eligible_release_ids(
        self, cron_jobs: List[CronJobRecord]
    ) -> Tuple[List[str], List[Tuple[str, str, Optional[str]]]]:
        """Returns (eligible release ids, failed outcomes for unreadable releases)."""
        now = self.clock()
        lead = timedelta(hours=self.config.kickoff_reminder_lead_hours)
        eligible = []
        failed = []
        for cron_job in cron_jobs:
            try:
                if self._is_eligible(cron_job, now, lead):
                    eligible.append(cron_job.release_id)
            except ContractViolationError:
                raise
            except Exception as e:
                logger.error(f"❌ Eligibility check for {cron_job.release_id} failed: {e}")
                failed.append((cron_job.release_id, "failed", str(e) or type(e).__name__))
        logger.debug(f"⏰ {len(eligible)} releases eligible for this tick")
        return eligible, failed

    def _is_eligible(self, cron_job: CronJobRecord, now: datetime, lead: timedelta) -> bool:
        if cron_job.cron_status == CronStatus.RUNNING:
            return cron_job.pause_type == PauseType.NONE
        if cron_job.cron_status != CronStatus.PENDING:
            return False
        release = self.repos.releases.get_release(cron_job.release_id)
        if release is None:
            return False
        # archived before starting: the tick marks it COMPLETED
        if release.archived:
            return True
        return is_ready_to_start(release, cron_job, now, lead)

    def _run_all(self, release_ids: List[str]) -> List[Tuple[str, str, Optional[str]]]:
        if not release_ids:
            return []

        max_parallel = max(1, self.config.max_parallel_releases)
        if max_parallel == 1 or len(release_ids) == 1:
            return [self._process_release(release_id) for release_id in release_ids]

        outcomes = []
        with ThreadPoolExecutor(max_workers=min(max_parallel, len(release_ids))) as executor:
            futures = {executor.submit(self._process_release, rid): rid for rid in release_ids}
            for future in as_completed(futures):
                outcomes.append(future.result())
        return outcomes

    def _process_release(self, release_id: str) -> Tuple[str, str, Optional[str]]:
        """Returns (release_id, processed|skipped|failed, error message or None)."""
        owner = new_lock_owner(self.config.instance_id)
        try:
            acquired = self.lock_manager.acquire(
                release_id, owner, self.config.lock_timeout_seconds
            )
        except Exception as e:
            logger.error(f"❌ Lock acquisition for {release_id} failed: {e}")
            return release_id, "failed", str(e)
        if not acquired:
            return release_id, _SKIPPED, None

        try:
            outcome = self.state_machine.tick(release_id)
            logger.info(
                f"Release {release_id}: {outcome.action}"
                + (f" ({outcome.detail})" if outcome.detail else "")
            )
            return release_id, _PROCESSED, None
        except Exception as e:
            logger.exception(f"❌ Tick of release {release_id} failed: {e}")
            return release_id, "failed", str(e) or type(e).__name__
        finally:
            try:
                self.lock_manager.release(release_id, owner)
            except Exception as e:
                logger.error(f"❌ Could not release lock on {release_id}: {e}")

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)


__all__ = ['TickScheduler']
