"""
Tick scheduler: eligibility, per-release isolation, lock handling.
"""

import threading
from datetime import timedelta

import pytest

from config.scheduler_config import SchedulerConfig
from core.models import CronStatus, PauseType, TickOutcome
from core.scheduler import TickScheduler
from exceptions import DatabaseError


class RecordingStateMachine:
    """Stands in for ReleaseStateMachine; optionally fails for some releases."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.ticked = []
        self.on_tick = None
        self._lock = threading.Lock()

    def tick(self, release_id):
        with self._lock:
            self.ticked.append(release_id)
        if self.on_tick:
            self.on_tick(release_id)
        if release_id in self.failing:
            raise RuntimeError("integration exploded")
        return TickOutcome(release_id=release_id, action="advanced", cron_status=CronStatus.RUNNING)


def _config(max_parallel=1):
    return SchedulerConfig(instance_id="test-instance", max_parallel_releases=max_parallel)


@pytest.fixture
def fake_machine():
    return RecordingStateMachine()


@pytest.fixture
def make_scheduler(repos, lock_manager, clock):
    def _build(state_machine, max_parallel=1):
        return TickScheduler(repos, state_machine, lock_manager, _config(max_parallel), clock=clock)
    return _build


def _running(seed_release, **cron_overrides):
    cron_overrides.setdefault("cron_status", CronStatus.RUNNING)
    return seed_release(cron_overrides=cron_overrides)


class TestEligibility:

    def test_selects_running_and_due_pending(self, seed_release, make_scheduler, fake_machine, clock):
        running = _running(seed_release)
        due = seed_release()
        future = seed_release(kickoff_at=clock.now + timedelta(days=3))
        paused = _running(seed_release, cron_status=CronStatus.PAUSED,
                          pause_type=PauseType.USER_REQUESTED)
        done = _running(seed_release, cron_status=CronStatus.COMPLETED)

        result = make_scheduler(fake_machine).run_tick()

        assert set(fake_machine.ticked) == {running.release_id, due.release_id}
        assert result.processed_count == 2
        for skipped in (future, paused, done):
            assert skipped.release_id not in fake_machine.ticked

    def test_reminder_brings_start_forward(self, seed_release, make_scheduler, fake_machine, clock):
        release = seed_release(
            kickoff_at=clock.now + timedelta(hours=12),
            cron_overrides={"cron_config": {"kick_off_reminder": True}},
        )

        make_scheduler(fake_machine).run_tick()

        assert fake_machine.ticked == [release.release_id]

    def test_archived_pending_release_ticked(self, repos, seed_release, make_scheduler,
                                             fake_machine, clock):
        release = seed_release(kickoff_at=clock.now + timedelta(days=3))
        repos.releases.mark_archived(release.release_id)

        make_scheduler(fake_machine).run_tick()

        assert fake_machine.ticked == [release.release_id]

    def test_nothing_eligible(self, make_scheduler, fake_machine):
        result = make_scheduler(fake_machine).run_tick()
        assert result.success
        assert result.processed_count == 0
        assert result.errors == []


class TestIsolation:

    @pytest.mark.parametrize("max_parallel", [1, 4])
    def test_one_failure_does_not_stop_others(self, seed_release, make_scheduler, max_parallel):
        releases = [_running(seed_release) for _ in range(3)]
        machine = RecordingStateMachine(failing=[releases[1].release_id])

        result = make_scheduler(machine, max_parallel).run_tick()

        assert result.success
        assert result.processed_count == 2
        assert result.errors == [f"{releases[1].release_id}: integration exploded"]
        assert set(machine.ticked) == {r.release_id for r in releases}

    def test_lock_released_after_failure(self, seed_release, make_scheduler, lock_manager):
        release = _running(seed_release)
        machine = RecordingStateMachine(failing=[release.release_id])

        make_scheduler(machine).run_tick()

        assert lock_manager.acquire(release.release_id, "other:1", 300)

    def test_parallel_ticks_every_release(self, seed_release, make_scheduler, fake_machine):
        releases = [_running(seed_release) for _ in range(6)]

        result = make_scheduler(fake_machine, max_parallel=4).run_tick()

        assert result.processed_count == 6
        assert sorted(fake_machine.ticked) == sorted(r.release_id for r in releases)


class TestLocking:

    def test_locked_release_skipped(self, seed_release, make_scheduler, fake_machine, lock_manager):
        locked = _running(seed_release)
        free = _running(seed_release)
        lock_manager.acquire(locked.release_id, "other-instance:1", 300)

        result = make_scheduler(fake_machine).run_tick()

        assert fake_machine.ticked == [free.release_id]
        assert result.processed_count == 1
        assert result.skipped_count == 1
        assert result.errors == []

    def test_lock_held_during_tick(self, repos, seed_release, make_scheduler, fake_machine, clock):
        release = _running(seed_release)
        seen = []
        fake_machine.on_tick = lambda rid: seen.append(
            repos.cron_jobs.get_cron_job(rid).is_lock_held(clock.now)
        )

        make_scheduler(fake_machine).run_tick()

        assert seen == [True]
        assert not repos.cron_jobs.get_cron_job(release.release_id).is_lock_held(clock.now)

    def test_overlapping_run_is_skipped(self, seed_release, make_scheduler, fake_machine):
        _running(seed_release)
        scheduler = make_scheduler(fake_machine)
        inner = []
        fake_machine.on_tick = lambda rid: inner.append(scheduler.run_tick())

        outer = scheduler.run_tick()

        assert outer.processed_count == 1
        assert inner[0].processed_count == 0
        assert inner[0].success


class TestResult:

    def test_enumeration_failure_reported(self, repos, make_scheduler, fake_machine, monkeypatch):
        def broken():
            raise DatabaseError("connection refused")
        monkeypatch.setattr(repos.cron_jobs, "list_schedulable_cron_jobs", broken)

        result = make_scheduler(fake_machine).run_tick()

        assert not result.success
        assert result.errors == ["enumeration: connection refused"]

    @pytest.mark.parametrize("max_parallel", [1, 4])
    def test_unreadable_release_does_not_stop_others(self, repos, seed_release, make_scheduler,
                                                     fake_machine, monkeypatch, max_parallel):
        healthy = [_running(seed_release) for _ in range(2)]
        corrupt = seed_release()
        real_get_release = repos.releases.get_release

        def get_release(release_id):
            if release_id == corrupt.release_id:
                raise ValueError("corrupt release row")
            return real_get_release(release_id)
        monkeypatch.setattr(repos.releases, "get_release", get_release)

        result = make_scheduler(fake_machine, max_parallel).run_tick()

        assert result.success
        assert result.processed_count == 2
        assert result.errors == [f"{corrupt.release_id}: corrupt release row"]
        assert set(fake_machine.ticked) == {r.release_id for r in healthy}

    def test_response_shape(self, seed_release, make_scheduler, fake_machine):
        _running(seed_release)

        response = make_scheduler(fake_machine).run_tick().to_response()

        assert set(response) == {"success", "processedCount", "errors", "durationMs"}
        assert response["processedCount"] == 1
