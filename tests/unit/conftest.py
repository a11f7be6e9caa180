"""
Unit test fixtures: in-memory repositories and a wired orchestrator.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from core.lock_manager import LockManager
from core.manual_build_gate import ManualBuildGate
from core.models import CronJobRecord, ReleaseRecord
from core.state_machine import ReleaseStateMachine
from core.task_executor import TaskExecutor
from infrastructure.factory import RepositoryFactory
from services.collaborators import LoggingTaskCollaborator
from tests.factories.model_factories import make_cron_job, make_release


@pytest.fixture
def repos():
    """Fresh in-memory repositories per test."""
    return RepositoryFactory.create_memory_repositories()


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def pollers():
    return MagicMock()


@pytest.fixture
def collaborator():
    """Completes every dispatched task immediately."""
    return LoggingTaskCollaborator()


@pytest.fixture
def gate(repos, clock):
    return ManualBuildGate(repos, clock=clock)


@pytest.fixture
def executor(repos, collaborator, notifier, gate, clock):
    return TaskExecutor(
        repos, collaborator, notifier, gate,
        max_attempts=3, retry_base_delay=0.0, retry_max_delay=0.0,
        sleep=lambda _: None, clock=clock,
    )


@pytest.fixture
def lock_manager(repos, clock):
    return LockManager(repos.cron_jobs, clock=clock)


@pytest.fixture
def state_machine(repos, executor, notifier, pollers, lock_manager, clock):
    counter = iter(range(1, 1000))
    return ReleaseStateMachine(
        repos, executor, notifier, pollers, lock_manager,
        instance_id="test-instance",
        reminder_lead=timedelta(hours=24),
        clock=clock,
        cycle_id_factory=lambda: f"cycle{next(counter)}",
    )


@pytest.fixture
def seed_release(repos, clock):
    """Factory fixture: store a release and its cron job, return the release."""
    def _seed(cron_overrides=None, **release_overrides):
        release_overrides.setdefault("kickoff_at", clock.now)
        release = ReleaseRecord(**make_release(**release_overrides))
        repos.releases.create_release(release)
        repos.cron_jobs.create_cron_job(
            CronJobRecord(**make_cron_job(release.release_id, **(cron_overrides or {})))
        )
        return release
    return _seed
