"""
Trigger test fixtures: an orchestrator over in-memory storage.
"""

from unittest.mock import MagicMock

import pytest

from config import AppConfig, SchedulerConfig
from core.models import CronJobRecord, ReleaseRecord
from core.orchestrator_factory import create_orchestrator
from infrastructure.factory import RepositoryFactory
from services.collaborators import LoggingTaskCollaborator
from tests.factories.model_factories import make_cron_job, make_release

CRON_SECRET = "tick-secret"


@pytest.fixture
def app_config():
    return AppConfig(
        storage_backend="memory",
        scheduler=SchedulerConfig(instance_id="test-instance", cron_shared_secret=CRON_SECRET),
    )


@pytest.fixture
def orchestrator(app_config):
    return create_orchestrator(
        app_config,
        repos=RepositoryFactory.create_memory_repositories(),
        task_collaborator=LoggingTaskCollaborator(),
        notifier=MagicMock(),
        pollers=MagicMock(),
        store=MagicMock(),
    )


@pytest.fixture
def stored_release(orchestrator):
    """A PENDING release whose kickoff is due."""
    release = ReleaseRecord(**make_release())
    orchestrator.repos.releases.create_release(release)
    orchestrator.repos.cron_jobs.create_cron_job(CronJobRecord(**make_cron_job(release.release_id)))
    return release
