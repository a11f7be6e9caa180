"""
Orchestrator Factory.

Builds the orchestrator object graph once per process from AppConfig:
repositories, collaborator clients, gate, executor, state machine,
scheduler and rollout controller. Everything is passed explicitly;
nothing below this module reads configuration on its own.

Collaborator selection:
    INTEGRATION_BASE_URL set       -> HttpTaskCollaborator
    STORE_API_BASE_URL set         -> HttpStoreClient
    NOTIFICATION_WEBHOOK_URL set   -> WebhookNotificationClient
    WORKFLOW_POLLER_BASE_URL set   -> HttpWorkflowPollerClient
    otherwise                      -> the Logging* implementation

Usage in function_app.py:
    from core.orchestrator_factory import create_orchestrator
    orchestrator = create_orchestrator()

Exports:
    Orchestrator: The wired components
    create_orchestrator: Build from configuration
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from config import AppConfig, get_config
from infrastructure.factory import ReleaseRepositories, RepositoryFactory
from services import (
    HttpStoreClient,
    HttpTaskCollaborator,
    HttpWorkflowPollerClient,
    IntegrationHttpClient,
    LoggingNotificationClient,
    LoggingStoreClient,
    LoggingTaskCollaborator,
    LoggingWorkflowPollerClient,
    NotificationClient,
    StoreClient,
    TaskCollaborator,
    WebhookNotificationClient,
    WorkflowPollerClient,
)
from util_logger import LoggerFactory, ComponentType
from .lock_manager import LockManager
from .manual_build_gate import ManualBuildGate
from .rollout_controller import RolloutController
from .scheduler import TickScheduler
from .state_machine import ReleaseStateMachine
from .task_executor import TaskExecutor

logger = LoggerFactory.create_logger(ComponentType.FACTORY, "OrchestratorFactory")


@dataclass
class Orchestrator:
    config: AppConfig
    repos: ReleaseRepositories
    lock_manager: LockManager
    executor: TaskExecutor
    state_machine: ReleaseStateMachine
    scheduler: TickScheduler
    rollout: RolloutController


def _integration_client(config: AppConfig, base_url: str,
                        api_key: Optional[str] = None) -> IntegrationHttpClient:
    return IntegrationHttpClient(
        base_url,
        timeout_seconds=config.integrations.timeout_seconds,
        api_key=api_key if api_key is not None else config.integrations.api_key,
    )


def create_task_collaborator(config: AppConfig) -> TaskCollaborator:
    if config.integrations.base_url:
        logger.info(f"🏭 Task collaborator: HTTP ({config.integrations.base_url})")
        return HttpTaskCollaborator(_integration_client(config, config.integrations.base_url))
    logger.warning("⚠️ INTEGRATION_BASE_URL not set; task dispatches are logged only")
    return LoggingTaskCollaborator()


def create_notification_client(config: AppConfig) -> NotificationClient:
    url = config.integrations.notification_webhook_url
    if url:
        return WebhookNotificationClient(_integration_client(config, url))
    return LoggingNotificationClient()


def create_poller_client(config: AppConfig) -> WorkflowPollerClient:
    if config.pollers.base_url:
        return HttpWorkflowPollerClient(
            _integration_client(config, config.pollers.base_url, config.pollers.api_key or ""),
            config.pollers,
        )
    return LoggingWorkflowPollerClient()


def create_store_client(config: AppConfig) -> StoreClient:
    if config.integrations.store_base_url:
        return HttpStoreClient(_integration_client(config, config.integrations.store_base_url))
    return LoggingStoreClient()


def create_orchestrator(config: Optional[AppConfig] = None,
                        repos: Optional[ReleaseRepositories] = None,
                        task_collaborator: Optional[TaskCollaborator] = None,
                        notifier: Optional[NotificationClient] = None,
                        pollers: Optional[WorkflowPollerClient] = None,
                        store: Optional[StoreClient] = None) -> Orchestrator:
    """
    Wire the orchestrator.

    Any collaborator passed in replaces the one configuration would pick;
    tests pass in-memory repositories and mocks this way.
    """
    config = config or get_config()
    logger.info(f"🏭 Creating orchestrator (storage={config.storage_backend})")

    repos = repos or RepositoryFactory.create_repositories(config)
    task_collaborator = task_collaborator or create_task_collaborator(config)
    notifier = notifier or create_notification_client(config)
    pollers = pollers or create_poller_client(config)
    store = store or create_store_client(config)

    scheduler_config = config.scheduler
    lock_manager = LockManager(repos.cron_jobs)
    gate = ManualBuildGate(repos)
    executor = TaskExecutor(
        repos, task_collaborator, notifier, gate,
        max_attempts=config.integrations.max_attempts,
        retry_base_delay=config.integrations.retry_base_delay_seconds,
        retry_max_delay=config.integrations.retry_max_delay_seconds,
    )
    state_machine = ReleaseStateMachine(
        repos, executor, notifier, pollers, lock_manager,
        instance_id=scheduler_config.instance_id,
        lock_timeout_seconds=scheduler_config.lock_timeout_seconds,
        reminder_lead=timedelta(hours=scheduler_config.kickoff_reminder_lead_hours),
    )
    scheduler = TickScheduler(repos, state_machine, lock_manager, scheduler_config)
    rollout = RolloutController(repos.submissions, store, notifier)

    logger.info("✅ Orchestrator ready")
    return Orchestrator(
        config=config,
        repos=repos,
        lock_manager=lock_manager,
        executor=executor,
        state_machine=state_machine,
        scheduler=scheduler,
        rollout=rollout,
    )


__all__ = [
    'Orchestrator',
    'create_orchestrator',
    'create_task_collaborator',
    'create_notification_client',
    'create_poller_client',
    'create_store_client',
]
