"""
Collaborator Services - Outbound Side Effects.

Every external side effect of the orchestrator goes through one of four
interfaces, wired explicitly by core.orchestrator_factory:

    TaskCollaborator      HttpTaskCollaborator      | LoggingTaskCollaborator
    NotificationClient    WebhookNotificationClient | LoggingNotificationClient
    WorkflowPollerClient  HttpWorkflowPollerClient  | LoggingWorkflowPollerClient
    StoreClient           HttpStoreClient           | LoggingStoreClient

The HTTP implementation is chosen when its base URL is configured; the
logging one otherwise.
"""

from .collaborators import (
    DispatchOutcome,
    DispatchResult,
    NotificationEvent,
    TaskCollaborator,
    NotificationClient,
    WorkflowPollerClient,
    StoreClient,
    LoggingTaskCollaborator,
    LoggingNotificationClient,
    LoggingWorkflowPollerClient,
    LoggingStoreClient,
)
from .http_client import IntegrationHttpClient
from .http_task_collaborator import HttpTaskCollaborator
from .notification_client import WebhookNotificationClient
from .workflow_poller import HttpWorkflowPollerClient, poller_ids
from .store_client import HttpStoreClient

__all__ = [
    'DispatchOutcome',
    'DispatchResult',
    'NotificationEvent',
    'TaskCollaborator',
    'NotificationClient',
    'WorkflowPollerClient',
    'StoreClient',
    'LoggingTaskCollaborator',
    'LoggingNotificationClient',
    'LoggingWorkflowPollerClient',
    'LoggingStoreClient',
    'IntegrationHttpClient',
    'HttpTaskCollaborator',
    'WebhookNotificationClient',
    'HttpWorkflowPollerClient',
    'poller_ids',
    'HttpStoreClient',
]
