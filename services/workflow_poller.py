"""
Workflow Poller Client.

Each running release has two scheduled pollers on the poller scheduler:

    pending-poller-{release_id}   checks CI runs that have not started
    running-poller-{release_id}   checks CI runs in progress

Both invoke WORKFLOW_POLLER_CALLBACK_URL every interval_minutes, which
must lie in 1..59 so it fits a minute-of-hour cron expression. Creating
an existing poller and deleting a missing one are both treated as
success.

Exports:
    HttpWorkflowPollerClient: WorkflowPollerClient over HTTP
    poller_ids: Names of a release's pollers
"""

from typing import List

from config import PollerConfig
from config.defaults import PollerDefaults
from exceptions import ConfigurationError, TaskFailureError
from util_logger import LoggerFactory, ComponentType
from .collaborators import WorkflowPollerClient
from .http_client import IntegrationHttpClient

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "HttpWorkflowPollerClient")


def poller_ids(release_id: str) -> List[str]:
    return [
        f"{PollerDefaults.PENDING_POLLER_PREFIX}{release_id}",
        f"{PollerDefaults.RUNNING_POLLER_PREFIX}{release_id}",
    ]


class HttpWorkflowPollerClient(WorkflowPollerClient):

    def __init__(self, client: IntegrationHttpClient, config: PollerConfig):
        if not config.callback_url:
            raise ConfigurationError(
                "WORKFLOW_POLLER_CALLBACK_URL is required when WORKFLOW_POLLER_BASE_URL is set"
            )
        self.client = client
        self.config = config

    def _schedule(self) -> str:
        return f"*/{self.config.interval_minutes} * * * *"

    def create_pollers(self, release_id: str) -> None:
        for poller_id in poller_ids(release_id):
            try:
                self.client.request("POST", "pollers", json={
                    "id": poller_id,
                    "schedule": self._schedule(),
                    "url": self.config.callback_url,
                    "payload": {
                        "releaseId": release_id,
                        "phase": "pending" if poller_id.startswith(
                            PollerDefaults.PENDING_POLLER_PREFIX) else "running",
                    },
                })
            except TaskFailureError as e:
                if e.details.get("status_code") != 409:
                    raise
                logger.debug(f"Poller {poller_id} already exists")
        logger.info(
            f"⏰ Pollers scheduled for release {release_id} "
            f"every {self.config.interval_minutes} min"
        )

    def delete_pollers(self, release_id: str) -> None:
        for poller_id in poller_ids(release_id):
            try:
                self.client.request("DELETE", f"pollers/{poller_id}")
            except TaskFailureError as e:
                if e.details.get("status_code") != 404:
                    raise
                logger.debug(f"Poller {poller_id} already gone")
        logger.info(f"⏰ Pollers removed for release {release_id}")


__all__ = ['HttpWorkflowPollerClient', 'poller_ids']
