"""
Integration Configuration.

Outbound collaborators reached over HTTP: the task collaborator that
forks branches, creates tickets and triggers CI builds, the store
rollout API, the notification webhook and the workflow poller scheduler.

Exports:
    IntegrationConfig: Task/store/notification endpoints and retry policy
    PollerConfig: Workflow poller scheduler settings
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

from .defaults import IntegrationDefaults, PollerDefaults


class IntegrationConfig(BaseModel):
    """Collaborator endpoints and the transient-error retry policy."""

    base_url: Optional[str] = Field(
        default=None,
        description="Task collaborator base URL; None logs dispatches without calling out",
        examples=["https://release-integrations.internal"]
    )

    store_base_url: Optional[str] = Field(
        default=None,
        description="Store rollout API base URL"
    )

    api_key: Optional[str] = Field(
        default=None,
        repr=False,
        description="Bearer token for the collaborator APIs"
    )

    timeout_seconds: float = Field(
        default=IntegrationDefaults.TIMEOUT_SECONDS,
        gt=0,
        le=120,
        description="Per-request timeout; must stay below the lock timeout"
    )

    max_attempts: int = Field(
        default=IntegrationDefaults.MAX_ATTEMPTS,
        ge=1,
        le=10,
        description="Attempts per dispatch before leaving the task for the next tick"
    )

    retry_base_delay_seconds: float = Field(
        default=IntegrationDefaults.RETRY_BASE_DELAY_SECONDS,
        ge=0,
        le=60,
        description="Base delay for exponential backoff between attempts"
    )

    retry_max_delay_seconds: float = Field(
        default=IntegrationDefaults.RETRY_MAX_DELAY_SECONDS,
        ge=0,
        le=300,
        description="Cap on a single backoff delay"
    )

    notification_webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook receiving release notifications; None logs them instead"
    )

    def debug_dict(self) -> dict:
        return {
            "base_url": self.base_url,
            "store_base_url": self.store_base_url,
            "api_key": "***MASKED***" if self.api_key else None,
            "timeout_seconds": self.timeout_seconds,
            "max_attempts": self.max_attempts,
            "retry_base_delay_seconds": self.retry_base_delay_seconds,
            "retry_max_delay_seconds": self.retry_max_delay_seconds,
            "notification_webhook_url": self.notification_webhook_url,
        }

    @classmethod
    def from_environment(cls):
        return cls(
            base_url=os.environ.get("INTEGRATION_BASE_URL"),
            store_base_url=os.environ.get("STORE_API_BASE_URL"),
            api_key=os.environ.get("INTEGRATION_API_KEY"),
            timeout_seconds=float(os.environ.get(
                "INTEGRATION_TIMEOUT_SECONDS", str(IntegrationDefaults.TIMEOUT_SECONDS)
            )),
            max_attempts=int(os.environ.get(
                "INTEGRATION_MAX_ATTEMPTS", str(IntegrationDefaults.MAX_ATTEMPTS)
            )),
            retry_base_delay_seconds=float(os.environ.get(
                "INTEGRATION_RETRY_BASE_DELAY", str(IntegrationDefaults.RETRY_BASE_DELAY_SECONDS)
            )),
            retry_max_delay_seconds=float(os.environ.get(
                "INTEGRATION_RETRY_MAX_DELAY", str(IntegrationDefaults.RETRY_MAX_DELAY_SECONDS)
            )),
            notification_webhook_url=os.environ.get("NOTIFICATION_WEBHOOK_URL"),
        )


class PollerConfig(BaseModel):
    """
    Workflow poller scheduler.

    Each running release gets two pollers that call callback_url on the
    configured interval until the release completes or is archived.
    """

    base_url: Optional[str] = Field(
        default=None,
        description="Poller scheduler API base URL; None disables poller management"
    )

    api_key: Optional[str] = Field(default=None, repr=False)

    interval_minutes: int = Field(
        default=PollerDefaults.INTERVAL_MINUTES,
        ge=PollerDefaults.INTERVAL_MINUTES_MIN,
        le=PollerDefaults.INTERVAL_MINUTES_MAX,
        description="Minutes between poller runs"
    )

    callback_url: Optional[str] = Field(
        default=None,
        description="Internal CI status polling endpoint the pollers invoke"
    )

    def debug_dict(self) -> dict:
        return {
            "base_url": self.base_url,
            "api_key": "***MASKED***" if self.api_key else None,
            "interval_minutes": self.interval_minutes,
            "callback_url": self.callback_url,
        }

    @classmethod
    def from_environment(cls):
        return cls(
            base_url=os.environ.get("WORKFLOW_POLLER_BASE_URL"),
            api_key=os.environ.get("WORKFLOW_POLLER_API_KEY"),
            interval_minutes=int(os.environ.get(
                "WORKFLOW_POLLER_INTERVAL_MINUTES", str(PollerDefaults.INTERVAL_MINUTES)
            )),
            callback_url=os.environ.get("WORKFLOW_POLLER_CALLBACK_URL"),
        )


__all__ = ['IntegrationConfig', 'PollerConfig']
