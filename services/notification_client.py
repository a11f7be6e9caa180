"""
Webhook Notification Client.

Posts release events to NOTIFICATION_WEBHOOK_URL. Notifications are
best effort: a failed post is logged and never fails the caller.

Exports:
    WebhookNotificationClient: NotificationClient over HTTP
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from exceptions import TaskFailureError, TransientIntegrationError
from util_logger import LoggerFactory, ComponentType
from .collaborators import NotificationClient, NotificationEvent
from .http_client import IntegrationHttpClient

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "WebhookNotificationClient")


class WebhookNotificationClient(NotificationClient):

    def __init__(self, client: IntegrationHttpClient):
        self.client = client

    def notify(self, event: NotificationEvent, release_id: str,
               payload: Optional[Dict[str, Any]] = None) -> None:
        body = {
            "event": event.value,
            "releaseId": release_id,
            "payload": payload or {},
            "sentAt": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.client.request("POST", "", json=body)
            logger.info(f"📣 Sent {event.value} for release {release_id}")
        except (TransientIntegrationError, TaskFailureError) as e:
            logger.warning(f"⚠️ Notification {event.value} for {release_id} not delivered: {e}")


__all__ = ['WebhookNotificationClient']
