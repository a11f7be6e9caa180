"""
HTTP Task Collaborator.

Dispatches release tasks to the integration service:

    POST {INTEGRATION_BASE_URL}/tasks/{task_type}
    {
        "taskId": "...", "releaseId": "...", "tenantId": "...",
        "cycleId": "..." | null, "payload": {...}
    }

Response body:

    {"status": "completed" | "pending" | "awaiting_callback" | "failed",
     "externalId": "...", "data": {...}, "error": "..."}

Exports:
    HttpTaskCollaborator: TaskCollaborator over HTTP
"""

from typing import Any, Dict

from exceptions import TaskFailureError
from core.models import ReleaseRecord, ReleaseTaskRecord
from util_logger import LoggerFactory, ComponentType
from .collaborators import DispatchOutcome, DispatchResult, TaskCollaborator
from .http_client import IntegrationHttpClient

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "HttpTaskCollaborator")


class HttpTaskCollaborator(TaskCollaborator):

    def __init__(self, client: IntegrationHttpClient):
        self.client = client

    def dispatch(self, release: ReleaseRecord, task: ReleaseTaskRecord,
                 payload: Dict[str, Any]) -> DispatchResult:
        body = self.client.request("POST", f"tasks/{task.task_type.value}", json={
            "taskId": task.task_id,
            "releaseId": release.release_id,
            "tenantId": release.tenant_id,
            "cycleId": task.cycle_id,
            "payload": payload,
        })

        status = body.get("status")
        try:
            outcome = DispatchOutcome(status)
        except ValueError as e:
            raise TaskFailureError(
                f"Integration service returned unknown status {status!r}",
                task_type=task.task_type.value,
            ) from e

        logger.debug(f"Dispatched {task.task_type.value} ({task.task_id}): {outcome.value}")
        return DispatchResult(
            outcome=outcome,
            external_id=body.get("externalId"),
            data=body.get("data") or {},
            error=body.get("error"),
        )


__all__ = ['HttpTaskCollaborator']
