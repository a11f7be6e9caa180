"""
Store Rollout Client.

Forwards rollout actions to the store integration API, which fronts the
Play Console and App Store Connect:

    POST {STORE_API_BASE_URL}/submissions/{submission_id}/{action}

Exports:
    HttpStoreClient: StoreClient over HTTP
"""

from typing import Any, Dict

from core.models import HaltSeverity, SubmissionRecord
from util_logger import LoggerFactory, ComponentType
from .collaborators import StoreClient
from .http_client import IntegrationHttpClient

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "HttpStoreClient")


class HttpStoreClient(StoreClient):

    def __init__(self, client: IntegrationHttpClient):
        self.client = client

    def _post(self, submission: SubmissionRecord, action: str, body: Dict[str, Any]) -> None:
        self.client.request(
            "POST",
            f"submissions/{submission.submission_id}/{action}",
            json={"platform": submission.platform.value, "version": submission.version, **body},
        )
        logger.info(f"🏪 {action} sent for {submission.platform.value} submission {submission.submission_id}")

    def update_rollout(self, submission: SubmissionRecord, percentage: float) -> None:
        self._post(submission, "rollout", {"percentage": percentage})

    def pause_rollout(self, submission: SubmissionRecord) -> None:
        self._post(submission, "pause", {})

    def resume_rollout(self, submission: SubmissionRecord) -> None:
        self._post(submission, "resume", {})

    def halt_rollout(self, submission: SubmissionRecord,
                     severity: HaltSeverity, reason: str) -> None:
        self._post(submission, "halt", {"severity": severity.value, "reason": reason})


__all__ = ['HttpStoreClient']
