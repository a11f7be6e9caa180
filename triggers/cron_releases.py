"""
Release Tick Trigger.

POST /api/internal/cron/releases

Called by the external scheduler about once a minute. Authenticated by a
shared secret in the configured header (default X-Cron-Secret); no body.

Response:
    {"success": bool, "processedCount": int, "errors": [str], "durationMs": int}

Exports:
    CronReleasesTrigger
"""

import hmac
from typing import Any, Dict, List

import azure.functions as func

from .http_base import OrchestratorTrigger


class CronReleasesTrigger(OrchestratorTrigger):

    def __init__(self, orchestrator):
        super().__init__("cron_releases", orchestrator)

    def get_allowed_methods(self) -> List[str]:
        return ["POST"]

    def process_request(self, req: func.HttpRequest) -> Dict[str, Any]:
        self._authenticate(req)
        result = self.orchestrator.scheduler.run_tick()
        return result.to_response()

    def _authenticate(self, req: func.HttpRequest) -> None:
        """
        Raises:
            PermissionError: Secret not configured, missing or wrong
        """
        scheduler_config = self.orchestrator.config.scheduler
        expected = scheduler_config.cron_shared_secret
        if not expected:
            raise PermissionError("CRON_SHARED_SECRET is not configured; tick endpoint disabled")

        provided = req.headers.get(scheduler_config.cron_secret_header) or ""
        if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            raise PermissionError("Invalid cron secret")


__all__ = ['CronReleasesTrigger']
