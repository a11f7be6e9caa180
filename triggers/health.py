"""
Health Check HTTP Trigger.

GET /api/health

Reports the process configuration (secrets masked) and whether the
storage backend answers a trivial read.

Exports:
    HealthCheckTrigger
"""

from typing import Dict, Any, List
from datetime import datetime, timezone

import azure.functions as func

from config import debug_config
from .http_base import OrchestratorTrigger


class HealthCheckTrigger(OrchestratorTrigger):

    def __init__(self, orchestrator):
        super().__init__("health_check", orchestrator)

    def get_allowed_methods(self) -> List[str]:
        return ["GET"]

    def process_request(self, req: func.HttpRequest) -> Dict[str, Any]:
        storage = self._check_storage()
        return {
            "status": "healthy" if storage["status"] == "healthy" else "unhealthy",
            "components": {"storage": storage},
            "config": debug_config(),
        }

    def _check_storage(self) -> Dict[str, Any]:
        checked_at = datetime.now(timezone.utc).isoformat()
        try:
            schedulable = self.orchestrator.repos.cron_jobs.list_schedulable_cron_jobs()
        except Exception as e:
            self.logger.warning(f"⚠️ Storage health check failed: {e}")
            return {"status": "unhealthy", "error": str(e), "checked_at": checked_at}
        return {
            "status": "healthy",
            "backend": self.orchestrator.config.storage_backend,
            "schedulable_releases": len(schedulable),
            "checked_at": checked_at,
        }


__all__ = ['HealthCheckTrigger']
