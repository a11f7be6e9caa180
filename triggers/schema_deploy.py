"""
Schema Deployment Trigger.

POST /api/admin/schema/deploy?confirm=yes

Creates the orchestration tables and indexes in APP_SCHEMA. Every
statement is idempotent; confirm=yes guards against accidental calls.

Exports:
    SchemaDeployTrigger
"""

from typing import Any, Callable, Dict, List, Optional

import azure.functions as func

from infrastructure.release_schema import deploy_schema
from .http_base import OrchestratorTrigger


class SchemaDeployTrigger(OrchestratorTrigger):

    def __init__(self, orchestrator, deployer: Optional[Callable[..., Dict[str, Any]]] = None):
        super().__init__("schema_deploy", orchestrator)
        self.deployer = deployer or deploy_schema

    def get_allowed_methods(self) -> List[str]:
        return ["POST"]

    def process_request(self, req: func.HttpRequest) -> Dict[str, Any]:
        if req.params.get("confirm") != "yes":
            raise ValueError("Schema deployment requires ?confirm=yes")
        if self.orchestrator.config.storage_backend != "postgres":
            raise ValueError(
                f"Schema deployment needs STORAGE_BACKEND=postgres "
                f"(current: {self.orchestrator.config.storage_backend})"
            )

        result = self.deployer(self.orchestrator.config)
        if not result.get("success"):
            self.logger.error(f"❌ Schema deployment failed: {result.get('errors')}")
        return result


__all__ = ['SchemaDeployTrigger']
