"""
Release Orchestration Schema Deployment.

Tables (all in the APP_SCHEMA schema, default "release"):
- releases: Releases created through the orchestrator
- cron_jobs: One orchestration row per release, including lock columns
- release_tasks: Tasks per stage and regression cycle
- release_uploads: Manual build uploads, consumed exactly once
- submissions: Store submissions with rollout history

Every statement is idempotent (IF NOT EXISTS), so deploy_all can run on
every deployment.

Usage:
    from infrastructure.release_schema import deploy_schema

    result = deploy_schema(config)
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from psycopg import sql

from config import AppConfig
from util_logger import LoggerFactory, ComponentType
from .postgresql import PostgreSQLRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "release_schema")


_TABLE_DDL = {
    "releases": """
        CREATE TABLE IF NOT EXISTS {schema}.releases (
            release_id TEXT PRIMARY KEY,
            tenant_id TEXT NOT NULL,
            version TEXT NOT NULL,
            release_type TEXT NOT NULL,
            platforms JSONB NOT NULL DEFAULT '[]'::jsonb,
            branch TEXT,
            kickoff_at TIMESTAMPTZ NOT NULL,
            target_release_at TIMESTAMPTZ NOT NULL,
            archived BOOLEAN NOT NULL DEFAULT false,
            build_config JSONB NOT NULL DEFAULT '{{"provider": "manual_upload"}}'::jsonb,
            project_management_enabled BOOLEAN NOT NULL DEFAULT false,
            test_management_enabled BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """,
    "cron_jobs": """
        CREATE TABLE IF NOT EXISTS {schema}.cron_jobs (
            release_id TEXT PRIMARY KEY REFERENCES {schema}.releases (release_id),
            stage1_status TEXT NOT NULL DEFAULT 'pending',
            stage2_status TEXT NOT NULL DEFAULT 'pending',
            stage3_status TEXT NOT NULL DEFAULT 'pending',
            stage4_status TEXT NOT NULL DEFAULT 'pending',
            cron_status TEXT NOT NULL DEFAULT 'pending',
            pause_type TEXT NOT NULL DEFAULT 'none',
            cron_config JSONB NOT NULL DEFAULT '{{}}'::jsonb,
            upcoming_regressions JSONB NOT NULL DEFAULT '[]'::jsonb,
            auto_transition_to_stage2 BOOLEAN NOT NULL DEFAULT false,
            auto_transition_to_stage3 BOOLEAN NOT NULL DEFAULT false,
            locked_by TEXT,
            locked_at TIMESTAMPTZ,
            lock_timeout_seconds INTEGER NOT NULL DEFAULT 300
                CONSTRAINT cron_jobs_lock_timeout_check CHECK (lock_timeout_seconds > 0),
            stage_data JSONB NOT NULL DEFAULT '{{"kind": "kickoff"}}'::jsonb,
            row_version INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT cron_jobs_pause_type_check
                CHECK (cron_status = 'paused' OR pause_type = 'none')
        )
    """,
    "release_tasks": """
        CREATE TABLE IF NOT EXISTS {schema}.release_tasks (
            task_id TEXT PRIMARY KEY,
            release_id TEXT NOT NULL REFERENCES {schema}.releases (release_id),
            stage TEXT NOT NULL,
            task_type TEXT NOT NULL,
            task_status TEXT NOT NULL DEFAULT 'pending',
            cycle_id TEXT,
            external_id TEXT,
            external_data JSONB NOT NULL DEFAULT '{{}}'::jsonb,
            error_details TEXT,
            attempts INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """,
    "release_uploads": """
        CREATE TABLE IF NOT EXISTS {schema}.release_uploads (
            upload_id TEXT PRIMARY KEY,
            release_id TEXT NOT NULL REFERENCES {schema}.releases (release_id),
            stage TEXT NOT NULL,
            platform TEXT NOT NULL,
            artifact_path TEXT,
            used BOOLEAN NOT NULL DEFAULT false,
            used_by_task_id TEXT,
            used_in_cycle_id TEXT,
            used_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """,
    "submissions": """
        CREATE TABLE IF NOT EXISTS {schema}.submissions (
            submission_id TEXT PRIMARY KEY,
            release_id TEXT NOT NULL REFERENCES {schema}.releases (release_id),
            platform TEXT NOT NULL,
            version TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            rollout_percentage DOUBLE PRECISION NOT NULL DEFAULT 0
                CONSTRAINT submissions_rollout_check
                CHECK (rollout_percentage >= 0 AND rollout_percentage <= 100),
            phased_release BOOLEAN,
            halt_severity TEXT,
            halt_reason TEXT,
            action_history JSONB NOT NULL DEFAULT '[]'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """,
}

_INDEX_DDL = [
    "CREATE INDEX IF NOT EXISTS idx_cron_jobs_status ON {schema}.cron_jobs (cron_status)",
    "CREATE INDEX IF NOT EXISTS idx_releases_tenant ON {schema}.releases (tenant_id)",
    "CREATE INDEX IF NOT EXISTS idx_release_tasks_release "
    "ON {schema}.release_tasks (release_id, stage, cycle_id)",
    "CREATE INDEX IF NOT EXISTS idx_release_uploads_unused "
    "ON {schema}.release_uploads (release_id, stage) WHERE used = false",
    "CREATE INDEX IF NOT EXISTS idx_submissions_release "
    "ON {schema}.submissions (release_id, platform, created_at DESC)",
]


class ReleaseSchemaDeployer:
    """
    Deploy the orchestration tables using psycopg SQL composition.

    Each step commits on its own connection; a failed step is recorded and
    the remaining steps still run.
    """

    def __init__(self, repo: PostgreSQLRepository):
        self.repo = repo
        self.schema_name = repo.schema
        logger.info(f"ReleaseSchemaDeployer initialized for schema: {self.schema_name}")

    def deploy_all(self) -> Dict[str, Any]:
        results = {
            "schema": self.schema_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "steps": [],
            "success": False,
            "errors": [],
        }

        steps = [("create_schema", sql.SQL("CREATE SCHEMA IF NOT EXISTS {schema}"))]
        steps += [(f"create_{name}", sql.SQL(ddl)) for name, ddl in _TABLE_DDL.items()]
        steps += [(f"create_index_{i}", sql.SQL(ddl)) for i, ddl in enumerate(_INDEX_DDL, 1)]

        for step_name, statement in steps:
            step = {"name": step_name, "status": "pending"}
            try:
                with self.repo._get_connection() as conn:
                    with conn.cursor() as cur:
                        cur.execute(statement.format(schema=sql.Identifier(self.schema_name)))
                    conn.commit()
                step["status"] = "success"
                logger.info(f"✅ Step '{step_name}' committed successfully")
            except Exception as e:
                step["status"] = "failed"
                step["error"] = str(e)
                results["errors"].append(f"{step_name}: {e}")
                logger.error(f"❌ Step '{step_name}' failed: {e}")
            finally:
                results["steps"].append(step)

        results["success"] = len(results["errors"]) == 0
        logger.info(f"Release schema deployment complete (errors: {len(results['errors'])})")
        return results


def deploy_schema(config: Optional[AppConfig] = None) -> Dict[str, Any]:
    """Deploy every orchestration table into the configured schema."""
    return ReleaseSchemaDeployer(PostgreSQLRepository(config=config)).deploy_all()


__all__ = ['ReleaseSchemaDeployer', 'deploy_schema']
