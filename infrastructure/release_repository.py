"""
Release Repository - Release Records.

Table: {schema}.releases
Primary Key: release_id

Releases are registered through ReleaseStateMachine.create_release
together with their cron job; afterwards the orchestrator only reads
them and records archival.

Exports:
    ReleaseRepository: PostgreSQL release persistence
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from psycopg import sql
from psycopg.types.json import Jsonb

from util_logger import LoggerFactory, ComponentType
from core.logic.versioning import latest_version
from core.models import Platform, ReleaseRecord, ReleaseType
from .interface_repository import IReleaseRepository
from .postgresql import PostgreSQLRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "ReleaseRepository")


class ReleaseRepository(PostgreSQLRepository, IReleaseRepository):
    """
    Repository for the release read model.

    Table: {schema}.releases
    """

    _INSERT_COLUMNS = (
        "release_id", "tenant_id", "version", "release_type", "platforms",
        "branch", "kickoff_at", "target_release_at", "archived",
        "build_config", "project_management_enabled", "test_management_enabled",
        "created_at",
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.table = "releases"

    def create_release(self, release: ReleaseRecord) -> bool:
        """
        Insert a release row.

        Called inside the transaction that also creates the cron job.

        Returns:
            False when the release already exists
        """
        cols = ", ".join(self._INSERT_COLUMNS)
        placeholders = ", ".join(["%s"] * len(self._INSERT_COLUMNS))
        query = sql.SQL(
            f"INSERT INTO {{}}.{{}} ({cols}) VALUES ({placeholders}) "
            f"ON CONFLICT (release_id) DO NOTHING"
        ).format(sql.Identifier(self.schema), sql.Identifier(self.table))

        params = (
            release.release_id, release.tenant_id, release.version,
            release.release_type.value,
            Jsonb([p.value for p in release.platforms]),
            release.branch, release.kickoff_at, release.target_release_at,
            release.archived,
            Jsonb(release.build_config.model_dump(mode="json")),
            release.project_management_enabled, release.test_management_enabled,
            release.created_at,
        )
        created = self._execute_query(query, params) > 0
        if created:
            logger.info(f"Created release: {release.release_id} ({release.version})")
        return created

    def get_release(self, release_id: str) -> Optional[ReleaseRecord]:
        query = sql.SQL("SELECT * FROM {}.{} WHERE release_id = %s").format(
            sql.Identifier(self.schema),
            sql.Identifier(self.table)
        )
        row = self._execute_query(query, (release_id,), fetch='one')
        return self._row_to_model(row) if row else None

    def mark_archived(self, release_id: str) -> bool:
        query = sql.SQL("""
            UPDATE {}.{}
            SET archived = true
            WHERE release_id = %s AND archived = false
        """).format(sql.Identifier(self.schema), sql.Identifier(self.table))

        archived = self._execute_query(query, (release_id,)) > 0
        if archived:
            logger.info(f"Archived release: {release_id}")
        return archived

    def get_latest_version(self, tenant_id: str) -> Optional[str]:
        query = sql.SQL("SELECT version FROM {}.{} WHERE tenant_id = %s").format(
            sql.Identifier(self.schema),
            sql.Identifier(self.table)
        )
        rows = self._execute_query(query, (tenant_id,), fetch='all')
        return latest_version(row['version'] for row in rows)

    def _row_to_model(self, row: Dict[str, Any]) -> ReleaseRecord:
        """
        Convert database row to ReleaseRecord.

        Parses enum fields from string values and raises ValueError on
        invalid or missing values.
        """
        release_type_value = row.get('release_type')
        if not release_type_value:
            raise ValueError(f"Missing release_type for release {row.get('release_id', '?')}")

        return ReleaseRecord(
            release_id=row['release_id'],
            tenant_id=row['tenant_id'],
            version=row['version'],
            release_type=ReleaseType(release_type_value),
            platforms=[Platform(p) for p in (row.get('platforms') or [])],
            branch=row.get('branch'),
            kickoff_at=row['kickoff_at'],
            target_release_at=row['target_release_at'],
            archived=row.get('archived', False),
            build_config=row.get('build_config') or {"provider": "manual_upload"},
            project_management_enabled=row.get('project_management_enabled', False),
            test_management_enabled=row.get('test_management_enabled', False),
            created_at=row.get('created_at', datetime.now(timezone.utc)),
        )


__all__ = ['ReleaseRepository']
