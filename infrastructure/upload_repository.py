"""
Release Upload Repository - Manual Build Artifacts.

Table: {schema}.release_uploads
Primary Key: upload_id
Index: (release_id, stage, used)

Uploads are consumed exactly once. mark_used_atomic flips every chosen
row inside one savepoint, conditioned on used = false, and undoes the
whole batch if any row was taken by someone else first.

Exports:
    UploadRepository: PostgreSQL upload persistence
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from psycopg import sql

from util_logger import LoggerFactory, ComponentType
from core.models import Platform, ReleaseUploadRecord, UploadStage
from .interface_repository import IUploadRepository
from .postgresql import PostgreSQLRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "UploadRepository")


class _UploadRaceLost(Exception):
    """Raised inside the savepoint to roll back a partially applied batch."""


class UploadRepository(PostgreSQLRepository, IUploadRepository):
    """PostgreSQL implementation of IUploadRepository."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.table = "release_uploads"

    def create_upload(self, upload: ReleaseUploadRecord) -> bool:
        query = sql.SQL("""
            INSERT INTO {}.{} (upload_id, release_id, stage, platform, artifact_path,
                               used, used_by_task_id, used_in_cycle_id, used_at, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (upload_id) DO NOTHING
        """).format(sql.Identifier(self.schema), sql.Identifier(self.table))

        created = self._execute_query(query, (
            upload.upload_id, upload.release_id, upload.stage.value, upload.platform.value,
            upload.artifact_path, upload.used, upload.used_by_task_id,
            upload.used_in_cycle_id, upload.used_at, upload.created_at,
        )) > 0
        if created:
            logger.info(
                f"📦 Upload {upload.upload_id} recorded for {upload.release_id} "
                f"({upload.platform.value}, {upload.stage.value})"
            )
        return created

    def list_unused(self, release_id: str, stage: UploadStage) -> List[ReleaseUploadRecord]:
        query = sql.SQL("""
            SELECT * FROM {}.{}
            WHERE release_id = %s AND stage = %s AND used = false
            ORDER BY created_at, upload_id
        """).format(sql.Identifier(self.schema), sql.Identifier(self.table))
        rows = self._execute_query(query, (release_id, stage.value), fetch='all')
        return [self._row_to_model(row) for row in rows]

    def list_uploads(self, release_id: str) -> List[ReleaseUploadRecord]:
        query = sql.SQL("""
            SELECT * FROM {}.{} WHERE release_id = %s ORDER BY created_at, upload_id
        """).format(sql.Identifier(self.schema), sql.Identifier(self.table))
        rows = self._execute_query(query, (release_id,), fetch='all')
        return [self._row_to_model(row) for row in rows]

    def mark_used_atomic(self, upload_ids: List[str], task_id: str,
                         cycle_id: Optional[str], now: datetime) -> bool:
        """
        Consume every upload for task_id or none of them.

        Returns:
            False (nothing changed) when any upload was already used
        """
        if not upload_ids:
            return False

        query = sql.SQL("""
            UPDATE {}.{}
            SET used = true,
                used_by_task_id = %s,
                used_in_cycle_id = %s,
                used_at = %s
            WHERE upload_id = ANY(%s) AND used = false
        """).format(sql.Identifier(self.schema), sql.Identifier(self.table))

        with self._get_connection() as conn:
            try:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.execute(query, (task_id, cycle_id, now, list(upload_ids)))
                        if cur.rowcount != len(upload_ids):
                            raise _UploadRaceLost()
            except _UploadRaceLost:
                logger.warning(
                    f"⚠️ Uploads {upload_ids} already consumed; task {task_id} keeps waiting"
                )
                return False
            self._commit(conn)

        logger.info(f"📦 Consumed uploads {upload_ids} for task {task_id}")
        return True

    def _row_to_model(self, row: Dict[str, Any]) -> ReleaseUploadRecord:
        return ReleaseUploadRecord(
            upload_id=row['upload_id'],
            release_id=row['release_id'],
            stage=UploadStage(row['stage']),
            platform=Platform(row['platform']),
            artifact_path=row.get('artifact_path'),
            used=row.get('used', False),
            used_by_task_id=row.get('used_by_task_id'),
            used_in_cycle_id=row.get('used_in_cycle_id'),
            used_at=row.get('used_at'),
            created_at=row.get('created_at', datetime.now(timezone.utc)),
        )


__all__ = ['UploadRepository']
