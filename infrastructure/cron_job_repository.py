"""
Cron Job Repository - Orchestration Row and Per-Release Lock.

Table: {schema}.cron_jobs
Primary Key: release_id

The lock columns (locked_by, locked_at, lock_timeout_seconds) are written
only by try_acquire_lock/release_lock, each a single conditional UPDATE.
save_cron_job never touches them and guards everything else with a
compare-and-set on row_version.

Exports:
    CronJobRepository: PostgreSQL cron job persistence
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from psycopg import sql
from psycopg.types.json import Jsonb

from exceptions import DatabaseError
from util_logger import LoggerFactory, ComponentType
from core.models import (
    CronConfig,
    CronJobRecord,
    CronStatus,
    PauseType,
    RegressionSlot,
    StageStatus,
)
from .interface_repository import ICronJobRepository
from .postgresql import PostgreSQLRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "CronJobRepository")


class CronJobRepository(PostgreSQLRepository, ICronJobRepository):
    """PostgreSQL implementation of ICronJobRepository."""

    _INSERT_COLUMNS = (
        "release_id",
        "stage1_status", "stage2_status", "stage3_status", "stage4_status",
        "cron_status", "pause_type",
        "cron_config", "upcoming_regressions",
        "auto_transition_to_stage2", "auto_transition_to_stage3",
        "lock_timeout_seconds", "stage_data",
        "row_version", "created_at", "updated_at",
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.table = "cron_jobs"

    # =========================================================================
    # CREATE / READ
    # =========================================================================

    def create_cron_job(self, cron_job: CronJobRecord) -> bool:
        cols = sql.SQL(", ").join(sql.Identifier(c) for c in self._INSERT_COLUMNS)
        placeholders = sql.SQL(", ").join(sql.Placeholder() for _ in self._INSERT_COLUMNS)
        query = sql.SQL(
            "INSERT INTO {}.{} ({}) VALUES ({}) ON CONFLICT (release_id) DO NOTHING"
        ).format(sql.Identifier(self.schema), sql.Identifier(self.table), cols, placeholders)

        now = datetime.now(timezone.utc)
        params = (
            cron_job.release_id,
            cron_job.stage1_status.value, cron_job.stage2_status.value,
            cron_job.stage3_status.value, cron_job.stage4_status.value,
            cron_job.cron_status.value, cron_job.pause_type.value,
            Jsonb(cron_job.cron_config.model_dump(mode="json")),
            Jsonb([slot.model_dump(mode="json") for slot in cron_job.upcoming_regressions]),
            cron_job.auto_transition_to_stage2, cron_job.auto_transition_to_stage3,
            cron_job.lock_timeout_seconds,
            Jsonb(cron_job.stage_data.model_dump(mode="json")),
            0, now, now,
        )

        with self._error_context("cron job creation", cron_job.release_id):
            created = self._execute_query(query, params) > 0

        if created:
            logger.info(f"✅ Created cron job for release {cron_job.release_id}")
        else:
            logger.warning(f"⚠️ Cron job already exists for release {cron_job.release_id}")
        return created

    def get_cron_job(self, release_id: str) -> Optional[CronJobRecord]:
        query = sql.SQL("SELECT * FROM {}.{} WHERE release_id = %s").format(
            sql.Identifier(self.schema),
            sql.Identifier(self.table)
        )
        row = self._execute_query(query, (release_id,), fetch='one')
        return self._row_to_model(row) if row else None

    def list_schedulable_cron_jobs(self) -> List[CronJobRecord]:
        query = sql.SQL("""
            SELECT * FROM {}.{}
            WHERE cron_status IN (%s, %s)
            ORDER BY created_at
        """).format(sql.Identifier(self.schema), sql.Identifier(self.table))
        rows = self._execute_query(
            query, (CronStatus.RUNNING.value, CronStatus.PENDING.value), fetch='all'
        )
        return [self._row_to_model(row) for row in rows]

    # =========================================================================
    # UPDATE
    # =========================================================================

    def save_cron_job(self, cron_job: CronJobRecord) -> CronJobRecord:
        """
        Persist everything except the lock columns, guarded by row_version.

        Raises:
            DatabaseError: The row was changed (or deleted) since it was read
            ContractViolationError: The write breaks the stage or cron state machines
        """
        previous = self.get_cron_job(cron_job.release_id)
        if previous is None:
            raise DatabaseError(f"Cron job {cron_job.release_id} no longer exists")
        archived = (
            cron_job.cron_status == CronStatus.COMPLETED
            and self._is_release_archived(cron_job.release_id)
        )
        self._validate_cron_job_write(previous, cron_job, archived)

        now = datetime.now(timezone.utc)
        query = sql.SQL("""
            UPDATE {}.{}
            SET stage1_status = %s,
                stage2_status = %s,
                stage3_status = %s,
                stage4_status = %s,
                cron_status = %s,
                pause_type = %s,
                cron_config = %s,
                upcoming_regressions = %s,
                auto_transition_to_stage2 = %s,
                auto_transition_to_stage3 = %s,
                stage_data = %s,
                row_version = row_version + 1,
                updated_at = %s
            WHERE release_id = %s AND row_version = %s
        """).format(sql.Identifier(self.schema), sql.Identifier(self.table))
        params = (
            cron_job.stage1_status.value, cron_job.stage2_status.value,
            cron_job.stage3_status.value, cron_job.stage4_status.value,
            cron_job.cron_status.value, cron_job.pause_type.value,
            Jsonb(cron_job.cron_config.model_dump(mode="json")),
            Jsonb([slot.model_dump(mode="json") for slot in cron_job.upcoming_regressions]),
            cron_job.auto_transition_to_stage2, cron_job.auto_transition_to_stage3,
            Jsonb(cron_job.stage_data.model_dump(mode="json")),
            now,
            cron_job.release_id, cron_job.row_version,
        )

        if self._execute_query(query, params) == 0:
            raise DatabaseError(
                f"Cron job {cron_job.release_id} changed since row_version "
                f"{cron_job.row_version} was read"
            )

        logger.debug(
            f"Saved cron job {cron_job.release_id}: {cron_job.cron_status.value} "
            f"(row_version {cron_job.row_version + 1})"
        )
        return cron_job.model_copy(update={
            "row_version": cron_job.row_version + 1,
            "updated_at": now,
        })

    def _is_release_archived(self, release_id: str) -> bool:
        query = sql.SQL("SELECT archived FROM {}.releases WHERE release_id = %s").format(
            sql.Identifier(self.schema)
        )
        row = self._execute_query(query, (release_id,), fetch='one')
        return bool(row and row['archived'])

    # =========================================================================
    # LOCK
    # =========================================================================

    def try_acquire_lock(self, release_id: str, owner_id: str,
                         timeout_seconds: int, now: datetime) -> bool:
        query = sql.SQL("""
            UPDATE {}.{}
            SET locked_by = %s,
                locked_at = %s,
                lock_timeout_seconds = %s
            WHERE release_id = %s
              AND (locked_by IS NULL
                   OR locked_at IS NULL
                   OR locked_at + lock_timeout_seconds * interval '1 second' <= %s)
        """).format(sql.Identifier(self.schema), sql.Identifier(self.table))

        acquired = self._execute_query(
            query, (owner_id, now, timeout_seconds, release_id, now)
        ) > 0
        logger.debug(f"🔒 Lock {'acquired' if acquired else 'busy'} for {release_id} ({owner_id})")
        return acquired

    def release_lock(self, release_id: str, owner_id: str) -> bool:
        query = sql.SQL("""
            UPDATE {}.{}
            SET locked_by = NULL, locked_at = NULL
            WHERE release_id = %s AND locked_by = %s
        """).format(sql.Identifier(self.schema), sql.Identifier(self.table))

        released = self._execute_query(query, (release_id, owner_id)) > 0
        if not released:
            logger.warning(f"⚠️ Lock for {release_id} no longer held by {owner_id}")
        return released

    # =========================================================================
    # ROW MAPPING
    # =========================================================================

    def _row_to_model(self, row: Dict[str, Any]) -> CronJobRecord:
        """
        Convert database row to CronJobRecord.

        Enum columns are parsed strictly; JSONB columns arrive as Python
        objects and are validated by the model.
        """
        release_id = row.get('release_id', '?')
        cron_status_value = row.get('cron_status')
        if not cron_status_value:
            raise ValueError(f"Missing cron_status for cron job {release_id}")

        return CronJobRecord(
            release_id=row['release_id'],
            stage1_status=StageStatus(row['stage1_status']),
            stage2_status=StageStatus(row['stage2_status']),
            stage3_status=StageStatus(row['stage3_status']),
            stage4_status=StageStatus(row['stage4_status']),
            cron_status=CronStatus(cron_status_value),
            pause_type=PauseType(row.get('pause_type') or PauseType.NONE.value),
            cron_config=CronConfig(**(row.get('cron_config') or {})),
            upcoming_regressions=[
                RegressionSlot(**slot) for slot in (row.get('upcoming_regressions') or [])
            ],
            auto_transition_to_stage2=row.get('auto_transition_to_stage2', False),
            auto_transition_to_stage3=row.get('auto_transition_to_stage3', False),
            locked_by=row.get('locked_by'),
            locked_at=row.get('locked_at'),
            lock_timeout_seconds=row.get('lock_timeout_seconds') or 300,
            stage_data=row.get('stage_data') or {"kind": "kickoff"},
            row_version=row.get('row_version', 0),
            created_at=row.get('created_at', datetime.now(timezone.utc)),
            updated_at=row.get('updated_at', datetime.now(timezone.utc)),
        )


__all__ = ['CronJobRepository']
