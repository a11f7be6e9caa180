"""
Submission Repository - Store Submissions and Rollout History.

Table: {schema}.submissions
Primary Key: submission_id
Index: (release_id, platform, created_at)

Exports:
    SubmissionRepository: PostgreSQL submission persistence
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from psycopg import sql
from psycopg.types.json import Jsonb

from util_logger import LoggerFactory, ComponentType
from core.models import (
    HaltSeverity,
    Platform,
    SubmissionAction,
    SubmissionRecord,
    SubmissionStatus,
)
from .interface_repository import ISubmissionRepository
from .postgresql import PostgreSQLRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "SubmissionRepository")


class SubmissionRepository(PostgreSQLRepository, ISubmissionRepository):
    """PostgreSQL implementation of ISubmissionRepository."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.table = "submissions"

    def create_submission(self, submission: SubmissionRecord) -> bool:
        query = sql.SQL("""
            INSERT INTO {}.{} (submission_id, release_id, platform, version, status,
                               rollout_percentage, phased_release, halt_severity,
                               halt_reason, action_history, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (submission_id) DO NOTHING
        """).format(sql.Identifier(self.schema), sql.Identifier(self.table))

        created = self._execute_query(query, (
            submission.submission_id, submission.release_id, submission.platform.value,
            submission.version, submission.status.value, submission.rollout_percentage,
            submission.phased_release,
            submission.halt_severity.value if submission.halt_severity else None,
            submission.halt_reason,
            Jsonb([a.model_dump(mode="json") for a in submission.action_history]),
            submission.created_at, submission.updated_at,
        )) > 0
        if created:
            logger.info(
                f"Created {submission.platform.value} submission {submission.submission_id} "
                f"for release {submission.release_id}"
            )
        return created

    def get_submission(self, submission_id: str) -> Optional[SubmissionRecord]:
        query = sql.SQL("SELECT * FROM {}.{} WHERE submission_id = %s").format(
            sql.Identifier(self.schema),
            sql.Identifier(self.table)
        )
        row = self._execute_query(query, (submission_id,), fetch='one')
        return self._row_to_model(row) if row else None

    def list_submissions(self, release_id: str,
                         platform: Optional[Platform] = None) -> List[SubmissionRecord]:
        if platform is None:
            query = sql.SQL("""
                SELECT * FROM {}.{} WHERE release_id = %s
                ORDER BY created_at DESC, submission_id DESC
            """).format(sql.Identifier(self.schema), sql.Identifier(self.table))
            params = (release_id,)
        else:
            query = sql.SQL("""
                SELECT * FROM {}.{} WHERE release_id = %s AND platform = %s
                ORDER BY created_at DESC, submission_id DESC
            """).format(sql.Identifier(self.schema), sql.Identifier(self.table))
            params = (release_id, platform.value)

        rows = self._execute_query(query, params, fetch='all')
        return [self._row_to_model(row) for row in rows]

    def save_submission(self, submission: SubmissionRecord, expected_status) -> bool:
        """Compare-and-set on status; False when another writer got there first."""
        self._validate_submission_write(submission, SubmissionStatus(expected_status))
        query = sql.SQL("""
            UPDATE {}.{}
            SET status = %s,
                rollout_percentage = %s,
                phased_release = %s,
                halt_severity = %s,
                halt_reason = %s,
                action_history = %s,
                updated_at = %s
            WHERE submission_id = %s AND status = %s
        """).format(sql.Identifier(self.schema), sql.Identifier(self.table))

        saved = self._execute_query(query, (
            submission.status.value, submission.rollout_percentage,
            submission.phased_release,
            submission.halt_severity.value if submission.halt_severity else None,
            submission.halt_reason,
            Jsonb([a.model_dump(mode="json") for a in submission.action_history]),
            datetime.now(timezone.utc),
            submission.submission_id, SubmissionStatus(expected_status).value,
        )) > 0
        if not saved:
            logger.warning(
                f"⚠️ Submission {submission.submission_id} no longer "
                f"{SubmissionStatus(expected_status).value}; update rejected"
            )
        return saved

    def _row_to_model(self, row: Dict[str, Any]) -> SubmissionRecord:
        status_value = row.get('status')
        if not status_value:
            raise ValueError(f"Missing status for submission {row.get('submission_id', '?')}")

        severity_value = row.get('halt_severity')
        return SubmissionRecord(
            submission_id=row['submission_id'],
            release_id=row['release_id'],
            platform=Platform(row['platform']),
            version=row['version'],
            status=SubmissionStatus(status_value),
            rollout_percentage=float(row.get('rollout_percentage') or 0.0),
            phased_release=row.get('phased_release'),
            halt_severity=HaltSeverity(severity_value) if severity_value else None,
            halt_reason=row.get('halt_reason'),
            action_history=[
                SubmissionAction(**entry) for entry in (row.get('action_history') or [])
            ],
            created_at=row.get('created_at', datetime.now(timezone.utc)),
            updated_at=row.get('updated_at', datetime.now(timezone.utc)),
        )


__all__ = ['SubmissionRepository']
