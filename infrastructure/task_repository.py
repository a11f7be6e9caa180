"""
Release Task Repository.

Table: {schema}.release_tasks
Primary Key: task_id
Index: (release_id, stage, cycle_id)

Status changes go through transition_task, a compare-and-set on the
current status that also validates the move against the task state
machine before touching the database.

Exports:
    TaskRepository: PostgreSQL release task persistence
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from psycopg import sql
from psycopg.types.json import Jsonb

from exceptions import ContractViolationError
from util_logger import LoggerFactory, ComponentType
from core.logic.transitions import can_task_transition
from core.models import ReleaseTaskRecord, TaskStage, TaskStatus, TaskType
from .interface_repository import ITaskRepository
from .postgresql import PostgreSQLRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "TaskRepository")

# Columns transition_task may change besides the status
_UPDATABLE_FIELDS = ("external_id", "external_data", "error_details", "attempts")


class TaskRepository(PostgreSQLRepository, ITaskRepository):
    """PostgreSQL implementation of ITaskRepository."""

    _INSERT_COLUMNS = (
        "task_id", "release_id", "stage", "task_type", "task_status", "cycle_id",
        "external_id", "external_data", "error_details", "attempts",
        "created_at", "updated_at",
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.table = "release_tasks"

    def create_tasks(self, tasks: List[ReleaseTaskRecord]) -> int:
        if not tasks:
            return 0

        cols = ", ".join(self._INSERT_COLUMNS)
        placeholders = ", ".join(["%s"] * len(self._INSERT_COLUMNS))
        query = sql.SQL(
            f"INSERT INTO {{}}.{{}} ({cols}) VALUES ({placeholders}) "
            f"ON CONFLICT (task_id) DO NOTHING"
        ).format(sql.Identifier(self.schema), sql.Identifier(self.table))

        inserted = 0
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                for task in tasks:
                    cur.execute(query, (
                        task.task_id, task.release_id, task.stage.value,
                        task.task_type.value, task.task_status.value, task.cycle_id,
                        task.external_id, Jsonb(task.external_data),
                        task.error_details, task.attempts,
                        task.created_at, task.updated_at,
                    ))
                    inserted += cur.rowcount
            self._commit(conn)

        logger.info(f"Created {inserted} task(s) for release {tasks[0].release_id}")
        return inserted

    def get_task(self, task_id: str) -> Optional[ReleaseTaskRecord]:
        query = sql.SQL("SELECT * FROM {}.{} WHERE task_id = %s").format(
            sql.Identifier(self.schema),
            sql.Identifier(self.table)
        )
        row = self._execute_query(query, (task_id,), fetch='one')
        return self._row_to_model(row) if row else None

    def list_tasks(self, release_id: str, stage: Optional[TaskStage] = None,
                   cycle_id: Optional[str] = None) -> List[ReleaseTaskRecord]:
        conditions = [sql.SQL("release_id = %s")]
        params: List[Any] = [release_id]
        if stage is not None:
            conditions.append(sql.SQL("stage = %s"))
            params.append(stage.value)
        if cycle_id is not None:
            conditions.append(sql.SQL("cycle_id = %s"))
            params.append(cycle_id)

        query = sql.SQL("SELECT * FROM {}.{} WHERE {} ORDER BY created_at, task_id").format(
            sql.Identifier(self.schema),
            sql.Identifier(self.table),
            sql.SQL(" AND ").join(conditions),
        )
        rows = self._execute_query(query, tuple(params), fetch='all')
        return [self._row_to_model(row) for row in rows]

    def transition_task(self, task_id: str, expected_status: TaskStatus,
                        new_status: TaskStatus, updates: Optional[dict] = None) -> bool:
        """
        Compare-and-set the task status.

        external_data in updates is merged into the stored object
        (jsonb ||), the other fields overwrite.

        Raises:
            ContractViolationError: Transition not allowed, or unknown update field
        """
        if not can_task_transition(expected_status, new_status):
            raise ContractViolationError(
                f"Invalid task transition for {task_id}: "
                f"{expected_status.value} → {new_status.value}"
            )

        updates = updates or {}
        unknown = set(updates) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ContractViolationError(f"Cannot update task fields {sorted(unknown)}")

        assignments = [sql.SQL("task_status = %s"), sql.SQL("updated_at = %s")]
        params: List[Any] = [new_status.value, datetime.now(timezone.utc)]
        for field in _UPDATABLE_FIELDS:
            if field not in updates:
                continue
            if field == "external_data":
                assignments.append(sql.SQL("external_data = external_data || %s"))
                params.append(Jsonb(updates[field] or {}))
            else:
                assignments.append(sql.SQL("{} = %s").format(sql.Identifier(field)))
                params.append(updates[field])

        query = sql.SQL("UPDATE {}.{} SET {} WHERE task_id = %s AND task_status = %s").format(
            sql.Identifier(self.schema),
            sql.Identifier(self.table),
            sql.SQL(", ").join(assignments),
        )
        params.extend([task_id, expected_status.value])

        moved = self._execute_query(query, tuple(params)) > 0
        if moved:
            logger.debug(f"Task {task_id}: {expected_status.value} → {new_status.value}")
        else:
            logger.warning(
                f"⚠️ Task {task_id} not in {expected_status.value}; "
                f"transition to {new_status.value} skipped"
            )
        return moved

    def _row_to_model(self, row: Dict[str, Any]) -> ReleaseTaskRecord:
        status_value = row.get('task_status')
        if not status_value:
            raise ValueError(f"Missing task_status for task {row.get('task_id', '?')}")

        return ReleaseTaskRecord(
            task_id=row['task_id'],
            release_id=row['release_id'],
            stage=TaskStage(row['stage']),
            task_type=TaskType(row['task_type']),
            task_status=TaskStatus(status_value),
            cycle_id=row.get('cycle_id'),
            external_id=row.get('external_id'),
            external_data=row.get('external_data') or {},
            error_details=row.get('error_details'),
            attempts=row.get('attempts', 0),
            created_at=row.get('created_at', datetime.now(timezone.utc)),
            updated_at=row.get('updated_at', datetime.now(timezone.utc)),
        )


__all__ = ['TaskRepository']
