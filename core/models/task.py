"""
Release Task Models - Persistence Boundary.

Defines ReleaseTaskRecord for PostgreSQL representation. Tasks are
created when a stage (or regression cycle) begins and are mutated only
by the task executor and the manual build gate.

Exports:
    ReleaseTaskRecord: Release task database model
"""

from datetime import datetime, timezone
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field, ConfigDict

from .enums import TaskStage, TaskStatus, TaskType


class ReleaseTaskRecord(BaseModel):
    """
    Database representation of a release task.

    Fields:
    - task_id, release_id, stage, task_type: Identity and placement
    - cycle_id: Regression cycle the task belongs to (None outside stage 2)
    - task_status: Current execution status
    - external_id: Identifier returned by the collaborator (ticket key, build id)
    - external_data: Collaborator payload, consumed uploads, error details
    - attempts: Dispatch attempts including transient retries
    """

    model_config = ConfigDict(
        json_encoders={datetime: lambda v: v.isoformat()}
    )

    task_id: str = Field(..., description="Unique task identifier")
    release_id: str = Field(..., description="Owning release")
    stage: TaskStage
    task_type: TaskType
    task_status: TaskStatus = Field(default=TaskStatus.PENDING, description="Current task status")
    cycle_id: Optional[str] = Field(default=None, description="Regression cycle id")

    external_id: Optional[str] = None
    external_data: Dict[str, Any] = Field(default_factory=dict)
    error_details: Optional[str] = Field(default=None, description="Error message if failed")
    attempts: int = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def can_transition_to(self, new_status: TaskStatus) -> bool:
        """
        Validate task status transitions.

        Examples:
            PENDING -> IN_PROGRESS -> COMPLETED
            PENDING -> IN_PROGRESS -> AWAITING_CALLBACK -> COMPLETED
            PENDING -> IN_PROGRESS -> FAILED -> PENDING (operator retry)
        """
        from ..logic.transitions import can_task_transition

        current = TaskStatus(self.task_status) if isinstance(self.task_status, str) else self.task_status
        return can_task_transition(current, new_status)

    @property
    def is_terminal(self) -> bool:
        return self.task_status in (TaskStatus.COMPLETED, TaskStatus.FAILED)


__all__ = ['ReleaseTaskRecord']
