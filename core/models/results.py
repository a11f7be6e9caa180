"""
Orchestration Result Data Models.

Represents outcomes of a tick, a gate check, a stage advance and a
single release's state machine step. No business logic - pure data
structures.

Exports:
    TickResult: Batch result of TickScheduler.run_tick
    GateResult: Result of ManualBuildGate.check_and_consume
    StageAdvanceResult: Result of TaskExecutor.advance
    TickOutcome: What ReleaseStateMachine.tick did for one release
"""

from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field

from .enums import CronStatus, PauseType, Platform, ReleaseStage
from .upload import ReleaseUploadRecord


class TickResult(BaseModel):
    """
    Result of one scheduler tick across all eligible releases.

    errors entries are "{release_id}: {message}".
    """

    success: bool = True
    processed_count: int = Field(default=0, ge=0)
    skipped_count: int = Field(default=0, ge=0, description="Releases skipped on lock contention")
    errors: List[str] = Field(default_factory=list)
    duration_ms: int = Field(default=0, ge=0)

    def to_response(self) -> Dict[str, Any]:
        """Wire shape of the tick endpoint."""
        return {
            "success": self.success,
            "processedCount": self.processed_count,
            "errors": list(self.errors),
            "durationMs": self.duration_ms,
        }


class GateResult(BaseModel):
    """
    Result of a manual build gate check.

    consumed is True only on the call that marked the uploads used.
    """

    all_ready: bool
    consumed: bool
    uploads: List[ReleaseUploadRecord] = Field(default_factory=list)
    missing_platforms: List[Platform] = Field(default_factory=list)


class StageAdvanceResult(BaseModel):
    """Outcome of advancing the tasks of one stage or regression cycle."""

    completed: List[str] = Field(default_factory=list, description="Task ids completed this pass")
    failed: List[str] = Field(default_factory=list, description="Task ids failed this pass")
    awaiting: List[str] = Field(default_factory=list, description="Task ids waiting on uploads or CI")
    all_required_complete: bool = False
    has_failure: bool = False


class TickOutcome(BaseModel):
    """What ReleaseStateMachine.tick did for one release."""

    release_id: str
    action: str = Field(..., description="noop | started | advanced | stage_completed | paused | completed")
    stage: Optional[ReleaseStage] = None
    cron_status: CronStatus
    pause_type: PauseType = PauseType.NONE
    detail: Optional[str] = None


__all__ = [
    'TickResult',
    'GateResult',
    'StageAdvanceResult',
    'TickOutcome',
]
