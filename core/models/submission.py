"""
Store Submission Models.

A submission is one platform's promotion of a release version to its
store. The rollout controller mutates status and rollout percentage and
appends every action to the history.

Exports:
    SubmissionAction: One entry of the action history
    SubmissionRecord: Submission database model
"""

from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator

from .enums import HaltSeverity, Platform, SubmissionActionType, SubmissionStatus


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionAction(BaseModel):
    """Audit entry for a rollout action."""

    action: SubmissionActionType
    previous_status: SubmissionStatus
    new_status: SubmissionStatus
    rollout_percentage: float
    reason: Optional[str] = None
    performed_at: datetime = Field(default_factory=_utc_now)


class SubmissionRecord(BaseModel):
    """
    Database representation of a store submission.

    Invariants:
    - 0 <= rollout_percentage <= 100
    - phased_release is only meaningful for iOS; Android stores None
    - halt_severity/halt_reason are set only by an emergency halt
    """

    submission_id: str = Field(..., description="Unique submission identifier")
    release_id: str = Field(..., description="Owning release")
    platform: Platform
    version: str
    status: SubmissionStatus = SubmissionStatus.PENDING
    rollout_percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    phased_release: Optional[bool] = Field(default=None, description="iOS phased release")

    halt_severity: Optional[HaltSeverity] = None
    halt_reason: Optional[str] = None

    action_history: List[SubmissionAction] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @model_validator(mode="after")
    def _platform_fields(self) -> "SubmissionRecord":
        if self.platform == Platform.ANDROID and self.phased_release:
            raise ValueError("phased_release applies to iOS submissions only")
        if (self.halt_severity is None) != (self.halt_reason is None):
            raise ValueError("halt_severity and halt_reason are set together")
        return self

    @property
    def is_emergency_halted(self) -> bool:
        """HALTED by an emergency halt (irreversible), not by a pause."""
        return self.status == SubmissionStatus.HALTED and self.halt_severity is not None

    @property
    def is_fully_live(self) -> bool:
        return self.status == SubmissionStatus.LIVE and self.rollout_percentage >= 100.0


__all__ = ['SubmissionAction', 'SubmissionRecord']
