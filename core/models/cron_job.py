"""
Cron Job Models - One Orchestration Row per Release.

The cron job carries the release's stage statuses, pause reason, feature
toggles, pending regression slots, lock fields and stage-scoped working
state. Stage data and cron config are closed variants validated on write.

Exports:
    CronConfig: Per-release feature toggles
    RegressionSlotConfig, RegressionSlot: Scheduled regression cycles
    RegressionCycle: A regression cycle opened from a slot
    KickoffStageData, RegressionStageData, PreReleaseStageData,
    DistributionStageData, StageData: Stage-scoped working state
    CronJobRecord: Database representation of the cron job
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from exceptions import ContractViolationError, ValidationError
from .enums import (
    CronStatus,
    PauseType,
    RegressionCycleStatus,
    ReleaseStage,
    StageStatus,
)


_SLOT_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# CONFIG AND SLOTS
# ============================================================================

class CronConfig(BaseModel):
    """Per-release feature toggles. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    kick_off_reminder: bool = Field(default=False, description="Send a reminder before kickoff")
    pre_regression_builds: bool = Field(default=False, description="Build before the first regression cycle")
    automation_builds: bool = Field(default=False, description="Trigger automation builds in regression")
    automation_runs: bool = Field(default=False, description="Wait for automation runs in regression")
    test_flight_builds: bool = Field(default=True, description="Produce a TestFlight build in pre-release (iOS)")
    aab_builds: bool = Field(default=True, description="Produce an AAB in pre-release (Android)")


class RegressionSlotConfig(BaseModel):
    """What a regression cycle opened from this slot does."""

    model_config = ConfigDict(extra="forbid")

    regression_builds: bool = True
    post_release_notes: bool = False
    automation_builds: bool = False
    automation_runs: bool = False


class RegressionSlot(BaseModel):
    """
    A scheduled regression cycle.

    offset_from_kickoff is in whole days from the kickoff date; time is
    "HH:mm" in UTC on that day.
    """

    model_config = ConfigDict(extra="forbid")

    offset_from_kickoff: int = Field(..., ge=0, description="Days after the kickoff date")
    time: str = Field(..., description="Time of day, HH:mm (UTC)")
    config: RegressionSlotConfig = Field(default_factory=RegressionSlotConfig)

    @field_validator("time")
    @classmethod
    def _validate_time(cls, value: str) -> str:
        if not _SLOT_TIME_PATTERN.match(value):
            raise ValueError(f"Slot time must be HH:mm, got {value!r}")
        return value

    def time_parts(self) -> tuple:
        hours, minutes = self.time.split(":")
        return int(hours), int(minutes)

    def scheduled_at(self, kickoff_at: datetime) -> datetime:
        """Absolute UTC datetime the slot becomes due."""
        kickoff_utc = kickoff_at.astimezone(timezone.utc)
        hours, minutes = self.time_parts()
        day = kickoff_utc.date() + timedelta(days=self.offset_from_kickoff)
        return datetime(day.year, day.month, day.day, hours, minutes, tzinfo=timezone.utc)

    def validate_against_target(self, kickoff_at: datetime, target_release_at: datetime) -> None:
        """
        Reject slots scheduled after the target release.

        The slot's offset must not exceed the target's offset from
        kickoff; on the target day the slot time must not be later than
        the target time.

        Raises:
            ValidationError: Slot falls after the target release
        """
        kickoff_date = kickoff_at.astimezone(timezone.utc).date()
        target_utc = target_release_at.astimezone(timezone.utc)
        target_offset = (target_utc.date() - kickoff_date).days

        if self.offset_from_kickoff > target_offset:
            raise ValidationError(
                f"Regression slot offset {self.offset_from_kickoff} is after the "
                f"target release offset {target_offset}"
            )
        if self.offset_from_kickoff == target_offset:
            if self.time_parts() > (target_utc.hour, target_utc.minute):
                raise ValidationError(
                    f"Regression slot at {self.time} is after the target release "
                    f"time {target_utc:%H:%M} on the same day"
                )


class RegressionCycle(BaseModel):
    """A regression cycle opened when its slot came due."""

    cycle_id: str = Field(..., description="Groups one regression iteration's tasks and uploads")
    slot: RegressionSlot
    status: RegressionCycleStatus = RegressionCycleStatus.IN_PROGRESS
    is_subsequent: bool = Field(default=False, description="Not the release's first cycle")
    started_at: datetime = Field(default_factory=_utc_now)
    completed_at: Optional[datetime] = None


# ============================================================================
# STAGE DATA - closed tagged variants, one per stage
# ============================================================================

class KickoffStageData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["kickoff"] = "kickoff"
    started_at: Optional[datetime] = None
    late_start: bool = Field(default=False, description="Release started after its kickoff time")


class RegressionStageData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["regression"] = "regression"
    cycles: List[RegressionCycle] = Field(default_factory=list)
    active_cycle_id: Optional[str] = None

    def active_cycle(self) -> Optional[RegressionCycle]:
        for cycle in self.cycles:
            if cycle.cycle_id == self.active_cycle_id:
                return cycle
        return None


class PreReleaseStageData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["pre_release"] = "pre_release"
    regression_cycle_count: int = 0
    tasks_created: bool = False


class DistributionStageData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["distribution"] = "distribution"
    entered_at: datetime = Field(default_factory=_utc_now)


StageData = Annotated[
    Union[KickoffStageData, RegressionStageData, PreReleaseStageData, DistributionStageData],
    Field(discriminator="kind"),
]


# ============================================================================
# CRON JOB RECORD
# ============================================================================

_STAGE_FIELDS = {
    ReleaseStage.KICKOFF: "stage1_status",
    ReleaseStage.REGRESSION: "stage2_status",
    ReleaseStage.PRE_RELEASE: "stage3_status",
    ReleaseStage.DISTRIBUTION: "stage4_status",
}

_STAGE_STEP = {StageStatus.PENDING: 0, StageStatus.IN_PROGRESS: 1, StageStatus.COMPLETED: 2}


class CronJobRecord(BaseModel):
    """
    Database representation of a release's cron job.

    Invariants enforced here:
    - pause_type is not NONE only while cron_status is PAUSED
    - at most one stage is IN_PROGRESS (checked by current_stage)

    Stage ordering, allowed transitions and "COMPLETED only with stage 4
    COMPLETED or archived" need the stored row or the release record and
    are checked by the repositories on every save.
    """

    model_config = ConfigDict(validate_assignment=False)

    release_id: str = Field(..., description="Release this cron job drives")

    stage1_status: StageStatus = StageStatus.PENDING
    stage2_status: StageStatus = StageStatus.PENDING
    stage3_status: StageStatus = StageStatus.PENDING
    stage4_status: StageStatus = StageStatus.PENDING

    cron_status: CronStatus = CronStatus.PENDING
    pause_type: PauseType = PauseType.NONE

    cron_config: CronConfig = Field(default_factory=CronConfig)
    upcoming_regressions: List[RegressionSlot] = Field(default_factory=list)
    auto_transition_to_stage2: bool = False
    auto_transition_to_stage3: bool = False

    locked_by: Optional[str] = None
    locked_at: Optional[datetime] = None
    lock_timeout_seconds: int = Field(default=300, gt=0)

    stage_data: StageData = Field(default_factory=KickoffStageData)

    row_version: int = Field(default=0, ge=0, description="Incremented on every write")
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @model_validator(mode="after")
    def _pause_type_only_while_paused(self) -> "CronJobRecord":
        if self.cron_status != CronStatus.PAUSED and self.pause_type != PauseType.NONE:
            raise ValueError(
                f"pause_type {self.pause_type.value} set while cron_status is {self.cron_status.value}"
            )
        return self

    # ------------------------------------------------------------------
    # Lock
    # ------------------------------------------------------------------

    def is_lock_held(self, now: datetime) -> bool:
        """A lock is held iff locked_by is set and now < locked_at + timeout."""
        if self.locked_by is None or self.locked_at is None:
            return False
        return now < self.locked_at + timedelta(seconds=self.lock_timeout_seconds)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def stage_status(self, stage: ReleaseStage) -> StageStatus:
        return getattr(self, _STAGE_FIELDS[stage])

    def with_stage_status(self, stage: ReleaseStage, status: StageStatus) -> "CronJobRecord":
        """
        Copy with one stage moved a single step forward.

        Raises:
            ContractViolationError: Backwards or skipping move
        """
        current = self.stage_status(stage)
        if _STAGE_STEP[status] - _STAGE_STEP[current] not in (0, 1):
            raise ContractViolationError(
                f"Stage {stage.value} of {self.release_id} cannot move "
                f"{current.value} → {status.value}"
            )
        return self.model_copy(update={_STAGE_FIELDS[stage]: status})

    def current_stage(self) -> Optional[ReleaseStage]:
        """
        The single IN_PROGRESS stage, or None.

        Raises:
            ContractViolationError: More than one stage is IN_PROGRESS
        """
        in_progress = [
            stage for stage in ReleaseStage
            if self.stage_status(stage) == StageStatus.IN_PROGRESS
        ]
        if len(in_progress) > 1:
            raise ContractViolationError(
                f"Cron job {self.release_id} has stages "
                f"{[s.value for s in in_progress]} IN_PROGRESS at once"
            )
        return in_progress[0] if in_progress else None

    def is_paused(self, pause_type: Optional[PauseType] = None) -> bool:
        if self.cron_status != CronStatus.PAUSED:
            return False
        return pause_type is None or self.pause_type == pause_type


__all__ = [
    'CronConfig',
    'RegressionSlotConfig',
    'RegressionSlot',
    'RegressionCycle',
    'KickoffStageData',
    'RegressionStageData',
    'PreReleaseStageData',
    'DistributionStageData',
    'StageData',
    'CronJobRecord',
]
