"""
Core Data Models Package.

Contains pure data structures without orchestration logic.
Sequencing and transition rules live in the core.logic package.

Exports:
    Enums: StageStatus, CronStatus, PauseType, TaskStatus, TaskType, ...
    CronJobRecord, CronConfig, RegressionSlot, StageData variants
    ReleaseRecord, BuildConfig variants
    ReleaseTaskRecord, ReleaseUploadRecord, SubmissionRecord
    TickResult, GateResult, StageAdvanceResult, TickOutcome
"""

# Enums
from .enums import (
    StageStatus,
    CronStatus,
    PauseType,
    ReleaseStage,
    TaskStage,
    TaskType,
    TaskStatus,
    UploadStage,
    Platform,
    ReleaseType,
    RegressionCycleStatus,
    BuildProvider,
    SubmissionStatus,
    HaltSeverity,
    SubmissionActionType,
)

# Cron job
from .cron_job import (
    CronConfig,
    RegressionSlotConfig,
    RegressionSlot,
    RegressionCycle,
    KickoffStageData,
    RegressionStageData,
    PreReleaseStageData,
    DistributionStageData,
    StageData,
    CronJobRecord,
)

# Release
from .release import (
    ManualUploadBuildConfig,
    JenkinsBuildConfig,
    GithubActionsBuildConfig,
    BuildConfig,
    ReleaseRecord,
)

# Tasks, uploads, submissions
from .task import ReleaseTaskRecord
from .upload import ReleaseUploadRecord
from .submission import SubmissionAction, SubmissionRecord

# Results
from .results import (
    TickResult,
    GateResult,
    StageAdvanceResult,
    TickOutcome,
)

__all__ = [
    # Enums
    'StageStatus',
    'CronStatus',
    'PauseType',
    'ReleaseStage',
    'TaskStage',
    'TaskType',
    'TaskStatus',
    'UploadStage',
    'Platform',
    'ReleaseType',
    'RegressionCycleStatus',
    'BuildProvider',
    'SubmissionStatus',
    'HaltSeverity',
    'SubmissionActionType',

    # Cron job
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

    # Release
    'ManualUploadBuildConfig',
    'JenkinsBuildConfig',
    'GithubActionsBuildConfig',
    'BuildConfig',
    'ReleaseRecord',

    # Records
    'ReleaseTaskRecord',
    'ReleaseUploadRecord',
    'SubmissionAction',
    'SubmissionRecord',

    # Results
    'TickResult',
    'GateResult',
    'StageAdvanceResult',
    'TickOutcome',
]
