"""
Pure Enumeration Types for the Release Orchestrator.

Defines valid states for cron jobs, stages, tasks, uploads and
store submissions. No business logic - pure type definitions only.

Exports:
    StageStatus, CronStatus, PauseType: Cron job state
    ReleaseStage, TaskStage, TaskType, TaskStatus: Task sequencing
    UploadStage, Platform: Manual build uploads
    ReleaseType: Version bump kind
    SubmissionStatus, HaltSeverity, SubmissionActionType: Store rollout
    RegressionCycleStatus: Regression cycle lifecycle
    BuildProvider: CI provider discriminator
"""

from enum import Enum


class StageStatus(str, Enum):
    """
    Status of one of the four release stages.

    Each stage moves PENDING -> IN_PROGRESS -> COMPLETED. At most one
    stage is IN_PROGRESS at a time.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class CronStatus(str, Enum):
    """
    Overall status of a release's cron job.

    State transitions:
    - PENDING -> RUNNING (release started at kickoff)
    - RUNNING <-> PAUSED (pause_type says why)
    - RUNNING -> COMPLETED (stage 4 done)
    - any -> COMPLETED (release archived)
    """

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class PauseType(str, Enum):
    """
    Reason a cron job is PAUSED. NONE whenever it is not paused.

    TASK_FAILURE never clears on its own; an operator must retry the
    failed task and resume.
    """

    NONE = "none"
    AWAITING_STAGE_TRIGGER = "awaiting_stage_trigger"
    USER_REQUESTED = "user_requested"
    TASK_FAILURE = "task_failure"


class ReleaseStage(int, Enum):
    """The four release stages, numbered as stored on the cron job."""

    KICKOFF = 1
    REGRESSION = 2
    PRE_RELEASE = 3
    DISTRIBUTION = 4


class TaskStage(str, Enum):
    """Stage a release task belongs to. Stage 4 has no tasks."""

    KICKOFF = "kickoff"
    REGRESSION = "regression"
    PRE_RELEASE = "pre_release"


class TaskType(str, Enum):
    """
    Release task types.

    Values are the kebab-case identifiers shared with collaborators and
    the task table.
    """

    # Kickoff
    PRE_KICK_OFF_REMINDER = "pre-kick-off-reminder"
    FORK_BRANCH = "fork-branch"
    CREATE_PROJECT_MANAGEMENT_TICKET = "create-project-management-ticket"
    CREATE_TEST_SUITE = "create-test-suite"
    TRIGGER_PRE_REGRESSION_BUILDS = "trigger-pre-regression-builds"

    # Regression (one set per cycle)
    RESET_TEST_SUITE = "reset-test-suite"
    CREATE_RC_TAG = "create-rc-tag"
    CREATE_RELEASE_NOTES = "create-release-notes"
    TRIGGER_REGRESSION_BUILDS = "trigger-regression-builds"
    TRIGGER_AUTOMATION_RUNS = "trigger-automation-runs"
    AUTOMATION_RUNS = "automation-runs"
    SEND_REGRESSION_BUILD_MESSAGE = "send-regression-build-message"

    # Pre-release
    PRE_RELEASE_CHERRY_PICKS_REMINDER = "pre-release-cherry-picks-reminder"
    CREATE_RELEASE_TAG = "create-release-tag"
    CREATE_FINAL_RELEASE_NOTES = "create-final-release-notes"
    TRIGGER_TEST_FLIGHT_BUILD = "trigger-test-flight-build"
    CREATE_AAB_BUILD = "create-aab-build"
    SEND_PRE_RELEASE_MESSAGE = "send-pre-release-message"
    CHECK_PROJECT_RELEASE_APPROVAL = "check-project-release-approval"


class TaskStatus(str, Enum):
    """
    Valid status values for release tasks.

    State transitions:
    - PENDING -> IN_PROGRESS -> COMPLETED
    - PENDING -> IN_PROGRESS -> FAILED
    - PENDING -> IN_PROGRESS -> AWAITING_CALLBACK -> COMPLETED | FAILED
    - FAILED -> PENDING (operator retry)
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    AWAITING_CALLBACK = "awaiting_callback"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadStage(str, Enum):
    """Release phase a manually uploaded build belongs to."""

    PRE_REGRESSION = "pre_regression"
    REGRESSION = "regression"
    PRE_RELEASE = "pre_release"


class Platform(str, Enum):
    """Target store platforms."""

    ANDROID = "android"
    IOS = "ios"


class ReleaseType(str, Enum):
    """
    Kind of version bump a release performs.

    MAJOR: X+1.0.0, MINOR: X.Y+1.0, HOTFIX: X.Y.Z+1
    """

    MAJOR = "major"
    MINOR = "minor"
    HOTFIX = "hotfix"


class RegressionCycleStatus(str, Enum):
    """Lifecycle of one regression cycle opened from a slot."""

    IN_PROGRESS = "in_progress"
    DONE = "done"


class BuildProvider(str, Enum):
    """CI provider variants of a release's build configuration."""

    MANUAL_UPLOAD = "manual_upload"
    JENKINS = "jenkins"
    GITHUB_ACTIONS = "github_actions"


class SubmissionStatus(str, Enum):
    """
    Store submission status.

    Android: LIVE <-> HALTED (pause/resume). iOS: LIVE <-> PAUSED.
    An emergency halt stores HALTED plus a severity and is irreversible.
    """

    PENDING = "pending"
    SUBMITTED = "submitted"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    LIVE = "live"
    PAUSED = "paused"
    HALTED = "halted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class HaltSeverity(str, Enum):
    """Severity recorded on an emergency halt."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


class SubmissionActionType(str, Enum):
    """Entries in a submission's action history."""

    UPDATE_ROLLOUT = "update_rollout"
    PAUSED = "paused"
    RESUMED = "resumed"
    HALTED = "halted"


__all__ = [
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
]
