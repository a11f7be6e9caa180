"""
Custom Exception Hierarchy

Distinguishes between:
1. Contract Violations (programming bugs that need fixing)
2. Business Logic Failures (expected runtime issues)

Orchestration code relies on the distinction: the tick scheduler isolates
any exception per release, the task executor turns task-level failures
into a TASK_FAILURE pause, and transient integration errors are retried
instead of failing a task.
"""


class ContractViolationError(TypeError):
    """
    Raised when component contracts are violated (programming bugs).

    These should NEVER be caught and handled - they indicate bugs
    that need to be fixed in the code.

    Examples:
        - Repository receives string instead of TaskStatus enum
        - Cron job has two stages IN_PROGRESS at once
        - Stage data variant does not match the in-progress stage
    """
    pass


class BusinessLogicError(Exception):
    """
    Base class for expected runtime business logic failures.

    These are normal failures that occur during system operation
    and should be handled gracefully without crashing.
    """
    pass


class LockContentionError(BusinessLogicError):
    """
    Another instance holds a valid (non-stale) lock on the release.

    Not an error for the tick: the release is skipped and picked up on
    a later tick.
    """

    def __init__(self, release_id: str, locked_by: str = None):
        self.release_id = release_id
        self.locked_by = locked_by
        holder = f" (held by {locked_by})" if locked_by else ""
        super().__init__(f"Release {release_id} is locked{holder}")


class TransientIntegrationError(BusinessLogicError):
    """
    Recoverable failure talking to an external collaborator.

    Retried with backoff; never marks the task FAILED.

    Examples:
        - Connection timeout to the CI provider
        - HTTP 502/503/504 from the project management API
        - Rate limiting (HTTP 429)
    """

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)


class TaskFailureError(BusinessLogicError):
    """
    A release task failed for a business reason.

    Marks the task FAILED and pauses the release with TASK_FAILURE.

    Examples:
        - Branch already exists with diverging history
        - CI build finished with a failing status
        - Collaborator rejected the request (HTTP 4xx)
    """

    def __init__(self, message: str, task_type: str = None, details: dict = None):
        self.task_type = task_type
        self.details = details or {}
        super().__init__(message)


class GateNotReadyError(BusinessLogicError):
    """
    Manual build gate is still waiting for uploads.

    Informational: carried in GateResult.missing_platforms and never
    propagated out of a tick.
    """

    def __init__(self, task_id: str, missing_platforms: list):
        self.task_id = task_id
        self.missing_platforms = list(missing_platforms)
        super().__init__(
            f"Task {task_id} waiting for uploads: {', '.join(self.missing_platforms)}"
        )


class DatabaseError(BusinessLogicError):
    """
    Database operation failures.

    Examples:
        - Connection lost
        - Deadlock detected
        - Constraint violation
    """
    pass


class ResourceNotFoundError(BusinessLogicError):
    """
    Requested resource does not exist.

    Examples:
        - Release ID has no cron job
        - Task ID not in database
        - Submission ID unknown
    """
    pass


class ValidationError(BusinessLogicError, ValueError):
    """
    Business validation failed.

    Note: This is different from ContractViolationError.
    This is for business rule validation, not type contracts.
    Subclasses ValueError so HTTP triggers answer 400.

    Examples:
        - Regression slot scheduled after the target release date
        - Rollout percentage outside 0..100
        - Halt without a reason
    """
    pass


class InvalidVersionFormatError(ValidationError):
    """Version string does not have at least three numeric components."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Invalid version format: {version!r}")


class IllegalRolloutActionError(ValidationError):
    """
    Rollout action not allowed for the submission's platform or status.

    Examples:
        - Partial rollout on an iOS release without phased release
        - Resume after an emergency halt
    """

    def __init__(self, action: str, submission_id: str, reason: str):
        self.action = action
        self.submission_id = submission_id
        self.reason = reason
        super().__init__(f"Cannot {action} submission {submission_id}: {reason}")


class ConfigurationError(Exception):
    """
    System configuration error.

    These are typically fatal and indicate misconfiguration
    that prevents the system from operating.

    Examples:
        - Missing CRON_SHARED_SECRET
        - Poller interval outside 1..59 minutes
        - Integration timeout not shorter than the lock timeout
    """
    pass


__all__ = [
    'ContractViolationError',
    'BusinessLogicError',
    'LockContentionError',
    'TransientIntegrationError',
    'TaskFailureError',
    'GateNotReadyError',
    'DatabaseError',
    'ResourceNotFoundError',
    'ValidationError',
    'InvalidVersionFormatError',
    'IllegalRolloutActionError',
    'ConfigurationError',
]
