"""
Error Code Definitions and Classification.

Centralized error codes with retry classification, attached to the
error responses of the HTTP triggers.

Key Features:
    - Explicit error codes for all orchestrator failure modes
    - Retry classification (PERMANENT, TRANSIENT, THROTTLING)
    - Mapping from the exception hierarchy to error codes

Exports:
    ErrorCode: Standardized error codes enum
    ErrorClassification: Error category enum
    is_retryable: Helper to check if error should be retried
    classify_exception: Map an exception to its ErrorCode
"""

from enum import Enum
from typing import Dict

from exceptions import (
    ConfigurationError,
    ContractViolationError,
    DatabaseError,
    GateNotReadyError,
    IllegalRolloutActionError,
    InvalidVersionFormatError,
    LockContentionError,
    ResourceNotFoundError,
    TaskFailureError,
    TransientIntegrationError,
    ValidationError,
)


class ErrorCode(str, Enum):
    """
    Standardized error codes for all orchestrator errors.

    Returned in task error details and API responses.
    """

    # ========================================================================
    # CLIENT ERRORS (HTTP 400/403/404/409)
    # ========================================================================

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_VERSION = "INVALID_VERSION"
    MISSING_PARAMETER = "MISSING_PARAMETER"
    UNAUTHORIZED = "UNAUTHORIZED"  # Bad or missing cron secret
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    ILLEGAL_ROLLOUT_ACTION = "ILLEGAL_ROLLOUT_ACTION"

    # ========================================================================
    # ORCHESTRATION OUTCOMES
    # ========================================================================

    LOCK_CONTENTION = "LOCK_CONTENTION"  # Another instance owns the release
    GATE_NOT_READY = "GATE_NOT_READY"    # Manual uploads still missing
    TASK_FAILED = "TASK_FAILED"          # Business failure, pauses release

    # ========================================================================
    # INFRASTRUCTURE ERRORS (HTTP 500/503)
    # ========================================================================

    INTEGRATION_UNAVAILABLE = "INTEGRATION_UNAVAILABLE"
    INTEGRATION_TIMEOUT = "INTEGRATION_TIMEOUT"
    THROTTLED = "THROTTLED"
    DATABASE_ERROR = "DATABASE_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"

    # ========================================================================
    # GENERIC ERRORS
    # ========================================================================

    CONTRACT_VIOLATION = "CONTRACT_VIOLATION"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class ErrorClassification(str, Enum):
    """
    Error classification for retry logic.

    Determines whether an error should trigger a retry or fail immediately.
    """

    PERMANENT = "PERMANENT"  # Never retry (client error, won't fix itself)
    TRANSIENT = "TRANSIENT"  # Retry with exponential backoff (temporary issue)
    THROTTLING = "THROTTLING"  # Retry with longer delay (rate limiting)


_ERROR_CLASSIFICATION: Dict[ErrorCode, ErrorClassification] = {
    # PERMANENT - operator or caller must act
    ErrorCode.VALIDATION_ERROR: ErrorClassification.PERMANENT,
    ErrorCode.INVALID_VERSION: ErrorClassification.PERMANENT,
    ErrorCode.MISSING_PARAMETER: ErrorClassification.PERMANENT,
    ErrorCode.UNAUTHORIZED: ErrorClassification.PERMANENT,
    ErrorCode.RESOURCE_NOT_FOUND: ErrorClassification.PERMANENT,
    ErrorCode.ILLEGAL_ROLLOUT_ACTION: ErrorClassification.PERMANENT,
    ErrorCode.TASK_FAILED: ErrorClassification.PERMANENT,
    ErrorCode.CONFIG_ERROR: ErrorClassification.PERMANENT,
    ErrorCode.CONTRACT_VIOLATION: ErrorClassification.PERMANENT,

    # TRANSIENT - next tick or backoff retries
    ErrorCode.LOCK_CONTENTION: ErrorClassification.TRANSIENT,
    ErrorCode.GATE_NOT_READY: ErrorClassification.TRANSIENT,
    ErrorCode.INTEGRATION_UNAVAILABLE: ErrorClassification.TRANSIENT,
    ErrorCode.INTEGRATION_TIMEOUT: ErrorClassification.TRANSIENT,
    ErrorCode.DATABASE_ERROR: ErrorClassification.TRANSIENT,
    ErrorCode.UNEXPECTED_ERROR: ErrorClassification.TRANSIENT,

    # THROTTLING
    ErrorCode.THROTTLED: ErrorClassification.THROTTLING,
}


def is_retryable(error_code: ErrorCode) -> bool:
    """
    Determine if an error code should trigger a retry.

    Example:
        >>> is_retryable(ErrorCode.TASK_FAILED)
        False
        >>> is_retryable(ErrorCode.INTEGRATION_TIMEOUT)
        True
    """
    classification = _ERROR_CLASSIFICATION.get(error_code, ErrorClassification.TRANSIENT)
    return classification != ErrorClassification.PERMANENT


def get_error_classification(error_code: ErrorCode) -> ErrorClassification:
    """Get the classification for an error code."""
    return _ERROR_CLASSIFICATION.get(error_code, ErrorClassification.TRANSIENT)


def classify_exception(exc: BaseException) -> ErrorCode:
    """
    Map an exception from the hierarchy in exceptions.py to its ErrorCode.

    Order matters: specific subclasses are checked before their bases.
    """
    if isinstance(exc, TransientIntegrationError):
        if exc.status_code == 429:
            return ErrorCode.THROTTLED
        if exc.status_code is None:
            return ErrorCode.INTEGRATION_TIMEOUT
        return ErrorCode.INTEGRATION_UNAVAILABLE
    if isinstance(exc, InvalidVersionFormatError):
        return ErrorCode.INVALID_VERSION
    if isinstance(exc, IllegalRolloutActionError):
        return ErrorCode.ILLEGAL_ROLLOUT_ACTION
    if isinstance(exc, ValidationError):
        return ErrorCode.VALIDATION_ERROR
    if isinstance(exc, LockContentionError):
        return ErrorCode.LOCK_CONTENTION
    if isinstance(exc, GateNotReadyError):
        return ErrorCode.GATE_NOT_READY
    if isinstance(exc, TaskFailureError):
        return ErrorCode.TASK_FAILED
    if isinstance(exc, (ResourceNotFoundError, FileNotFoundError)):
        return ErrorCode.RESOURCE_NOT_FOUND
    if isinstance(exc, PermissionError):
        return ErrorCode.UNAUTHORIZED
    if isinstance(exc, DatabaseError):
        return ErrorCode.DATABASE_ERROR
    if isinstance(exc, ConfigurationError):
        return ErrorCode.CONFIG_ERROR
    if isinstance(exc, ContractViolationError):
        return ErrorCode.CONTRACT_VIOLATION
    if isinstance(exc, ValueError):
        return ErrorCode.VALIDATION_ERROR
    return ErrorCode.UNEXPECTED_ERROR


__all__ = [
    'ErrorCode',
    'ErrorClassification',
    'is_retryable',
    'get_error_classification',
    'classify_exception',
]
