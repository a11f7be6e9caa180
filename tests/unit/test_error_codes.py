"""
Exception -> ErrorCode classification.
"""

import pytest

from core.errors import ErrorCode, classify_exception, is_retryable
from exceptions import (
    ConfigurationError,
    ContractViolationError,
    IllegalRolloutActionError,
    InvalidVersionFormatError,
    LockContentionError,
    ResourceNotFoundError,
    TaskFailureError,
    TransientIntegrationError,
    ValidationError,
)


@pytest.mark.parametrize("exc,code,retryable", [
    (TransientIntegrationError("busy", status_code=429), ErrorCode.THROTTLED, True),
    (TransientIntegrationError("down", status_code=503), ErrorCode.INTEGRATION_UNAVAILABLE, True),
    (TransientIntegrationError("timeout"), ErrorCode.INTEGRATION_TIMEOUT, True),
    (InvalidVersionFormatError("1.x"), ErrorCode.INVALID_VERSION, False),
    (IllegalRolloutActionError("resume", "s-1", "halted"), ErrorCode.ILLEGAL_ROLLOUT_ACTION, False),
    (ValidationError("bad slot"), ErrorCode.VALIDATION_ERROR, False),
    (LockContentionError("rel-1", "other:1"), ErrorCode.LOCK_CONTENTION, True),
    (TaskFailureError("branch exists"), ErrorCode.TASK_FAILED, False),
    (ResourceNotFoundError("rel-1"), ErrorCode.RESOURCE_NOT_FOUND, False),
    (PermissionError("bad secret"), ErrorCode.UNAUTHORIZED, False),
    (ConfigurationError("no secret"), ErrorCode.CONFIG_ERROR, False),
    (ContractViolationError("bug"), ErrorCode.CONTRACT_VIOLATION, False),
    (ValueError("bad json"), ErrorCode.VALIDATION_ERROR, False),
    (RuntimeError("?"), ErrorCode.UNEXPECTED_ERROR, True),
])
def test_classify_exception(exc, code, retryable):
    assert classify_exception(exc) == code
    assert is_retryable(code) is retryable
