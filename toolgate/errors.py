"""Error taxonomy shared by the executor, checkpoint and rollback layers.

Exceptions are raised inside components and converted to a failed
``ToolResult`` at each public boundary, so callers only ever see
structured results.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Category of a failed operation."""

    POLICY_VIOLATION = "policy_violation"
    VALIDATION_FAILURE = "validation_failure"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    EXECUTION_FAILURE = "execution_failure"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


class ToolgateError(Exception):
    """Base error carrying an ErrorKind."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class PolicyViolation(ToolgateError):
    """Unknown tool, sandbox constraint failure or size limit exceeded."""

    kind = ErrorKind.POLICY_VIOLATION


class ValidationFailure(ToolgateError):
    """Malformed path or dangerous command pattern."""

    kind = ErrorKind.VALIDATION_FAILURE


class ResourceNotFound(ToolgateError):
    """Missing file, snapshot or checkpoint."""

    kind = ErrorKind.NOT_FOUND


class ExecutionFailure(ToolgateError):
    """Nonzero exit code or spawn error."""

    kind = ErrorKind.EXECUTION_FAILURE


class OperationTimeout(ToolgateError):
    """Approval or command exceeded its deadline."""

    kind = ErrorKind.TIMEOUT
