"""Errors raised by ecstask."""

from typing import Optional


class EcsTaskError(Exception):
    """Base class for all ecstask errors."""


class ValidationError(EcsTaskError):
    """Run parameters are missing a required field or are malformed."""


class SubmissionError(EcsTaskError):
    """The run-task call failed, reported a placement failure, or returned an unexpected task count."""


class PollError(EcsTaskError):
    """A describe-tasks call failed while waiting for the task."""


class TaskTimeoutError(EcsTaskError, TimeoutError):
    """No conclusive result was reached before the deadline."""


class TaskFailedError(EcsTaskError):
    """The target container stopped with a non-zero exit code."""

    def __init__(self, exit_code: int, reason: Optional[str] = None):
        self.exit_code = exit_code
        self.reason = reason
        message = f"exit code: {exit_code}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class TaskDefinitionNotFoundError(EcsTaskError):
    """The task definition reference does not exist."""


class AmbiguousTaskDefinitionError(EcsTaskError):
    """The task definition reference cannot name a single definition."""


class LogConfigurationError(EcsTaskError):
    """The container has no usable awslogs configuration."""
