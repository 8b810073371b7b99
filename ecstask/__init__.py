# ecstask - Run one-off tasks on ECS and wait for them
"""
ecstask - Synchronous one-off task execution on Amazon ECS.

Launch a task with an overridden command, wait for every container to stop,
and report the exit code of the container you care about.
"""

from ecstask.errors import (
    EcsTaskError,
    PollError,
    SubmissionError,
    TaskFailedError,
    TaskTimeoutError,
    ValidationError,
)
from ecstask.launch import build_launch_request
from ecstask.models import ExecutionResult, LaunchMode, ResultStatus, RunParameters, TaskHandle
from ecstask.task_controller import TaskController, TaskObserver

__all__ = [
    "TaskController",
    "TaskObserver",
    "RunParameters",
    "LaunchMode",
    "TaskHandle",
    "ExecutionResult",
    "ResultStatus",
    "build_launch_request",
    "EcsTaskError",
    "ValidationError",
    "SubmissionError",
    "PollError",
    "TaskTimeoutError",
    "TaskFailedError",
]

__version__ = "0.1.0"
