"""Data models for launching and tracking a single ECS task."""

import shlex
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ecstask.errors import (
    EcsTaskError,
    PollError,
    TaskFailedError,
    TaskTimeoutError,
    ValidationError,
)

STOPPED = "STOPPED"


class LaunchMode(str, Enum):
    """Compute placement for the task."""
    STANDALONE = "EC2"  # Caller-managed container instances
    MANAGED = "FARGATE"  # Serverless, requires awsvpc networking


def _split_ids(value: Optional[str]) -> tuple[str, ...]:
    """Split a comma separated id list, dropping empty items."""
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class RunParameters:
    """Everything needed to run one task. Validated on construction."""

    cluster: str
    container: str
    task_definition: str  # Full ARN, family or family:revision
    command: tuple[str, ...]
    launch_mode: LaunchMode = LaunchMode.STANDALONE
    subnets: tuple[str, ...] = ()
    security_groups: tuple[str, ...] = ()
    assign_public_ip: bool = False
    platform_version: Optional[str] = None
    cpu: Optional[str] = None
    memory: Optional[str] = None
    timeout: float = 0  # Seconds, 0 disables the timeout

    def __post_init__(self):
        if not self.cluster:
            raise ValidationError("Cluster name is required")
        if not self.container:
            raise ValidationError("Container name is required")
        if not self.task_definition:
            raise ValidationError("Task definition is required")
        if not self.command:
            raise ValidationError("Command is required")
        if isinstance(self.command, str):
            raise ValidationError(
                "Command must be a sequence of tokens; use RunParameters.from_strings for a command line"
            )
        if self.timeout < 0:
            raise ValidationError(f"Timeout must not be negative: {self.timeout}")
        # Normalize lists passed by callers so the dataclass stays hashable
        object.__setattr__(self, "command", tuple(self.command))
        object.__setattr__(self, "subnets", tuple(self.subnets))
        object.__setattr__(self, "security_groups", tuple(self.security_groups))
        object.__setattr__(self, "launch_mode", LaunchMode(self.launch_mode))

    @classmethod
    def from_strings(
        cls,
        cluster: str,
        container: str,
        task_definition: str,
        command: str,
        fargate: bool = False,
        subnets: Optional[str] = None,
        security_groups: Optional[str] = None,
        platform_version: Optional[str] = None,
        timeout: float = 0,
        cpu: Optional[str] = None,
        memory: Optional[str] = None,
        assign_public_ip: Optional[bool] = None,
    ) -> "RunParameters":
        """Build parameters from command line style strings.

        Args:
            command: Shell command line, tokenized with shell quoting rules.
            fargate: Run on Fargate. Public IP assignment defaults to enabled.
            subnets: Comma separated subnet ids. Enables awsvpc networking.
            security_groups: Comma separated security group ids.
            assign_public_ip: Overrides the launch-mode default when given.
        """
        if not command:
            raise ValidationError("Command is required")
        try:
            tokens = shlex.split(command)
        except ValueError as e:
            raise ValidationError(f"Parse error: {e}") from e

        launch_mode = LaunchMode.MANAGED if fargate else LaunchMode.STANDALONE
        if assign_public_ip is None:
            assign_public_ip = fargate

        return cls(
            cluster=cluster,
            container=container,
            task_definition=task_definition,
            command=tuple(tokens),
            launch_mode=launch_mode,
            subnets=_split_ids(subnets),
            security_groups=_split_ids(security_groups),
            assign_public_ip=assign_public_ip,
            platform_version=platform_version or None,
            cpu=cpu or None,
            memory=memory or None,
            timeout=timeout,
        )


@dataclass(frozen=True)
class NetworkConfiguration:
    """awsvpc network configuration attached to a launch request."""
    subnets: tuple[str, ...]
    security_groups: tuple[str, ...] = ()
    assign_public_ip: bool = False

    def to_api(self) -> dict:
        return {
            "awsvpcConfiguration": {
                "subnets": list(self.subnets),
                "securityGroups": list(self.security_groups),
                "assignPublicIp": "ENABLED" if self.assign_public_ip else "DISABLED",
            }
        }


@dataclass(frozen=True)
class LaunchRequest:
    """A fully resolved run-task request."""

    cluster: str
    task_definition_arn: str
    launch_mode: LaunchMode
    container: str
    command: tuple[str, ...]
    cpu: Optional[str] = None
    memory: Optional[str] = None
    network: Optional[NetworkConfiguration] = None
    platform_version: Optional[str] = None

    def to_api_params(self) -> dict[str, Any]:
        """Keyword arguments for the boto3 ``run_task`` call."""
        overrides: dict[str, Any] = {
            "containerOverrides": [
                {"name": self.container, "command": list(self.command)},
            ],
        }
        if self.cpu and self.memory:
            overrides["cpu"] = self.cpu
            overrides["memory"] = self.memory

        params: dict[str, Any] = {
            "cluster": self.cluster,
            "taskDefinition": self.task_definition_arn,
            "overrides": overrides,
            "launchType": self.launch_mode.value,
        }
        if self.network is not None:
            params["networkConfiguration"] = self.network.to_api()
        if self.platform_version:
            params["platformVersion"] = self.platform_version
        return params


@dataclass(frozen=True)
class TaskHandle:
    """Identifies a submitted task."""
    task_arn: str
    cluster: str

    @property
    def task_id(self) -> str:
        """Task id, the last segment of the ARN (arn:aws:ecs:region:account:task/cluster/id)."""
        return self.task_arn.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class ContainerStatus:
    """Last known state of one container in a task."""
    name: str
    last_status: str
    exit_code: Optional[int] = None
    reason: Optional[str] = None

    @property
    def stopped(self) -> bool:
        return self.last_status == STOPPED

    @classmethod
    def from_api(cls, data: dict) -> "ContainerStatus":
        return cls(
            name=data.get("name", ""),
            last_status=data.get("lastStatus", ""),
            exit_code=data.get("exitCode"),
            reason=data.get("reason"),
        )


@dataclass(frozen=True)
class TaskSnapshot:
    """Point-in-time read of a task and its containers."""

    task_arn: str
    last_status: str
    containers: tuple[ContainerStatus, ...] = ()
    stopped_reason: Optional[str] = None

    @property
    def all_stopped(self) -> bool:
        """True when every container reports STOPPED."""
        return all(c.stopped for c in self.containers)

    def find_container(self, name: str) -> Optional[ContainerStatus]:
        """Return the first container with the given name."""
        for container in self.containers:
            if container.name == name:
                return container
        return None

    @classmethod
    def from_api(cls, data: dict) -> "TaskSnapshot":
        """Parse one entry of a describe-tasks response."""
        return cls(
            task_arn=data.get("taskArn", ""),
            last_status=data.get("lastStatus", ""),
            containers=tuple(
                ContainerStatus.from_api(c) for c in data.get("containers", [])
            ),
            stopped_reason=data.get("stoppedReason"),
        )


class ResultStatus(str, Enum):
    """Terminal outcome of waiting for a task."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    ERROR = "error"


@dataclass(frozen=True)
class ExecutionResult:
    """Final result of a task run."""

    status: ResultStatus
    exit_code: Optional[int] = None
    error: Optional[BaseException] = field(default=None, compare=False)
    detail: Optional[str] = None

    @classmethod
    def succeeded(cls) -> "ExecutionResult":
        return cls(ResultStatus.SUCCEEDED, exit_code=0)

    @classmethod
    def failed(cls, exit_code: int, detail: Optional[str] = None) -> "ExecutionResult":
        return cls(ResultStatus.FAILED, exit_code=exit_code, detail=detail)

    @classmethod
    def timed_out(cls, detail: str = "process timeout") -> "ExecutionResult":
        return cls(ResultStatus.TIMED_OUT, detail=detail)

    @classmethod
    def errored(cls, cause: BaseException) -> "ExecutionResult":
        return cls(ResultStatus.ERROR, error=cause, detail=str(cause))

    @property
    def ok(self) -> bool:
        return self.status is ResultStatus.SUCCEEDED

    def raise_for_status(self) -> None:
        """Raise the matching ecstask error unless the task succeeded."""
        if self.status is ResultStatus.SUCCEEDED:
            return
        if self.status is ResultStatus.FAILED:
            raise TaskFailedError(self.exit_code, self.detail)
        if self.status is ResultStatus.TIMED_OUT:
            raise TaskTimeoutError(self.detail or "process timeout")
        if isinstance(self.error, EcsTaskError):
            raise self.error
        raise PollError(self.detail or "unknown error") from self.error
