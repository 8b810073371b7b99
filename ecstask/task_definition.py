"""Task definition lookup and log configuration."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from ecstask.errors import (
    AmbiguousTaskDefinitionError,
    LogConfigurationError,
    TaskDefinitionNotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskDefinition:
    """Immutable view of a registered task definition."""

    arn: str
    family: str
    revision: int
    container_definitions: tuple[dict, ...] = field(default=(), repr=False)

    @property
    def container_names(self) -> list[str]:
        return [c.get("name", "") for c in self.container_definitions]

    def log_configuration(self, container: str) -> tuple[str, str]:
        """Return ``(log_group, stream_prefix)`` of the container's awslogs driver."""
        for definition in self.container_definitions:
            if definition.get("name") != container:
                continue
            config = definition.get("logConfiguration") or {}
            if config.get("logDriver") != "awslogs":
                raise LogConfigurationError(
                    f"Container {container} does not use the awslogs log driver"
                )
            options = config.get("options") or {}
            group = options.get("awslogs-group")
            prefix = options.get("awslogs-stream-prefix")
            if not group or not prefix:
                raise LogConfigurationError(
                    f"Container {container} has no awslogs-group or awslogs-stream-prefix"
                )
            return group, prefix
        raise LogConfigurationError(f"Cannot find container {container} in task definition {self.arn}")

    @classmethod
    def from_api(cls, data: dict) -> "TaskDefinition":
        return cls(
            arn=data["taskDefinitionArn"],
            family=data.get("family", ""),
            revision=int(data.get("revision", 0)),
            container_definitions=tuple(data.get("containerDefinitions", [])),
        )


def check_reference(ref: str) -> None:
    """Reject references that cannot name exactly one task definition."""
    if ref.startswith("arn:"):
        return
    family, sep, revision = ref.partition(":")
    if not family:
        raise AmbiguousTaskDefinitionError(f"Task definition reference {ref!r} has no family")
    if not sep:
        return
    if not revision.isdigit():
        raise AmbiguousTaskDefinitionError(
            f"Task definition reference {ref!r} must be family or family:revision"
        )


class TaskDefinitionResolver:
    """Looks up task definitions through the ECS API."""

    def __init__(self, ecs_client: Any):
        self.ecs = ecs_client

    async def resolve(self, ref: str) -> TaskDefinition:
        """Describe a task definition by full ARN, family or family:revision.

        A bare family resolves to its latest ACTIVE revision.
        """
        check_reference(ref)
        try:
            resp = await asyncio.get_event_loop().run_in_executor(
                None,
                lambda: self.ecs.describe_task_definition(taskDefinition=ref),
            )
        except ClientError as e:
            raise TaskDefinitionNotFoundError(f"Task definition {ref} not found: {e}") from e
        except BotoCoreError as e:
            raise TaskDefinitionNotFoundError(f"Failed to describe task definition {ref}: {e}") from e

        task_definition = TaskDefinition.from_api(resp["taskDefinition"])
        logger.info(f"Using task definition {task_definition.arn}")
        return task_definition
