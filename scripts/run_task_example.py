#!/usr/bin/env python3
"""Example of running an ECS task from Python.

Usage:
    uv run python scripts/run_task_example.py <cluster> <task-definition> <container> "<command>"
"""

import asyncio
import logging
import sys

import boto3

from ecstask import RunParameters, TaskController
from ecstask.task_definition import TaskDefinitionResolver


async def main(cluster: str, task_definition: str, container: str, command: str) -> int:
    ecs = boto3.client("ecs")

    params = RunParameters.from_strings(
        cluster=cluster,
        container=container,
        task_definition=task_definition,
        command=command,
        timeout=600,
    )

    definition = await TaskDefinitionResolver(ecs).resolve(params.task_definition)
    print(f"Task definition: {definition.arn}")
    print(f"Containers: {definition.container_names}")

    result = await TaskController(ecs).run(params, definition.arn)
    print(f"\nResult: {result.status.value} (exit code: {result.exit_code})")
    return 0 if result.ok else 1


if __name__ == "__main__":
    if len(sys.argv) != 5:
        print(__doc__)
        sys.exit(2)
    logging.basicConfig(level=logging.INFO)
    sys.exit(asyncio.run(main(*sys.argv[1:])))
