"""Shared fixtures: in-memory stand-ins for the boto3 ECS and CloudWatch Logs clients."""

from typing import Optional

import pytest
from botocore.exceptions import ClientError

TASK_ARN = "arn:aws:ecs:ap-northeast-1:123456789012:task/default/0123456789abcdef"
TASK_DEFINITION_ARN = "arn:aws:ecs:ap-northeast-1:123456789012:task-definition/migrate:3"


def client_error(code: str, message: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def task(*containers: tuple, last_status: Optional[str] = None, arn: str = TASK_ARN) -> dict:
    """Build a describe-tasks entry from ``(name, lastStatus, exitCode)`` tuples."""
    entries = []
    for name, status, exit_code in containers:
        entry = {"name": name, "lastStatus": status}
        if exit_code is not None:
            entry["exitCode"] = exit_code
        entries.append(entry)
    if last_status is None:
        stopped = all(status == "STOPPED" for _, status, _ in containers)
        last_status = "STOPPED" if stopped else "RUNNING"
    return {"taskArn": arn, "lastStatus": last_status, "containers": entries}


class FakeECSClient:
    """Records calls and replays canned responses.

    ``describe_responses`` is consumed one per call; the last one repeats once
    the list runs out. Exceptions in either response slot are raised.
    """

    def __init__(self, run_task_response=None, describe_responses=None, task_definition=None):
        self.run_task_response = run_task_response or {"tasks": [{"taskArn": TASK_ARN}], "failures": []}
        self.describe_responses = list(describe_responses or [])
        self.task_definition = task_definition
        self.run_task_calls: list[dict] = []
        self.describe_calls: list[dict] = []
        self.stop_calls: list[dict] = []

    def run_task(self, **kwargs):
        self.run_task_calls.append(kwargs)
        if isinstance(self.run_task_response, Exception):
            raise self.run_task_response
        return self.run_task_response

    def describe_tasks(self, **kwargs):
        self.describe_calls.append(kwargs)
        if len(self.describe_responses) > 1:
            resp = self.describe_responses.pop(0)
        else:
            resp = self.describe_responses[0]
        if isinstance(resp, Exception):
            raise resp
        return resp

    def stop_task(self, **kwargs):
        self.stop_calls.append(kwargs)
        return {"task": {"taskArn": kwargs["task"]}}

    def describe_task_definition(self, taskDefinition):
        if self.task_definition is None:
            raise client_error(
                "ClientException", "Unable to describe task definition.", "DescribeTaskDefinition"
            )
        return {"taskDefinition": self.task_definition}


class FakeLogsClient:
    """Serves log events in pages, one page per call."""

    def __init__(self, pages=None):
        self.pages = list(pages or [])
        self.calls: list[dict] = []

    def get_log_events(self, **kwargs):
        self.calls.append(kwargs)
        if not self.pages:
            return {"events": [], "nextForwardToken": kwargs.get("nextToken")}
        page = self.pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page


@pytest.fixture
def task_definition_data():
    return {
        "taskDefinitionArn": TASK_DEFINITION_ARN,
        "family": "migrate",
        "revision": 3,
        "containerDefinitions": [
            {
                "name": "app",
                "image": "example/app:latest",
                "logConfiguration": {
                    "logDriver": "awslogs",
                    "options": {
                        "awslogs-group": "/ecs/migrate",
                        "awslogs-region": "ap-northeast-1",
                        "awslogs-stream-prefix": "ecs",
                    },
                },
            },
            {"name": "sidecar", "image": "example/sidecar:latest"},
        ],
    }
