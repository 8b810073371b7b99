"""Command line entry point: run one ECS task and wait for it.

Usage:
    ecs-task run --cluster default --container app \\
        --task-definition migrate:3 --command "bin/rails db:migrate" \\
        --timeout 600
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ecstask.errors import EcsTaskError, LogConfigurationError
from ecstask.launch import build_launch_request
from ecstask.log_watcher import DEFAULT_TIMESTAMP_FORMAT, LogWatcher, log_stream_name
from ecstask.models import ExecutionResult, ResultStatus, RunParameters
from ecstask.task_controller import DEFAULT_POLL_INTERVAL, TaskController
from ecstask.task_definition import TaskDefinitionResolver

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_TIMEOUT = 124


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecs-task", description="Run a task on ECS and wait for it to finish"
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("ECS_TASK_LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="subcommand", required=True)

    run = subparsers.add_parser("run", help="Run a task and wait for completion")
    run.add_argument("--cluster", default=os.getenv("ECS_TASK_CLUSTER", "default"),
                     help="ECS cluster name (default: default)")
    run.add_argument("--container", required=True,
                     help="Container whose command is overridden and whose exit code is checked")
    run.add_argument("--task-definition", required=True,
                     help="Task definition ARN, family or family:revision")
    run.add_argument("--command", required=True, help="Command to run in the container")
    run.add_argument("--fargate", action="store_true", help="Use the FARGATE launch type")
    run.add_argument("--subnets", default="",
                     help="Comma separated subnet ids, required for awsvpc networking")
    run.add_argument("--security-groups", default="",
                     help="Comma separated security group ids")
    run.add_argument("--platform-version", default="", help="Fargate platform version")
    run.add_argument("--timeout", type=float, default=0,
                     help="Seconds to wait for the task, 0 waits forever (default: 0)")
    run.add_argument("--cpu", default="", help="Task level CPU override")
    run.add_argument("--memory", default="", help="Task level memory override")
    run.add_argument("--timestamp-format", default=DEFAULT_TIMESTAMP_FORMAT,
                     help="strftime format for log timestamps")
    run.add_argument("--profile", default=os.getenv("AWS_PROFILE"), help="AWS profile name")
    run.add_argument("--region", default=os.getenv("AWS_REGION"), help="AWS region")
    run.add_argument("--poll-interval", type=float,
                     default=float(os.getenv("ECS_TASK_POLL_INTERVAL", DEFAULT_POLL_INTERVAL)),
                     help="Seconds between task status checks (default: 5)")
    run.add_argument("--no-logs", action="store_true", help="Do not tail CloudWatch Logs")
    run.add_argument("--stop-on-cancel", action="store_true",
                     help="Stop the task when interrupted")
    return parser


def exit_status(result: ExecutionResult) -> int:
    """Process exit status for a task result."""
    if result.status is ResultStatus.SUCCEEDED:
        return 0
    if result.status is ResultStatus.FAILED:
        return min(max(result.exit_code or EXIT_ERROR, 1), 255)
    if result.status is ResultStatus.TIMED_OUT:
        return EXIT_TIMEOUT
    return EXIT_ERROR


SIGNALS = (signal.SIGTERM, signal.SIGINT)


def _install_signal_handlers(cancel_event: asyncio.Event) -> list[int]:
    """Set ``cancel_event`` on SIGINT/SIGTERM. Returns the signals handled."""
    loop = asyncio.get_event_loop()

    def handle_signal(sig):
        logger.info(f"Received signal {sig}, cancelling...")
        cancel_event.set()

    installed = []
    for sig in SIGNALS:
        try:
            loop.add_signal_handler(sig, handle_signal, sig)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            continue
        installed.append(sig)
    return installed


def _remove_signal_handlers(installed: list[int]) -> None:
    loop = asyncio.get_event_loop()
    for sig in installed:
        loop.remove_signal_handler(sig)


async def run_task(args: argparse.Namespace, session: Optional[boto3.Session] = None) -> int:
    params = RunParameters.from_strings(
        cluster=args.cluster,
        container=args.container,
        task_definition=args.task_definition,
        command=args.command,
        fargate=args.fargate,
        subnets=args.subnets,
        security_groups=args.security_groups,
        platform_version=args.platform_version,
        timeout=args.timeout,
        cpu=args.cpu,
        memory=args.memory,
    )
    if bool(params.cpu) != bool(params.memory):
        logger.warning("Both --cpu and --memory are needed to override task size, ignoring")

    if session is None:
        session = boto3.Session(profile_name=args.profile, region_name=args.region)
    ecs = session.client("ecs")

    task_definition = await TaskDefinitionResolver(ecs).resolve(params.task_definition)
    controller = TaskController(ecs, poll_interval=args.poll_interval)

    cancel_event = asyncio.Event()
    installed = _install_signal_handlers(cancel_event)
    try:
        return await _submit_and_wait(args, params, session, controller, task_definition, cancel_event)
    finally:
        _remove_signal_handlers(installed)


async def _submit_and_wait(args, params, session, controller, task_definition, cancel_event) -> int:
    handle = await controller.submit(build_launch_request(params, task_definition.arn))

    watcher_task = None
    stop_watching = asyncio.Event()
    if not args.no_logs:
        try:
            group, prefix = task_definition.log_configuration(params.container)
        except LogConfigurationError as e:
            logger.warning(f"Not tailing logs: {e}")
        else:
            watcher = LogWatcher(
                session.client("logs"),
                group,
                log_stream_name(prefix, params.container, handle.task_id),
                poll_interval=args.poll_interval,
                timestamp_format=args.timestamp_format,
            )
            watcher_task = asyncio.ensure_future(watcher.poll(stop_watching))

    try:
        result = await controller.wait_task(
            handle, params.container, timeout=params.timeout, cancel_event=cancel_event
        )
    finally:
        if watcher_task is not None:
            stop_watching.set()
            await watcher_task

    if cancel_event.is_set() and args.stop_on_cancel:
        await controller.stop_task(handle, reason="Interrupted by ecs-task")

    return exit_status(result)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return asyncio.run(run_task(args))
    except (EcsTaskError, BotoCoreError, ClientError) as e:
        logger.error(str(e))
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
