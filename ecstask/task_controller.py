import asyncio
import logging
from enum import Enum
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ecstask.errors import EcsTaskError, PollError, SubmissionError
from ecstask.launch import build_launch_request
from ecstask.models import (
    ExecutionResult,
    LaunchRequest,
    RunParameters,
    TaskHandle,
    TaskSnapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0


class PollOutcome(str, Enum):
    """What a single poll tick concluded."""
    RUNNING = "running"  # At least one container is not stopped yet
    EXIT_CODE_PENDING = "exit_code_pending"  # All stopped, target exit code not reported yet
    CONCLUSIVE = "conclusive"


def evaluate_snapshot(
    snapshot: TaskSnapshot, container: str
) -> tuple[PollOutcome, Optional[int]]:
    """Decide whether a snapshot ends the wait, and with which exit code."""
    if not snapshot.containers or not snapshot.all_stopped:
        return PollOutcome.RUNNING, None

    target = snapshot.find_container(container)
    if target is None or target.exit_code is None:
        return PollOutcome.EXIT_CODE_PENDING, None

    return PollOutcome.CONCLUSIVE, target.exit_code


class TaskObserver:
    """Hooks called by TaskController at well-defined points. No-op by default."""

    def submitting(self, request: LaunchRequest) -> None:
        pass

    def submitted(self, handle: TaskHandle) -> None:
        pass

    def submission_failed(self, request: LaunchRequest, error: SubmissionError) -> None:
        pass

    def polled(self, handle: TaskHandle, snapshot: TaskSnapshot, outcome: PollOutcome) -> None:
        pass

    def finished(self, handle: TaskHandle, result: ExecutionResult) -> None:
        pass


class LoggingObserver(TaskObserver):
    """Reports controller activity through the module logger."""

    def submitting(self, request: LaunchRequest) -> None:
        logger.info(
            f"Running task {request.task_definition_arn} on cluster {request.cluster} "
            f"({request.launch_mode.value}) with command {list(request.command)} "
            f"in container {request.container}"
        )

    def submitted(self, handle: TaskHandle) -> None:
        logger.info(f"Running task: {handle.task_arn}")

    def submission_failed(self, request: LaunchRequest, error: SubmissionError) -> None:
        logger.error(f"Run task error: {error}")

    def polled(self, handle: TaskHandle, snapshot: TaskSnapshot, outcome: PollOutcome) -> None:
        states = ", ".join(f"{c.name}={c.last_status}" for c in snapshot.containers)
        logger.debug(f"Task {handle.task_id} is {snapshot.last_status} [{states}]: {outcome.value}")

    def finished(self, handle: TaskHandle, result: ExecutionResult) -> None:
        if result.ok:
            logger.info("Run task is success")
        elif result.error is not None:
            logger.error(f"Failed to wait for task {handle.task_id}: {result.detail}")
        else:
            logger.error(f"Task {handle.task_id} {result.status.value}: {result.detail}")


class TaskController:
    """Submits a task to ECS and waits for it to finish.

    The controller keeps no per-run state, so one instance can wait on
    several tasks concurrently. All ECS calls run in the default executor
    because boto3 clients are blocking.
    """

    def __init__(
        self,
        ecs_client: Any,
        observer: Optional[TaskObserver] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.ecs = ecs_client
        self.observer = observer or LoggingObserver()
        self.poll_interval = poll_interval

    async def _call(self, method: str, **kwargs) -> dict:
        """Run a blocking ECS client method in the executor."""
        fn = getattr(self.ecs, method)
        return await asyncio.get_event_loop().run_in_executor(
            None, lambda: fn(**kwargs)
        )

    async def submit(self, request: LaunchRequest) -> TaskHandle:
        """Call run-task. Does not wait for the task to finish."""
        self.observer.submitting(request)
        try:
            handle = await self._submit(request)
        except SubmissionError as e:
            self.observer.submission_failed(request, e)
            raise
        self.observer.submitted(handle)
        return handle

    async def _submit(self, request: LaunchRequest) -> TaskHandle:
        try:
            resp = await self._call("run_task", **request.to_api_params())
        except (ClientError, BotoCoreError) as e:
            raise SubmissionError(str(e)) from e

        failures = resp.get("failures") or []
        if failures:
            first = failures[0]
            reason = first.get("reason") or first.get("detail") or first.get("arn") or "unknown failure"
            raise SubmissionError(reason)

        tasks = resp.get("tasks") or []
        if len(tasks) != 1:
            raise SubmissionError(
                f"Expected run_task without count to return exactly 1 task; received {len(tasks)}"
            )
        return TaskHandle(task_arn=tasks[0]["taskArn"], cluster=request.cluster)

    async def describe_task(self, handle: TaskHandle) -> TaskSnapshot:
        """Fetch a fresh snapshot of the task."""
        try:
            resp = await self._call(
                "describe_tasks", cluster=handle.cluster, tasks=[handle.task_arn]
            )
        except (ClientError, BotoCoreError) as e:
            raise PollError(str(e)) from e

        failures = resp.get("failures") or []
        if failures:
            first = failures[0]
            raise PollError(
                f"Failed to describe task {handle.task_arn}: {first.get('reason') or first.get('detail')}"
            )
        tasks = resp.get("tasks") or []
        if not tasks:
            raise PollError(f"Task {handle.task_arn} was not found")
        return TaskSnapshot.from_api(tasks[0])

    async def _pause(
        self, cancel_event: asyncio.Event, deadline: Optional[float]
    ) -> Optional[str]:
        """Sleep one poll interval. Returns why waiting must stop, or None to keep polling."""
        loop = asyncio.get_event_loop()
        delay = self.poll_interval
        if deadline is not None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return "process timeout"
            delay = min(delay, remaining)

        try:
            await asyncio.wait_for(cancel_event.wait(), delay)
        except asyncio.TimeoutError:
            pass
        else:
            return "cancelled"

        if deadline is not None and loop.time() >= deadline:
            return "process timeout"
        return None

    async def wait_task(
        self,
        handle: TaskHandle,
        container: str,
        timeout: float = 0,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ExecutionResult:
        """Wait until every container in the task stops.

        The exit code of ``container`` decides success. When all containers
        are stopped but that exit code has not been reported yet, polling
        continues. A ``timeout`` of 0 waits forever.
        """
        logger.info("Waiting for running task...")
        if cancel_event is None:
            cancel_event = asyncio.Event()
        deadline = asyncio.get_event_loop().time() + timeout if timeout else None

        result = await self._wait_exit(handle, container, cancel_event, deadline)
        self.observer.finished(handle, result)
        return result

    async def _wait_exit(
        self,
        handle: TaskHandle,
        container: str,
        cancel_event: asyncio.Event,
        deadline: Optional[float],
    ) -> ExecutionResult:
        while True:
            stop_reason = await self._pause(cancel_event, deadline)
            if stop_reason is not None:
                return ExecutionResult.timed_out(stop_reason)

            try:
                if deadline is None:
                    snapshot = await self.describe_task(handle)
                else:
                    remaining = deadline - asyncio.get_event_loop().time()
                    snapshot = await asyncio.wait_for(self.describe_task(handle), remaining)
            except asyncio.TimeoutError:
                return ExecutionResult.timed_out()
            except PollError as e:
                return ExecutionResult.errored(e)

            outcome, exit_code = evaluate_snapshot(snapshot, container)
            self.observer.polled(handle, snapshot, outcome)
            if outcome is not PollOutcome.CONCLUSIVE:
                continue

            if exit_code == 0:
                return ExecutionResult.succeeded()
            target = snapshot.find_container(container)
            return ExecutionResult.failed(exit_code, target.reason or snapshot.stopped_reason)

    async def run(
        self,
        params: RunParameters,
        task_definition_arn: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ExecutionResult:
        """Submit a task built from ``params`` and wait for its result."""
        request = build_launch_request(params, task_definition_arn)
        handle = await self.submit(request)
        return await self.wait_task(
            handle, params.container, timeout=params.timeout, cancel_event=cancel_event
        )

    async def stop_task(self, handle: TaskHandle, reason: str = "Stopped by ecs-task") -> None:
        """Ask ECS to stop the task. Not used while waiting."""
        try:
            await self._call(
                "stop_task", cluster=handle.cluster, task=handle.task_arn, reason=reason
            )
        except (ClientError, BotoCoreError) as e:
            raise EcsTaskError(f"Failed to stop task {handle.task_arn}: {e}") from e
        logger.info(f"Stop requested for task {handle.task_arn}")
