"""Tails the CloudWatch Logs stream of a running task."""

import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

DEFAULT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def log_stream_name(stream_prefix: str, container: str, task_id: str) -> str:
    """awslogs stream name for a container of a task."""
    return f"{stream_prefix}/{container}/{task_id}"


class LogWatcher:
    """Polls one log stream and writes new events to ``stream``.

    Runs on its own schedule and never signals the task controller. Stop it
    by setting ``stop_event`` or by cancelling the task running ``poll``.
    """

    def __init__(
        self,
        logs_client: Any,
        log_group: str,
        log_stream: str,
        poll_interval: float = 5.0,
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
        stream: Optional[TextIO] = None,
    ):
        self.logs = logs_client
        self.log_group = log_group
        self.log_stream = log_stream
        self.poll_interval = poll_interval
        self.timestamp_format = timestamp_format
        self.stream = stream or sys.stdout
        self._next_token: Optional[str] = None

    def _format(self, event: dict) -> str:
        ts = datetime.fromtimestamp(event["timestamp"] / 1000, tz=timezone.utc)
        message = event.get("message", "").rstrip("\n")
        return f"[{ts.strftime(self.timestamp_format)}] {message}"

    def _fetch(self) -> list[dict]:
        kwargs: dict[str, Any] = {
            "logGroupName": self.log_group,
            "logStreamName": self.log_stream,
            "startFromHead": True,
        }
        if self._next_token:
            kwargs["nextToken"] = self._next_token

        try:
            resp = self.logs.get_log_events(**kwargs)
        except ClientError as e:
            # The stream does not exist until the container writes its first line
            if e.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
                return []
            raise

        self._next_token = resp.get("nextForwardToken", self._next_token)
        return resp.get("events", [])

    async def flush(self) -> int:
        """Fetch and write every pending event. Returns the number written.

        Pages are followed until the forward token stops changing.
        """
        loop = asyncio.get_event_loop()
        written = 0
        while True:
            previous = self._next_token
            try:
                events = await loop.run_in_executor(None, self._fetch)
            except (ClientError, BotoCoreError) as e:
                logger.warning(f"Failed to read log stream {self.log_group}/{self.log_stream}: {e}")
                break

            for event in events:
                self.stream.write(self._format(event) + "\n")
            written += len(events)
            if self._next_token == previous:
                break

        self.stream.flush()
        return written

    async def poll(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Poll until ``stop_event`` is set, then flush once more."""
        if stop_event is None:
            stop_event = asyncio.Event()
        logger.debug(f"Watching log stream {self.log_group}/{self.log_stream}")

        while not stop_event.is_set():
            await self.flush()
            try:
                await asyncio.wait_for(stop_event.wait(), self.poll_interval)
            except asyncio.TimeoutError:
                pass

        await self.flush()
