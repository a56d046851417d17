"""Waiting on asynchronous Proxmox tasks.

Every mutating PVE call (stop, delete, clone, start) returns a task UPID
immediately and runs in the background. The task status endpoint reports
``running`` until the worker exits, then ``stopped`` together with an
``exitstatus`` that is ``OK`` on success or an error message otherwise.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import quote

from monitor.config import settings
from monitor.exceptions import TaskTimeoutError, UpstreamError
from monitor.hypervisor import client
from monitor.schemas import TaskOutcome

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset(outcome.value for outcome in TaskOutcome)


@dataclass(frozen=True)
class TaskResult:
    """Terminal report for one hypervisor task."""

    upid: str
    status: str
    exitstatus: str | None = None

    @property
    def outcome(self) -> TaskOutcome:
        if self.status == TaskOutcome.FAILED.value:
            return TaskOutcome.FAILED
        if self.exitstatus and self.exitstatus != "OK":
            return TaskOutcome.FAILED
        return TaskOutcome.STOPPED

    @property
    def succeeded(self) -> bool:
        return self.outcome is TaskOutcome.STOPPED


async def task_status(node: str, upid: str) -> dict:
    data = await client.get_data("GET", f"/nodes/{node}/tasks/{quote(upid, safe='')}/status")
    if not isinstance(data, dict):
        raise UpstreamError(f"Task {upid} status response is not an object", body=data)
    return data


async def wait_for_task(
    upid: str,
    node: str | None = None,
    interval: float | None = None,
    timeout: float | None = None,
) -> TaskResult:
    """Poll a task until it reports ``stopped`` or ``failed``.

    Any other status counts as still running. Polling happens every
    ``interval`` seconds (default ``settings.task_poll_interval``) until
    ``timeout`` seconds have elapsed (default ``settings.task_timeout``;
    zero or negative waits forever).

    The result is returned for either terminal state; callers decide what a
    failed task means.

    Raises:
        TaskTimeoutError: deadline passed without a terminal state
        AuthError, UpstreamError: a status poll failed
    """
    node = node or settings.pve_node
    interval = settings.task_poll_interval if interval is None else interval
    timeout = settings.task_timeout if timeout is None else timeout

    loop = asyncio.get_running_loop()
    start_time = loop.time()

    while True:
        data = await task_status(node, upid)
        status = data.get("status")
        if status in TERMINAL_STATES:
            result = TaskResult(upid=upid, status=status, exitstatus=data.get("exitstatus"))
            logger.debug(f"Task {upid} finished: {status} ({result.exitstatus})")
            return result

        elapsed = loop.time() - start_time
        if timeout and timeout > 0 and elapsed + interval > timeout:
            logger.error(f"Task {upid} still {status!r} after {elapsed:.1f}s, giving up")
            raise TaskTimeoutError(upid, timeout)

        await asyncio.sleep(interval)
