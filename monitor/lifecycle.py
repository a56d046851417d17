"""Recreate the managed guest from its template.

The workflow is strictly sequential:

1. stop the target VM
2. delete the target VM (an already-absent VM is not an error)
3. linked-clone the template into the target id and name
4. start the target VM

Each step is a PVE task that must finish before the next call is issued.
Nothing is retried and nothing is rolled back: a failure after the delete
leaves the guest deleted until the next successful run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from monitor.config import VmIdentity
from monitor.exceptions import MonitorError, OrchestrationError, UpstreamError
from monitor.hypervisor import client, tasks
from monitor.metrics import lifecycle_step_duration, lifecycle_step_errors

logger = logging.getLogger(__name__)

STEP_STOP = "stop"
STEP_DELETE = "delete"
STEP_CLONE = "clone"
STEP_START = "start"


@dataclass(frozen=True)
class CloneResult:
    vmid: int
    name: str


def missing_config_message(identity: VmIdentity) -> str:
    """The reason PVE gives when asked to act on a VM that does not exist."""
    return (
        f"Configuration file 'nodes/{identity.node}/qemu-server/"
        f"{identity.target_vmid}.conf' does not exist"
    )


def is_vm_absent(error: UpstreamError, identity: VmIdentity) -> bool:
    """Classify a failed delete as "VM already gone".

    PVE has no structured error code for this, so the reason phrase (or the
    body's ``message``) must match the missing-config text for this node and
    vmid exactly, whatever the status code.
    """
    expected = missing_config_message(identity)
    if error.reason.strip() == expected:
        return True
    body = error.body
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"].strip() == expected
    return False


async def run_task(
    step: str,
    method: str,
    path: str,
    data: dict[str, Any] | None = None,
    tolerate: Callable[[UpstreamError], bool] | None = None,
) -> tasks.TaskResult | None:
    """Issue one mutating call and wait for its task to finish.

    ``tolerate`` only sees errors from the call itself. When it accepts one,
    no task was started and None is returned. Failures while waiting on the
    task are never tolerated.

    Raises:
        UpstreamError, AuthError: the call or a status poll failed
        OrchestrationError: the task finished but reported failure
    """
    try:
        upid = await client.get_data(method, path, data)
    except UpstreamError as e:
        if tolerate is None or not tolerate(e):
            raise
        logger.info(f"Step {step}: tolerated {e.reason or e.message}")
        return None
    if not isinstance(upid, str) or not upid:
        raise UpstreamError(f"{step} did not return a task id", body=upid)
    logger.info(f"Step {step}: waiting for task {upid}")

    result = await tasks.wait_for_task(upid)
    if not result.succeeded:
        raise OrchestrationError(step, f"task {upid} failed: {result.exitstatus or result.status}")
    return result


async def _step(step: str, method: str, path: str, data: dict[str, Any] | None = None, **kwargs):
    start = time.monotonic()
    try:
        result = await run_task(step, method, path, data, **kwargs)
    except MonitorError:
        lifecycle_step_duration.labels(step=step, status="error").observe(time.monotonic() - start)
        lifecycle_step_errors.labels(step=step).inc()
        raise
    lifecycle_step_duration.labels(step=step, status="success").observe(time.monotonic() - start)
    return result


async def _wrap(step: str, method: str, path: str, data: dict[str, Any] | None = None, **kwargs):
    try:
        return await _step(step, method, path, data, **kwargs)
    except OrchestrationError:
        raise
    except MonitorError as e:
        raise OrchestrationError(step, e.message, cause=e) from e


async def recreate(identity: VmIdentity) -> CloneResult:
    """Stop, delete, re-clone and start the target VM.

    Raises:
        OrchestrationError: the named step failed; earlier steps stay applied
    """
    vm_path = client.qemu_path(identity)
    logger.info(
        f"Recreating VM {identity.target_vmid} ({identity.target_name}) "
        f"from template {identity.template_vmid} on {identity.node}"
    )

    await _wrap(STEP_STOP, "POST", f"{vm_path}/status/stop")

    deleted = await _wrap(
        STEP_DELETE,
        "DELETE",
        vm_path,
        tolerate=lambda e: is_vm_absent(e, identity),
    )
    if deleted is None:
        logger.info(f"VM {identity.target_vmid} does not exist, continuing to clone")

    await _wrap(
        STEP_CLONE,
        "POST",
        f"{client.qemu_path(identity, identity.template_vmid)}/clone",
        {
            "newid": str(identity.target_vmid),
            "name": identity.target_name,
            "full": "0",
        },
    )

    await _wrap(STEP_START, "POST", f"{vm_path}/status/start")

    logger.info(f"VM {identity.target_vmid} ({identity.target_name}) recreated and started")
    return CloneResult(vmid=identity.target_vmid, name=identity.target_name)
