"""Read-only status probes for the managed guest.

Each probe answers one question and either returns its answer or raises a
``MonitorError``; there are no partial results. Probes share no state, so
they can run concurrently.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager

from monitor.config import VmIdentity, settings, vm_identity
from monitor.exceptions import ProbeError
from monitor.guest import channel, powershell
from monitor.hypervisor import client
from monitor.metrics import probe_duration

logger = logging.getLogger(__name__)

VM_RUNNING = "running"


@asynccontextmanager
async def _timed(probe: str):
    start = time.monotonic()
    status = "error"
    try:
        yield
        status = "success"
    finally:
        probe_duration.labels(probe=probe, status=status).observe(time.monotonic() - start)


async def vm_power_state(identity: VmIdentity | None = None) -> str:
    """Power state PVE reports for the target VM."""
    async with _timed("vm_status"):
        return await client.vm_status(identity or vm_identity())


async def vm_running(identity: VmIdentity | None = None) -> bool:
    return await vm_power_state(identity) == VM_RUNNING


async def guest_reachable() -> bool:
    """True when the guest answers an echo over SSH."""
    async with _timed("guest_reachable"):
        output = await channel.run_command(powershell.echo_command())
        return powershell.ONLINE_TOKEN in output


async def display_driver_loaded() -> bool:
    """True when the virtual display driver shows up among signed drivers."""
    async with _timed("display_driver"):
        name = settings.display_driver_name
        output = await channel.run_command(powershell.signed_driver_query(name))
        return name in output


async def process_running() -> bool:
    """True when the configured process is listed on the guest.

    Get-Process prints nothing when no process matches, otherwise JSON.
    """
    async with _timed("process"):
        output = await channel.run_command(powershell.process_query(settings.process_name))
        if not output:
            return False
        try:
            parsed = json.loads(output)
        except ValueError as e:
            raise ProbeError(
                f"Unparseable process listing for {settings.process_name}: {output[:200]}"
            ) from e
        return parsed is not None


async def port_open(host: str, port: int, timeout: float) -> bool:
    """Try a TCP connect; report whether it succeeded within ``timeout``.

    Connection refused, unreachable host and timeout all count as closed.
    Never raises.
    """
    try:
        _reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=timeout
        )
    except (asyncio.TimeoutError, OSError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def streaming_port_open() -> bool:
    """Whether the guest's streaming port accepts connections."""
    async with _timed("streaming_port"):
        return await port_open(
            settings.guest_host,
            settings.streaming_port,
            settings.port_probe_timeout,
        )


async def collect_status() -> dict[str, bool]:
    """Run the four boolean probes concurrently.

    Any single failure fails the whole collection: the first error is
    raised and no partial result is returned.

    Raises:
        MonitorError: from whichever probe failed first
    """
    results = await asyncio.gather(
        vm_running(),
        guest_reachable(),
        process_running(),
        display_driver_loaded(),
        return_exceptions=True,
    )
    failures = [result for result in results if isinstance(result, BaseException)]
    for failure in failures:
        logger.warning(f"Status probe failed: {failure}")
    if failures:
        raise failures[0]
    vm_is_running, reachable, steam_running, driver_loaded = results
    return {
        "vmRunning": vm_is_running,
        "reachable": reachable,
        "steamRunning": steam_running,
        "displayDriverLoaded": driver_loaded,
    }
