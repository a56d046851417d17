"""VM Monitor - status dashboard and recreate control for one Proxmox guest.

Serves:
- Status probes for the hypervisor power state and the guest (SSH reachability,
  display driver, game client process, streaming port)
- The recreate workflow (stop, delete, clone from template, start)
- The static dashboard
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import FileResponse, JSONResponse, Response

from monitor import lifecycle, probes
from monitor.config import settings, vm_identity
from monitor.exceptions import MonitorError
from monitor.logging_config import setup_logging
from monitor.metrics import get_metrics
from monitor.schemas import (
    AggregateStatusResponse,
    CloneResponse,
    DisplayDriverResponse,
    ErrorResponse,
    GuestReachableResponse,
    HealthResponse,
    ProcessStatusResponse,
    StreamingPortResponse,
    VmStatusResponse,
)
from monitor.version import __version__, get_commit

setup_logging()

logger = logging.getLogger(__name__)

ERROR_VM_STATUS = "Failed to fetch Proxmox VM status"
ERROR_GUEST_REACHABLE = "Failed to reach Windows VM over SSH"
ERROR_DISPLAY_DRIVER = "Failed to check display driver"
ERROR_PROCESS = "Failed to check Steam process"
ERROR_AGGREGATE = "Failed to fetch VM status"
ERROR_CLONE = "Failed to clone VM"

_error_responses = {500: {"model": ErrorResponse}}


def _failure(message: str, error: MonitorError) -> JSONResponse:
    logger.error(f"{message}: {error}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error=message, detail=error.detail).model_dump(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"VM monitor {__version__} managing VM {settings.target_vmid} "
        f"on node {settings.pve_node or '<unset>'}"
    )
    yield
    logger.info("VM monitor shutting down")


app = FastAPI(
    title="VM Monitor",
    version=__version__,
    lifespan=lifespan,
)


# --- Health Endpoints ---

@app.get("/health", response_model=HealthResponse)
def health():
    """Basic health check."""
    return HealthResponse(
        status="ok",
        version=__version__,
        commit=get_commit(),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.get("/metrics")
def metrics():
    """Prometheus metrics."""
    body, content_type = get_metrics()
    return Response(content=body, media_type=content_type)


# --- Status Probes ---

@app.get("/api/vm-status", response_model=VmStatusResponse, responses=_error_responses)
async def vm_status():
    """Power state of the managed VM as reported by Proxmox."""
    try:
        status = await probes.vm_power_state()
    except MonitorError as e:
        return _failure(ERROR_VM_STATUS, e)
    return VmStatusResponse(status=status)


@app.get("/api/windows-status", response_model=GuestReachableResponse, responses=_error_responses)
async def windows_status():
    try:
        reachable = await probes.guest_reachable()
    except MonitorError as e:
        return _failure(ERROR_GUEST_REACHABLE, e)
    return GuestReachableResponse(reachable=reachable)


@app.get("/api/display-driver-status", response_model=DisplayDriverResponse, responses=_error_responses)
async def display_driver_status():
    try:
        loaded = await probes.display_driver_loaded()
    except MonitorError as e:
        return _failure(ERROR_DISPLAY_DRIVER, e)
    return DisplayDriverResponse(displayDriverLoaded=loaded)


@app.get("/api/steam-status", response_model=ProcessStatusResponse, responses=_error_responses)
async def steam_status():
    try:
        running = await probes.process_running()
    except MonitorError as e:
        return _failure(ERROR_PROCESS, e)
    return ProcessStatusResponse(steamRunning=running)


@app.get("/api/steam-link-status", response_model=StreamingPortResponse)
async def steam_link_status():
    """Whether the streaming port on the guest accepts TCP connections.

    Always 200; an unreachable guest reads as a closed port.
    """
    return StreamingPortResponse(steamLinkPortOpen=await probes.streaming_port_open())


@app.get("/api/status", response_model=AggregateStatusResponse, responses=_error_responses)
async def aggregate_status():
    """All four dashboard signals at once; any probe failure fails the request."""
    try:
        signals = await probes.collect_status()
    except MonitorError as e:
        return _failure(ERROR_AGGREGATE, e)
    return AggregateStatusResponse(**signals)


# --- Lifecycle ---

@app.post("/api/clone-vm", response_model=CloneResponse, responses=_error_responses)
async def clone_vm():
    """Recreate the managed VM from its template and start it.

    Blocks until the whole workflow finishes. On failure, steps that already
    completed are not undone.
    """
    try:
        result = await lifecycle.recreate(vm_identity())
    except MonitorError as e:
        return _failure(ERROR_CLONE, e)
    return CloneResponse(success=True, vmid=result.vmid, name=result.name)


# --- Dashboard ---

@app.api_route("/api/{rest:path}", methods=["GET", "POST", "PUT", "DELETE"], include_in_schema=False)
async def unknown_api(rest: str):
    return JSONResponse(status_code=404, content={"error": "Not found"})


@app.get("/{full_path:path}", include_in_schema=False)
async def dashboard(full_path: str):
    """Serve a static asset, or index.html for anything that is not a file."""
    static_root = Path(settings.static_dir).resolve()
    if full_path:
        candidate = (static_root / full_path).resolve()
        if candidate.is_relative_to(static_root) and candidate.is_file():
            return FileResponse(candidate)
    index = static_root / "index.html"
    if not index.is_file():
        return JSONResponse(status_code=404, content={"error": "Dashboard not installed"})
    return FileResponse(index)


# --- Entry point ---

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "monitor.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        timeout_keep_alive=300,  # clone-vm holds the request open for minutes
    )
