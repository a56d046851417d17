"""Authenticated calls against the Proxmox VE API."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from monitor.config import VmIdentity, settings
from monitor.exceptions import UpstreamError
from monitor.hypervisor import session
from monitor.metrics import hypervisor_request_duration

logger = logging.getLogger(__name__)


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


async def call(method: str, path: str, data: dict[str, Any] | None = None) -> httpx.Response:
    """Issue one authenticated request.

    Authenticates exactly once per invocation and attaches the ticket cookie
    and CSRF token. ``path`` is relative to ``/api2/json``; ``data`` is sent
    form-encoded, which is what PVE expects for mutations.

    Raises:
        AuthError: ticket could not be obtained
        UpstreamError: non-2xx status (status, reason phrase and body are
            preserved for the caller to classify) or transport failure
    """
    auth = await session.authenticate()
    url = f"{settings.pve_base_url}{path}"
    method = method.upper()
    start = time.monotonic()
    try:
        async with session.build_http_client() as client:
            response = await client.request(method, url, data=data, headers=auth.headers())
    except httpx.HTTPError as e:
        hypervisor_request_duration.labels(method=method, status="error").observe(
            time.monotonic() - start
        )
        logger.error(f"Proxmox {method} {path} failed: {e}")
        raise UpstreamError(f"Proxmox {method} {path} failed: {e}") from e

    hypervisor_request_duration.labels(method=method, status=str(response.status_code)).observe(
        time.monotonic() - start
    )
    if response.is_success:
        return response

    body = _response_body(response)
    logger.error(
        f"Proxmox {method} {path} returned HTTP {response.status_code} "
        f"{response.reason_phrase}: {body}"
    )
    raise UpstreamError(
        f"Proxmox {method} {path} returned HTTP {response.status_code}",
        status_code=response.status_code,
        reason=response.reason_phrase,
        body=body,
    )


async def get_data(method: str, path: str, data: dict[str, Any] | None = None) -> Any:
    """Call the API and unwrap PVE's ``{"data": ...}`` envelope."""
    response = await call(method, path, data)
    try:
        return response.json()["data"]
    except (ValueError, KeyError, TypeError) as e:
        raise UpstreamError(
            f"Proxmox {method.upper()} {path} returned an unexpected body",
            status_code=response.status_code,
            body=response.text,
        ) from e


def qemu_path(identity: VmIdentity, vmid: int | None = None) -> str:
    return f"/nodes/{identity.node}/qemu/{identity.target_vmid if vmid is None else vmid}"


async def vm_status(identity: VmIdentity) -> str:
    """Current power state of the target VM (``running``, ``stopped``...)."""
    data = await get_data("GET", f"{qemu_path(identity)}/status/current")
    if not isinstance(data, dict) or "status" not in data:
        raise UpstreamError("Proxmox VM status response has no status field", body=data)
    return data["status"]
