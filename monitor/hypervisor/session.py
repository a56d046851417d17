"""Proxmox VE ticket authentication.

A fresh ticket is minted for every authenticated call and dropped right
after. Tickets are short-lived and call volume is a handful of requests per
dashboard refresh, so there is no session cache and no connection pool:
every call opens its own ``httpx.AsyncClient``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from monitor.config import settings
from monitor.exceptions import AuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthSession:
    """Ticket plus CSRF token for one authenticated call."""

    ticket: str
    csrf_token: str

    @property
    def cookie(self) -> str:
        return f"PVEAuthCookie={self.ticket}"

    def headers(self) -> dict[str, str]:
        return {
            "Cookie": self.cookie,
            "CSRFPreventionToken": self.csrf_token,
        }


def build_http_client() -> httpx.AsyncClient:
    """Create a one-shot client for the Proxmox API."""
    return httpx.AsyncClient(
        verify=settings.pve_verify_tls,
        timeout=settings.pve_http_timeout or None,
    )


async def authenticate() -> AuthSession:
    """Obtain a new ticket from ``/access/ticket``.

    Raises:
        AuthError: credentials rejected, malformed reply or network failure
    """
    url = f"{settings.pve_base_url}/access/ticket"
    try:
        async with build_http_client() as client:
            response = await client.post(
                url,
                data={"username": settings.pve_user, "password": settings.pve_password},
            )
            response.raise_for_status()
            data = response.json()["data"]
            return AuthSession(ticket=data["ticket"], csrf_token=data["CSRFPreventionToken"])
    except httpx.HTTPStatusError as e:
        logger.error(
            f"Failed to authenticate with Proxmox: HTTP {e.response.status_code} "
            f"{e.response.reason_phrase}"
        )
        raise AuthError(
            f"Proxmox authentication failed: HTTP {e.response.status_code} "
            f"{e.response.reason_phrase}".rstrip()
        ) from e
    except httpx.HTTPError as e:
        logger.error(f"Failed to authenticate with Proxmox: {e}")
        raise AuthError(f"Proxmox authentication failed: {e}") from e
    except (ValueError, KeyError, TypeError) as e:
        logger.error(f"Unexpected Proxmox ticket response: {e!r}")
        raise AuthError("Proxmox authentication failed: malformed ticket response") from e
