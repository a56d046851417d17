"""Tests for Proxmox ticket authentication."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from monitor.exceptions import AuthError
from monitor.hypervisor import session


@pytest.mark.asyncio
async def test_authenticate_returns_ticket_and_csrf(fake_pve):
    auth = await session.authenticate()

    assert auth.ticket == "PVE:root@pam:TICKET"
    assert auth.csrf_token == "CSRF123"
    assert auth.cookie == "PVEAuthCookie=PVE:root@pam:TICKET"
    assert auth.headers() == {
        "Cookie": "PVEAuthCookie=PVE:root@pam:TICKET",
        "CSRFPreventionToken": "CSRF123",
    }


@pytest.mark.asyncio
async def test_authenticate_posts_form_credentials(fake_pve):
    await session.authenticate()

    request = fake_pve.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://pve.test:8006/api2/json/access/ticket"
    form = parse_qs(request.content.decode())
    assert form == {"username": ["root@pam"], "password": ["secret"]}


@pytest.mark.asyncio
async def test_each_call_mints_a_new_session(fake_pve):
    await session.authenticate()
    await session.authenticate()

    assert fake_pve.ticket_requests == 2


@pytest.mark.asyncio
async def test_rejected_credentials_raise_auth_error(fake_pve):
    fake_pve.reject_credentials()

    with pytest.raises(AuthError) as exc_info:
        await session.authenticate()

    assert "authentication failed" in str(exc_info.value)
    assert "401" in exc_info.value.detail


@pytest.mark.asyncio
async def test_network_failure_raises_auth_error(monkeypatch):
    def _refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)

    transport = httpx.MockTransport(_refuse)
    monkeypatch.setattr(session, "build_http_client", lambda: httpx.AsyncClient(transport=transport))

    with pytest.raises(AuthError) as exc_info:
        await session.authenticate()

    assert "Connection refused" in exc_info.value.message


@pytest.mark.asyncio
async def test_malformed_ticket_response_raises_auth_error(monkeypatch):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": {}}))
    monkeypatch.setattr(session, "build_http_client", lambda: httpx.AsyncClient(transport=transport))

    with pytest.raises(AuthError, match="malformed"):
        await session.authenticate()


def test_build_http_client_follows_tls_setting(monkeypatch):
    from monitor.config import settings

    monkeypatch.setattr(settings, "pve_http_timeout", 12.5)
    client = session.build_http_client()
    assert isinstance(client, httpx.AsyncClient)
    assert client.timeout.connect == 12.5
