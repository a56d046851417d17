from __future__ import annotations

import asyncio
from types import SimpleNamespace

import asyncssh
import httpx
import pytest

from monitor.config import settings
from monitor.guest import channel
from monitor.hypervisor import session

NODE = "pve"
TEMPLATE_VMID = 9000
TARGET_VMID = 101
TARGET_NAME = "win11-gaming"


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch):
    """Point every test at a fixed guest identity with instant task polling."""
    monkeypatch.setattr(settings, "pve_host", "pve.test")
    monkeypatch.setattr(settings, "pve_user", "root@pam")
    monkeypatch.setattr(settings, "pve_password", "secret")
    monkeypatch.setattr(settings, "pve_node", NODE)
    monkeypatch.setattr(settings, "template_vmid", TEMPLATE_VMID)
    monkeypatch.setattr(settings, "target_vmid", TARGET_VMID)
    monkeypatch.setattr(settings, "target_vm_name", TARGET_NAME)
    monkeypatch.setattr(settings, "task_poll_interval", 0.0)
    monkeypatch.setattr(settings, "task_timeout", 900.0)
    monkeypatch.setattr(settings, "guest_host", "127.0.0.1")
    monkeypatch.setattr(settings, "guest_user", "gamer")
    monkeypatch.setattr(settings, "guest_password", "hunter2")
    yield


def _action_for(method: str, path: str) -> str | None:
    if method == "POST" and path.endswith("/status/stop"):
        return "stop"
    if method == "POST" and path.endswith("/status/start"):
        return "start"
    if method == "POST" and path.endswith("/clone"):
        return "clone"
    if method == "DELETE" and "/qemu/" in path:
        return "delete"
    return None


class FakeProxmox:
    """In-process stand-in for the PVE API, served through httpx.MockTransport.

    Mutations return a fresh UPID whose status polls walk through the
    scripted sequence for that action (default: finished OK on first poll).
    """

    def __init__(self):
        self.log: list[tuple[str, str]] = []
        self.requests: list[httpx.Request] = []
        self.actions: list[str] = []
        self.vm_state = "running"
        self.auth_response: httpx.Response | None = None
        self.task_scripts: dict[str, list[dict]] = {}
        self.failures: dict[tuple[str, str], httpx.Response] = {}
        self._tasks: dict[str, list[dict]] = {}

    @property
    def ticket_requests(self) -> int:
        return sum(1 for _, path in self.log if path == "/access/ticket")

    def fail(self, method: str, path: str, status: int, reason: str = "", json=None) -> None:
        extensions = {"reason_phrase": reason.encode()} if reason else {}
        self.failures[(method, path)] = httpx.Response(
            status,
            json=json if json is not None else {"data": None},
            extensions=extensions,
        )

    def reject_credentials(self) -> None:
        self.auth_response = httpx.Response(
            401,
            json={"data": None},
            extensions={"reason_phrase": b"authentication failure"},
        )

    def script(self, action: str, *states: dict) -> None:
        self.task_scripts[action] = list(states)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api2/json")
        method = request.method
        self.log.append((method, path))
        self.requests.append(request)

        if path == "/access/ticket":
            if self.auth_response is not None:
                return self.auth_response
            return httpx.Response(
                200,
                json={"data": {"ticket": "PVE:root@pam:TICKET", "CSRFPreventionToken": "CSRF123"}},
            )

        if (method, path) in self.failures:
            return self.failures[(method, path)]

        if method == "GET" and path.endswith("/status/current"):
            return httpx.Response(200, json={"data": {"status": self.vm_state}})

        if method == "GET" and "/tasks/" in path:
            upid = path.split("/tasks/", 1)[1].rsplit("/status", 1)[0]
            states = self._tasks[upid]
            state = states.pop(0) if len(states) > 1 else states[0]
            return httpx.Response(200, json={"data": state})

        action = _action_for(method, path)
        if action is None:
            return httpx.Response(501, json={"data": None})
        self.actions.append(action)
        upid = f"UPID:{NODE}:0000{len(self.actions)}:qm{action}:{TARGET_VMID}:root@pam:"
        self._tasks[upid] = list(
            self.task_scripts.get(action, [{"status": "stopped", "exitstatus": "OK"}])
        )
        return httpx.Response(200, json={"data": upid})


@pytest.fixture
def fake_pve(monkeypatch) -> FakeProxmox:
    fake = FakeProxmox()
    transport = httpx.MockTransport(fake.handler)
    monkeypatch.setattr(
        session,
        "build_http_client",
        lambda: httpx.AsyncClient(transport=transport),
    )
    return fake


class _FakeConnection:
    def __init__(self, fake: FakeSSH):
        self._fake = fake

    async def run(self, command: str, check: bool = False):
        self._fake.commands.append(command)
        if self._fake.hang:
            await asyncio.sleep(30)
        for match, (stdout, stderr) in self._fake.responses.items():
            if match in command:
                return SimpleNamespace(stdout=stdout, stderr=stderr, exit_status=0)
        stdout, stderr = self._fake.default
        return SimpleNamespace(stdout=stdout, stderr=stderr, exit_status=0)


class _FakeConnect:
    def __init__(self, fake: FakeSSH):
        self._fake = fake

    async def __aenter__(self):
        if self._fake.connect_error is not None:
            raise self._fake.connect_error
        return _FakeConnection(self._fake)

    async def __aexit__(self, exc_type, exc, tb):
        self._fake.closed += 1
        return False


class FakeSSH:
    """Replacement for ``asyncssh.connect`` with canned command output."""

    def __init__(self):
        self.commands: list[str] = []
        self.responses: dict[str, tuple[str, str]] = {}
        self.default: tuple[str, str] = ("", "")
        self.connect_error: BaseException | None = None
        self.connect_kwargs: dict = {}
        self.hang = False
        self.closed = 0

    def respond(self, match: str, stdout: str = "", stderr: str = "") -> None:
        self.responses[match] = (stdout, stderr)

    def connect(self, host, **kwargs):
        self.connect_kwargs = {"host": host, **kwargs}
        return _FakeConnect(self)


@pytest.fixture
def fake_ssh(monkeypatch) -> FakeSSH:
    fake = FakeSSH()
    monkeypatch.setattr(channel.asyncssh, "connect", fake.connect)
    return fake


@pytest.fixture
def ssh_permission_denied() -> asyncssh.Error:
    return asyncssh.PermissionDenied("Permission denied")
