"""Error taxonomy for hypervisor, guest and workflow failures."""

from __future__ import annotations

from typing import Any


class MonitorError(Exception):
    """Base exception for monitor failures.

    ``detail`` is the raw payload surfaced to HTTP clients next to the fixed
    error message of the failing route.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def detail(self) -> Any:
        return self.message


class AuthError(MonitorError):
    """The hypervisor rejected credentials or could not be reached for a ticket."""


class UpstreamError(MonitorError):
    """A hypervisor call returned a non-2xx status or failed in transport."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reason: str = "",
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body = body

    @property
    def detail(self) -> Any:
        # PVE errors often carry {"data": null} with the real message in the reason phrase
        if self.body and self.body != {"data": None}:
            return self.body
        return self.reason or self.message


class TaskTimeoutError(UpstreamError):
    """A hypervisor task did not reach a terminal state before the deadline."""

    def __init__(self, upid: str, timeout: float):
        super().__init__(f"Task {upid} did not finish within {timeout}s")
        self.upid = upid
        self.timeout = timeout


class ChannelError(MonitorError):
    """The guest command channel failed or the command wrote to stderr."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr

    @property
    def detail(self) -> Any:
        return self.stderr or self.message


class ProbeError(MonitorError):
    """A probe could not interpret what the guest or hypervisor returned."""


class OrchestrationError(MonitorError):
    """The recreate workflow aborted at ``step``."""

    def __init__(self, step: str, message: str, cause: MonitorError | None = None):
        super().__init__(f"{step}: {message}")
        self.step = step
        self.cause = cause

    @property
    def detail(self) -> Any:
        return {
            "step": self.step,
            "detail": self.cause.detail if self.cause else self.message,
        }
