"""HTTP response schemas.

Field names follow the JSON contract the dashboard consumes, which is why
they are camelCase.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class TaskOutcome(str, Enum):
    """Terminal state of a hypervisor task."""
    STOPPED = "stopped"
    FAILED = "failed"


class ErrorResponse(BaseModel):
    error: str
    detail: Any = None


class VmStatusResponse(BaseModel):
    status: str


class GuestReachableResponse(BaseModel):
    reachable: bool


class DisplayDriverResponse(BaseModel):
    displayDriverLoaded: bool


class ProcessStatusResponse(BaseModel):
    steamRunning: bool


class StreamingPortResponse(BaseModel):
    steamLinkPortOpen: bool


class AggregateStatusResponse(BaseModel):
    """All four dashboard signals, fetched together."""
    vmRunning: bool
    reachable: bool
    steamRunning: bool
    displayDriverLoaded: bool


class CloneResponse(BaseModel):
    success: bool = True
    vmid: int
    name: str


class HealthResponse(BaseModel):
    status: str
    version: str
    commit: str
    timestamp: str
