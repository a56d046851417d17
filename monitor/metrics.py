"""Prometheus metrics for the monitor.

Covers hypervisor API latency, probe latency and recreate workflow steps.
The /metrics endpoint serves these in Prometheus exposition format.
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

hypervisor_request_duration = Histogram(
    "vm_monitor_hypervisor_request_seconds",
    "Duration of Proxmox API calls",
    ["method", "status"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, float("inf")),
)

probe_duration = Histogram(
    "vm_monitor_probe_seconds",
    "Duration of status probes",
    ["probe", "status"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30, float("inf")),
)

lifecycle_step_duration = Histogram(
    "vm_monitor_lifecycle_step_seconds",
    "Duration of VM recreate workflow steps",
    ["step", "status"],
    buckets=(0.5, 1, 2, 5, 10, 30, 60, 120, 300, 900, float("inf")),
)

lifecycle_step_errors = Counter(
    "vm_monitor_lifecycle_step_errors_total",
    "Total recreate workflow step failures",
    ["step"],
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
