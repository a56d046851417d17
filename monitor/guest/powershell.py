"""PowerShell command lines for the guest probes.

Commands run through ``pwsh -Command "..."`` over SSH, so embedded string
literals use single quotes.
"""

from __future__ import annotations

ONLINE_TOKEN = "Online"


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def pwsh(script: str) -> str:
    return f'pwsh -Command "{script}"'


def echo_command(token: str = ONLINE_TOKEN) -> str:
    return pwsh(f"Write-Output {token}")


def signed_driver_query(device_name: str) -> str:
    """List signed PnP drivers whose device name matches ``device_name``."""
    pattern = _quote_literal(f"*{device_name}*")
    return pwsh(
        "Get-WmiObject Win32_PnPSignedDriver | "
        f"Where-Object {{ $_.DeviceName -like {pattern} }} | "
        "Select-Object DeviceName, DriverVersion | ConvertTo-Json"
    )


def process_query(process_name: str) -> str:
    """Emit JSON for processes named ``process_name``; prints nothing if none."""
    return pwsh(
        f"Get-Process -Name {_quote_literal(process_name)} -ErrorAction SilentlyContinue | "
        "Select-Object Name, Id | ConvertTo-Json"
    )
