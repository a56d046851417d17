"""Monitor configuration."""

from dataclasses import dataclass
from pathlib import Path

from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class VmIdentity:
    """The one guest VM this deployment manages."""

    node: str
    template_vmid: int
    target_vmid: int
    target_name: str


class Settings(BaseSettings):
    """Monitor settings loaded from environment variables."""

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 3000
    static_dir: str = str(Path(__file__).parent / "static")

    # Guest SSH channel
    guest_host: str = ""
    guest_ssh_port: int = 22
    guest_user: str = ""
    guest_password: str = ""

    # Proxmox VE API
    pve_host: str = ""
    pve_port: int = 8006
    pve_user: str = ""  # e.g. root@pam
    pve_password: str = ""
    pve_node: str = ""
    pve_verify_tls: bool = False  # PVE ships a self-signed certificate

    # Managed guest identity
    template_vmid: int = 0
    target_vmid: int = 0
    target_vm_name: str = ""

    # Task completion polling (seconds)
    task_poll_interval: float = 2.0
    task_timeout: float = 900.0  # 0 waits forever

    # Communication timeouts (seconds)
    pve_http_timeout: float = 30.0
    guest_connect_timeout: float = 10.0
    guest_command_timeout: float = 60.0

    # Guest probes
    streaming_port: int = 27036
    port_probe_timeout: float = 2.0
    display_driver_name: str = "Virtual Display Driver"
    process_name: str = "steam"

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # "json" or "text"

    class Config:
        env_prefix = "MONITOR_"

    @property
    def pve_base_url(self) -> str:
        return f"https://{self.pve_host}:{self.pve_port}/api2/json"


def vm_identity() -> VmIdentity:
    """Build the managed guest identity from current settings."""
    return VmIdentity(
        node=settings.pve_node,
        template_vmid=settings.template_vmid,
        target_vmid=settings.target_vmid,
        target_name=settings.target_vm_name,
    )


settings = Settings()
