"""One-shot SSH command execution on the guest."""

from __future__ import annotations

import asyncio
import logging

import asyncssh

from monitor.config import settings
from monitor.exceptions import ChannelError
from monitor.timeouts import with_timeout

logger = logging.getLogger(__name__)


def _as_text(data: str | bytes | None) -> str:
    if data is None:
        return ""
    return data.decode(errors="replace") if isinstance(data, bytes) else data


async def run_command(command: str) -> str:
    """Run ``command`` on the guest and return its trimmed stdout.

    A new connection is opened and closed per command. Anything written to
    stderr fails the whole command, even if stdout has content.

    Raises:
        ChannelError: connection, launch, timeout or stderr output
    """
    try:
        async with asyncssh.connect(
            settings.guest_host,
            port=settings.guest_ssh_port,
            username=settings.guest_user,
            password=settings.guest_password,
            known_hosts=None,  # Guests are recreated from a template; host keys change
            connect_timeout=settings.guest_connect_timeout or None,
        ) as conn:
            result = await with_timeout(
                conn.run(command, check=False),
                settings.guest_command_timeout,
                description=f"guest command on {settings.guest_host}",
            )
    except asyncio.TimeoutError as e:
        logger.error(f"Timed out talking to {settings.guest_host}")
        raise ChannelError(f"Timed out talking to {settings.guest_host}") from e
    except asyncssh.Error as e:
        logger.error(f"SSH failure on {settings.guest_host}: {e}")
        raise ChannelError(f"SSH failure on {settings.guest_host}: {e}") from e
    except OSError as e:
        logger.error(f"Network error connecting to {settings.guest_host}: {e}")
        raise ChannelError(f"Network error connecting to {settings.guest_host}: {e}") from e

    stderr = _as_text(result.stderr)
    if stderr:
        logger.warning(f"Guest command wrote to stderr: {stderr.strip()}")
        raise ChannelError("Guest command wrote to stderr", stderr=stderr)
    return _as_text(result.stdout).strip()
