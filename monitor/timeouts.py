"""Timeout helper for external calls.

Wrapping coroutines with `with_timeout()` gives uniform logging on timeout
failures. A falsy timeout disables the limit.
"""
from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


async def with_timeout(coro, timeout: float | None, description: str = "operation"):
    """Await ``coro`` with a timeout and a descriptive warning on failure.

    Raises:
        asyncio.TimeoutError: If the operation exceeds the timeout
    """
    if not timeout or timeout <= 0:
        return await coro
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Timeout after {timeout}s: {description}")
        raise
