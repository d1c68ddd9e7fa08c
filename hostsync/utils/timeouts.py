"""Centralized timeout policy for control plane calls.

Wrapping coroutines with `with_timeout()` gives uniform logging when a
call exceeds its budget.
"""
from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)

# Graceful shutdown of background loops
SHUTDOWN_TIMEOUT = 5.0


async def with_timeout(coro, timeout: float, description: str = "operation"):
    """Wrap a coroutine with a timeout and a descriptive warning on failure.

    Raises:
        asyncio.TimeoutError: If the operation exceeds the timeout
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Timeout after {timeout}s: {description}")
        raise
