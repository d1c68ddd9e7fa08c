"""Utilities for safe async task execution.

Background tasks created here log their failures instead of letting them
disappear with the task object.
"""
from __future__ import annotations

import asyncio
import logging
import traceback
from typing import Coroutine, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def safe_create_task(
    coro: Coroutine[object, object, T],
    *,
    name: str | None = None,
) -> asyncio.Task[T]:
    """Create an asyncio task whose exception (if any) is logged.

    Must be called with a running event loop.
    """
    task = asyncio.create_task(coro, name=name)

    def handle_exception(task: asyncio.Task) -> None:
        if task.cancelled():
            logger.debug(f"Task '{name or task.get_name()}' was cancelled")
            return

        exc = task.exception()
        if exc is not None:
            tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            logger.error(
                f"Background task '{name or task.get_name()}' failed with exception:\n"
                f"Exception type: {type(exc).__name__}\n"
                f"Exception message: {exc}\n"
                f"Full traceback:\n{tb_str}"
            )

    task.add_done_callback(handle_exception)
    return task


def setup_asyncio_exception_handler(loop: asyncio.AbstractEventLoop | None = None) -> None:
    """Log exceptions the event loop would otherwise swallow.

    Call this during application startup.
    """
    if loop is None:
        loop = asyncio.get_running_loop()

    def handle_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exception = context.get("exception")
        message = context.get("message", "Unknown error")

        if exception:
            tb_str = "".join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            )
            logger.error(
                f"Unhandled exception in asyncio event loop:\n"
                f"Message: {message}\n"
                f"Exception type: {type(exception).__name__}\n"
                f"Exception: {exception}\n"
                f"Full traceback:\n{tb_str}"
            )
        else:
            logger.error(f"Unhandled error in asyncio event loop: {message}")

    loop.set_exception_handler(handle_exception)
    logger.info("Asyncio exception handler configured")
