"""
TicketBot - Async Utilities
===========================

Helpers for best-effort side effects (alert DMs, audit posts) and
background tasks, so failures are logged instead of lost.
"""

import asyncio
from typing import Any, Coroutine, List, Optional, Tuple

from ticketbot.core.logger import logger


async def gather_with_logging(
    *operations: Tuple[str, Coroutine[Any, Any, Any]],
    context: Optional[str] = None,
) -> List[Any]:
    """
    Run named coroutines concurrently and log each failure.

    Returns:
        Results in order; failures are returned as exception values.

    Example:
        await gather_with_logging(
            ("Alert 1234", send_alert(user_a)),
            ("Alert 5678", send_alert(user_b)),
            context="Ticket Alerts",
        )
    """
    names = [name for name, _ in operations]
    results = await asyncio.gather(*(coro for _, coro in operations), return_exceptions=True)

    for name, result in zip(names, results):
        if isinstance(result, Exception):
            details = [
                ("Operation", name),
                ("Error Type", type(result).__name__),
                ("Error", str(result)[:100]),
            ]
            if context:
                details.insert(0, ("Context", context))
            logger.warning("Async Operation Failed", details)

    return results


async def safe_async_operation(
    name: str,
    coro: Coroutine[Any, Any, Any],
    default: Any = None,
) -> Any:
    """Await a single best-effort operation, returning default on failure."""
    try:
        return await coro
    except Exception as e:
        logger.warning("Async Operation Failed", [
            ("Operation", name),
            ("Error Type", type(e).__name__),
            ("Error", str(e)[:100]),
        ])
        return default


def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: str = "Background Task",
) -> asyncio.Task:
    """
    Create a background task whose exceptions are logged.

    Cancellation is treated as a normal shutdown path.
    """
    async def wrapped():
        try:
            await coro
        except asyncio.CancelledError:
            pass  # cancelled by stop() or a superseding request
        except Exception as e:
            logger.error("Background Task Failed", [
                ("Task", name),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:200]),
            ])

    return asyncio.create_task(wrapped(), name=name)


__all__ = [
    "gather_with_logging",
    "safe_async_operation",
    "create_safe_task",
]
