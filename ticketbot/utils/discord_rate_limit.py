"""
TicketBot - Discord Rate Limit Utilities
========================================

HTTP error logging and throttled bulk deletion.

Usage:
    from ticketbot.utils.discord_rate_limit import log_http_error, delete_messages_throttled

    try:
        await channel.edit(category=archive)
    except discord.HTTPException as e:
        log_http_error(e, "Archive Ticket", [("Channel", str(channel.id))])
"""

import asyncio
from typing import Iterable, List, Optional, Tuple

import discord

from ticketbot.core.logger import logger


# HTTP status code descriptions for logging
HTTP_STATUS_DESCRIPTIONS = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    429: "Rate Limited",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


def log_http_error(
    e: discord.HTTPException,
    operation: str,
    context: Optional[List[Tuple[str, str]]] = None,
) -> None:
    """
    Log a Discord HTTPException with status details.

    Rate limits, 403 and 404 are warnings; anything else is an error.
    """
    status = getattr(e, "status", 0)
    status_desc = HTTP_STATUS_DESCRIPTIONS.get(status, "Unknown")
    retry_after = getattr(e, "retry_after", None)

    log_items = [
        ("Status", f"{status} ({status_desc})"),
        ("Error", str(e.text) if getattr(e, "text", None) else str(e)),
    ]

    if retry_after:
        log_items.append(("Retry After", f"{retry_after:.1f}s"))

    if context:
        log_items.extend(context)

    if status == 429:
        logger.warning(f"🚦 {operation} Rate Limited", log_items)
    elif status == 403:
        logger.warning(f"🚫 {operation} Forbidden", log_items)
    elif status == 404:
        logger.warning(f"❓ {operation} Not Found", log_items)
    else:
        logger.error(f"❌ {operation} Failed", log_items)


async def delete_message_safe(message: discord.Message) -> bool:
    """
    Delete one message.

    Returns:
        True if the message is gone (including already deleted).
    """
    try:
        await message.delete()
        return True
    except discord.NotFound:
        return True
    except discord.HTTPException as e:
        if e.status != 429:
            logger.warning("Failed to Delete Message", [
                ("Message ID", str(message.id)),
                ("Error", str(e)[:100]),
            ])
        return False


async def delete_messages_throttled(
    messages: Iterable[discord.Message],
    delay: float,
) -> Tuple[int, int]:
    """
    Delete messages one at a time with a fixed pause between deletions.

    Returns:
        (deleted, failed) counts.
    """
    deleted = 0
    failed = 0
    for index, message in enumerate(messages):
        if index and delay > 0:
            await asyncio.sleep(delay)
        if await delete_message_safe(message):
            deleted += 1
        else:
            failed += 1
    return deleted, failed


__all__ = [
    "HTTP_STATUS_DESCRIPTIONS",
    "log_http_error",
    "delete_message_safe",
    "delete_messages_throttled",
]
