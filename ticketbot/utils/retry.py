"""
TicketBot - Retry Utilities
===========================

Retry logic for Discord API calls with exponential backoff.

Every safe_* helper treats a missing target as a normal outcome:
it returns None/False instead of raising.
"""

import asyncio
from typing import Any, Callable, Optional, Tuple, Type

import discord

from ticketbot.core.logger import logger

# Exceptions that should trigger a retry
RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    discord.HTTPException,
    asyncio.TimeoutError,
    ConnectionError,
)

# Exceptions that will not go away on retry
PERMANENT_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    discord.NotFound,
    discord.Forbidden,
)


async def retry_async(
    coro_func: Callable[..., Any],
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    exceptions: Tuple[Type[Exception], ...] = RETRYABLE_EXCEPTIONS,
    **kwargs,
) -> Any:
    """
    Retry an async function with exponential backoff.

    NotFound and Forbidden are raised immediately.

    Raises:
        The last exception if all retries fail.
    """
    last_exception: Optional[BaseException] = None

    for attempt in range(max_retries + 1):
        try:
            return await coro_func(*args, **kwargs)
        except PERMANENT_EXCEPTIONS:
            raise
        except exceptions as e:
            last_exception = e

            if attempt < max_retries:
                delay = min(base_delay * (2 ** attempt), max_delay)
                logger.warning(f"Retry {attempt + 1}/{max_retries}: {type(e).__name__} - retrying in {delay:.1f}s")
                await asyncio.sleep(delay)
            else:
                logger.error(f"All {max_retries} retries failed: {type(e).__name__}: {e}")

    raise last_exception


async def safe_fetch_channel(bot, channel_id: Optional[int]) -> Optional[discord.abc.GuildChannel]:
    """Get a channel from cache or the API; None if it no longer exists."""
    if not channel_id:
        return None

    channel = bot.get_channel(channel_id)
    if channel:
        return channel

    try:
        return await retry_async(
            bot.fetch_channel,
            channel_id,
            max_retries=2,
            base_delay=0.5,
        )
    except (discord.NotFound, discord.Forbidden):
        return None
    except discord.HTTPException as e:
        logger.error(f"Failed to fetch channel {channel_id}: {e}")
        return None


async def safe_fetch_member(guild: discord.Guild, user_id: int) -> Optional[discord.Member]:
    """Get a guild member from cache or the API; None if they left."""
    if not guild or not user_id:
        return None

    member = guild.get_member(user_id)
    if member:
        return member

    try:
        return await retry_async(
            guild.fetch_member,
            user_id,
            max_retries=2,
            base_delay=0.5,
        )
    except (discord.NotFound, discord.Forbidden):
        return None
    except discord.HTTPException as e:
        logger.error(f"Failed to fetch member {user_id}: {e}")
        return None


async def safe_fetch_message(
    channel: discord.abc.Messageable,
    message_id: Optional[int],
) -> Optional[discord.Message]:
    if not channel or not message_id:
        return None

    try:
        return await retry_async(
            channel.fetch_message,
            message_id,
            max_retries=2,
            base_delay=0.5,
        )
    except (discord.NotFound, discord.Forbidden):
        return None
    except discord.HTTPException as e:
        logger.error(f"Failed to fetch message {message_id}: {e}")
        return None


async def safe_send(
    channel: discord.abc.Messageable,
    content: Optional[str] = None,
    **kwargs,
) -> Optional[discord.Message]:
    """
    Send a message with retry logic.

    Returns:
        Sent message or None on failure.
    """
    if not channel:
        return None

    try:
        return await retry_async(
            channel.send,
            content,
            max_retries=2,
            base_delay=0.5,
            **kwargs,
        )
    except (discord.Forbidden, discord.NotFound, discord.HTTPException) as e:
        logger.warning("Failed to Send Message", [
            ("Target", str(getattr(channel, "id", "unknown"))),
            ("Error", str(e)[:100]),
        ])
        return None


async def safe_edit(
    message: discord.Message,
    **kwargs,
) -> Optional[discord.Message]:
    if not message:
        return None

    try:
        return await retry_async(
            message.edit,
            max_retries=2,
            base_delay=0.5,
            **kwargs,
        )
    except (discord.NotFound, discord.Forbidden, discord.HTTPException) as e:
        logger.warning("Failed to Edit Message", [
            ("Message ID", str(message.id)),
            ("Error", str(e)[:100]),
        ])
        return None


async def safe_delete_channel(channel: discord.abc.GuildChannel, reason: Optional[str] = None) -> bool:
    """
    Delete a channel with delete-if-exists semantics.

    Returns:
        True if the channel no longer exists.
    """
    if not channel:
        return True

    try:
        await retry_async(
            channel.delete,
            reason=reason,
            max_retries=2,
            base_delay=0.5,
        )
        return True
    except discord.NotFound:
        return True
    except discord.Forbidden as e:
        logger.warning("Channel Delete Forbidden", [
            ("Channel", f"{getattr(channel, 'name', '?')} ({channel.id})"),
            ("Error", str(e)[:100]),
        ])
        return False
    except discord.HTTPException as e:
        logger.error("Channel Delete Failed", [
            ("Channel", f"{getattr(channel, 'name', '?')} ({channel.id})"),
            ("Error", str(e)[:100]),
        ])
        return False


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "retry_async",
    "safe_fetch_channel",
    "safe_fetch_member",
    "safe_fetch_message",
    "safe_send",
    "safe_edit",
    "safe_delete_channel",
    "RETRYABLE_EXCEPTIONS",
]
