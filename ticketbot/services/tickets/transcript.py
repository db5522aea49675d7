"""
Ticket Transcript Generator
===========================

JSON transcript of a ticket channel, posted as a file when the ticket closes.
"""

import io
import json
import time
from typing import Any, Dict, List, Optional, Tuple

import discord

from ticketbot.core.database import TicketRecord
from ticketbot.core.logger import logger


TRANSCRIPT_VERSION = 1


def serialize_message(msg: discord.Message) -> Optional[Dict[str, Any]]:
    """
    Serialize one message; messages with no content, embeds or attachments
    are skipped (None).
    """
    if not (msg.content or msg.embeds or msg.attachments):
        return None

    return {
        "author": {
            "name": msg.author.name,
            "id": msg.author.id,
            "bot": bool(getattr(msg.author, "bot", False)),
        },
        "content": msg.content or "",
        "timestamp": msg.created_at.isoformat(),
        "embeds": [
            {
                "title": embed.title,
                "description": embed.description,
                "footer": embed.footer.text if embed.footer else None,
                "fields": [{"name": f.name, "value": f.value} for f in embed.fields],
            }
            for embed in msg.embeds
        ],
        "attachments": [
            {
                "name": attachment.filename,
                "type": attachment.content_type,
                "size": attachment.size,
                "url": attachment.url,
            }
            for attachment in msg.attachments
        ],
    }


async def collect_messages(channel: discord.TextChannel, limit: int) -> List[Dict[str, Any]]:
    """Collect up to `limit` messages, oldest first."""
    messages: List[Dict[str, Any]] = []
    async for msg in channel.history(limit=limit, oldest_first=True):
        entry = serialize_message(msg)
        if entry is not None:
            messages.append(entry)
    return messages


def build_transcript(
    guild: discord.Guild,
    channel: discord.TextChannel,
    ticket: TicketRecord,
    closed_by: discord.abc.User,
    messages: List[Dict[str, Any]],
) -> Dict[str, Any]:
    return {
        "version": TRANSCRIPT_VERSION,
        "ticket": {
            "name": channel.name,
            "channel_id": channel.id,
            "guild_name": guild.name,
            "guild_id": guild.id,
            "category": ticket["category"],
            "owner_id": ticket["user_id"],
            "claimed_by": ticket.get("claimed_by"),
            "form_data": ticket.get("form_data"),
            "opened_at": ticket.get("created_at"),
            "closed_at": time.time(),
            "closed_by_name": closed_by.name,
            "closed_by_id": closed_by.id,
            "messages": len(messages),
            "files": sum(len(m["attachments"]) for m in messages),
        },
        "messages": messages,
    }


async def generate_transcript_file(
    guild: discord.Guild,
    channel: discord.TextChannel,
    ticket: TicketRecord,
    closed_by: discord.abc.User,
    limit: int,
) -> Optional[Tuple[discord.File, int]]:
    """
    Build the transcript as a discord.File.

    Returns:
        (file, message count), or None if the channel history could not be read.
    """
    try:
        messages = await collect_messages(channel, limit)
    except discord.HTTPException as e:
        logger.warning("Transcript Collection Failed", [
            ("Channel", f"{channel.name} ({channel.id})"),
            ("Error", str(e)[:100]),
        ])
        return None

    document = build_transcript(guild, channel, ticket, closed_by, messages)
    payload = json.dumps(document, indent=2, ensure_ascii=False, default=str).encode("utf-8")

    logger.tree("Transcript Generated", [
        ("Channel", f"{channel.name} ({channel.id})"),
        ("Messages", str(len(messages))),
        ("Size", f"{len(payload)} bytes"),
    ], emoji="📜")

    return discord.File(io.BytesIO(payload), filename=f"transcript-{channel.name}.json"), len(messages)


__all__ = [
    "serialize_message",
    "collect_messages",
    "build_transcript",
    "generate_transcript_file",
]
