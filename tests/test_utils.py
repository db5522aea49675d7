"""
TicketBot - Utility Tests
=========================

Retry helpers, throttled deletion, transcripts and the audit logger.
"""

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from ticketbot.services.audit_log import AuditLogger
from ticketbot.services.tickets.transcript import build_transcript, serialize_message
from ticketbot.utils import retry
from ticketbot.utils.discord_rate_limit import delete_messages_throttled
from ticketbot.utils.retry import retry_async, safe_delete_channel, safe_fetch_member

from tests.conftest import GUILD_ID, OWNER_ID, http_error, make_message, not_found


@pytest.fixture
def no_sleep(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr(retry.asyncio, "sleep", sleep)
    return sleep


class TestRetry:

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self, no_sleep):
        func = AsyncMock(side_effect=not_found())

        with pytest.raises(discord.NotFound):
            await retry_async(func, max_retries=3)

        assert func.await_count == 1
        no_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_http_error_retried_then_succeeds(self, no_sleep):
        func = AsyncMock(side_effect=[http_error(), http_error(), "ok"])

        assert await retry_async(func, max_retries=3) == "ok"
        assert func.await_count == 3
        assert no_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, no_sleep):
        func = AsyncMock(side_effect=http_error())

        with pytest.raises(discord.HTTPException):
            await retry_async(func, max_retries=2)
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_delete_missing_channel_is_success(self):
        channel = MagicMock()
        channel.delete = AsyncMock(side_effect=not_found())

        assert await safe_delete_channel(channel) is True

    @pytest.mark.asyncio
    async def test_fetch_member_who_left(self, fake_guild):
        assert await safe_fetch_member(fake_guild.guild, OWNER_ID) is None


class TestThrottledDelete:

    @pytest.mark.asyncio
    async def test_counts(self):
        gone = make_message()
        gone.delete.side_effect = not_found("Unknown Message")
        blocked = make_message()
        blocked.delete.side_effect = http_error(403, "Missing Access")

        deleted, failed = await delete_messages_throttled([make_message(), gone, blocked], delay=0)

        assert (deleted, failed) == (2, 1)


class TestTranscript:

    def _message(self, content="", embeds=None, attachments=None):
        return SimpleNamespace(
            author=SimpleNamespace(name="alice", id=OWNER_ID, bot=False),
            content=content,
            embeds=embeds or [],
            attachments=attachments or [],
            created_at=datetime(2024, 1, 1, 12, 0, 0),
        )

    def test_empty_message_skipped(self):
        assert serialize_message(self._message()) is None

    def test_message_with_attachment(self):
        attachment = SimpleNamespace(filename="log.txt", content_type="text/plain", size=12, url="https://cdn/log.txt")

        entry = serialize_message(self._message("see file", attachments=[attachment]))

        assert entry["author"] == {"name": "alice", "id": OWNER_ID, "bot": False}
        assert entry["attachments"][0]["name"] == "log.txt"
        assert entry["timestamp"] == "2024-01-01T12:00:00"

    def test_document_counts_files(self, guild, staff):
        channel = SimpleNamespace(name="ticket-alice", id=1)
        ticket = {"category": "Support", "user_id": OWNER_ID, "created_at": 1.0, "form_data": None}
        messages = [
            {"attachments": [{}, {}]},
            {"attachments": []},
        ]

        document = build_transcript(guild, channel, ticket, staff, messages)

        assert document["ticket"]["guild_id"] == GUILD_ID
        assert document["ticket"]["messages"] == 2
        assert document["ticket"]["files"] == 2
        assert document["ticket"]["closed_by_name"] == "bob"


class TestAuditLogger:

    @pytest.mark.asyncio
    async def test_disabled_without_channel(self, mock_bot, config, owner):
        audit = AuditLogger(mock_bot, config)

        await audit.log_ticket_denied(owner, OWNER_ID, 1, "Support")

        mock_bot.get_channel.assert_not_called()

    @pytest.mark.asyncio
    async def test_posts_to_audit_channel(self, mock_bot, config, fake_guild, owner):
        audit_channel = fake_guild.add_channel("audit")
        config.audit_channel_id = audit_channel.id
        audit = AuditLogger(mock_bot, config)

        await audit.log_bypass_used(owner, "approve tickets", 42)

        embed = audit_channel.sent[0].embeds[0]
        assert embed.title == "🛡️ Bypass Used"
        assert embed.fields[1].value == "`approve tickets`"

    @pytest.mark.asyncio
    async def test_missing_audit_channel_is_ignored(self, mock_bot, config, owner):
        config.audit_channel_id = 123
        audit = AuditLogger(mock_bot, config)

        await audit.log_bot_error(RuntimeError("boom"), "Test")

    @pytest.mark.asyncio
    async def test_unexpected_post_failure_is_contained(self, mock_bot, config, owner):
        config.audit_channel_id = 123
        mock_bot.fetch_channel.side_effect = RuntimeError("gateway exploded")
        audit = AuditLogger(mock_bot, config)

        await audit.log_ticket_created(owner, MagicMock(mention="<#1>"), "Support")

        mock_bot.fetch_channel.assert_awaited_once_with(123)
