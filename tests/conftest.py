"""
TicketBot - Test Fixtures
=========================

Shared fixtures for all tests.

Discord objects are MagicMock/AsyncMock stand-ins wired to small dicts so
lookups (get_role, get_channel, fetch_member, ...) behave like a guild.
"""

import itertools
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from ticketbot.core.config import CLOSE_ACTION_ARCHIVE, CLOSE_ACTION_DELETE, Config
from ticketbot.core.panels import parse_panels_document


# =============================================================================
# Ids
# =============================================================================

GUILD_ID = 987654321
BOT_ID = 999888777
OWNER_ID = 123456789
STAFF_ID = 111222333
ADMIN_ID = 444555666
BYPASS_ID = 777000111
OUTSIDER_ID = 333444555

STAFF_ROLE_ID = 222333444
APP_ROLE_ID = 222333555
VERIFIED_ROLE_ID = 222333666

PANEL_CHANNEL_ID = 888000111
TRANSCRIPT_CHANNEL_ID = 888000222

_channel_ids = itertools.count(500000001)
_message_ids = itertools.count(700000001)


# =============================================================================
# Helpers
# =============================================================================

def not_found(message: str = "Unknown Channel") -> discord.NotFound:
    return discord.NotFound(MagicMock(status=404, reason="Not Found"), message)


def http_error(status: int = 500, message: str = "Internal Server Error") -> discord.HTTPException:
    return discord.HTTPException(MagicMock(status=status, reason=message), message)


async def aiter_list(items: Iterable):
    for item in items:
        yield item


def make_role(role_id: int, name: str) -> MagicMock:
    role = MagicMock()
    role.id = role_id
    role.name = name
    role.mention = f"<@&{role_id}>"
    return role


def make_member(
    member_id: int,
    name: str,
    roles: Optional[List[MagicMock]] = None,
    admin: bool = False,
) -> MagicMock:
    member = MagicMock()
    member.id = member_id
    member.name = name
    member.display_name = name.title()
    member.mention = f"<@{member_id}>"
    member.bot = False
    member.roles = list(roles or [])
    member.guild_permissions.administrator = admin
    member.display_avatar.url = "https://example.com/avatar.png"
    member.send = AsyncMock()

    async def add_roles(*roles, reason=None):
        member.roles.extend(roles)

    member.add_roles = AsyncMock(side_effect=add_roles)
    return member


def make_message(
    author_id: int = BOT_ID,
    embeds: Optional[List[discord.Embed]] = None,
    components: Optional[list] = None,
) -> MagicMock:
    message = MagicMock()
    message.id = next(_message_ids)
    message.author.id = author_id
    message.embeds = list(embeds or [])
    message.components = list(components or [])
    message.content = ""
    message.attachments = []
    message.created_at = datetime(2024, 1, 1, 12, 0, 0)
    message.pin = AsyncMock()
    message.edit = AsyncMock()
    message.delete = AsyncMock()
    return message


class FakeGuild:
    """Builds a MagicMock guild backed by role, member and channel dicts."""

    def __init__(self, guild_id: int = GUILD_ID, name: str = "Test Server") -> None:
        self.roles: Dict[int, MagicMock] = {}
        self.members: Dict[int, MagicMock] = {}
        self.channels: Dict[int, MagicMock] = {}
        self.categories: List[MagicMock] = []

        guild = MagicMock()
        guild.id = guild_id
        guild.name = name
        guild.default_role = make_role(guild_id, "@everyone")
        guild.me = make_member(BOT_ID, "ticketbot")
        guild.categories = self.categories
        guild.get_role = MagicMock(side_effect=self.roles.get)
        guild.get_member = MagicMock(side_effect=self.members.get)
        guild.get_channel = MagicMock(side_effect=self.channels.get)
        guild.fetch_member = AsyncMock(side_effect=self._fetch_member)
        guild.create_category = AsyncMock(side_effect=self._create_category)
        guild.create_text_channel = AsyncMock(side_effect=self._create_text_channel)
        self.guild = guild

    async def _fetch_member(self, user_id: int):
        if user_id in self.members:
            return self.members[user_id]
        raise not_found("Unknown Member")

    async def _create_category(self, name: str, reason: Optional[str] = None):
        category = MagicMock()
        category.id = next(_channel_ids)
        category.name = name
        self.categories.append(category)
        return category

    async def _create_text_channel(self, name: str, **kwargs):
        channel = self.add_channel(name)
        channel.category = kwargs.get("category")
        channel.topic = kwargs.get("topic")
        channel.overwrites = dict(kwargs.get("overwrites") or {})
        return channel

    def add_role(self, role_id: int, name: str) -> MagicMock:
        role = make_role(role_id, name)
        self.roles[role_id] = role
        return role

    def add_member(self, member: MagicMock) -> MagicMock:
        member.guild = self.guild
        self.members[member.id] = member
        return member

    def add_channel(self, name: str, channel_id: Optional[int] = None) -> MagicMock:
        channel = MagicMock(spec=discord.TextChannel)
        channel.id = channel_id or next(_channel_ids)
        channel.name = name
        channel.mention = f"<#{channel.id}>"
        channel.guild = self.guild
        channel.overwrites = {}
        channel.sent = []

        async def send(content=None, **kwargs):
            message = make_message(embeds=[kwargs["embed"]] if kwargs.get("embed") else [])
            message.content = content
            message.view = kwargs.get("view")
            channel.sent.append(message)
            return message

        channel.send = AsyncMock(side_effect=send)
        channel.edit = AsyncMock()
        channel.delete = AsyncMock(side_effect=lambda **kw: self.channels.pop(channel.id, None))
        channel.pins = AsyncMock(return_value=[])
        channel.history = MagicMock(side_effect=lambda **kw: aiter_list(channel.sent))
        channel.fetch_message = AsyncMock(side_effect=self._message_fetcher(channel))
        self.channels[channel.id] = channel
        return channel

    @staticmethod
    def _message_fetcher(channel):
        async def fetch_message(message_id):
            for message in channel.sent:
                if message.id == message_id:
                    return message
            raise not_found("Unknown Message")
        return fetch_message

    def add_category_channel(self, name: str) -> MagicMock:
        category = MagicMock()
        category.id = next(_channel_ids)
        category.name = name
        self.categories.append(category)
        return category


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def test_db(tmp_path, monkeypatch):
    """Create a fresh test database instance."""
    from ticketbot.core.database import manager as db_module

    db_module.DatabaseManager._instance = None
    monkeypatch.setattr(db_module, "DB_PATH", tmp_path / "test_tickets.db")
    monkeypatch.setattr(db_module, "DATA_DIR", tmp_path)

    db = db_module.DatabaseManager()

    yield db

    db.close()
    db_module.DatabaseManager._instance = None


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        discord_token="test-token",
        config_path=tmp_path / "config.json",
        database_path=tmp_path / "test_tickets.db",
        bypass_user_ids={BYPASS_ID},
        max_tickets_per_category=1,
        owner_close_action=CLOSE_ACTION_DELETE,
        staff_close_action=CLOSE_ACTION_ARCHIVE,
        close_delay=0,
        cleanup_delete_delay=0,
    )


@pytest.fixture
def panel_document_raw():
    return {
        "panels": [
            {
                "name": "support",
                "channel_id": PANEL_CHANNEL_ID,
                "title": "Need help?",
                "description": "Pick a category below.",
                "categories": [
                    {"name": "Support", "description": "General help"},
                    {
                        "name": "Staff App",
                        "roles": [STAFF_ROLE_ID, APP_ROLE_ID],
                        "form": [
                            {"id": "reason", "label": "Why do you want to join?", "kind": "paragraph"},
                            {"id": "age", "label": "Age", "required": False},
                        ],
                        "form_title": "Staff Application",
                        "channel_name_template": "app-{username}-{age|na}",
                        "role_givers": [
                            {"id": "verified", "name": "Verified", "role_id": VERIFIED_ROLE_ID, "color": "green"},
                        ],
                    },
                ],
            }
        ]
    }


@pytest.fixture
def panel_document(panel_document_raw):
    return parse_panels_document(panel_document_raw, environ={})


@pytest.fixture
def fake_guild() -> FakeGuild:
    fake = FakeGuild()
    fake.add_role(STAFF_ROLE_ID, "Staff")
    fake.add_role(APP_ROLE_ID, "Applicant")
    fake.add_role(VERIFIED_ROLE_ID, "Verified")
    return fake


@pytest.fixture
def guild(fake_guild):
    return fake_guild.guild


@pytest.fixture
def owner(fake_guild):
    return fake_guild.add_member(make_member(OWNER_ID, "alice"))


@pytest.fixture
def staff(fake_guild):
    return fake_guild.add_member(make_member(STAFF_ID, "bob", roles=[fake_guild.roles[STAFF_ROLE_ID]]))


@pytest.fixture
def admin(fake_guild):
    return fake_guild.add_member(make_member(ADMIN_ID, "carol", admin=True))


@pytest.fixture
def bypass_user(fake_guild):
    return fake_guild.add_member(make_member(BYPASS_ID, "dave"))


@pytest.fixture
def outsider(fake_guild):
    return fake_guild.add_member(make_member(OUTSIDER_ID, "eve"))


@pytest.fixture
def mock_bot(fake_guild):
    """Bot whose channel lookups go through the fake guild."""
    bot = MagicMock()
    bot.user.id = BOT_ID
    bot.guilds = [fake_guild.guild]
    bot.get_channel = MagicMock(side_effect=fake_guild.channels.get)

    async def fetch_channel(channel_id):
        if channel_id in fake_guild.channels:
            return fake_guild.channels[channel_id]
        raise not_found()

    bot.fetch_channel = AsyncMock(side_effect=fetch_channel)
    return bot


@pytest.fixture
def service(mock_bot, config, panel_document, test_db):
    from ticketbot.services.tickets import TicketService
    return TicketService(mock_bot, config, panel_document, test_db)


@pytest.fixture
def make_interaction(service, guild):
    """Factory for component/command interactions."""
    def factory(user, channel=None, message=None, values=None):
        interaction = MagicMock()
        interaction.user = user
        interaction.guild = guild
        interaction.channel = channel
        interaction.channel_id = channel.id if channel is not None else None
        interaction.message = message
        interaction.client.ticket_service = service
        interaction.data = {"values": values} if values is not None else {}
        interaction.command = None

        done = {"value": False}

        async def mark_done(*args, **kwargs):
            done["value"] = True

        interaction.response.is_done = MagicMock(side_effect=lambda: done["value"])
        interaction.response.defer = AsyncMock(side_effect=mark_done)
        interaction.response.send_message = AsyncMock(side_effect=mark_done)
        interaction.response.send_modal = AsyncMock(side_effect=mark_done)
        interaction.followup.send = AsyncMock()
        return interaction

    return factory
