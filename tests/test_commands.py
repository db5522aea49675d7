"""
TicketBot - /ticket Command Tests
=================================

Command callbacks invoked directly with a fake interaction.
"""

from unittest.mock import MagicMock

import pytest

from ticketbot.commands.ticket import TicketCog

from tests.conftest import GUILD_ID, STAFF_ID


@pytest.fixture
def cog(service):
    bot = MagicMock()
    bot.ticket_service = service
    return TicketCog(bot)


async def _open(service, guild, member, name="Support", form_data=None):
    category = service.registry.resolve_category(GUILD_ID, name)
    success, message, channel = await service.create_ticket(guild, member, category, form_data)
    assert success, message
    return channel


class TestAdminCommands:

    @pytest.mark.asyncio
    async def test_non_admin_denied(self, cog, service, make_interaction, staff):
        interaction = make_interaction(staff)

        await TicketCog.deploy.callback(cog, interaction)

        reply = interaction.followup.send.call_args.args[0]
        assert reply.startswith("❌ You need administrator permissions")

    @pytest.mark.asyncio
    async def test_create_category(self, cog, service, make_interaction, admin):
        interaction = make_interaction(admin)

        await TicketCog.create.callback(cog, interaction, "Billing", None)

        assert service.db.get_category(GUILD_ID, "Billing") is not None
        assert interaction.followup.send.call_args.args[0] == "✅ Created category **Billing**."

    @pytest.mark.asyncio
    async def test_bypass_user_runs_admin_command(self, cog, service, make_interaction, bypass_user):
        from unittest.mock import AsyncMock

        service.audit.log_bypass_used = AsyncMock()
        interaction = make_interaction(bypass_user)

        await TicketCog.create.callback(cog, interaction, "Billing", None)

        assert service.db.get_category(GUILD_ID, "Billing") is not None
        service.audit.log_bypass_used.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_menu_posts_in_channel(self, cog, service, make_interaction, guild, owner, admin):
        channel = await _open(service, guild, owner, "Staff App", {"reason": "x", "age": ""})
        interaction = make_interaction(admin, channel=channel)

        await TicketCog.menu.callback(cog, interaction, None)

        menu = channel.sent[-1]
        assert [item.custom_id for item in menu.view.children] == [
            f"approve_ticket_{channel.id}",
            f"deny_ticket_{channel.id}",
            f"close_ticket_menu_{channel.id}",
        ]
        assert interaction.followup.send.call_args.args[0] == "✅ Ticket menu posted."

    @pytest.mark.asyncio
    async def test_menu_outside_ticket(self, cog, fake_guild, make_interaction, admin):
        channel = fake_guild.add_channel("general")
        interaction = make_interaction(admin, channel=channel)

        await TicketCog.menu.callback(cog, interaction, None)

        assert channel.sent == []
        assert "not an active ticket" in interaction.followup.send.call_args.args[0]


class TestMemberCommands:

    @pytest.mark.asyncio
    async def test_alerts_for_staff(self, cog, service, make_interaction, staff):
        interaction = make_interaction(staff)

        await TicketCog.alerts.callback(cog, interaction)

        assert STAFF_ID in service.db.get_alert_subscribers(GUILD_ID)
        assert interaction.followup.send.call_args.args[0].startswith("🔔")

    @pytest.mark.asyncio
    async def test_owner_closes_from_command(self, cog, service, make_interaction, guild, owner):
        channel = await _open(service, guild, owner)
        interaction = make_interaction(owner, channel=channel)

        await TicketCog.close.callback(cog, interaction)
        await service._pending_closes[channel.id]

        assert service.db.get_ticket_by_channel(channel.id) is None

    @pytest.mark.asyncio
    async def test_service_not_ready(self, make_interaction, staff):
        bot = MagicMock()
        bot.ticket_service = None
        interaction = make_interaction(staff)

        await TicketCog.alerts.callback(TicketCog(bot), interaction)

        interaction.followup.send.assert_awaited_once_with("❌ Ticket system is not ready yet.", ephemeral=True)
