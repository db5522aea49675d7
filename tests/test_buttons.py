"""
TicketBot - Button and View Tests
=================================

Dynamic item templates and callbacks routed through the ticket service.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from ticketbot.services.tickets import setup_ticket_views
from ticketbot.services.tickets.buttons import (
    ApproveButton,
    ClaimButton,
    CloseButton,
    DeleteButton,
    DenyButton,
    MenuCloseButton,
    RoleGiverButton,
)
from ticketbot.services.tickets.views import (
    TicketFormModal,
    TicketPanelSelect,
    build_panel_view,
    build_select_options,
    build_ticket_menu_view,
)
from ticketbot.utils.error_handler import GENERIC_ERROR_MESSAGE

from tests.conftest import GUILD_ID, STAFF_ROLE_ID, VERIFIED_ROLE_ID


async def _open(service, guild, member, name="Support", form_data=None):
    category = service.registry.resolve_category(GUILD_ID, name)
    success, message, channel = await service.create_ticket(guild, member, category, form_data)
    assert success, message
    return channel


# =============================================================================
# Templates
# =============================================================================

class TestTemplates:

    def test_channel_buttons_match_their_ids(self):
        for cls, prefix in (
            (ClaimButton, "claim_ticket_"),
            (CloseButton, "close_ticket_"),
            (DeleteButton, "delete_ticket_"),
            (ApproveButton, "approve_ticket_"),
            (DenyButton, "deny_ticket_"),
            (MenuCloseButton, "close_ticket_menu_"),
        ):
            button = cls(42)
            assert button.custom_id == f"{prefix}42"
            assert button.template.fullmatch(f"{prefix}42").group("channel_id") == "42"

    def test_close_template_does_not_claim_menu_ids(self):
        assert CloseButton(1).template.fullmatch("close_ticket_menu_42") is None
        assert MenuCloseButton(1).template.fullmatch("close_ticket_42") is None

    def test_panel_select_ids(self):
        template = TicketPanelSelect("support").template
        assert template.fullmatch("ticket_dropdown").group("panel") is None
        assert template.fullmatch("ticket_dropdown:support").group("panel") == "support"
        assert TicketPanelSelect("support").custom_id == "ticket_dropdown:support"
        assert TicketPanelSelect().custom_id == "ticket_dropdown"

    @pytest.mark.asyncio
    async def test_claim_from_custom_id(self):
        match = ClaimButton(1).template.fullmatch("claim_ticket_555")
        button = await ClaimButton.from_custom_id(MagicMock(), MagicMock(), match)
        assert button.channel_id == 555

    @pytest.mark.asyncio
    async def test_role_giver_from_custom_id_keeps_appearance(self):
        item = discord.ui.Button(
            label="Verified",
            style=discord.ButtonStyle.success,
            custom_id="roleGiver_verified",
            disabled=True,
        )
        match = RoleGiverButton("x").template.fullmatch("roleGiver_verified")

        button = await RoleGiverButton.from_custom_id(MagicMock(), item, match)

        assert button.giver_id == "verified"
        assert button.item.label == "Verified"
        assert button.item.style == discord.ButtonStyle.success
        assert button.item.disabled is True

    def test_setup_registers_dynamic_items(self):
        bot = MagicMock()

        setup_ticket_views(bot)

        registered = [cls for call in bot.add_dynamic_items.call_args_list for cls in call.args]
        assert TicketPanelSelect in registered
        assert RoleGiverButton in registered
        assert MenuCloseButton in registered


# =============================================================================
# Views
# =============================================================================

class TestViews:

    @pytest.mark.asyncio
    async def test_panel_view(self, service):
        categories = service.registry.list_categories(GUILD_ID)

        view = build_panel_view(categories, "support")

        select = view.children[0].item
        assert select.custom_id == "ticket_dropdown:support"
        assert [o.value for o in select.options] == ["Support", "Staff App"]
        assert view.timeout is None

    def test_select_options_capped(self):
        from ticketbot.services.tickets.registry import TicketCategory

        categories = [TicketCategory(name=f"Cat {i}") for i in range(30)]
        assert len(build_select_options(categories)) == 25

    @pytest.mark.asyncio
    async def test_menu_view_for_approval_category(self):
        view = build_ticket_menu_view(7, requires_approval=True)
        assert [item.custom_id for item in view.children] == [
            "approve_ticket_7",
            "deny_ticket_7",
            "close_ticket_menu_7",
        ]

    @pytest.mark.asyncio
    async def test_menu_view_without_approval(self):
        view = build_ticket_menu_view(7, requires_approval=False)
        assert [item.custom_id for item in view.children] == ["close_ticket_menu_7"]

    @pytest.mark.asyncio
    async def test_form_modal_mirrors_fields(self, service):
        modal = TicketFormModal(service.registry.resolve_category(GUILD_ID, "Staff App"))

        assert modal.custom_id == "ticket_form:Staff App"
        assert list(modal.inputs) == ["reason", "age"]
        assert modal.inputs["reason"].style == discord.TextStyle.paragraph
        assert modal.inputs["age"].required is False

    @pytest.mark.asyncio
    async def test_form_modal_collect_strips_values(self, service):
        modal = TicketFormModal(service.registry.resolve_category(GUILD_ID, "Staff App"))
        modal.inputs["reason"] = SimpleNamespace(value="  I like helping  ")

        assert modal.collect() == {"reason": "I like helping", "age": ""}


# =============================================================================
# Callbacks
# =============================================================================

class TestPanelSelectCallback:

    @pytest.mark.asyncio
    async def test_selection_opens_ticket(self, service, make_interaction, owner):
        select = TicketPanelSelect("support")
        interaction = make_interaction(owner, values=["Support"])

        await select.callback(interaction)

        assert len(service.db.get_all_tickets(GUILD_ID)) == 1

    @pytest.mark.asyncio
    async def test_empty_selection(self, service, make_interaction, owner):
        interaction = make_interaction(owner, values=[])

        await TicketPanelSelect("support").callback(interaction)

        interaction.response.send_message.assert_awaited_once_with("❌ Please pick a category.", ephemeral=True)
        assert service.db.get_all_tickets(GUILD_ID) == []

    @pytest.mark.asyncio
    async def test_service_not_ready(self, make_interaction, owner):
        interaction = make_interaction(owner, values=["Support"])
        interaction.client.ticket_service = None

        await TicketPanelSelect("support").callback(interaction)

        interaction.response.send_message.assert_awaited_once_with(
            "❌ Ticket system is not available.", ephemeral=True
        )

    @pytest.mark.asyncio
    async def test_modal_submit_creates_ticket(self, service, make_interaction, owner):
        modal = TicketFormModal(service.registry.resolve_category(GUILD_ID, "Staff App"))
        modal.inputs["reason"] = SimpleNamespace(value="Because")

        await modal.on_submit(make_interaction(owner))

        ticket = service.db.get_all_tickets(GUILD_ID)[0]
        assert ticket["form_data"] == {"reason": "Because", "age": ""}


class TestButtonCallbacks:

    @pytest.mark.asyncio
    async def test_claim_button(self, service, make_interaction, guild, owner, staff):
        channel = await _open(service, guild, owner, "Staff App", {"reason": "x", "age": ""})
        interaction = make_interaction(staff, channel=channel)

        await ClaimButton(channel.id).callback(interaction)

        interaction.response.defer.assert_awaited_once()
        interaction.followup.send.assert_awaited_once_with("✅ You claimed this ticket.", ephemeral=True)

    @pytest.mark.asyncio
    async def test_close_button_by_outsider(self, service, make_interaction, guild, owner, outsider):
        channel = await _open(service, guild, owner)
        interaction = make_interaction(outsider, channel=channel)

        await CloseButton(channel.id).callback(interaction)

        reply = interaction.followup.send.call_args.args[0]
        assert reply.startswith("❌ Only the ticket owner")

    @pytest.mark.asyncio
    async def test_unknown_channel(self, service, make_interaction, owner):
        interaction = make_interaction(owner)

        await CloseButton(1).callback(interaction)

        interaction.response.send_message.assert_awaited_once_with("❌ Ticket channel not found.", ephemeral=True)

    @pytest.mark.asyncio
    async def test_approve_button_strips_menu(self, service, make_interaction, guild, owner, admin):
        from tests.conftest import make_message

        channel = await _open(service, guild, owner, "Staff App", {"reason": "x", "age": ""})
        menu = make_message()
        interaction = make_interaction(admin, message=menu)

        await ApproveButton(channel.id).callback(interaction)

        menu.edit.assert_awaited_once_with(view=None)
        assert interaction.followup.send.call_args.args[0].startswith("✅ Approved")

    @pytest.mark.asyncio
    async def test_failed_approve_keeps_menu(self, service, make_interaction, guild, owner, staff):
        from tests.conftest import make_message

        channel = await _open(service, guild, owner, "Staff App", {"reason": "x", "age": ""})
        menu = make_message()

        await ApproveButton(channel.id).callback(make_interaction(staff, message=menu))

        menu.edit.assert_not_called()

    @pytest.mark.asyncio
    async def test_errors_are_reported_not_raised(self, service, make_interaction, guild, owner, staff):
        channel = await _open(service, guild, owner)
        service.claim_ticket = AsyncMock(side_effect=RuntimeError("boom"))
        service.audit.log_bot_error = AsyncMock()
        interaction = make_interaction(staff, channel=channel)

        await ClaimButton(channel.id).callback(interaction)

        interaction.followup.send.assert_awaited_with(GENERIC_ERROR_MESSAGE, ephemeral=True)
        service.audit.log_bot_error.assert_awaited_once()
        assert service.audit.log_bot_error.call_args.args[1] == "Claim Button"


class TestRoleGiverCallback:

    @pytest.mark.asyncio
    async def test_grant_disables_button(self, service, fake_guild, make_interaction, guild, owner, staff):

        channel = await _open(service, guild, owner, "Staff App", {"reason": "x", "age": ""})
        summary = channel.sent[0]
        summary.components = [
            SimpleNamespace(children=[
                SimpleNamespace(custom_id=f"claim_ticket_{channel.id}", label="Claim",
                                style=discord.ButtonStyle.success, emoji=None, disabled=False),
            ]),
            SimpleNamespace(children=[
                SimpleNamespace(custom_id="roleGiver_verified", label="Verified",
                                style=discord.ButtonStyle.success, emoji=None, disabled=False),
            ]),
        ]
        interaction = make_interaction(staff, channel=channel, message=summary)

        await RoleGiverButton("verified", label="Verified").callback(interaction)

        assert fake_guild.roles[VERIFIED_ROLE_ID] in owner.roles
        view = summary.edit.call_args.kwargs["view"]
        buttons = {item.custom_id: item for item in view.children}
        assert buttons["roleGiver_verified"].disabled is True
        assert buttons["roleGiver_verified"].label == "✅ Verified (Used)"
        assert buttons[f"claim_ticket_{channel.id}"].disabled is False

    @pytest.mark.asyncio
    async def test_denied_grant_leaves_button(self, service, fake_guild, make_interaction, guild, owner, outsider):
        channel = await _open(service, guild, owner, "Staff App", {"reason": "x", "age": ""})
        summary = channel.sent[0]
        interaction = make_interaction(outsider, channel=channel, message=summary)

        await RoleGiverButton("verified").callback(interaction)

        assert fake_guild.roles[VERIFIED_ROLE_ID] not in owner.roles
        summary.edit.assert_not_called()
        assert interaction.followup.send.call_args.args[0].startswith("❌")

    @pytest.mark.asyncio
    async def test_staff_role_holder_needed(self, service, fake_guild, make_interaction, guild, owner, staff):
        staff.roles.remove(fake_guild.roles[STAFF_ROLE_ID])
        channel = await _open(service, guild, owner, "Staff App", {"reason": "x", "age": ""})

        await RoleGiverButton("verified").callback(make_interaction(staff, channel=channel))

        assert fake_guild.roles[VERIFIED_ROLE_ID] not in owner.roles
