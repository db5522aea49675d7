"""
TicketBot - Service Administration Tests
========================================

Role givers, alerts, database categories, panels and config reload.
"""

import json
from unittest.mock import AsyncMock

import pytest

from ticketbot.core.panels import PanelsDocument

from tests.conftest import (
    GUILD_ID,
    OWNER_ID,
    PANEL_CHANNEL_ID,
    STAFF_ID,
    STAFF_ROLE_ID,
    VERIFIED_ROLE_ID,
    http_error,
    make_message,
)


STAFF_APP_FORM = {"reason": "x", "age": "30"}


async def _open(service, guild, member, name="Support", form_data=None):
    category = service.registry.resolve_category(GUILD_ID, name)
    success, message, channel = await service.create_ticket(guild, member, category, form_data)
    assert success, message
    return channel


# =============================================================================
# Role Givers
# =============================================================================

class TestRoleGivers:

    @pytest.mark.asyncio
    async def test_grant(self, service, fake_guild, guild, owner, staff):
        channel = await _open(service, guild, owner, "Staff App", STAFF_APP_FORM)

        outcome = await service.grant_role_giver(guild, channel, staff, "verified")

        assert outcome.success is True
        assert outcome.granted is True
        assert outcome.giver.id == "verified"
        assert fake_guild.roles[VERIFIED_ROLE_ID] in owner.roles
        owner.send.assert_awaited()

    @pytest.mark.asyncio
    async def test_second_press_is_idempotent(self, service, guild, owner, staff):
        channel = await _open(service, guild, owner, "Staff App", STAFF_APP_FORM)
        await service.grant_role_giver(guild, channel, staff, "verified")

        outcome = await service.grant_role_giver(guild, channel, staff, "verified")

        assert outcome.success is True
        assert outcome.granted is False
        assert "already has" in outcome.message
        assert owner.add_roles.await_count == 1

    @pytest.mark.asyncio
    async def test_unknown_giver(self, service, guild, owner, staff):
        channel = await _open(service, guild, owner, "Staff App", STAFF_APP_FORM)

        outcome = await service.grant_role_giver(guild, channel, staff, "missing")

        assert outcome.success is False
        assert outcome.giver is None

    @pytest.mark.asyncio
    async def test_deleted_role(self, service, fake_guild, guild, owner, staff):
        channel = await _open(service, guild, owner, "Staff App", STAFF_APP_FORM)
        del fake_guild.roles[VERIFIED_ROLE_ID]

        outcome = await service.grant_role_giver(guild, channel, staff, "verified")

        assert outcome.success is False
        assert "Role not found" in outcome.message

    @pytest.mark.asyncio
    async def test_add_roles_failure(self, service, guild, owner, staff):
        channel = await _open(service, guild, owner, "Staff App", STAFF_APP_FORM)
        owner.add_roles.side_effect = http_error(403, "Missing Permissions")
        service.audit.log_bot_error = AsyncMock()

        outcome = await service.grant_role_giver(guild, channel, staff, "verified")

        assert outcome.success is False
        assert outcome.granted is False
        service.audit.log_bot_error.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_giver_from_other_category_refused(self, service, fake_guild, guild, owner, admin):
        channel = await _open(service, guild, owner, "Support")

        outcome = await service.grant_role_giver(guild, channel, admin, "verified")

        assert outcome.success is False
        assert "category" in outcome.message
        assert fake_guild.roles[VERIFIED_ROLE_ID] not in owner.roles
        owner.add_roles.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_a_ticket_channel(self, service, fake_guild, guild, staff):
        channel = fake_guild.add_channel("general")

        outcome = await service.grant_role_giver(guild, channel, staff, "verified")

        assert outcome.success is False


# =============================================================================
# Alerts
# =============================================================================

class TestAlerts:

    @pytest.mark.asyncio
    async def test_staff_toggle(self, service, guild, staff):
        success, message = await service.toggle_alerts(guild, staff)
        assert success is True
        assert message.startswith("🔔")
        assert STAFF_ID in service.db.get_alert_subscribers(GUILD_ID)

        success, message = await service.toggle_alerts(guild, staff)
        assert success is True
        assert message.startswith("🔕")

    @pytest.mark.asyncio
    async def test_non_staff_rejected(self, service, guild, outsider):
        success, _ = await service.toggle_alerts(guild, outsider)

        assert success is False
        assert service.db.get_alert_subscribers(GUILD_ID) == []

    @pytest.mark.asyncio
    async def test_bypass_toggle_is_audited(self, service, guild, bypass_user):
        service.audit.log_bypass_used = AsyncMock()

        success, _ = await service.toggle_alerts(guild, bypass_user)

        assert success is True
        service.audit.log_bypass_used.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_subscribers_get_dm_on_new_ticket(self, service, guild, owner, staff):
        await service.toggle_alerts(guild, staff)

        channel = await _open(service, guild, owner)

        staff.send.assert_awaited_once()
        embed = staff.send.call_args.kwargs["embed"]
        assert "Support" in embed.description
        assert embed.fields[1].value == channel.mention

    @pytest.mark.asyncio
    async def test_failed_dm_does_not_block_creation(self, service, test_db, guild, owner, staff):
        await service.toggle_alerts(guild, staff)
        test_db.toggle_alert(GUILD_ID, 55555)
        staff.send.side_effect = http_error(403, "Cannot send messages to this user")

        channel = await _open(service, guild, owner)

        assert service.db.get_ticket_by_channel(channel.id) is not None

    @pytest.mark.asyncio
    async def test_owner_not_alerted_about_own_ticket(self, service, guild, owner, staff):
        service.db.toggle_alert(GUILD_ID, OWNER_ID)

        await _open(service, guild, owner)

        owner.send.assert_not_called()


# =============================================================================
# Database Categories
# =============================================================================

class TestCategoryAdmin:

    def test_create_and_add_role(self, service, fake_guild, guild):
        role = fake_guild.roles[STAFF_ROLE_ID]

        assert service.create_category(guild, "Billing")[0] is True
        assert service.create_category(guild, "billing")[0] is False

        success, message = service.create_category(guild, "Billing", role)
        assert success is True
        assert role.mention in message
        assert service.db.get_category(GUILD_ID, "Billing")["roles"] == [STAFF_ROLE_ID]

    def test_shadowed_name_is_noted(self, service, guild):
        success, message = service.create_category(guild, "Support")

        assert success is True
        assert "takes precedence" in message

    def test_invalid_name(self, service, guild):
        assert service.create_category(guild, "   ")[0] is False
        assert service.create_category(guild, "x" * 101)[0] is False

    def test_delete(self, service, guild):
        service.create_category(guild, "Billing")

        assert service.delete_category(guild, "billing") == (True, "Deleted category **Billing**.")
        assert service.delete_category(guild, "Billing")[0] is False

    def test_config_category_cannot_be_deleted(self, service, guild):
        success, message = service.delete_category(guild, "Staff App")

        assert success is False
        assert "config file" in message

    @pytest.mark.asyncio
    async def test_database_category_ticket(self, service, fake_guild, guild, owner, staff):
        service.create_category(guild, "Billing", fake_guild.roles[STAFF_ROLE_ID])

        channel = await _open(service, guild, owner, "Billing")
        success, _ = await service.claim_ticket(channel, staff)

        assert success is True
        assert service.delete_category(guild, "Billing")[0] is False


# =============================================================================
# Panels
# =============================================================================

class TestPanels:

    @pytest.mark.asyncio
    async def test_deploy_purges_and_records(self, service, fake_guild, guild):
        channel = fake_guild.add_channel("tickets", PANEL_CHANNEL_ID)
        old_panel = make_message()
        user_message = make_message(author_id=OWNER_ID)
        channel.sent.extend([old_panel, user_message])

        deployed, failed = await service.deploy_panels(guild)

        assert (deployed, failed) == (1, 0)
        old_panel.delete.assert_awaited_once()
        user_message.delete.assert_not_called()

        panel_message = channel.sent[-1]
        select = panel_message.view.children[0].item
        assert select.custom_id == "ticket_dropdown:support"
        record = service.db.get_panels(GUILD_ID)[0]
        assert record["message_id"] == panel_message.id
        assert record["categories"] == ["Support", "Staff App"]

    @pytest.mark.asyncio
    async def test_redeploy_keeps_single_record(self, service, fake_guild, guild):
        fake_guild.add_channel("tickets", PANEL_CHANNEL_ID)

        await service.deploy_panels(guild)
        await service.deploy_panels(guild)

        assert len(service.db.get_panels(GUILD_ID)) == 1

    @pytest.mark.asyncio
    async def test_missing_panel_channel_counts_as_failed(self, service, guild):
        assert await service.deploy_panels(guild) == (0, 1)

    @pytest.mark.asyncio
    async def test_refresh_edits_in_place(self, service, fake_guild, guild, panel_document_raw, tmp_path):
        channel = fake_guild.add_channel("tickets", PANEL_CHANNEL_ID)
        await service.deploy_panels(guild)
        panel_message = channel.sent[-1]

        panel_document_raw["panels"][0]["categories"].append({"name": "Billing"})
        path = tmp_path / "reloaded.json"
        path.write_text(json.dumps(panel_document_raw), encoding="utf-8")
        assert service.reload_panels(path)[0] is True

        refreshed, failed = await service.refresh_panels(guild)

        assert (refreshed, failed) == (1, 0)
        view = panel_message.edit.call_args.kwargs["view"]
        assert [o.value for o in view.children[0].item.options] == ["Support", "Staff App", "Billing"]
        assert service.db.get_panels(GUILD_ID)[0]["categories"][-1] == "Billing"
        assert len(channel.sent) == 1

    @pytest.mark.asyncio
    async def test_refresh_failures_counted(self, service, fake_guild, guild):
        channel = fake_guild.add_channel("tickets", PANEL_CHANNEL_ID)
        await service.deploy_panels(guild)
        channel.sent[-1].edit.side_effect = http_error()

        assert await service.refresh_panels(guild) == (0, 1)

    @pytest.mark.asyncio
    async def test_refresh_missing_message(self, service, fake_guild, guild):
        channel = fake_guild.add_channel("tickets", PANEL_CHANNEL_ID)
        await service.deploy_panels(guild)
        channel.sent.clear()

        assert await service.refresh_panels(guild) == (0, 1)

    @pytest.mark.asyncio
    async def test_refresh_panel_removed_from_config(self, service, fake_guild, guild):
        fake_guild.add_channel("tickets", PANEL_CHANNEL_ID)
        await service.deploy_panels(guild)
        service.document = PanelsDocument()

        assert await service.refresh_panels(guild) == (0, 1)

    @pytest.mark.asyncio
    async def test_legacy_panel_needs_categories(self, service, fake_guild, guild):
        channel = fake_guild.add_channel("help")

        success, message = await service.create_legacy_panel(channel, "Help", "")
        assert success is False
        assert "/ticket create" in message

        service.create_category(guild, "Billing")
        success, _ = await service.create_legacy_panel(channel, "Help", "")
        assert success is True
        record = service.db.get_panels(GUILD_ID)[0]
        assert record["config_name"] is None
        assert record["categories"] == ["Billing"]

    @pytest.mark.asyncio
    async def test_setup_guild(self, service, fake_guild, guild):
        fake_guild.add_channel("tickets", PANEL_CHANNEL_ID)

        success, message = await service.setup_guild(guild)

        assert success is True
        assert "Panels deployed: 1" in message
        assert {c.name for c in fake_guild.categories} == {"Open Tickets", "Closed Tickets"}


# =============================================================================
# Reload
# =============================================================================

class TestReload:

    def test_invalid_document_keeps_previous(self, service, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{", encoding="utf-8")

        success, message = service.reload_panels(path)

        assert success is False
        assert message.startswith("Config not reloaded")
        assert service.registry.resolve_category(GUILD_ID, "Staff App") is not None

    def test_reload_replaces_categories(self, service, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "panels": [{
                "name": "other",
                "channel_id": 1,
                "title": "Other",
                "categories": [{"name": "Appeals"}],
            }]
        }), encoding="utf-8")

        success, _ = service.reload_panels(path)

        assert success is True
        assert service.registry.resolve_category(GUILD_ID, "Appeals") is not None
        assert service.registry.resolve_category(GUILD_ID, "Staff App") is None
