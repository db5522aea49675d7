"""
TicketBot - Ticket Command Cog
==============================

The /ticket command group.

Features:
    - /ticket panel <channel> <title> <description>: Panel from database categories
    - /ticket create <title> [role]: Create a category or add a role to one
    - /ticket list: Open tickets in this server
    - /ticket alerts: Toggle new-ticket DMs (staff)
    - /ticket categories [delete]: List categories, or delete a database one
    - /ticket close: Close the current ticket (owner or staff)
    - /ticket menu [channel]: Admin menu for a ticket
    - /ticket deploy: Redeploy configured panels
    - /ticket cleanup: Delete this bot's messages in the channel
    - /ticket setup: Create Open/Closed categories and deploy panels
    - /ticket refresh [reload]: Update panel dropdowns in place

Administrator commands also accept configured bypass users; each bypassed
check is audited.
"""

from typing import TYPE_CHECKING, Optional

import discord
from discord import app_commands
from discord.ext import commands

from ticketbot.core.logger import logger
from ticketbot.services.tickets import TicketService, build_ticket_menu_view
from ticketbot.services.tickets.embeds import (
    build_categories_embed,
    build_ticket_list_embed,
    build_ticket_menu_embed,
)
from ticketbot.utils.retry import safe_send

if TYPE_CHECKING:
    from ticketbot.bot import TicketBot


# =============================================================================
# Ticket Cog
# =============================================================================

class TicketCog(commands.Cog):
    """Cog for ticket administration commands."""

    def __init__(self, bot: "TicketBot") -> None:
        self.bot = bot

        logger.tree("Ticket Cog Loaded", [
            ("Commands", "/ticket panel, create, list, alerts, categories, close, menu, deploy, cleanup, setup, refresh"),
        ], emoji="🎫")

    ticket_group = app_commands.Group(
        name="ticket",
        description="Support ticket system",
        guild_only=True,
    )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _service(self, interaction: discord.Interaction) -> Optional[TicketService]:
        service = getattr(self.bot, "ticket_service", None)
        if service is None:
            await interaction.followup.send("❌ Ticket system is not ready yet.", ephemeral=True)
        return service

    async def _admin_service(
        self,
        interaction: discord.Interaction,
        action: str,
    ) -> Optional[TicketService]:
        """Defer, then return the service if the user may run an admin command."""
        await interaction.response.defer(ephemeral=True)
        service = await self._service(interaction)
        if service is None:
            return None

        allowed, message = await service.authorize_admin(interaction.user, action, interaction.channel_id)
        if not allowed:
            logger.tree("Ticket Command Denied", [
                ("User", f"{interaction.user.name} ({interaction.user.id})"),
                ("Action", action),
            ], emoji="🚫")
            await interaction.followup.send(f"❌ {message}", ephemeral=True)
            return None
        return service

    @staticmethod
    async def _reply(interaction: discord.Interaction, success: bool, message: str) -> None:
        await interaction.followup.send(f"{'✅' if success else '❌'} {message}", ephemeral=True)

    # =========================================================================
    # Panels
    # =========================================================================

    @ticket_group.command(name="panel", description="Post a ticket panel built from database categories")
    @app_commands.describe(
        channel="Channel to post the panel in",
        title="Panel title",
        description="Panel description",
    )
    async def panel(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel,
        title: app_commands.Range[str, 1, 256],
        description: app_commands.Range[str, 1, 4000],
    ) -> None:
        service = await self._admin_service(interaction, "post a ticket panel")
        if service is None:
            return
        success, message = await service.create_legacy_panel(channel, title, description)
        await self._reply(interaction, success, message)

    @ticket_group.command(name="deploy", description="Redeploy every configured ticket panel")
    async def deploy(self, interaction: discord.Interaction) -> None:
        service = await self._admin_service(interaction, "deploy ticket panels")
        if service is None:
            return
        deployed, failed = await service.deploy_panels(interaction.guild)
        await self._reply(interaction, failed == 0, f"Panels deployed: {deployed}, failed: {failed}.")

    @ticket_group.command(name="refresh", description="Update existing panel dropdowns in place")
    @app_commands.describe(reload="Re-read the config file before refreshing")
    async def refresh(self, interaction: discord.Interaction, reload: bool = False) -> None:
        service = await self._admin_service(interaction, "refresh ticket panels")
        if service is None:
            return

        if reload:
            reloaded, message = service.reload_panels()
            if not reloaded:
                await self._reply(interaction, False, message)
                return

        refreshed, failed = await service.refresh_panels(interaction.guild)
        await self._reply(interaction, failed == 0, f"Panels refreshed: {refreshed}, failed: {failed}.")

    @ticket_group.command(name="cleanup", description="Delete this bot's recent messages in this channel")
    async def cleanup(self, interaction: discord.Interaction) -> None:
        service = await self._admin_service(interaction, "clean up bot messages")
        if service is None:
            return
        if not isinstance(interaction.channel, discord.TextChannel):
            await self._reply(interaction, False, "Cleanup only works in text channels.")
            return

        deleted, failed = await service.purge_bot_messages(interaction.channel)
        await self._reply(interaction, True, f"Deleted {deleted} messages ({failed} failed).")

    @ticket_group.command(name="setup", description="Create ticket channel categories and deploy panels")
    async def setup(self, interaction: discord.Interaction) -> None:
        service = await self._admin_service(interaction, "set up the ticket system")
        if service is None:
            return
        success, message = await service.setup_guild(interaction.guild)
        await self._reply(interaction, success, message)

    # =========================================================================
    # Categories
    # =========================================================================

    @ticket_group.command(name="create", description="Create a ticket category or add a role to one")
    @app_commands.describe(
        title="Category name",
        role="Role that can claim and approve tickets in this category",
    )
    async def create(
        self,
        interaction: discord.Interaction,
        title: app_commands.Range[str, 1, 100],
        role: Optional[discord.Role] = None,
    ) -> None:
        service = await self._admin_service(interaction, "create a ticket category")
        if service is None:
            return
        success, message = service.create_category(interaction.guild, title, role)
        await self._reply(interaction, success, message)

    @ticket_group.command(name="categories", description="List ticket categories")
    @app_commands.describe(delete="Name of a database category to delete")
    async def categories(self, interaction: discord.Interaction, delete: Optional[str] = None) -> None:
        service = await self._admin_service(interaction, "manage ticket categories")
        if service is None:
            return

        if delete:
            success, message = service.delete_category(interaction.guild, delete)
            await self._reply(interaction, success, message)
            return

        embed = build_categories_embed(
            service.registry.list_categories(interaction.guild.id),
            service.config.footer_text,
        )
        await interaction.followup.send(embed=embed, ephemeral=True)

    # =========================================================================
    # Tickets
    # =========================================================================

    @ticket_group.command(name="list", description="List open tickets")
    async def list_tickets(self, interaction: discord.Interaction) -> None:
        service = await self._admin_service(interaction, "list tickets")
        if service is None:
            return
        tickets = await service.list_open_tickets(interaction.guild)
        await interaction.followup.send(
            embed=build_ticket_list_embed(tickets, service.config.footer_text),
            ephemeral=True,
        )

    @ticket_group.command(name="alerts", description="Toggle DMs when a new ticket is opened")
    async def alerts(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        service = await self._service(interaction)
        if service is None:
            return
        success, message = await service.toggle_alerts(interaction.guild, interaction.user)
        if success:
            await interaction.followup.send(message, ephemeral=True)
        else:
            await self._reply(interaction, False, message)

    @ticket_group.command(name="close", description="Close this ticket")
    async def close(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        service = await self._service(interaction)
        if service is None:
            return
        success, message = await service.request_close(interaction.channel, interaction.user)
        await self._reply(interaction, success, message)

    @ticket_group.command(name="menu", description="Show the admin menu for a ticket")
    @app_commands.describe(channel="Ticket channel (defaults to this channel)")
    async def menu(
        self,
        interaction: discord.Interaction,
        channel: Optional[discord.TextChannel] = None,
    ) -> None:
        service = await self._admin_service(interaction, "open the ticket menu")
        if service is None:
            return

        target_id = channel.id if channel else interaction.channel_id
        ticket = service.db.get_ticket_by_channel(target_id)
        if ticket is None:
            await self._reply(interaction, False, "That channel is not an active ticket.")
            return

        category = service.registry.resolve_category(interaction.guild.id, ticket["category"])
        embed = build_ticket_menu_embed(ticket, category)
        view = build_ticket_menu_view(target_id, bool(category and category.requires_approval))

        message = await safe_send(interaction.channel, embed=embed, view=view)
        if message is None:
            await self._reply(interaction, False, "Could not post the ticket menu here.")
            return
        await self._reply(interaction, True, "Ticket menu posted.")


# =============================================================================
# Setup
# =============================================================================

async def setup(bot: "TicketBot") -> None:
    """Load the Ticket cog."""
    await bot.add_cog(TicketCog(bot))
