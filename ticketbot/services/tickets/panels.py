"""
Ticket Service Panels
=====================

Deploying and refreshing the category dropdown messages.

DESIGN:
    deploy  = purge the bot's old messages in the panel channel, send a new
              panel, persist (guild, channel, message, config name).
    refresh = edit each recorded panel in place so its dropdown lists the
              current categories. Nothing is purged or re-sent.

    Panel records are keyed by config name, so redeploying a configured
    panel replaces its previous record instead of adding another one.
"""

from typing import TYPE_CHECKING, Optional, Tuple

import discord

from ticketbot.core.constants import PANEL_PURGE_SCAN_LIMIT
from ticketbot.core.database import PanelRecord
from ticketbot.core.logger import logger
from ticketbot.core.panels import PanelConfig
from ticketbot.utils.discord_rate_limit import delete_messages_throttled, log_http_error
from ticketbot.utils.retry import safe_fetch_channel, safe_fetch_message, safe_send

from .embeds import build_panel_embed
from .registry import TicketCategory
from .views import build_panel_view

if TYPE_CHECKING:
    from .service import TicketService


class PanelsMixin:
    """Mixin for panel deployment."""

    # =========================================================================
    # Deploy
    # =========================================================================

    async def deploy_panels(self: "TicketService", guild: discord.Guild) -> Tuple[int, int]:
        """
        Deploy every configured panel whose channel belongs to this guild.

        Returns:
            (deployed, failed) counts.
        """
        deployed = 0
        failed = 0
        for panel in self.document.panels:
            channel = guild.get_channel(panel.channel_id)
            if channel is None:
                logger.warning("Panel Channel Not In Guild", [
                    ("Panel", panel.name),
                    ("Channel ID", str(panel.channel_id)),
                    ("Guild", f"{guild.name} ({guild.id})"),
                ])
                failed += 1
                continue
            if await self.deploy_panel(guild, panel):
                deployed += 1
            else:
                failed += 1

        logger.tree("Panels Deployed", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Deployed", str(deployed)),
            ("Failed", str(failed)),
        ], emoji="📋")
        return deployed, failed

    async def deploy_panel(self: "TicketService", guild: discord.Guild, panel: PanelConfig) -> bool:
        channel = guild.get_channel(panel.channel_id)
        if not isinstance(channel, discord.TextChannel):
            logger.warning("Panel Channel Unavailable", [
                ("Panel", panel.name),
                ("Channel ID", str(panel.channel_id)),
            ])
            return False

        await self.purge_bot_messages(channel)

        categories = self.registry.panel_categories(panel)
        message = await safe_send(
            channel,
            embed=build_panel_embed(panel.title, panel.description, self.config.footer_text),
            view=build_panel_view(categories, panel.name, panel.placeholder),
        )
        if message is None:
            return False

        self.db.save_panel(
            guild.id,
            channel.id,
            message.id,
            panel.title,
            panel.description,
            [category.name for category in categories],
            config_name=panel.name,
        )
        return True

    async def create_legacy_panel(
        self: "TicketService",
        channel: discord.TextChannel,
        title: str,
        description: str,
    ) -> Tuple[bool, str]:
        """Post a panel built from the guild's database categories."""
        categories = [TicketCategory.from_record(r) for r in self.db.get_categories(channel.guild.id)]
        if not categories:
            return False, "No ticket categories exist. Create one with `/ticket create` first."

        message = await safe_send(
            channel,
            embed=build_panel_embed(title, description, self.config.footer_text),
            view=build_panel_view(categories),
        )
        if message is None:
            return False, f"Could not post the panel in {channel.mention}."

        self.db.save_panel(
            channel.guild.id,
            channel.id,
            message.id,
            title,
            description,
            [category.name for category in categories],
        )
        return True, f"Panel posted in {channel.mention} with {len(categories)} categories."

    # =========================================================================
    # Refresh
    # =========================================================================

    async def refresh_panels(self: "TicketService", guild: discord.Guild) -> Tuple[int, int]:
        """
        Edit every recorded panel in the guild in place.

        Returns:
            (refreshed, failed) counts.
        """
        refreshed = 0
        failed = 0
        for record in self.db.get_panels(guild.id):
            if await self.refresh_panel(guild, record):
                refreshed += 1
            else:
                failed += 1

        logger.tree("Panels Refreshed", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Refreshed", str(refreshed)),
            ("Failed", str(failed)),
        ], emoji="🔄")
        return refreshed, failed

    async def refresh_panel(self: "TicketService", guild: discord.Guild, record: PanelRecord) -> bool:
        config_name = record.get("config_name")
        embed: Optional[discord.Embed] = None

        if config_name:
            panel = self.document.find_panel(config_name)
            if panel is None:
                logger.warning("Panel No Longer Configured", [
                    ("Panel", config_name),
                    ("Message ID", str(record["message_id"])),
                ])
                return False
            categories = self.registry.panel_categories(panel)
            view = build_panel_view(categories, panel.name, panel.placeholder)
            embed = build_panel_embed(panel.title, panel.description, self.config.footer_text)
        else:
            categories = [TicketCategory.from_record(r) for r in self.db.get_categories(guild.id)]
            view = build_panel_view(categories)

        if not categories:
            logger.warning("Panel Has No Categories", [("Message ID", str(record["message_id"]))])
            return False

        channel = await safe_fetch_channel(self.bot, record["channel_id"])
        message = await safe_fetch_message(channel, record["message_id"]) if channel else None
        if message is None:
            logger.warning("Panel Message Missing", [
                ("Channel ID", str(record["channel_id"])),
                ("Message ID", str(record["message_id"])),
            ])
            return False

        try:
            if embed is not None:
                await message.edit(embed=embed, view=view)
            else:
                await message.edit(view=view)
        except discord.HTTPException as e:
            log_http_error(e, "Refresh Panel", [
                ("Message ID", str(record["message_id"])),
            ])
            return False

        self.db.update_panel_categories(record["id"], [category.name for category in categories])
        return True

    # =========================================================================
    # Cleanup / Setup
    # =========================================================================

    async def purge_bot_messages(self: "TicketService", channel: discord.TextChannel) -> Tuple[int, int]:
        """
        Delete this bot's recent messages in a channel, one at a time.

        Returns:
            (deleted, failed) counts.
        """
        bot_id = self.bot.user.id if self.bot.user else None
        try:
            messages = [
                message async for message in channel.history(limit=PANEL_PURGE_SCAN_LIMIT)
                if message.author.id == bot_id
            ]
        except discord.HTTPException as e:
            log_http_error(e, "Scan Panel Channel", [("Channel", f"#{channel.name} ({channel.id})")])
            return 0, 0

        if not messages:
            return 0, 0

        deleted, failed = await delete_messages_throttled(messages, self.config.cleanup_delete_delay)
        logger.tree("Bot Messages Purged", [
            ("Channel", f"#{channel.name} ({channel.id})"),
            ("Deleted", str(deleted)),
            ("Failed", str(failed)),
        ], emoji="🧹")
        return deleted, failed

    async def setup_guild(self: "TicketService", guild: discord.Guild) -> Tuple[bool, str]:
        """Create the Open/Closed channel categories and deploy configured panels."""
        open_category = await self._ensure_parent_category(guild, self.config.open_category_name)
        closed_category = await self._ensure_parent_category(guild, self.config.closed_category_name)
        if open_category is None or closed_category is None:
            return False, "Could not create the ticket channel categories. Check my Manage Channels permission."

        deployed, failed = await self.deploy_panels(guild)
        return True, (
            f"Ticket categories ready: **{open_category.name}**, **{closed_category.name}**. "
            f"Panels deployed: {deployed}, failed: {failed}."
        )


__all__ = ["PanelsMixin"]
