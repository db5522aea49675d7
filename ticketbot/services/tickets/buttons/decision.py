"""
TicketBot - Decision Buttons
============================

Approve / Deny buttons on the admin ticket menu.

Both strip the menu's buttons after a successful decision so the same
message cannot be used twice.
"""

import re

import discord

from ticketbot.core.logger import logger
from ticketbot.services.tickets.constants import (
    APPROVE_BUTTON_PREFIX,
    APPROVE_EMOJI,
    DENY_BUTTON_PREFIX,
    DENY_EMOJI,
)
from ticketbot.utils.retry import safe_edit

from .helpers import get_ticket_service, guarded, send_result


class ApproveButton(discord.ui.DynamicItem[discord.ui.Button], template=r"approve_ticket_(?P<channel_id>\d+)"):
    """Grant the category's roles to the ticket owner."""

    def __init__(self, channel_id: int) -> None:
        self.channel_id = channel_id
        super().__init__(
            discord.ui.Button(
                label="Approve",
                style=discord.ButtonStyle.success,
                custom_id=f"{APPROVE_BUTTON_PREFIX}{channel_id}",
                emoji=APPROVE_EMOJI,
            )
        )

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> "ApproveButton":
        return cls(int(match.group("channel_id")))

    @guarded("Approve Button")
    async def callback(self, interaction: discord.Interaction) -> None:
        logger.tree("Approve Button Clicked", [
            ("Clicked By", f"{interaction.user.name} ({interaction.user.id})"),
            ("Channel ID", str(self.channel_id)),
        ], emoji="✅")

        service = await get_ticket_service(interaction)
        if service is None:
            return
        if interaction.guild is None:
            await send_result(interaction, False, "This can only be used in a server.")
            return

        await interaction.response.defer(ephemeral=True)
        success, message, _ = await service.approve_ticket(interaction.guild, self.channel_id, interaction.user)
        if success and interaction.message is not None:
            await safe_edit(interaction.message, view=None)
        await send_result(interaction, success, message)


class DenyButton(discord.ui.DynamicItem[discord.ui.Button], template=r"deny_ticket_(?P<channel_id>\d+)"):
    """Deny the ticket: DM the owner and close the channel."""

    def __init__(self, channel_id: int) -> None:
        self.channel_id = channel_id
        super().__init__(
            discord.ui.Button(
                label="Deny",
                style=discord.ButtonStyle.danger,
                custom_id=f"{DENY_BUTTON_PREFIX}{channel_id}",
                emoji=DENY_EMOJI,
            )
        )

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> "DenyButton":
        return cls(int(match.group("channel_id")))

    @guarded("Deny Button")
    async def callback(self, interaction: discord.Interaction) -> None:
        logger.tree("Deny Button Clicked", [
            ("Clicked By", f"{interaction.user.name} ({interaction.user.id})"),
            ("Channel ID", str(self.channel_id)),
        ], emoji="⛔")

        service = await get_ticket_service(interaction)
        if service is None:
            return
        if interaction.guild is None:
            await send_result(interaction, False, "This can only be used in a server.")
            return

        await interaction.response.defer(ephemeral=True)
        success, message = await service.deny_ticket(interaction.guild, self.channel_id, interaction.user)
        if success and interaction.message is not None:
            await safe_edit(interaction.message, view=None)
        await send_result(interaction, success, message)


__all__ = ["ApproveButton", "DenyButton"]
