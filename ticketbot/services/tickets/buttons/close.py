"""
TicketBot - Close Buttons
=========================

Close and Delete on the summary message, Close on the admin ticket menu.
"""

import re

import discord

from ticketbot.core.logger import logger
from ticketbot.services.tickets.constants import (
    CLOSE_BUTTON_PREFIX,
    CLOSE_EMOJI,
    DELETE_BUTTON_PREFIX,
    DELETE_EMOJI,
    MENU_CLOSE_BUTTON_PREFIX,
)
from ticketbot.utils.retry import safe_edit

from .helpers import get_ticket_service, guarded, resolve_channel, send_result


class CloseButton(discord.ui.DynamicItem[discord.ui.Button], template=r"close_ticket_(?P<channel_id>\d+)"):
    """Close request from the owner or staff."""

    def __init__(self, channel_id: int) -> None:
        self.channel_id = channel_id
        super().__init__(
            discord.ui.Button(
                label="Close",
                style=discord.ButtonStyle.danger,
                custom_id=f"{CLOSE_BUTTON_PREFIX}{channel_id}",
                emoji=CLOSE_EMOJI,
            )
        )

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> "CloseButton":
        return cls(int(match.group("channel_id")))

    @guarded("Close Button")
    async def callback(self, interaction: discord.Interaction) -> None:
        logger.tree("Close Button Clicked", [
            ("Clicked By", f"{interaction.user.name} ({interaction.user.id})"),
            ("Channel ID", str(self.channel_id)),
        ], emoji="🔒")

        service = await get_ticket_service(interaction)
        if service is None:
            return

        channel = resolve_channel(interaction, self.channel_id)
        if channel is None:
            await send_result(interaction, False, "Ticket channel not found.")
            return

        await interaction.response.defer(ephemeral=True)
        success, message = await service.request_close(channel, interaction.user)
        await send_result(interaction, success, message)


class DeleteButton(discord.ui.DynamicItem[discord.ui.Button], template=r"delete_ticket_(?P<channel_id>\d+)"):
    """Administrator delete: removes the channel whatever the close policy."""

    def __init__(self, channel_id: int) -> None:
        self.channel_id = channel_id
        super().__init__(
            discord.ui.Button(
                label="Delete",
                style=discord.ButtonStyle.secondary,
                custom_id=f"{DELETE_BUTTON_PREFIX}{channel_id}",
                emoji=DELETE_EMOJI,
            )
        )

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> "DeleteButton":
        return cls(int(match.group("channel_id")))

    @guarded("Delete Button")
    async def callback(self, interaction: discord.Interaction) -> None:
        service = await get_ticket_service(interaction)
        if service is None:
            return

        channel = resolve_channel(interaction, self.channel_id)
        if channel is None:
            await send_result(interaction, False, "Ticket channel not found.")
            return

        await interaction.response.defer(ephemeral=True)
        success, message = await service.delete_ticket_now(channel, interaction.user)
        await send_result(interaction, success, message)


class MenuCloseButton(discord.ui.DynamicItem[discord.ui.Button], template=r"close_ticket_menu_(?P<channel_id>\d+)"):
    """Close from the /ticket menu message."""

    def __init__(self, channel_id: int) -> None:
        self.channel_id = channel_id
        super().__init__(
            discord.ui.Button(
                label="Close",
                style=discord.ButtonStyle.danger,
                custom_id=f"{MENU_CLOSE_BUTTON_PREFIX}{channel_id}",
                emoji=CLOSE_EMOJI,
            )
        )

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> "MenuCloseButton":
        return cls(int(match.group("channel_id")))

    @guarded("Menu Close Button")
    async def callback(self, interaction: discord.Interaction) -> None:
        service = await get_ticket_service(interaction)
        if service is None:
            return
        if interaction.guild is None:
            await send_result(interaction, False, "This can only be used in a server.")
            return

        await interaction.response.defer(ephemeral=True)
        success, message = await service.request_close_by_id(interaction.guild, self.channel_id, interaction.user)
        if success and interaction.message is not None:
            await safe_edit(interaction.message, view=None)
        await send_result(interaction, success, message)


__all__ = ["CloseButton", "DeleteButton", "MenuCloseButton"]
