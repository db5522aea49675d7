"""
TicketBot - Claim Button
========================

Button on the summary message to claim a ticket.
"""

import re

import discord

from ticketbot.core.logger import logger
from ticketbot.services.tickets.constants import CLAIM_BUTTON_PREFIX, CLAIM_EMOJI

from .helpers import get_ticket_service, guarded, resolve_channel, send_result


class ClaimButton(discord.ui.DynamicItem[discord.ui.Button], template=r"claim_ticket_(?P<channel_id>\d+)"):
    """Claim a ticket. Staff of the category or administrators only."""

    def __init__(self, channel_id: int) -> None:
        self.channel_id = channel_id
        super().__init__(
            discord.ui.Button(
                label="Claim",
                style=discord.ButtonStyle.success,
                custom_id=f"{CLAIM_BUTTON_PREFIX}{channel_id}",
                emoji=CLAIM_EMOJI,
            )
        )

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> "ClaimButton":
        return cls(int(match.group("channel_id")))

    @guarded("Claim Button")
    async def callback(self, interaction: discord.Interaction) -> None:
        logger.tree("Claim Button Clicked", [
            ("Clicked By", f"{interaction.user.name} ({interaction.user.id})"),
            ("Channel ID", str(self.channel_id)),
        ], emoji="✋")

        service = await get_ticket_service(interaction)
        if service is None:
            return

        channel = resolve_channel(interaction, self.channel_id)
        if channel is None:
            await send_result(interaction, False, "Ticket channel not found.")
            return

        await interaction.response.defer(ephemeral=True)
        success, message = await service.claim_ticket(channel, interaction.user)
        await send_result(interaction, success, message)


__all__ = ["ClaimButton"]
