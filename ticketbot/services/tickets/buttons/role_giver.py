"""
TicketBot - Role Giver Button
=============================

Configured buttons that grant one role to the ticket owner.

The button's label, style and emoji come from the panel document when the
summary message is built; after a restart they are read back from the
clicked component so the rebuilt item matches what the user saw.
"""

import re
from typing import Optional

import discord

from ticketbot.services.tickets.constants import ROLE_GIVER_PREFIX

from .helpers import get_ticket_service, guarded, send_result


class RoleGiverButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=r"roleGiver_(?P<giver_id>[A-Za-z0-9_-]+)",
):
    def __init__(
        self,
        giver_id: str,
        label: str = "Role",
        style: discord.ButtonStyle = discord.ButtonStyle.primary,
        emoji: Optional[str] = None,
        disabled: bool = False,
    ) -> None:
        self.giver_id = giver_id
        super().__init__(
            discord.ui.Button(
                label=label,
                style=style,
                custom_id=f"{ROLE_GIVER_PREFIX}{giver_id}",
                emoji=emoji,
                disabled=disabled,
            )
        )

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> "RoleGiverButton":
        return cls(
            match.group("giver_id"),
            label=item.label or "Role",
            style=item.style,
            emoji=str(item.emoji) if item.emoji else None,
            disabled=item.disabled,
        )

    @guarded("Role Giver System")
    async def callback(self, interaction: discord.Interaction) -> None:
        service = await get_ticket_service(interaction)
        if service is None:
            return
        if interaction.guild is None or interaction.channel is None:
            await send_result(interaction, False, "This can only be used in a ticket channel.")
            return

        await interaction.response.defer(ephemeral=True)
        outcome = await service.grant_role_giver(
            interaction.guild,
            interaction.channel,
            interaction.user,
            self.giver_id,
        )
        await send_result(interaction, outcome.success, outcome.message)

        if outcome.granted and outcome.giver and outcome.giver.disable_after_use and interaction.message:
            await service.mark_role_giver_used(interaction.message, self.custom_id, outcome.giver)


__all__ = ["RoleGiverButton"]
