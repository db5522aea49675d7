"""
Ticket Button Helpers
=====================

Shared plumbing for ticket buttons, the panel dropdown and the form modal.
"""

import functools
from typing import TYPE_CHECKING, Optional

import discord

from ticketbot.utils.async_utils import safe_async_operation
from ticketbot.utils.error_handler import ErrorHandler

if TYPE_CHECKING:
    from ticketbot.services.tickets.service import TicketService


async def get_ticket_service(interaction: discord.Interaction) -> Optional["TicketService"]:
    """The bot's ticket service; replies to the user when it is not ready."""
    service = getattr(interaction.client, "ticket_service", None)
    if service is None:
        await send_result(interaction, False, "Ticket system is not available.")
    return service


async def send_result(interaction: discord.Interaction, success: bool, message: str) -> None:
    content = f"{'✅' if success else '❌'} {message}"
    if interaction.response.is_done():
        await interaction.followup.send(content, ephemeral=True)
    else:
        await interaction.response.send_message(content, ephemeral=True)


def resolve_channel(interaction: discord.Interaction, channel_id: int) -> Optional[discord.abc.GuildChannel]:
    if interaction.channel is not None and interaction.channel.id == channel_id:
        return interaction.channel
    if interaction.guild is None:
        return None
    return interaction.guild.get_channel(channel_id)


async def report_interaction_error(
    interaction: discord.Interaction,
    error: BaseException,
    location: str,
) -> None:
    """Log, audit and apologise; never raises."""
    await ErrorHandler.handle_interaction_error(interaction, error, location)
    service = getattr(interaction.client, "ticket_service", None)
    if service is not None:
        await safe_async_operation("Audit Bot Error", service.audit.log_bot_error(error, location))


def guarded(location: str):
    """
    Wrap an interaction callback so any exception is reported instead of
    propagating into discord.py.

    Usage:
        @guarded("Claim Button")
        async def callback(self, interaction): ...
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, interaction: discord.Interaction):
            try:
                return await func(self, interaction)
            except Exception as e:
                await report_interaction_error(interaction, e, location)
                return None
        return wrapper
    return decorator


__all__ = [
    "get_ticket_service",
    "send_result",
    "resolve_channel",
    "report_interaction_error",
    "guarded",
]
