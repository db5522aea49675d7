"""
Ticket System Buttons
=====================

Dynamic button items for ticket messages.
All buttons use custom_id templates so they keep working across restarts.
"""

from discord.ext import commands

from ticketbot.core.logger import logger

from .helpers import get_ticket_service, guarded, report_interaction_error, send_result
from .claim import ClaimButton
from .close import CloseButton, DeleteButton, MenuCloseButton
from .decision import ApproveButton, DenyButton
from .role_giver import RoleGiverButton


def setup_ticket_buttons(bot: commands.Bot) -> None:
    """Register all ticket dynamic buttons with the bot."""
    bot.add_dynamic_items(
        ClaimButton,
        CloseButton,
        DeleteButton,
        MenuCloseButton,
        ApproveButton,
        DenyButton,
        RoleGiverButton,
    )
    logger.tree("Ticket Buttons Registered", [
        ("Buttons", "Claim, Close, Delete, MenuClose, Approve, Deny, RoleGiver"),
    ], emoji="🎫")


__all__ = [
    "get_ticket_service",
    "guarded",
    "report_interaction_error",
    "send_result",
    "ClaimButton",
    "CloseButton",
    "DeleteButton",
    "MenuCloseButton",
    "ApproveButton",
    "DenyButton",
    "RoleGiverButton",
    "setup_ticket_buttons",
]
