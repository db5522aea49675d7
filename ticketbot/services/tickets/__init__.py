"""
TicketBot - Ticket System
=========================

Dropdown panels, intake forms and private ticket channels.
"""

from typing import TYPE_CHECKING

from .service import TicketService
from .registry import CategoryRegistry, TicketCategory
from .views import (
    TicketPanelSelect,
    TicketFormModal,
    build_panel_view,
    build_ticket_menu_view,
)
from .buttons import setup_ticket_buttons
from .components import ButtonSet, ButtonSpec, summary_buttons
from .errors import (
    CategoryNotFound,
    TicketError,
    TicketLimitReached,
    TicketNotFound,
    TicketPermissionDenied,
)
from .naming import render_channel_name, slugify_channel_name

if TYPE_CHECKING:
    from ticketbot.bot import TicketBot


def setup_ticket_views(bot: "TicketBot") -> None:
    """Register the panel dropdown and every ticket button."""
    bot.add_dynamic_items(TicketPanelSelect)
    setup_ticket_buttons(bot)


__all__ = [
    # Service
    "TicketService",
    "CategoryRegistry",
    "TicketCategory",
    # Setup
    "setup_ticket_views",
    "setup_ticket_buttons",
    # Views
    "TicketPanelSelect",
    "TicketFormModal",
    "build_panel_view",
    "build_ticket_menu_view",
    # Components
    "ButtonSet",
    "ButtonSpec",
    "summary_buttons",
    # Errors
    "TicketError",
    "TicketNotFound",
    "CategoryNotFound",
    "TicketPermissionDenied",
    "TicketLimitReached",
    # Naming
    "render_channel_name",
    "slugify_channel_name",
]
