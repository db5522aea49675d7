"""
Ticket Views
============

Panel dropdown, intake form modal and the admin ticket menu.

The dropdown is a dynamic item: its custom id carries the panel name
("ticket_dropdown:support"), so a selection made on a panel deployed
before a restart still resolves against the right panel.
"""

import re
from typing import Dict, Iterable, List, Optional

import discord

from ticketbot.core.constants import SELECT_OPTIONS_LIMIT
from ticketbot.core.logger import logger

from .buttons import ApproveButton, DenyButton, MenuCloseButton
from .buttons.helpers import get_ticket_service, guarded, report_interaction_error, send_result
from .constants import DEFAULT_FORM_TITLE, FORM_MODAL_PREFIX, PANEL_SELECT_ID
from .registry import TicketCategory


DEFAULT_PLACEHOLDER = "Select a ticket category..."
MODAL_TITLE_LIMIT = 45


# =============================================================================
# Panel Dropdown
# =============================================================================

def build_select_options(categories: Iterable[TicketCategory]) -> List[discord.SelectOption]:
    """One option per category, capped at Discord's select limit."""
    options = []
    for category in categories:
        if len(options) >= SELECT_OPTIONS_LIMIT:
            logger.warning("Panel Options Truncated", [
                ("Limit", str(SELECT_OPTIONS_LIMIT)),
                ("Dropped", category.name),
            ])
            break
        options.append(discord.SelectOption(
            label=category.name[:100],
            value=category.name[:100],
            description=category.description[:100] if category.description else None,
            emoji=category.emoji,
        ))
    return options


class TicketPanelSelect(
    discord.ui.DynamicItem[discord.ui.Select],
    template=r"ticket_dropdown(?::(?P<panel>[A-Za-z0-9_-]+))?",
):
    """Category dropdown on a deployed panel."""

    def __init__(
        self,
        panel_name: Optional[str] = None,
        options: Optional[List[discord.SelectOption]] = None,
        placeholder: Optional[str] = DEFAULT_PLACEHOLDER,
    ) -> None:
        self.panel_name = panel_name
        custom_id = f"{PANEL_SELECT_ID}:{panel_name}" if panel_name else PANEL_SELECT_ID
        super().__init__(
            discord.ui.Select(
                custom_id=custom_id,
                placeholder=placeholder,
                min_values=1,
                max_values=1,
                options=list(options or []),
            )
        )

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Select,
        match: re.Match[str],
    ) -> "TicketPanelSelect":
        return cls(match.group("panel"), options=item.options, placeholder=item.placeholder)

    @guarded("Ticket Panel Select")
    async def callback(self, interaction: discord.Interaction) -> None:
        values = self.item.values or (interaction.data or {}).get("values") or []
        if not values:
            await send_result(interaction, False, "Please pick a category.")
            return

        service = await get_ticket_service(interaction)
        if service is None:
            return
        await service.begin_ticket(interaction, values[0], self.panel_name)


def build_panel_view(
    categories: Iterable[TicketCategory],
    panel_name: Optional[str] = None,
    placeholder: Optional[str] = DEFAULT_PLACEHOLDER,
) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(TicketPanelSelect(panel_name, build_select_options(categories), placeholder))
    return view


# =============================================================================
# Intake Form
# =============================================================================

class TicketFormModal(discord.ui.Modal):
    """
    Form shown before a ticket is created.

    Inputs mirror the category's declared fields, in order. Submitted values
    are stripped; an optional field left empty is stored as "".
    """

    def __init__(self, category: TicketCategory) -> None:
        title = category.form_title or category.name or DEFAULT_FORM_TITLE
        super().__init__(
            title=title[:MODAL_TITLE_LIMIT],
            custom_id=f"{FORM_MODAL_PREFIX}{category.name}"[:100],
        )
        self.category = category
        self.inputs: Dict[str, discord.ui.TextInput] = {}

        for form_field in category.form:
            text_input = discord.ui.TextInput(
                label=form_field.label,
                custom_id=form_field.id,
                style=(
                    discord.TextStyle.paragraph
                    if form_field.kind == "paragraph"
                    else discord.TextStyle.short
                ),
                required=form_field.required,
                placeholder=form_field.placeholder,
                max_length=form_field.max_length,
            )
            self.add_item(text_input)
            self.inputs[form_field.id] = text_input

    def collect(self) -> Dict[str, str]:
        return {field_id: (text_input.value or "").strip() for field_id, text_input in self.inputs.items()}

    async def on_submit(self, interaction: discord.Interaction) -> None:
        service = await get_ticket_service(interaction)
        if service is None:
            return
        await service.submit_form(interaction, self.category, self.collect())

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        await report_interaction_error(interaction, error, f"Ticket Form ({self.category.name})")


# =============================================================================
# Admin Ticket Menu
# =============================================================================

def build_ticket_menu_view(channel_id: int, requires_approval: bool) -> discord.ui.View:
    """Approve / Deny / Close for approval categories, Close alone otherwise."""
    view = discord.ui.View(timeout=None)
    if requires_approval:
        view.add_item(ApproveButton(channel_id))
        view.add_item(DenyButton(channel_id))
    view.add_item(MenuCloseButton(channel_id))
    return view


__all__ = [
    "TicketPanelSelect",
    "TicketFormModal",
    "build_select_options",
    "build_panel_view",
    "build_ticket_menu_view",
]
