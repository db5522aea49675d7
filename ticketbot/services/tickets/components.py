"""
TicketBot - Button Sets
=======================

Declarative button groups for ticket messages.

DESIGN:
    A ButtonSet is an ordered mapping of group name -> buttons. Each group
    renders on its own action row(s), so the summary message always has
    its base controls on top and role-giver buttons underneath. Changing
    one button (claim, "(Used)") rebuilds the whole set from the message
    instead of editing rows by index, so no group is dropped.

    Buttons are plain custom-id buttons; the persistent DynamicItems in
    services/tickets/buttons/ handle the clicks.
"""

from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

import discord

from ticketbot.core.constants import ACTION_ROWS_LIMIT, BUTTONS_PER_ROW
from ticketbot.services.tickets.constants import (
    CLAIM_BUTTON_PREFIX,
    CLAIM_EMOJI,
    CLOSE_BUTTON_PREFIX,
    CLOSE_EMOJI,
    DELETE_BUTTON_PREFIX,
    DELETE_EMOJI,
    GROUP_BASE,
    GROUP_ROLE_GIVERS,
    ROLE_GIVER_PREFIX,
)
from ticketbot.services.tickets.registry import TicketCategory


# =============================================================================
# Style Table
# =============================================================================

BUTTON_STYLES: Dict[str, discord.ButtonStyle] = {
    "green": discord.ButtonStyle.success,
    "red": discord.ButtonStyle.danger,
    "blue": discord.ButtonStyle.primary,
    "blurple": discord.ButtonStyle.primary,
    "grey": discord.ButtonStyle.secondary,
    "gray": discord.ButtonStyle.secondary,
}


def button_style(name: Optional[str]) -> discord.ButtonStyle:
    """Map a config color name to a button style; unknown names are primary."""
    if not name:
        return discord.ButtonStyle.primary
    return BUTTON_STYLES.get(name.strip().lower(), discord.ButtonStyle.primary)


# =============================================================================
# Button Specs
# =============================================================================

@dataclass(frozen=True)
class ButtonSpec:
    custom_id: str
    label: str
    style: discord.ButtonStyle = discord.ButtonStyle.primary
    emoji: Optional[str] = None
    disabled: bool = False

    def to_button(self, row: int) -> discord.ui.Button:
        return discord.ui.Button(
            custom_id=self.custom_id,
            label=self.label,
            style=self.style,
            emoji=self.emoji,
            disabled=self.disabled,
            row=row,
        )


def group_for_custom_id(custom_id: Optional[str]) -> str:
    if custom_id and custom_id.startswith(ROLE_GIVER_PREFIX):
        return GROUP_ROLE_GIVERS
    return GROUP_BASE


class ButtonSet:
    """Ordered, named groups of buttons."""

    def __init__(self) -> None:
        self._groups: "OrderedDict[str, List[ButtonSpec]]" = OrderedDict()

    def set_group(self, name: str, buttons: Iterable[ButtonSpec]) -> "ButtonSet":
        self._groups[name] = list(buttons)
        return self

    def group(self, name: str) -> List[ButtonSpec]:
        return list(self._groups.get(name, []))

    @property
    def group_names(self) -> List[str]:
        return list(self._groups.keys())

    def buttons(self) -> List[ButtonSpec]:
        return [spec for specs in self._groups.values() for spec in specs]

    def find(self, custom_id: str) -> Optional[ButtonSpec]:
        for spec in self.buttons():
            if spec.custom_id == custom_id:
                return spec
        return None

    def disable(self, custom_id: str, label: Optional[str] = None) -> bool:
        """
        Disable one button, optionally relabelling it. Every other button
        keeps its state.

        Returns:
            False if no button has that custom id.
        """
        for specs in self._groups.values():
            for index, spec in enumerate(specs):
                if spec.custom_id == custom_id:
                    specs[index] = replace(spec, disabled=True, label=label or spec.label)
                    return True
        return False

    def to_view(self) -> discord.ui.View:
        """
        Render each non-empty group starting on a fresh row.

        A group with more than five buttons continues on the next row.
        Buttons past the fifth row are dropped.
        """
        view = discord.ui.View(timeout=None)
        row = 0
        for specs in self._groups.values():
            if not specs:
                continue
            for start in range(0, len(specs), BUTTONS_PER_ROW):
                if row >= ACTION_ROWS_LIMIT:
                    return view
                for spec in specs[start:start + BUTTONS_PER_ROW]:
                    view.add_item(spec.to_button(row))
                row += 1
        return view

    @classmethod
    def from_message(cls, message: discord.Message) -> "ButtonSet":
        """Rebuild a set from a sent message; link buttons are skipped."""
        button_set = cls()
        for action_row in getattr(message, "components", None) or []:
            for component in getattr(action_row, "children", None) or []:
                custom_id = getattr(component, "custom_id", None)
                if not custom_id:
                    continue
                emoji = getattr(component, "emoji", None)
                spec = ButtonSpec(
                    custom_id=custom_id,
                    label=getattr(component, "label", None) or "",
                    style=getattr(component, "style", discord.ButtonStyle.primary),
                    emoji=str(emoji) if emoji else None,
                    disabled=bool(getattr(component, "disabled", False)),
                )
                name = group_for_custom_id(custom_id)
                button_set._groups.setdefault(name, []).append(spec)
        return button_set


# =============================================================================
# Summary Buttons
# =============================================================================

def role_giver_buttons(category: Optional[TicketCategory]) -> List[ButtonSpec]:
    if not category:
        return []
    return [
        ButtonSpec(
            custom_id=f"{ROLE_GIVER_PREFIX}{giver.id}",
            label=giver.name,
            style=button_style(giver.color),
            emoji=giver.emoji,
        )
        for giver in category.role_givers
    ]


def summary_buttons(
    channel_id: int,
    category: Optional[TicketCategory],
    claimed_by: Optional[discord.abc.User] = None,
) -> ButtonSet:
    """Buttons for a ticket's summary message, open or claimed."""
    if claimed_by is None:
        claim = ButtonSpec(
            custom_id=f"{CLAIM_BUTTON_PREFIX}{channel_id}",
            label="Claim",
            style=discord.ButtonStyle.success,
            emoji=CLAIM_EMOJI,
        )
    else:
        claim = ButtonSpec(
            custom_id=f"{CLAIM_BUTTON_PREFIX}{channel_id}",
            label=f"Claimed by {claimed_by.name}"[:80],
            style=discord.ButtonStyle.secondary,
            emoji=CLAIM_EMOJI,
            disabled=True,
        )

    base = [
        claim,
        ButtonSpec(
            custom_id=f"{CLOSE_BUTTON_PREFIX}{channel_id}",
            label="Close",
            style=discord.ButtonStyle.danger,
            emoji=CLOSE_EMOJI,
        ),
        ButtonSpec(
            custom_id=f"{DELETE_BUTTON_PREFIX}{channel_id}",
            label="Delete",
            style=discord.ButtonStyle.secondary,
            emoji=DELETE_EMOJI,
        ),
    ]

    return (
        ButtonSet()
        .set_group(GROUP_BASE, base)
        .set_group(GROUP_ROLE_GIVERS, role_giver_buttons(category))
    )


__all__ = [
    "BUTTON_STYLES",
    "button_style",
    "ButtonSpec",
    "ButtonSet",
    "group_for_custom_id",
    "role_giver_buttons",
    "summary_buttons",
]
