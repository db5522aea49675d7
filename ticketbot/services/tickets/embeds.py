"""
TicketBot - Ticket Embeds
=========================

Embed builder functions for the ticket system.
"""

from datetime import datetime
from typing import Iterable, List, Mapping, Optional, Sequence

import discord

from ticketbot.core.config import EmbedColors
from ticketbot.core.constants import EMBED_FIELD_VALUE_LIMIT, EMBED_FIELDS_LIMIT
from ticketbot.core.database import TicketRecord
from ticketbot.core.logger import NY_TZ
from ticketbot.services.tickets.constants import (
    ALERT_EMOJI,
    APPROVE_EMOJI,
    CLAIM_EMOJI,
    CLOSE_EMOJI,
    DENY_EMOJI,
    TICKET_EMOJI,
)
from ticketbot.services.tickets.registry import TicketCategory


def _embed(
    title: str,
    color: int,
    description: Optional[str] = None,
    footer: Optional[str] = None,
) -> discord.Embed:
    embed = discord.Embed(
        title=title,
        description=description,
        color=color,
        timestamp=datetime.now(NY_TZ),
    )
    if footer:
        embed.set_footer(text=footer)
    return embed


def _truncate(value: str, limit: int = EMBED_FIELD_VALUE_LIMIT) -> str:
    if len(value) <= limit:
        return value
    return value[:limit - 3] + "..."


# =============================================================================
# Panel
# =============================================================================

def build_panel_embed(title: str, description: str, footer: Optional[str] = None) -> discord.Embed:
    return _embed(title, EmbedColors.PANEL, description or None, footer)


# =============================================================================
# Summary (welcome) Message
# =============================================================================

def build_welcome_embed(
    owner: discord.abc.User,
    category: TicketCategory,
    form_data: Optional[Mapping[str, str]] = None,
    footer: Optional[str] = None,
) -> discord.Embed:
    """
    The pinned summary message posted when a ticket opens.

    Form answers are listed in the order the form declares its fields.
    """
    lines = [
        f"👤 {owner.mention} (`{owner.name}`)",
        f"{category.emoji or TICKET_EMOJI} {category.name}",
    ]
    if category.requires_approval:
        lines.append("Staff will review this ticket and approve or deny it.")
    else:
        lines.append("Staff will be with you shortly.")

    embed = _embed(f"{TICKET_EMOJI} {category.name} Ticket", EmbedColors.INFO, "\n".join(lines), footer)

    if form_data:
        labels = {field.id: field.label for field in category.form}
        ordered = [field.id for field in category.form if field.id in form_data]
        ordered += [key for key in form_data if key not in labels]
        for key in ordered[:EMBED_FIELDS_LIMIT]:
            value = (form_data.get(key) or "").strip() or "*No answer*"
            embed.add_field(name=labels.get(key, key), value=_truncate(value), inline=False)
    return embed


def build_claim_embed(staff: discord.abc.User) -> discord.Embed:
    return _embed(
        f"{CLAIM_EMOJI} Ticket Claimed",
        EmbedColors.CLAIMED,
        f"{staff.mention} is now handling this ticket.",
    )


# =============================================================================
# Decisions
# =============================================================================

def build_approval_embed(
    actor: discord.abc.User,
    given: Sequence[int],
    failed: Sequence[int],
) -> discord.Embed:
    embed = _embed(
        f"{APPROVE_EMOJI} Ticket Approved",
        EmbedColors.SUCCESS if not failed else EmbedColors.WARNING,
        f"Approved by {actor.mention}.",
    )
    embed.add_field(
        name="Roles Given",
        value=", ".join(f"<@&{role_id}>" for role_id in given) or "None",
        inline=False,
    )
    if failed:
        embed.add_field(
            name="Roles Failed",
            value=", ".join(f"<@&{role_id}>" for role_id in failed),
            inline=False,
        )
    return embed


def build_denial_notice(actor: discord.abc.User, delay: float) -> discord.Embed:
    return _embed(
        f"{DENY_EMOJI} Ticket Denied",
        EmbedColors.ERROR,
        f"Denied by {actor.mention}. This channel will close in {delay:g} seconds.",
    )


def build_denial_dm(guild_name: str, category_name: str) -> discord.Embed:
    return _embed(
        f"{DENY_EMOJI} Ticket Denied",
        EmbedColors.ERROR,
        f"Your **{category_name}** ticket in **{guild_name}** was denied by staff.",
    )


def build_close_notice(actor: discord.abc.User, delay: float) -> discord.Embed:
    return _embed(
        f"{CLOSE_EMOJI} Closing Ticket",
        EmbedColors.CLOSED,
        f"Closed by {actor.mention}. This channel will close in {delay:g} seconds.",
    )


# =============================================================================
# Role Givers
# =============================================================================

def build_role_granted_embed(
    member: discord.abc.User,
    role: discord.Role,
    actor: discord.abc.User,
) -> discord.Embed:
    return _embed(
        "✅ Role Granted!",
        EmbedColors.SUCCESS,
        f"{member.name} has been granted the **{role.name}** role by {actor.name}.",
    )


def build_role_granted_dm(role: discord.Role, guild_name: str) -> discord.Embed:
    return _embed(
        "🎉 Role Granted!",
        EmbedColors.SUCCESS,
        f"You have been granted the **{role.name}** role in **{guild_name}**!",
    )


# =============================================================================
# Alerts
# =============================================================================

def build_alert_dm(
    guild_name: str,
    category_name: str,
    owner: discord.abc.User,
    channel: discord.abc.GuildChannel,
) -> discord.Embed:
    embed = _embed(
        f"{ALERT_EMOJI} New Ticket",
        EmbedColors.INFO,
        f"A new **{category_name}** ticket was opened in **{guild_name}**.",
    )
    embed.add_field(name="Opened By", value=f"{owner.name} (`{owner.id}`)", inline=True)
    embed.add_field(name="Channel", value=channel.mention, inline=True)
    return embed


# =============================================================================
# Admin Views
# =============================================================================

def build_ticket_menu_embed(
    ticket: TicketRecord,
    category: Optional[TicketCategory],
) -> discord.Embed:
    embed = _embed(f"{TICKET_EMOJI} Ticket Menu", EmbedColors.PANEL)
    embed.add_field(name="Owner", value=f"<@{ticket['user_id']}>", inline=True)
    embed.add_field(name="Category", value=ticket["category"], inline=True)
    embed.add_field(name="Channel", value=f"<#{ticket['channel_id']}>", inline=True)
    embed.add_field(name="Status", value=ticket.get("status", "open").title(), inline=True)
    embed.add_field(
        name="Approval Required",
        value="Yes" if category and category.requires_approval else "No",
        inline=True,
    )
    if ticket.get("claimed_by"):
        embed.add_field(name="Claimed By", value=f"<@{ticket['claimed_by']}>", inline=True)
    if ticket.get("created_at"):
        embed.add_field(name="Opened", value=f"<t:{int(ticket['created_at'])}:R>", inline=True)
    return embed


def build_ticket_list_embed(tickets: Sequence[TicketRecord], footer: Optional[str] = None) -> discord.Embed:
    if not tickets:
        return _embed(f"{TICKET_EMOJI} Open Tickets", EmbedColors.INFO, "There are no open tickets.", footer)

    lines: List[str] = []
    for ticket in tickets:
        line = f"<#{ticket['channel_id']}> • {ticket['category']} • <@{ticket['user_id']}>"
        if ticket.get("claimed_by"):
            line += f" • {CLAIM_EMOJI} <@{ticket['claimed_by']}>"
        lines.append(line)

    description = _truncate("\n".join(lines), 4000)
    return _embed(f"{TICKET_EMOJI} Open Tickets ({len(tickets)})", EmbedColors.INFO, description, footer)


def build_categories_embed(categories: Iterable[TicketCategory], footer: Optional[str] = None) -> discord.Embed:
    embed = _embed("📁 Ticket Categories", EmbedColors.INFO, footer=footer)
    count = 0
    for category in categories:
        if count >= EMBED_FIELDS_LIMIT:
            break
        roles = ", ".join(f"<@&{role_id}>" for role_id in sorted(category.approval_role_ids)) or "None"
        details = [f"Source: `{category.source}`", f"Roles: {roles}"]
        if category.form:
            details.append(f"Form: {len(category.form)} field(s)")
        embed.add_field(name=category.name, value=_truncate("\n".join(details)), inline=False)
        count += 1
    if count == 0:
        embed.description = "No categories are configured."
    return embed


def build_transcript_embed(
    channel_name: str,
    ticket: TicketRecord,
    closed_by: discord.abc.User,
    message_count: int,
) -> discord.Embed:
    embed = _embed("📜 Ticket Transcript", EmbedColors.CLOSED)
    embed.add_field(name="Channel", value=f"`#{channel_name}`", inline=True)
    embed.add_field(name="Category", value=ticket["category"], inline=True)
    embed.add_field(name="Owner", value=f"<@{ticket['user_id']}>", inline=True)
    embed.add_field(name="Closed By", value=f"{closed_by.mention}", inline=True)
    embed.add_field(name="Messages", value=str(message_count), inline=True)
    return embed


__all__ = [
    "build_panel_embed",
    "build_welcome_embed",
    "build_claim_embed",
    "build_approval_embed",
    "build_denial_notice",
    "build_denial_dm",
    "build_close_notice",
    "build_role_granted_embed",
    "build_role_granted_dm",
    "build_alert_dm",
    "build_ticket_menu_embed",
    "build_ticket_list_embed",
    "build_categories_embed",
    "build_transcript_embed",
]
