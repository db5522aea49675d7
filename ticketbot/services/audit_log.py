"""
TicketBot - Audit Logger Service
================================

Posts ticket events to the private audit channel.

Tracked events:
- Ticket created, closed, approved, denied
- Role granted through a role-giver button
- Bypass principal used for an admin-gated action
- Bot errors surfaced by the interaction catch-alls

Every post is best-effort: a missing channel or a failed send is logged
and never reaches the caller.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional, Sequence

import discord

from ticketbot.core.config import Config, EmbedColors
from ticketbot.core.logger import NY_TZ, logger
from ticketbot.utils.error_handler import safe_execute
from ticketbot.utils.retry import safe_fetch_channel, safe_send

if TYPE_CHECKING:
    from ticketbot.bot import TicketBot


class AuditLogger:
    """Embeds for ticket events, sent to AUDIT_CHANNEL_ID."""

    def __init__(self, bot: "TicketBot", config: Config) -> None:
        self.bot = bot
        self.config = config

    @property
    def enabled(self) -> bool:
        return self.config.audit_channel_id is not None

    def _create_embed(self, title: str, color: int) -> discord.Embed:
        embed = discord.Embed(
            title=title,
            color=color,
            timestamp=datetime.now(NY_TZ),
        )
        embed.set_footer(text=self.config.footer_text)
        return embed

    @safe_execute
    async def _post(self, embed: discord.Embed) -> Optional[discord.Message]:
        if not self.enabled:
            return None

        channel = await safe_fetch_channel(self.bot, self.config.audit_channel_id)
        if channel is None:
            logger.warning("Audit Channel Unavailable", [
                ("Channel ID", str(self.config.audit_channel_id)),
                ("Event", embed.title or "?"),
            ])
            return None
        return await safe_send(channel, embed=embed)

    # =========================================================================
    # Ticket Events
    # =========================================================================

    async def log_ticket_created(
        self,
        owner: discord.abc.User,
        channel: discord.abc.GuildChannel,
        category: str,
    ) -> None:
        embed = self._create_embed("🎫 Ticket Created", EmbedColors.SUCCESS)
        embed.add_field(name="User", value=f"{owner.mention} `[{owner.id}]`", inline=True)
        embed.add_field(name="Category", value=f"`{category}`", inline=True)
        embed.add_field(name="Channel", value=channel.mention, inline=True)
        await self._post(embed)

    async def log_ticket_closed(
        self,
        actor: discord.abc.User,
        channel_name: str,
        owner_id: int,
        category: str,
        action: str,
    ) -> None:
        embed = self._create_embed("🔒 Ticket Closed", EmbedColors.CLOSED)
        embed.add_field(name="Closed By", value=f"{actor.mention} `[{actor.id}]`", inline=True)
        embed.add_field(name="Ticket", value=f"`#{channel_name}`", inline=True)
        embed.add_field(name="Ticket Owner", value=f"<@{owner_id}>", inline=True)
        embed.add_field(name="Category", value=f"`{category}`", inline=True)
        embed.add_field(name="Outcome", value=f"`{action}`", inline=True)
        await self._post(embed)

    async def log_ticket_approved(
        self,
        actor: discord.abc.User,
        owner: discord.abc.User,
        channel_id: int,
        given: Sequence[int],
        failed: Sequence[int],
    ) -> None:
        embed = self._create_embed(
            "✅ Ticket Approved",
            EmbedColors.SUCCESS if not failed else EmbedColors.WARNING,
        )
        embed.add_field(name="Approved By", value=f"{actor.mention} `[{actor.id}]`", inline=True)
        embed.add_field(name="Ticket Owner", value=f"{owner.mention} `[{owner.id}]`", inline=True)
        embed.add_field(name="Channel", value=f"<#{channel_id}>", inline=True)
        embed.add_field(
            name="Roles Given",
            value=", ".join(f"<@&{r}>" for r in given) or "None",
            inline=False,
        )
        if failed:
            embed.add_field(name="Roles Failed", value=", ".join(f"<@&{r}>" for r in failed), inline=False)
        await self._post(embed)

    async def log_ticket_denied(
        self,
        actor: discord.abc.User,
        owner_id: int,
        channel_id: int,
        category: str,
    ) -> None:
        embed = self._create_embed("⛔ Ticket Denied", EmbedColors.ERROR)
        embed.add_field(name="Denied By", value=f"{actor.mention} `[{actor.id}]`", inline=True)
        embed.add_field(name="Ticket Owner", value=f"<@{owner_id}>", inline=True)
        embed.add_field(name="Channel", value=f"<#{channel_id}>", inline=True)
        embed.add_field(name="Category", value=f"`{category}`", inline=True)
        await self._post(embed)

    async def log_role_granted(
        self,
        actor: discord.abc.User,
        member: discord.abc.User,
        role: discord.Role,
        channel: discord.abc.GuildChannel,
    ) -> None:
        embed = self._create_embed("🎉 Role Granted", EmbedColors.SUCCESS)
        embed.add_field(name="Granted By", value=f"{actor.mention} `[{actor.id}]`", inline=True)
        embed.add_field(name="User", value=f"{member.mention} `[{member.id}]`", inline=True)
        embed.add_field(name="Role", value=f"{role.mention}", inline=True)
        embed.add_field(name="Channel", value=channel.mention, inline=True)
        await self._post(embed)

    # =========================================================================
    # Security / Errors
    # =========================================================================

    async def log_bypass_used(
        self,
        actor: discord.abc.User,
        action: str,
        channel_id: Optional[int] = None,
    ) -> None:
        logger.tree("Bypass Principal Used", [
            ("User", f"{actor.name} ({actor.id})"),
            ("Action", action),
            ("Channel ID", str(channel_id) if channel_id else "None"),
        ], emoji="🛡️")

        embed = self._create_embed("🛡️ Bypass Used", EmbedColors.WARNING)
        embed.add_field(name="User", value=f"{actor.mention} `[{actor.id}]`", inline=True)
        embed.add_field(name="Action", value=f"`{action}`", inline=True)
        if channel_id:
            embed.add_field(name="Channel", value=f"<#{channel_id}>", inline=True)
        await self._post(embed)

    async def log_bot_error(self, error: BaseException, location: str) -> None:
        embed = self._create_embed("❌ Bot Error", EmbedColors.ERROR)
        embed.add_field(name="Location", value=f"`{location[:100]}`", inline=False)
        embed.add_field(name="Type", value=f"`{type(error).__name__}`", inline=True)
        embed.add_field(name="Error", value=f"```{str(error)[:900]}```", inline=False)
        await self._post(embed)


__all__ = ["AuditLogger"]
