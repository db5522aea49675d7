"""
Ticket Service Helpers
======================

Channel provisioning, reconciliation and the delayed close.

DESIGN:
    A delayed close is an asyncio task keyed by channel id. While one is
    pending for a channel, further close/deny requests are refused. When the
    timer fires the row is read again: if another actor already removed it
    the close is a no-op, and every channel deletion tolerates a channel
    that is already gone.
"""

import asyncio
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

import discord

from ticketbot.core.config import CLOSE_ACTION_ARCHIVE
from ticketbot.core.constants import SUMMARY_SCAN_LIMIT
from ticketbot.core.database import TICKET_STATUS_CLOSED, TicketRecord
from ticketbot.core.logger import logger
from ticketbot.utils.async_utils import create_safe_task
from ticketbot.utils.discord_rate_limit import log_http_error
from ticketbot.utils.retry import safe_delete_channel, safe_fetch_channel, safe_fetch_message, safe_send

from .permissions import ACCESS_BYPASS, has_elevated_access
from .registry import TicketCategory
from .errors import TicketNotFound, TicketPermissionDenied
from .transcript import generate_transcript_file
from .embeds import build_transcript_embed

if TYPE_CHECKING:
    from .service import TicketService


CLOSE_OUTCOME_DELETED = "deleted"
CLOSE_OUTCOME_ARCHIVED = "archived"
CLOSE_OUTCOME_MISSING = "missing"
CLOSE_OUTCOME_FAILED = "failed"


class HelpersMixin:
    """Mixin for ticket helper methods."""

    # =========================================================================
    # Authorization
    # =========================================================================

    async def _audit_grant(
        self: "TicketService",
        actor: discord.abc.User,
        grant: Optional[str],
        action: str,
        channel_id: Optional[int] = None,
    ) -> None:
        if grant == ACCESS_BYPASS:
            await self.audit.log_bypass_used(actor, action, channel_id)

    async def _require_elevated(
        self: "TicketService",
        actor: discord.abc.User,
        action: str,
        channel_id: Optional[int] = None,
    ) -> str:
        """
        Raises:
            TicketPermissionDenied: If the actor is neither admin nor bypass.
        """
        grant = has_elevated_access(actor, self.config)
        if grant is None:
            raise TicketPermissionDenied(f"You need administrator permissions to {action}.")
        await self._audit_grant(actor, grant, action, channel_id)
        return grant

    async def authorize_admin(
        self: "TicketService",
        actor: discord.abc.User,
        action: str,
        channel_id: Optional[int] = None,
    ) -> Tuple[bool, str]:
        """Elevated-access check for admin commands; bypass use is audited."""
        try:
            await self._require_elevated(actor, action, channel_id)
        except TicketPermissionDenied as e:
            return False, str(e)
        return True, ""

    def _require_ticket(self: "TicketService", channel_id: int) -> TicketRecord:
        ticket = self.db.get_ticket_by_channel(channel_id)
        if ticket is None:
            raise TicketNotFound(channel_id)
        return ticket

    # =========================================================================
    # Provisioning
    # =========================================================================

    def _creation_lock(self: "TicketService", guild_id: int, user_id: int) -> asyncio.Lock:
        key = (guild_id, user_id)
        lock = self._creation_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._creation_locks[key] = lock
        return lock

    async def _ensure_parent_category(
        self: "TicketService",
        guild: discord.Guild,
        name: str,
        create: bool = True,
    ) -> Optional[discord.CategoryChannel]:
        """Find a channel category by name, creating it when allowed."""
        existing = discord.utils.get(guild.categories, name=name)
        if existing or not create:
            return existing

        try:
            category = await guild.create_category(name, reason="Ticket system setup")
        except discord.HTTPException as e:
            log_http_error(e, "Create Ticket Category", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Name", name),
            ])
            return None

        logger.tree("Channel Category Created", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Name", name),
        ], emoji="📁")
        return category

    def _build_overwrites(
        self: "TicketService",
        guild: discord.Guild,
        member: discord.Member,
        category: TicketCategory,
    ) -> Dict[object, discord.PermissionOverwrite]:
        """
        Visible to the owner, the bot and the category's roles only.

        Administrators see every channel through their permission.
        """
        overwrites: Dict[object, discord.PermissionOverwrite] = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
            member: discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                read_message_history=True,
                attach_files=True,
            ),
        }
        if guild.me is not None:
            overwrites[guild.me] = discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                read_message_history=True,
                manage_channels=True,
                manage_messages=True,
            )

        for role_id in sorted(category.approval_role_ids):
            role = guild.get_role(role_id)
            if role is None:
                logger.warning("Category Role Missing", [
                    ("Category", category.name),
                    ("Role ID", str(role_id)),
                ])
                continue
            overwrites[role] = discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                read_message_history=True,
            )
        return overwrites

    async def _grant_roles(
        self: "TicketService",
        guild: discord.Guild,
        member: discord.Member,
        role_ids: Iterable[int],
        reason: str,
    ) -> Tuple[List[int], List[int]]:
        """
        Add each role to the member.

        Returns:
            (given, failed) role ids. A role the member already holds counts
            as given; a deleted role or a failed add counts as failed.
        """
        given: List[int] = []
        failed: List[int] = []
        for role_id in sorted(role_ids):
            role = guild.get_role(role_id)
            if role is None:
                failed.append(role_id)
                continue
            if role in member.roles:
                given.append(role_id)
                continue
            try:
                await member.add_roles(role, reason=reason)
                given.append(role_id)
            except discord.HTTPException as e:
                log_http_error(e, "Grant Role", [
                    ("Member", f"{member.name} ({member.id})"),
                    ("Role", f"{role.name} ({role_id})"),
                ])
                failed.append(role_id)
        return given, failed

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def _fetch_ticket_channel(
        self: "TicketService",
        guild: discord.Guild,
        channel_id: int,
    ) -> Tuple[Optional[discord.abc.GuildChannel], bool]:
        """
        Returns:
            (channel, gone). gone is True only when Discord reports the
            channel as deleted; other failures leave the row alone.
        """
        channel = guild.get_channel(channel_id)
        if channel is not None:
            return channel, False
        try:
            return await self.bot.fetch_channel(channel_id), False
        except discord.NotFound:
            return None, True
        except discord.HTTPException as e:
            log_http_error(e, "Fetch Ticket Channel", [("Channel ID", str(channel_id))])
            return None, False

    async def _prune_orphans(
        self: "TicketService",
        guild: discord.Guild,
        tickets: Iterable[TicketRecord],
    ) -> List[TicketRecord]:
        """Delete rows whose channels no longer exist; return the rest."""
        live: List[TicketRecord] = []
        for ticket in tickets:
            _, gone = await self._fetch_ticket_channel(guild, ticket["channel_id"])
            if gone:
                self.db.delete_ticket(ticket["channel_id"])
                logger.tree("Orphaned Ticket Row Removed", [
                    ("Guild", f"{guild.name} ({guild.id})"),
                    ("Channel ID", str(ticket["channel_id"])),
                    ("Owner ID", str(ticket["user_id"])),
                    ("Category", ticket["category"]),
                ], emoji="🧹")
                continue
            live.append(ticket)
        return live

    async def reconcile_user(
        self: "TicketService",
        guild: discord.Guild,
        user_id: int,
        category: Optional[str] = None,
    ) -> List[TicketRecord]:
        """A user's live tickets, after removing orphaned rows."""
        return await self._prune_orphans(guild, self.db.get_user_tickets(guild.id, user_id, category))

    async def reconcile_guild(self: "TicketService", guild: discord.Guild) -> int:
        """
        Remove every orphaned row in a guild.

        Returns:
            Number of rows removed.
        """
        tickets = self.db.get_all_tickets(guild.id)
        live = await self._prune_orphans(guild, tickets)
        removed = len(tickets) - len(live)
        if removed:
            logger.tree("Guild Tickets Reconciled", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Checked", str(len(tickets))),
                ("Removed", str(removed)),
            ], emoji="🧹")
        return removed

    # =========================================================================
    # Summary Message
    # =========================================================================

    async def _get_summary_message(
        self: "TicketService",
        channel: discord.TextChannel,
        ticket: TicketRecord,
    ) -> Optional[discord.Message]:
        """The bot's summary message: stored id, then pins, then oldest history."""
        message = await safe_fetch_message(channel, ticket.get("summary_message_id"))
        if message:
            return message

        bot_id = self.bot.user.id if self.bot.user else None
        try:
            for pinned in await channel.pins():
                if pinned.author.id == bot_id:
                    message = pinned
            if message is None:
                async for candidate in channel.history(limit=SUMMARY_SCAN_LIMIT, oldest_first=True):
                    if candidate.author.id == bot_id and candidate.embeds:
                        message = candidate
                        break
        except discord.HTTPException as e:
            log_http_error(e, "Find Summary Message", [("Channel ID", str(channel.id))])
            return None

        if message:
            self.db.set_summary_message(channel.id, message.id)
        return message

    # =========================================================================
    # Delayed Close
    # =========================================================================

    def is_close_pending(self: "TicketService", channel_id: int) -> bool:
        task = self._pending_closes.get(channel_id)
        return task is not None and not task.done()

    async def schedule_close(
        self: "TicketService",
        channel: discord.TextChannel,
        actor: discord.abc.User,
        action: str,
        notice: Optional[discord.Embed] = None,
        reason: str = "closed",
    ) -> bool:
        """
        Schedule the channel to close after the configured delay.

        Returns:
            False if a close is already pending for this channel.
        """
        async with self._closes_lock:
            if self.is_close_pending(channel.id):
                return False
            task = create_safe_task(
                self._close_after_delay(channel.guild, channel.id, actor, action, reason),
                f"Close Ticket {channel.id}",
            )
            self._pending_closes[channel.id] = task

        if notice is not None:
            await safe_send(channel, embed=notice)

        logger.tree("Ticket Close Scheduled", [
            ("Channel", f"{channel.name} ({channel.id})"),
            ("By", f"{actor.name} ({actor.id})"),
            ("Action", action),
            ("Reason", reason),
            ("Delay", f"{self.config.close_delay:g}s"),
        ], emoji="⏳")
        return True

    async def _close_after_delay(
        self: "TicketService",
        guild: discord.Guild,
        channel_id: int,
        actor: discord.abc.User,
        action: str,
        reason: str,
    ) -> None:
        current = asyncio.current_task()
        try:
            await asyncio.sleep(self.config.close_delay)
            await self._finalize_close(guild, channel_id, actor, action, reason)
        finally:
            async with self._closes_lock:
                if self._pending_closes.get(channel_id) is current:
                    self._pending_closes.pop(channel_id, None)

    async def _finalize_close(
        self: "TicketService",
        guild: discord.Guild,
        channel_id: int,
        actor: discord.abc.User,
        action: str,
        reason: str = "closed",
    ) -> str:
        """
        Close a ticket now: mark it closed, post the transcript, delete the
        row, then archive or delete the channel.

        Returns:
            One of the CLOSE_OUTCOME_* values.
        """
        ticket = self.db.get_ticket_by_channel(channel_id)
        if ticket is None:
            logger.info("Ticket Already Closed", [
                ("Channel ID", str(channel_id)),
                ("Requested By", f"{actor.name} ({actor.id})"),
            ])
            return CLOSE_OUTCOME_MISSING

        channel, gone = await self._fetch_ticket_channel(guild, channel_id)
        if channel is None:
            if gone:
                self.db.delete_ticket(channel_id)
                logger.info("Ticket Channel Already Deleted", [("Channel ID", str(channel_id))])
                return CLOSE_OUTCOME_MISSING
            logger.warning("Ticket Close Deferred", [
                ("Channel ID", str(channel_id)),
                ("Reason", "Channel could not be fetched"),
            ])
            return CLOSE_OUTCOME_FAILED

        self.db.set_ticket_status(channel_id, TICKET_STATUS_CLOSED)
        await self._post_transcript(guild, channel, ticket, actor)
        self.db.delete_ticket(channel_id)

        outcome = CLOSE_OUTCOME_DELETED
        if action == CLOSE_ACTION_ARCHIVE and await self._archive_channel(guild, channel, ticket):
            outcome = CLOSE_OUTCOME_ARCHIVED
        elif not await safe_delete_channel(channel, reason=f"Ticket {reason} by {actor.name}"):
            outcome = CLOSE_OUTCOME_FAILED

        logger.tree("Ticket Closed", [
            ("Channel", f"{channel.name} ({channel_id})"),
            ("Owner ID", str(ticket["user_id"])),
            ("Category", ticket["category"]),
            ("By", f"{actor.name} ({actor.id})"),
            ("Reason", reason),
            ("Outcome", outcome),
        ], emoji="🔒")

        await self.audit.log_ticket_closed(actor, channel.name, ticket["user_id"], ticket["category"], outcome)
        return outcome

    async def _archive_channel(
        self: "TicketService",
        guild: discord.Guild,
        channel: discord.TextChannel,
        ticket: TicketRecord,
    ) -> bool:
        """
        Move the channel under the closed category and make it read-only.

        The owner loses view access. Returns False when there is no archive
        category or the move fails, so the caller falls back to deleting.
        """
        parent = await self._ensure_parent_category(guild, self.config.closed_category_name, create=False)
        if parent is None:
            logger.info("No Archive Category", [
                ("Expected", self.config.closed_category_name),
                ("Fallback", "Delete"),
            ])
            return False

        owner_id = ticket["user_id"]
        overwrites: Dict[object, discord.PermissionOverwrite] = {}
        for target, overwrite in channel.overwrites.items():
            if target.id == owner_id:
                continue
            if guild.me is not None and target == guild.me:
                overwrites[target] = overwrite
                continue
            allow, deny = overwrite.pair()
            updated = discord.PermissionOverwrite.from_pair(allow, deny)
            updated.send_messages = False
            overwrites[target] = updated

        overwrites[guild.default_role] = discord.PermissionOverwrite(view_channel=False, send_messages=False)
        # keyed by id: the owner may be missing from the member cache
        overwrites[discord.Object(id=owner_id)] = discord.PermissionOverwrite(view_channel=False, send_messages=False)

        try:
            await channel.edit(
                category=parent,
                overwrites=overwrites,
                reason="Ticket archived",
            )
        except discord.NotFound:
            return True
        except discord.HTTPException as e:
            log_http_error(e, "Archive Ticket", [
                ("Channel", f"{channel.name} ({channel.id})"),
                ("Archive", parent.name),
            ])
            return False
        return True

    async def _post_transcript(
        self: "TicketService",
        guild: discord.Guild,
        channel: discord.TextChannel,
        ticket: TicketRecord,
        actor: discord.abc.User,
    ) -> None:
        if not self.config.transcript_channel_id:
            return

        target = await safe_fetch_channel(self.bot, self.config.transcript_channel_id)
        if target is None:
            logger.warning("Transcript Channel Unavailable", [
                ("Channel ID", str(self.config.transcript_channel_id)),
            ])
            return

        result = await generate_transcript_file(
            guild, channel, ticket, actor, self.config.transcript_message_limit
        )
        if result is None:
            return
        transcript, message_count = result

        # no retry: the file is consumed by the first attempt
        try:
            await target.send(
                embed=build_transcript_embed(channel.name, ticket, actor, message_count),
                file=transcript,
            )
        except discord.HTTPException as e:
            log_http_error(e, "Post Transcript", [
                ("Ticket", f"{channel.name} ({channel.id})"),
                ("Target", str(self.config.transcript_channel_id)),
            ])


__all__ = [
    "HelpersMixin",
    "CLOSE_OUTCOME_DELETED",
    "CLOSE_OUTCOME_ARCHIVED",
    "CLOSE_OUTCOME_MISSING",
    "CLOSE_OUTCOME_FAILED",
]
