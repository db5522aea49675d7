"""
Ticket Service Operations
=========================

Ticket lifecycle: create, claim, approve, deny, close and role grants.
"""

import sqlite3
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import discord

from ticketbot.core.config import CLOSE_ACTION_DELETE
from ticketbot.core.database import TICKET_STATUS_OPEN, TicketRecord
from ticketbot.core.logger import logger
from ticketbot.core.panels import RoleGiverConfig
from ticketbot.utils.async_utils import gather_with_logging, safe_async_operation
from ticketbot.utils.discord_rate_limit import log_http_error
from ticketbot.utils.error_handler import ErrorHandler
from ticketbot.utils.retry import safe_delete_channel, safe_edit, safe_fetch_member, safe_send

from .components import ButtonSet, summary_buttons
from .constants import CLOSE_EMOJI, GROUP_ROLE_GIVERS, USED_LABEL_SUFFIX
from .embeds import (
    build_alert_dm,
    build_approval_embed,
    build_claim_embed,
    build_close_notice,
    build_denial_dm,
    build_denial_notice,
    build_role_granted_dm,
    build_role_granted_embed,
    build_welcome_embed,
)
from .errors import (
    CategoryNotFound,
    TicketError,
    TicketLimitReached,
    TicketPermissionDenied,
)
from .naming import render_channel_name
from .permissions import ACCESS_OWNER, ACCESS_ROLE, can_claim, can_close, is_staff
from .registry import TicketCategory
from .views import TicketFormModal

if TYPE_CHECKING:
    from .service import TicketService


@dataclass
class ApprovalResult:
    """Role ids granted and failed by an approval."""

    given: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


@dataclass
class RoleGrantOutcome:
    success: bool
    message: str
    granted: bool = False
    giver: Optional[RoleGiverConfig] = None


def _format_roles(role_ids: Sequence[int]) -> str:
    return ", ".join(f"<@&{role_id}>" for role_id in role_ids) or "none"


class OperationsMixin:
    """Mixin for ticket lifecycle operations."""

    def _require_category(
        self: "TicketService",
        guild_id: int,
        category_name: str,
        panel_name: Optional[str] = None,
    ) -> TicketCategory:
        category = self.registry.resolve_category(guild_id, category_name, panel_name)
        if category is None:
            raise CategoryNotFound(category_name)
        return category

    # =========================================================================
    # Create
    # =========================================================================

    async def begin_ticket(
        self: "TicketService",
        interaction: discord.Interaction,
        category_name: str,
        panel_name: Optional[str] = None,
    ) -> None:
        """
        Handle a category selection.

        Categories with a form get the modal and nothing else: no row and no
        channel exist until the form is submitted.
        """
        guild = interaction.guild
        if guild is None:
            await interaction.response.send_message(
                "❌ Tickets can only be opened inside a server.",
                ephemeral=True,
            )
            return

        try:
            category = self._require_category(guild.id, category_name, panel_name)
            if category.requires_form:
                await self._check_ticket_limit(guild, interaction.user, category)
        except TicketError as e:
            await interaction.response.send_message(f"❌ {e}", ephemeral=True)
            return

        logger.tree("Ticket Category Selected", [
            ("User", f"{interaction.user.name} ({interaction.user.id})"),
            ("Category", category.name),
            ("Panel", panel_name or "database"),
            ("Form", f"{len(category.form)} fields" if category.requires_form else "None"),
        ], emoji="🎫")

        if category.requires_form:
            await interaction.response.send_modal(TicketFormModal(category))
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        success, message, _ = await self.create_ticket(guild, interaction.user, category)
        await interaction.followup.send(f"{'✅' if success else '❌'} {message}", ephemeral=True)

    async def submit_form(
        self: "TicketService",
        interaction: discord.Interaction,
        category: TicketCategory,
        form_data: Dict[str, str],
    ) -> None:
        """Create the ticket from a submitted form."""
        if interaction.guild is None:
            await interaction.response.send_message("❌ Tickets can only be opened inside a server.", ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        success, message, _ = await self.create_ticket(interaction.guild, interaction.user, category, form_data)
        await interaction.followup.send(f"{'✅' if success else '❌'} {message}", ephemeral=True)

    async def _check_ticket_limit(
        self: "TicketService",
        guild: discord.Guild,
        member: discord.Member,
        category: TicketCategory,
    ) -> None:
        """
        Raises:
            TicketLimitReached: If the member is at the per-category cap.
        """
        cap = self.config.max_tickets_per_category
        if cap <= 0:
            return
        if self.db.count_open_user_tickets(guild.id, member.id, category.name) < cap:
            return

        live =await self.reconcile_user(guild, member.id, category.name)
        open_tickets = [t for t in live if t["status"] == TICKET_STATUS_OPEN]
        if len(open_tickets) < cap:
            return

        existing = open_tickets[0]["channel_id"]
        if cap == 1:
            message = f"You already have an open **{category.name}** ticket: <#{existing}>"
        else:
            message = (
                f"You already have {len(open_tickets)} open **{category.name}** tickets "
                f"(limit {cap}): <#{existing}>"
            )
        raise TicketLimitReached(message, existing)

    async def create_ticket(
        self: "TicketService",
        guild: discord.Guild,
        member: discord.Member,
        category: TicketCategory,
        form_data: Optional[Dict[str, str]] = None,
    ) -> Tuple[bool, str, Optional[discord.TextChannel]]:
        """
        Provision the channel, insert the row, then post the summary and alerts.

        Returns:
            (success, message for the user, channel or None).
        """
        async with self._creation_lock(guild.id, member.id):
            try:
                await self._check_ticket_limit(guild, member, category)
            except TicketLimitReached as e:
                return False, str(e), None

            parent = await self._ensure_parent_category(guild, self.config.open_category_name)
            name = render_channel_name(category.channel_name_template, member.name, form_data)

            try:
                channel = await guild.create_text_channel(
                    name=name,
                    category=parent,
                    overwrites=self._build_overwrites(guild, member, category),
                    topic=f"Ticket by {member.name} | {category.name}",
                    reason=f"Ticket opened by {member.name}",
                )
            except discord.HTTPException as e:
                log_http_error(e, "Create Ticket Channel", [
                    ("Guild", f"{guild.name} ({guild.id})"),
                    ("User", f"{member.name} ({member.id})"),
                    ("Category", category.name),
                ])
                return False, "Failed to create the ticket channel. Please contact an administrator.", None

            try:
                self.db.insert_ticket(guild.id, channel.id, member.id, category.name, form_data)
            except sqlite3.Error as e:
                ErrorHandler.handle(e, location="TicketService.create_ticket", channel_id=channel.id)
                await safe_delete_channel(channel, reason="Ticket could not be saved")
                return False, "Failed to save the ticket. Please try again.", None

        await self._post_summary(channel, member, category, form_data)
        await self._notify_alert_subscribers(guild, member, category, channel)
        await self.audit.log_ticket_created(member, channel, category.name)

        logger.tree("Ticket Created", [
            ("Channel", f"{channel.name} ({channel.id})"),
            ("Owner", f"{member.name} ({member.id})"),
            ("Category", category.name),
            ("Source", category.source),
            ("Form", f"{len(form_data)} fields" if form_data else "None"),
        ], emoji="🎫")

        return True, f"Ticket created: {channel.mention}", channel

    async def _post_summary(
        self: "TicketService",
        channel: discord.TextChannel,
        member: discord.Member,
        category: TicketCategory,
        form_data: Optional[Dict[str, str]],
    ) -> Optional[discord.Message]:
        message = await safe_send(
            channel,
            content=member.mention,
            embed=build_welcome_embed(member, category, form_data, self.config.footer_text),
            view=summary_buttons(channel.id, category).to_view(),
        )
        if message is None:
            return None

        self.db.set_summary_message(channel.id, message.id)
        try:
            await message.pin(reason="Ticket summary")
        except discord.HTTPException as e:
            log_http_error(e, "Pin Ticket Summary", [("Channel ID", str(channel.id))])
        return message

    async def _notify_alert_subscribers(
        self: "TicketService",
        guild: discord.Guild,
        owner: discord.Member,
        category: TicketCategory,
        channel: discord.TextChannel,
    ) -> None:
        """DM every subscriber; each failure is logged on its own."""
        subscribers = [uid for uid in self.db.get_alert_subscribers(guild.id) if uid != owner.id]
        if not subscribers:
            return

        embed = build_alert_dm(guild.name, category.name, owner, channel)
        await gather_with_logging(
            *[(f"Alert DM {uid}", self._send_alert(guild, uid, embed)) for uid in subscribers],
            context="Ticket Alerts",
        )

    async def _send_alert(self: "TicketService", guild: discord.Guild, user_id: int, embed: discord.Embed) -> None:
        member = await safe_fetch_member(guild, user_id)
        if member is None:
            logger.debug("Alert Subscriber Left", [("User ID", str(user_id))])
            return
        await member.send(embed=embed)

    # =========================================================================
    # Claim
    # =========================================================================

    async def claim_ticket(
        self: "TicketService",
        channel: discord.TextChannel,
        actor: discord.Member,
    ) -> Tuple[bool, str]:
        try:
            ticket = self._require_ticket(channel.id)
            if ticket["status"] != TICKET_STATUS_OPEN or self.is_close_pending(channel.id):
                raise TicketError("This ticket is already closing.")

            category = self.registry.resolve_category(channel.guild.id, ticket["category"])
            grant = can_claim(actor, category, self.config)
            if grant is None:
                raise TicketPermissionDenied("You don't have permission to claim tickets in this category.")
            if actor.id == ticket["user_id"] and grant == ACCESS_ROLE:
                raise TicketPermissionDenied("You can't claim your own ticket.")

            claimed_by = ticket.get("claimed_by")
            if claimed_by == actor.id:
                raise TicketError("You already claimed this ticket.")
            if claimed_by:
                raise TicketError(f"This ticket is already claimed by <@{claimed_by}>.")
        except TicketError as e:
            return False, str(e)

        await self._audit_grant(actor, grant, "claim ticket", channel.id)

        if not self.db.set_ticket_claimed(channel.id, actor.id):
            return False, "This ticket was claimed or closed by someone else."

        await self._mark_summary_claimed(channel, ticket, category, actor)
        await safe_send(channel, embed=build_claim_embed(actor))
        return True, "You claimed this ticket."

    async def _mark_summary_claimed(
        self: "TicketService",
        channel: discord.TextChannel,
        ticket: TicketRecord,
        category: Optional[TicketCategory],
        actor: discord.Member,
    ) -> None:
        """Footer gets the claimer; buttons switch to the claimed variant."""
        message = await self._get_summary_message(channel, ticket)
        if message is None:
            logger.warning("Summary Message Not Found", [
                ("Channel", f"{channel.name} ({channel.id})"),
                ("Action", "Claim"),
            ])
            return

        embed = message.embeds[0].copy() if message.embeds else discord.Embed()
        embed.set_footer(text=f"Claimed by: {actor.name}")

        # role givers keep their current state (e.g. already used)
        buttons = summary_buttons(channel.id, category, claimed_by=actor)
        current_givers = ButtonSet.from_message(message).group(GROUP_ROLE_GIVERS)
        if current_givers:
            buttons.set_group(GROUP_ROLE_GIVERS, current_givers)

        await safe_edit(message, embed=embed, view=buttons.to_view())

    # =========================================================================
    # Approve / Deny
    # =========================================================================

    async def approve_ticket(
        self: "TicketService",
        guild: discord.Guild,
        channel_id: int,
        actor: discord.Member,
    ) -> Tuple[bool, str, Optional[ApprovalResult]]:
        """
        Grant every approval role of the ticket's category to its owner.

        Approval does not change the ticket's status.
        """
        try:
            await self._require_elevated(actor, "approve tickets", channel_id)
            ticket = self._require_ticket(channel_id)
            category = self._require_category(guild.id, ticket["category"])
        except TicketError as e:
            return False, str(e), None

        if not category.requires_approval:
            return False, f"**{category.name}** has no roles to grant.", None

        owner = await safe_fetch_member(guild, ticket["user_id"])
        if owner is None:
            return False, "The ticket owner is no longer in the server.", None

        given, failed = await self._grant_roles(
            guild, owner, category.approval_role_ids, reason=f"Ticket approved by {actor.name}"
        )
        result = ApprovalResult(given=given, failed=failed)

        channel = guild.get_channel(channel_id)
        if channel is not None:
            await safe_send(channel, content=owner.mention, embed=build_approval_embed(actor, given, failed))

        await self.audit.log_ticket_approved(actor, owner, channel_id, given, failed)

        logger.tree("Ticket Approved", [
            ("Channel ID", str(channel_id)),
            ("Owner", f"{owner.name} ({owner.id})"),
            ("By", f"{actor.name} ({actor.id})"),
            ("Given", ", ".join(str(r) for r in given) or "None"),
            ("Failed", ", ".join(str(r) for r in failed) or "None"),
        ], emoji="✅")

        message = f"Approved {owner.mention}. Roles given: {_format_roles(given)}."
        if failed:
            message += f" Roles failed: {_format_roles(failed)}."
        return True, message, result

    async def deny_ticket(
        self: "TicketService",
        guild: discord.Guild,
        channel_id: int,
        actor: discord.Member,
    ) -> Tuple[bool, str]:
        """DM the owner, post a notice, then close with the staff close action."""
        try:
            await self._require_elevated(actor, "deny tickets", channel_id)
            ticket = self._require_ticket(channel_id)
        except TicketError as e:
            return False, str(e)

        if self.is_close_pending(channel_id):
            return False, "This ticket is already closing."

        channel, gone = await self._fetch_ticket_channel(guild, channel_id)
        if channel is None:
            if gone:
                self.db.delete_ticket(channel_id)
                return False, "The ticket channel no longer exists; its record was removed."
            return False, "Couldn't reach the ticket channel. Please try again."

        owner = await safe_fetch_member(guild, ticket["user_id"])
        if owner is not None:
            await safe_async_operation(
                "Denial DM",
                owner.send(embed=build_denial_dm(guild.name, ticket["category"])),
            )

        scheduled = await self.schedule_close(
            channel,
            actor,
            self.config.staff_close_action,
            notice=build_denial_notice(actor, self.config.close_delay),
            reason="denied",
        )
        if not scheduled:
            return False, "This ticket is already closing."

        await self.audit.log_ticket_denied(actor, ticket["user_id"], channel_id, ticket["category"])
        return True, f"Ticket denied. {channel.mention} will close in {self.config.close_delay:g} seconds."

    # =========================================================================
    # Close
    # =========================================================================

    async def request_close(
        self: "TicketService",
        channel: discord.TextChannel,
        actor: discord.Member,
    ) -> Tuple[bool, str]:
        """
        Close requested by the owner or by staff.

        The owner's close uses OWNER_CLOSE_ACTION, anyone else's uses
        STAFF_CLOSE_ACTION.
        """
        try:
            ticket = self._require_ticket(channel.id)
        except TicketError as e:
            return False, str(e)

        grant = can_close(actor, ticket, self.config)
        if grant is None:
            return False, "Only the ticket owner or an administrator can close this ticket."
        if self.is_close_pending(channel.id):
            return False, "This ticket is already closing."

        await self._audit_grant(actor, grant, "close ticket", channel.id)

        if grant == ACCESS_OWNER:
            action = self.config.owner_close_action
        else:
            action = self.config.staff_close_action

        scheduled = await self.schedule_close(
            channel,
            actor,
            action,
            notice=build_close_notice(actor, self.config.close_delay),
        )
        if not scheduled:
            return False, "This ticket is already closing."
        return True, f"{CLOSE_EMOJI} This ticket will close in {self.config.close_delay:g} seconds."

    async def request_close_by_id(
        self: "TicketService",
        guild: discord.Guild,
        channel_id: int,
        actor: discord.Member,
    ) -> Tuple[bool, str]:
        """Close from the ticket menu, which may live in another channel."""
        channel, gone = await self._fetch_ticket_channel(guild, channel_id)
        if channel is None:
            if gone and self.db.delete_ticket(channel_id):
                return False, "The ticket channel no longer exists; its record was removed."
            return False, "Ticket channel not found."
        return await self.request_close(channel, actor)

    async def delete_ticket_now(
        self: "TicketService",
        channel: discord.TextChannel,
        actor: discord.Member,
    ) -> Tuple[bool, str]:
        """Staff delete: always deletes the channel, regardless of policy."""
        try:
            await self._require_elevated(actor, "delete tickets", channel.id)
            self._require_ticket(channel.id)
        except TicketError as e:
            return False, str(e)

        scheduled = await self.schedule_close(
            channel,
            actor,
            CLOSE_ACTION_DELETE,
            notice=build_close_notice(actor, self.config.close_delay),
            reason="deleted",
        )
        if not scheduled:
            return False, "This ticket is already closing."
        return True, f"This ticket will be deleted in {self.config.close_delay:g} seconds."

    # =========================================================================
    # Role Givers
    # =========================================================================

    async def grant_role_giver(
        self: "TicketService",
        guild: discord.Guild,
        channel: discord.TextChannel,
        actor: discord.Member,
        giver_id: str,
    ) -> RoleGrantOutcome:
        """
        Grant a role giver's role to the ticket owner.

        Idempotent: an owner who already holds the role gets a notice and
        nothing changes.
        """
        found = self.registry.find_role_giver(giver_id)
        if found is None:
            return RoleGrantOutcome(False, "Role giver configuration not found.")
        category, giver = found

        try:
            ticket = self._require_ticket(channel.id)
        except TicketError as e:
            return RoleGrantOutcome(False, str(e), giver=giver)
        if category.name.lower() != ticket["category"].lower():
            return RoleGrantOutcome(False, "This role giver doesn't belong to this ticket's category.", giver=giver)

        grant = can_claim(actor, category, self.config)
        if grant is None:
            return RoleGrantOutcome(False, "You don't have permission to grant roles in this ticket.", giver=giver)
        await self._audit_grant(actor, grant, f"role giver {giver.id}", channel.id)

        owner = await safe_fetch_member(guild, ticket["user_id"])
        if owner is None:
            return RoleGrantOutcome(False, "The ticket owner is no longer in the server.", giver=giver)

        role = guild.get_role(giver.role_id)
        if role is None:
            return RoleGrantOutcome(False, "Role not found. Please check the configuration.", giver=giver)

        if role in owner.roles:
            return RoleGrantOutcome(True, f"{owner.name} already has the **{role.name}** role.", giver=giver)

        try:
            await owner.add_roles(role, reason=f"Role granted by {actor.name} via ticket system")
        except discord.HTTPException as e:
            log_http_error(e, "Role Giver", [
                ("Owner", f"{owner.name} ({owner.id})"),
                ("Role", f"{role.name} ({role.id})"),
            ])
            await self.audit.log_bot_error(e, "Role Giver System")
            return RoleGrantOutcome(
                False,
                f"Failed to grant **{role.name}**. Check the bot's role position.",
                giver=giver,
            )

        await safe_send(channel, embed=build_role_granted_embed(owner, role, actor))
        await safe_async_operation(
            "Role Granted DM",
            owner.send(embed=build_role_granted_dm(role, guild.name)),
        )
        await self.audit.log_role_granted(actor, owner, role, channel)

        logger.tree("Role Granted", [
            ("Giver", giver.id),
            ("Role", f"{role.name} ({role.id})"),
            ("Owner", f"{owner.name} ({owner.id})"),
            ("By", f"{actor.name} ({actor.id})"),
        ], emoji="🎉")

        return RoleGrantOutcome(True, f"Granted **{role.name}** to {owner.name}.", granted=True, giver=giver)

    async def mark_role_giver_used(
        self: "TicketService",
        message: discord.Message,
        custom_id: str,
        giver: RoleGiverConfig,
    ) -> bool:
        """Disable one role-giver button; the rest of the message is unchanged."""
        buttons = ButtonSet.from_message(message)
        if not buttons.disable(custom_id, label=f"✅ {giver.name} {USED_LABEL_SUFFIX}"):
            return False
        return await safe_edit(message, view=buttons.to_view()) is not None

    # =========================================================================
    # Alerts / Listing / Categories
    # =========================================================================

    async def toggle_alerts(
        self: "TicketService",
        guild: discord.Guild,
        member: discord.Member,
    ) -> Tuple[bool, str]:
        grant = is_staff(member, self.registry.staff_role_ids(guild.id), self.config)
        if grant is None:
            return False, "Only ticket staff can subscribe to ticket alerts."
        await self._audit_grant(member, grant, "toggle ticket alerts")

        if self.db.toggle_alert(guild.id, member.id):
            return True, "🔔 You will now receive a DM when a ticket is opened."
        return True, "🔕 You will no longer receive ticket alerts."

    async def list_open_tickets(self: "TicketService", guild: discord.Guild) -> List[TicketRecord]:
        return await self._prune_orphans(guild, self.db.get_open_tickets(guild.id))

    def create_category(
        self: "TicketService",
        guild: discord.Guild,
        name: str,
        role: Optional[discord.Role] = None,
    ) -> Tuple[bool, str]:
        """Create a database category, or add a role to an existing one."""
        name = name.strip()
        if not name or len(name) > 100:
            return False, "Category names must be 1-100 characters."

        shadow_note = ""
        if self.registry.is_config_category(name):
            shadow_note = " The configured category with this name takes precedence."

        if self.db.get_category(guild.id, name):
            if role is None:
                return False, f"Category **{name}** already exists."
            self.db.add_category_role(guild.id, name, role.id)
            return True, f"Added {role.mention} to **{name}**.{shadow_note}"

        if not self.db.create_category(guild.id, name, [role.id] if role else []):
            return False, f"Category **{name}** already exists."
        return True, f"Created category **{name}**.{shadow_note}"

    def delete_category(self: "TicketService", guild: discord.Guild, name: str) -> Tuple[bool, str]:
        """Delete a database category that no active ticket references."""
        record = self.db.get_category(guild.id, name)
        if record is None:
            if self.registry.is_config_category(name):
                return False, f"**{name}** is defined in the config file and can't be deleted here."
            return False, f"Category **{name}** does not exist."

        if not self.db.delete_category(guild.id, name):
            return False, f"**{record['name']}** still has active tickets."
        return True, f"Deleted category **{record['name']}**."


__all__ = [
    "OperationsMixin",
    "ApprovalResult",
    "RoleGrantOutcome",
]
