"""
TicketBot - Ticket Permissions
==============================

Authorization checks for ticket actions.

Every check returns the grant that allowed the action (ACCESS_*) or None.
Callers audit ACCESS_BYPASS grants, so the bypass principal never acts
without leaving a trail.
"""

from typing import Iterable, Optional

import discord

from ticketbot.core.config import Config
from ticketbot.core.database import TicketRecord
from ticketbot.services.tickets.registry import TicketCategory


ACCESS_ADMIN = "admin"
ACCESS_BYPASS = "bypass"
ACCESS_ROLE = "role"
ACCESS_OWNER = "owner"


def is_bypass_user(user_id: int, config: Config) -> bool:
    return user_id in config.bypass_user_ids


def is_admin(member) -> bool:
    """Whether the member holds the Administrator permission."""
    permissions = getattr(member, "guild_permissions", None)
    return bool(permissions and permissions.administrator)


def has_elevated_access(actor, config: Config) -> Optional[str]:
    """Admins first; the bypass principal only when not already an admin."""
    if is_admin(actor):
        return ACCESS_ADMIN
    if is_bypass_user(actor.id, config):
        return ACCESS_BYPASS
    return None


def holds_any_role(member, role_ids: Iterable[int]) -> bool:
    wanted = set(role_ids)
    if not wanted:
        return False
    return any(role.id in wanted for role in getattr(member, "roles", ()))


def can_claim(member, category: Optional[TicketCategory], config: Config) -> Optional[str]:
    """Elevated actors, or holders of one of the category's approval roles."""
    grant = has_elevated_access(member, config)
    if grant:
        return grant
    if category and holds_any_role(member, category.approval_role_ids):
        return ACCESS_ROLE
    return None


def can_close(actor, ticket: TicketRecord, config: Config) -> Optional[str]:
    """The owner may close their own ticket; anyone else needs elevated access."""
    if actor.id == ticket["user_id"]:
        return ACCESS_OWNER
    return has_elevated_access(actor, config)


def is_staff(member: discord.Member, staff_role_ids: Iterable[int], config: Config) -> Optional[str]:
    """Elevated, or holding any role that some category grants access to."""
    grant = has_elevated_access(member, config)
    if grant:
        return grant
    if holds_any_role(member, staff_role_ids):
        return ACCESS_ROLE
    return None


__all__ = [
    "ACCESS_ADMIN",
    "ACCESS_BYPASS",
    "ACCESS_ROLE",
    "ACCESS_OWNER",
    "is_bypass_user",
    "is_admin",
    "has_elevated_access",
    "holds_any_role",
    "can_claim",
    "can_close",
    "is_staff",
]
