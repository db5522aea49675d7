"""
TicketBot - Channel Naming
==========================

Renders a category's channel-name template into a valid Discord channel name.

Template tokens:
    {username}          Ticket owner's username
    {fieldId}           Value the owner typed into form field "fieldId"
    {fieldId|fallback}  Same, with fallback text when the field is blank

Example:
    render_channel_name("app-{username}-{reason|none}", "Alice", {"reason": ""})
    -> "app-alice-none"
"""

import re
from typing import Mapping, Optional

from ticketbot.core.constants import CHANNEL_NAME_LIMIT
from ticketbot.services.tickets.constants import DEFAULT_CHANNEL_NAME, DEFAULT_CHANNEL_TEMPLATE


TOKEN_PATTERN = re.compile(r"\{([A-Za-z0-9_]+)(?:\|([^{}]*))?\}")
_INVALID_CHARS = re.compile(r"[^a-z0-9_-]")
_SEPARATORS = re.compile(r"[\s.]+")
_REPEATED_DASHES = re.compile(r"-{2,}")


def slugify_channel_name(value: str) -> str:
    """Lowercase, dash-separated, [a-z0-9_-] only, at most 100 characters."""
    slug = _SEPARATORS.sub("-", value.strip().lower())
    slug = _INVALID_CHARS.sub("", slug)
    slug = _REPEATED_DASHES.sub("-", slug).strip("-")
    slug = slug[:CHANNEL_NAME_LIMIT].rstrip("-")
    return slug or DEFAULT_CHANNEL_NAME


def render_channel_name(
    template: Optional[str],
    username: str,
    form_data: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Substitute template tokens and slugify the result.

    {username} always refers to the owner, even if a form field uses the
    same id. Missing or blank values without a fallback render as "".
    """
    values = form_data or {}

    def _replace(match: "re.Match[str]") -> str:
        key, fallback = match.group(1), match.group(2)
        if key == "username":
            return username
        value = str(values.get(key) or "").strip()
        if value:
            return value
        return fallback or ""

    rendered = TOKEN_PATTERN.sub(_replace, template or DEFAULT_CHANNEL_TEMPLATE)
    return slugify_channel_name(rendered)


__all__ = [
    "render_channel_name",
    "slugify_channel_name",
    "TOKEN_PATTERN",
]
