"""
TicketBot - Database Type Definitions
=====================================

TypedDict definitions for database records.
"""

from typing import Dict, List, Optional, TypedDict


class TicketRecord(TypedDict, total=False):
    """Row of active_tickets with form data decoded."""
    guild_id: int
    channel_id: int
    user_id: int
    category: str
    created_at: float
    status: str
    form_data: Optional[Dict[str, str]]
    claimed_by: Optional[int]
    summary_message_id: Optional[int]


class CategoryRecord(TypedDict, total=False):
    """Database-defined ticket category."""
    id: int
    guild_id: int
    name: str
    roles: List[int]
    created_at: float


class PanelRecord(TypedDict, total=False):
    """Deployed dropdown message."""
    id: int
    guild_id: int
    channel_id: int
    message_id: int
    title: str
    description: str
    categories: List[str]
    config_name: Optional[str]
    created_at: float


__all__ = [
    "TicketRecord",
    "CategoryRecord",
    "PanelRecord",
]
