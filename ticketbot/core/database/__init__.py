"""
TicketBot - Database Module
===========================

SQLite persistence for tickets, categories, panels and alert subscriptions.
"""

from ticketbot.core.database.manager import (
    DatabaseManager,
    get_db,
    set_db_path,
)
from ticketbot.core.database.base import _safe_json_loads
from ticketbot.core.database.tickets import (
    TICKET_STATUS_OPEN,
    TICKET_STATUS_CLOSED,
)
from ticketbot.core.database.models import (
    TicketRecord,
    CategoryRecord,
    PanelRecord,
)

__all__ = [
    "DatabaseManager",
    "get_db",
    "set_db_path",
    "_safe_json_loads",
    "TICKET_STATUS_OPEN",
    "TICKET_STATUS_CLOSED",
    "TicketRecord",
    "CategoryRecord",
    "PanelRecord",
]
