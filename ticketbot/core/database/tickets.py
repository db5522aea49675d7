"""
TicketBot - Database Ticket Operations
======================================

Persistence for active_tickets, keyed by channel id.
"""

import json
import time
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ticketbot.core.logger import logger
from ticketbot.core.database.base import _safe_json_loads
from ticketbot.core.database.models import TicketRecord

if TYPE_CHECKING:
    from ticketbot.core.database.manager import DatabaseManager


TICKET_STATUS_OPEN = "open"
TICKET_STATUS_CLOSED = "closed"
TICKET_STATUSES = (TICKET_STATUS_OPEN, TICKET_STATUS_CLOSED)


def _row_to_ticket(row: Any) -> TicketRecord:
    record = dict(row)
    raw_form = record.pop("form_data_json", None)
    record["form_data"] = _safe_json_loads(raw_form, default={}) if raw_form else None
    return record


class TicketsMixin:
    """Mixin for ticket database operations."""

    def insert_ticket(
        self: "DatabaseManager",
        guild_id: int,
        channel_id: int,
        user_id: int,
        category: str,
        form_data: Optional[Dict[str, str]] = None,
        summary_message_id: Optional[int] = None,
    ) -> None:
        """
        Insert a ticket row.

        Inserting an existing (guild, channel) pair updates that row in place,
        so a retried create never produces a second row for one channel.
        """
        self.execute(
            """INSERT INTO active_tickets (
                guild_id, channel_id, user_id, category, created_at,
                status, form_data_json, summary_message_id
            ) VALUES (?, ?, ?, ?, ?, 'open', ?, ?)
            ON CONFLICT(guild_id, channel_id) DO UPDATE SET
                user_id = excluded.user_id,
                category = excluded.category,
                form_data_json = excluded.form_data_json,
                summary_message_id = COALESCE(excluded.summary_message_id, summary_message_id)""",
            (
                guild_id,
                channel_id,
                user_id,
                category,
                time.time(),
                json.dumps(form_data) if form_data is not None else None,
                summary_message_id,
            ),
        )
        logger.tree("Ticket Row Saved", [
            ("Channel ID", str(channel_id)),
            ("Category", category),
            ("User ID", str(user_id)),
            ("Form", f"{len(form_data)} fields" if form_data else "None"),
        ], emoji="💾")

    def get_ticket_by_channel(self: "DatabaseManager", channel_id: int) -> Optional[TicketRecord]:
        """Get a ticket by its channel id."""
        row = self.fetchone("SELECT * FROM active_tickets WHERE channel_id = ?", (channel_id,))
        return _row_to_ticket(row) if row else None

    def get_user_tickets(
        self: "DatabaseManager",
        guild_id: int,
        user_id: int,
        category: Optional[str] = None,
    ) -> List[TicketRecord]:
        """Get a user's tickets in a guild, optionally limited to one category."""
        if category is None:
            rows = self.fetchall(
                """SELECT * FROM active_tickets WHERE guild_id = ? AND user_id = ?
                   ORDER BY created_at ASC""",
                (guild_id, user_id),
            )
        else:
            rows = self.fetchall(
                """SELECT * FROM active_tickets
                   WHERE guild_id = ? AND user_id = ? AND category = ? COLLATE NOCASE
                   ORDER BY created_at ASC""",
                (guild_id, user_id, category),
            )
        return [_row_to_ticket(row) for row in rows]

    def get_open_tickets(self: "DatabaseManager", guild_id: int) -> List[TicketRecord]:
        """Get all open tickets for a guild, oldest first."""
        rows = self.fetchall(
            """SELECT * FROM active_tickets WHERE guild_id = ? AND status = 'open'
               ORDER BY created_at ASC""",
            (guild_id,),
        )
        return [_row_to_ticket(row) for row in rows]

    def get_all_tickets(self: "DatabaseManager", guild_id: int) -> List[TicketRecord]:
        rows = self.fetchall(
            "SELECT * FROM active_tickets WHERE guild_id = ? ORDER BY created_at ASC",
            (guild_id,),
        )
        return [_row_to_ticket(row) for row in rows]

    def count_open_user_tickets(
        self: "DatabaseManager",
        guild_id: int,
        user_id: int,
        category: str,
    ) -> int:
        row = self.fetchone(
            """SELECT COUNT(*) AS total FROM active_tickets
               WHERE guild_id = ? AND user_id = ? AND category = ? COLLATE NOCASE
               AND status = 'open'""",
            (guild_id, user_id, category),
        )
        return row["total"] if row else 0

    def delete_ticket(self: "DatabaseManager", channel_id: int) -> bool:
        """
        Delete a ticket row.

        Returns:
            True if a row was removed, False if none existed.
        """
        cursor = self.execute("DELETE FROM active_tickets WHERE channel_id = ?", (channel_id,))
        if cursor.rowcount > 0:
            logger.debug("Ticket Row Deleted", [("Channel ID", str(channel_id))])
            return True
        return False

    def set_ticket_status(self: "DatabaseManager", channel_id: int, status: str) -> bool:
        """Set a ticket's status; returns False if the ticket does not exist."""
        if status not in TICKET_STATUSES:
            raise ValueError(f"Unknown ticket status: {status}")
        cursor = self.execute(
            "UPDATE active_tickets SET status = ? WHERE channel_id = ?",
            (status, channel_id),
        )
        return cursor.rowcount > 0

    def set_ticket_claimed(self: "DatabaseManager", channel_id: int, staff_id: int) -> bool:
        """
        Record the claiming staff member on an open, unclaimed ticket.

        Returns:
            False if the ticket is gone, closed or already claimed.
        """
        cursor = self.execute(
            """UPDATE active_tickets SET claimed_by = ?
               WHERE channel_id = ? AND status = 'open' AND claimed_by IS NULL""",
            (staff_id, channel_id),
        )
        if cursor.rowcount > 0:
            logger.tree("Ticket Claimed", [
                ("Channel ID", str(channel_id)),
                ("Staff ID", str(staff_id)),
            ], emoji="✋")
            return True
        return False

    def set_summary_message(self: "DatabaseManager", channel_id: int, message_id: int) -> None:
        self.execute(
            "UPDATE active_tickets SET summary_message_id = ? WHERE channel_id = ?",
            (message_id, channel_id),
        )


__all__ = [
    "TicketsMixin",
    "TICKET_STATUS_OPEN",
    "TICKET_STATUS_CLOSED",
    "TICKET_STATUSES",
]
