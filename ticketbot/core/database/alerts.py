"""
TicketBot - Database Alert Subscriptions
========================================

Opt-in DM alerts for new tickets.
"""

import time
from typing import List, TYPE_CHECKING

from ticketbot.core.logger import logger

if TYPE_CHECKING:
    from ticketbot.core.database.manager import DatabaseManager


class AlertsMixin:
    """Mixin for alert subscription operations."""

    def toggle_alert(self: "DatabaseManager", guild_id: int, user_id: int) -> bool:
        """
        Flip a user's alert subscription.

        Returns:
            True if the user is now subscribed.
        """
        with self.transaction() as tx:
            tx.execute(
                "DELETE FROM ticket_alerts WHERE guild_id = ? AND user_id = ?",
                (guild_id, user_id),
            )
            if tx.rowcount > 0:
                enabled = False
            else:
                tx.execute(
                    "INSERT INTO ticket_alerts (guild_id, user_id, created_at) VALUES (?, ?, ?)",
                    (guild_id, user_id, time.time()),
                )
                enabled = True

        logger.tree("Ticket Alerts Toggled", [
            ("Guild ID", str(guild_id)),
            ("User ID", str(user_id)),
            ("Enabled", str(enabled)),
        ], emoji="🔔")
        return enabled

    def get_alert_subscribers(self: "DatabaseManager", guild_id: int) -> List[int]:
        rows = self.fetchall(
            "SELECT user_id FROM ticket_alerts WHERE guild_id = ? ORDER BY created_at ASC",
            (guild_id,),
        )
        return [row["user_id"] for row in rows]


__all__ = ["AlertsMixin"]
