"""
TicketBot - Database Panel Operations
=====================================

Records of deployed dropdown messages.
"""

import json
import time
from typing import List, Optional, Sequence, TYPE_CHECKING

from ticketbot.core.logger import logger
from ticketbot.core.database.base import _safe_json_loads
from ticketbot.core.database.models import PanelRecord

if TYPE_CHECKING:
    from ticketbot.core.database.manager import DatabaseManager


def _row_to_panel(row) -> PanelRecord:
    record = dict(row)
    record["categories"] = list(_safe_json_loads(record.pop("categories_json", None), default=[]))
    return record


class PanelsMixin:
    """Mixin for ticket panel database operations."""

    def save_panel(
        self: "DatabaseManager",
        guild_id: int,
        channel_id: int,
        message_id: int,
        title: str,
        description: str,
        categories: Sequence[str],
        config_name: Optional[str] = None,
    ) -> int:
        """
        Persist a deployed panel.

        A config-sourced panel keeps a single record per (guild, config name):
        redeploying replaces the previous record atomically.

        Returns:
            Row id of the saved record.
        """
        with self.transaction() as tx:
            if config_name:
                tx.execute(
                    "DELETE FROM ticket_panels WHERE guild_id = ? AND config_name = ?",
                    (guild_id, config_name),
                )
            tx.execute(
                """INSERT INTO ticket_panels (
                    guild_id, channel_id, message_id, title, description,
                    categories_json, config_name, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    guild_id,
                    channel_id,
                    message_id,
                    title,
                    description,
                    json.dumps(list(categories)),
                    config_name,
                    time.time(),
                ),
            )
            panel_id = tx.lastrowid

        logger.tree("Ticket Panel Saved", [
            ("Guild ID", str(guild_id)),
            ("Channel ID", str(channel_id)),
            ("Message ID", str(message_id)),
            ("Source", config_name or "database"),
        ], emoji="📋")
        return panel_id

    def get_panels(self: "DatabaseManager", guild_id: int) -> List[PanelRecord]:
        rows = self.fetchall(
            "SELECT * FROM ticket_panels WHERE guild_id = ? ORDER BY id ASC",
            (guild_id,),
        )
        return [_row_to_panel(row) for row in rows]

    def update_panel_categories(self: "DatabaseManager", panel_id: int, categories: Sequence[str]) -> None:
        self.execute(
            "UPDATE ticket_panels SET categories_json = ? WHERE id = ?",
            (json.dumps(list(categories)), panel_id),
        )


__all__ = ["PanelsMixin"]
