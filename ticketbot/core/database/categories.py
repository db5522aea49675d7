"""
TicketBot - Database Category Operations
========================================

Admin-created ticket categories (the mutable registry layer).
"""

import json
import sqlite3
import time
from typing import List, Optional, Sequence, TYPE_CHECKING

from ticketbot.core.logger import logger
from ticketbot.core.database.base import _safe_json_loads
from ticketbot.core.database.models import CategoryRecord

if TYPE_CHECKING:
    from ticketbot.core.database.manager import DatabaseManager


def _row_to_category(row) -> CategoryRecord:
    record = dict(row)
    record["roles"] = [int(r) for r in _safe_json_loads(record.pop("roles_json", None), default=[])]
    return record


class CategoriesMixin:
    """Mixin for ticket category database operations."""

    def create_category(
        self: "DatabaseManager",
        guild_id: int,
        name: str,
        role_ids: Sequence[int] = (),
    ) -> bool:
        """
        Create a category.

        Returns:
            False if a category with the same name (case-insensitive) exists.
        """
        roles = sorted(set(int(r) for r in role_ids))
        try:
            with self.transaction() as tx:
                tx.execute(
                    """INSERT INTO ticket_categories (guild_id, name, roles_json, created_at)
                       VALUES (?, ?, ?, ?)""",
                    (guild_id, name, json.dumps(roles), time.time()),
                )
        except sqlite3.IntegrityError:
            return False

        logger.tree("Ticket Category Created", [
            ("Guild ID", str(guild_id)),
            ("Name", name),
            ("Roles", str(len(roles))),
        ], emoji="📁")
        return True

    def add_category_role(self: "DatabaseManager", guild_id: int, name: str, role_id: int) -> bool:
        """
        Append a role to an existing category.

        Returns:
            False if the category does not exist.
        """
        with self.transaction() as tx:
            tx.execute(
                "SELECT roles_json FROM ticket_categories WHERE guild_id = ? AND name = ?",
                (guild_id, name),
            )
            row = tx.fetchone()
            if not row:
                return False
            roles = set(int(r) for r in _safe_json_loads(row["roles_json"], default=[]))
            roles.add(int(role_id))
            tx.execute(
                "UPDATE ticket_categories SET roles_json = ? WHERE guild_id = ? AND name = ?",
                (json.dumps(sorted(roles)), guild_id, name),
            )
        return True

    def get_category(self: "DatabaseManager", guild_id: int, name: str) -> Optional[CategoryRecord]:
        row = self.fetchone(
            "SELECT * FROM ticket_categories WHERE guild_id = ? AND name = ?",
            (guild_id, name),
        )
        return _row_to_category(row) if row else None

    def get_categories(self: "DatabaseManager", guild_id: int) -> List[CategoryRecord]:
        rows = self.fetchall(
            "SELECT * FROM ticket_categories WHERE guild_id = ? ORDER BY id ASC",
            (guild_id,),
        )
        return [_row_to_category(row) for row in rows]

    def delete_category(self: "DatabaseManager", guild_id: int, name: str) -> bool:
        """
        Delete a category unless an active ticket still references it.

        Returns:
            True if the row was deleted.
        """
        cursor = self.execute(
            """DELETE FROM ticket_categories
               WHERE guild_id = ? AND name = ?
               AND NOT EXISTS (
                   SELECT 1 FROM active_tickets
                   WHERE active_tickets.guild_id = ? AND active_tickets.category = ? COLLATE NOCASE
               )""",
            (guild_id, name, guild_id, name),
        )
        if cursor.rowcount > 0:
            logger.tree("Ticket Category Deleted", [
                ("Guild ID", str(guild_id)),
                ("Name", name),
            ], emoji="🗑️")
            return True
        return False


__all__ = ["CategoriesMixin"]
