"""
Database Schema Module
======================

Table definitions and column migrations.
"""

import sqlite3
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ticketbot.core.database.manager import DatabaseManager


class SchemaMixin:
    """Mixin for database schema initialization."""

    def _init_tables(self: "DatabaseManager") -> None:
        """
        Initialize all database tables.

        DESIGN: Tables are created if not exist, allowing safe restarts.
        Columns added after the first release are applied with ALTER TABLE.
        """
        conn = self._ensure_connection()
        cursor = conn.cursor()

        # -----------------------------------------------------------------
        # Ticket Categories Table
        # DESIGN: Admin-created categories; config.json categories take
        # precedence over rows with the same name
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS ticket_categories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                name TEXT NOT NULL COLLATE NOCASE,
                roles_json TEXT NOT NULL DEFAULT '[]',
                created_at REAL NOT NULL,
                UNIQUE(guild_id, name)
            )
        """)

        # -----------------------------------------------------------------
        # Ticket Panels Table
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS ticket_panels (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                channel_id INTEGER NOT NULL,
                message_id INTEGER NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                categories_json TEXT NOT NULL DEFAULT '[]',
                config_name TEXT,
                created_at REAL NOT NULL
            )
        """)
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_panels_guild ON ticket_panels(guild_id)"
        )

        # -----------------------------------------------------------------
        # Active Tickets Table
        # DESIGN: One row per ticket channel
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS active_tickets (
                guild_id INTEGER NOT NULL,
                channel_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                category TEXT NOT NULL,
                created_at REAL NOT NULL,
                status TEXT NOT NULL DEFAULT 'open',
                form_data_json TEXT,
                UNIQUE(guild_id, channel_id)
            )
        """)
        for col in [
            "claimed_by INTEGER",
            "summary_message_id INTEGER",
        ]:
            try:
                cursor.execute(f"ALTER TABLE active_tickets ADD COLUMN {col}")
            except sqlite3.OperationalError:
                pass
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_active_tickets_user ON active_tickets(guild_id, user_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_active_tickets_channel ON active_tickets(channel_id)"
        )

        # -----------------------------------------------------------------
        # Ticket Alerts Table
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS ticket_alerts (
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                created_at REAL NOT NULL,
                PRIMARY KEY (guild_id, user_id)
            )
        """)

        conn.commit()


__all__ = ["SchemaMixin"]
