"""
TicketBot - Ticket Service
==========================

Core service object for the ticket system.
"""

import asyncio
import weakref
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional, Tuple

import discord

from ticketbot.core.config import Config, ConfigValidationError
from ticketbot.core.database import DatabaseManager, get_db
from ticketbot.core.logger import logger
from ticketbot.core.panels import PanelsDocument, load_panels_document
from ticketbot.services.audit_log import AuditLogger

from .operations import OperationsMixin
from .panels import PanelsMixin
from .registry import CategoryRegistry
from .ticket_helpers import HelpersMixin

if TYPE_CHECKING:
    from ticketbot.bot import TicketBot


class TicketService(HelpersMixin, OperationsMixin, PanelsMixin):
    """
    Service for managing support tickets.

    DESIGN:
        Each ticket is a private text channel under the "Open Tickets"
        category, tracked by one active_tickets row keyed by channel id.
        Categories come from the panel document (config overlay) or from
        /ticket create (database registry); the overlay wins on name clashes.

        The panel document is passed in at construction and only replaced by
        reload_panels(). No operation re-reads it from disk.
    """

    def __init__(
        self,
        bot: "TicketBot",
        config: Config,
        document: PanelsDocument,
        db: Optional[DatabaseManager] = None,
    ) -> None:
        self.bot = bot
        self.config = config
        self.document = document
        self.db = db or get_db()
        self.registry = CategoryRegistry(document, self.db)
        self.audit = AuditLogger(bot, config)
        self._pending_closes: Dict[int, asyncio.Task] = {}
        self._closes_lock = asyncio.Lock()
        # entries vanish once no create_ticket call holds the lock
        self._creation_locks: "weakref.WeakValueDictionary[Tuple[int, int], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

        logger.tree("Ticket Service Initialized", [
            ("Panels", str(len(document.panels))),
            ("Max Per Category", str(config.max_tickets_per_category or "Unlimited")),
            ("Owner Close", config.owner_close_action),
            ("Staff Close", config.staff_close_action),
            ("Audit Channel", str(config.audit_channel_id or "Disabled")),
        ], emoji="🎫")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Remove rows whose channels disappeared while the bot was offline."""
        removed = 0
        for guild in self.bot.guilds:
            removed += await self.reconcile_guild(guild)

        logger.tree("Ticket Service Started", [
            ("Guilds", str(len(self.bot.guilds))),
            ("Orphans Removed", str(removed)),
        ], emoji="🎫")

    async def stop(self) -> None:
        """Cancel pending delayed closes."""
        async with self._closes_lock:
            tasks = list(self._pending_closes.values())
            self._pending_closes.clear()

        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.tree("Ticket Service Stopped", [
            ("Cancelled Closes", str(len(tasks))),
        ], emoji="🛑")

    def reload_panels(self, path: Optional[Path] = None) -> Tuple[bool, str]:
        """
        Re-read the panel document.

        The previous document stays active when the new one is invalid.
        """
        source = Path(path) if path else self.config.config_path
        try:
            document = load_panels_document(source)
        except ConfigValidationError as e:
            logger.error("Panel Reload Failed", [
                ("Path", str(source)),
                ("Error", str(e)[:200]),
            ])
            return False, f"Config not reloaded: {e}"

        self.document = document
        self.registry.replace_document(document)
        logger.tree("Panel Document Reloaded", [
            ("Path", str(source)),
            ("Panels", str(len(document.panels))),
        ], emoji="🔄")
        return True, f"Reloaded {len(document.panels)} panels from `{source}`."


__all__ = ["TicketService"]
