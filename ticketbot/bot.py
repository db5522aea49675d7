"""
TicketBot - Main Bot Class
==========================

Discord client that hosts the ticket service.

Features:
- /ticket command cog
- Persistent dropdowns and buttons (dynamic items survive restarts)
- Orphaned-ticket reconciliation on startup
- Process-wide error catch-alls for events and app commands
"""

import sys
from datetime import datetime

import discord
from discord import app_commands
from discord.ext import commands

from ticketbot.core.config import Config
from ticketbot.core.database import get_db
from ticketbot.core.logger import logger
from ticketbot.core.panels import PanelsDocument
from ticketbot.utils.error_handler import ErrorHandler


# =============================================================================
# TicketBot Class
# =============================================================================

class TicketBot(commands.Bot):
    """
    Main Discord bot class.

    SERVICE INITIALIZATION ORDER:
    1. setup_hook (before on_ready):
       - Command cog loading
       - Dynamic item registration
       - Command tree syncing

    2. on_ready:
       - Ticket service (reconciles every guild)
       - Error webhook
    """

    # =========================================================================
    # Initialization
    # =========================================================================

    def __init__(self, config: Config, document: PanelsDocument) -> None:
        self.config = config
        self.document = document

        intents = discord.Intents.default()
        intents.members = True

        super().__init__(
            command_prefix="!",
            intents=intents,
            help_command=None,
        )

        self.db = get_db()
        self.start_time: datetime = datetime.now()
        self.ticket_service = None
        self._ready_initialized: bool = False

        logger.info("Bot Instance Created")

    # =========================================================================
    # Setup Hook
    # =========================================================================

    async def setup_hook(self) -> None:
        """Load cogs, register dynamic items and sync commands before on_ready."""
        from ticketbot.commands import COMMAND_COGS
        for cog in COMMAND_COGS:
            try:
                await self.load_extension(cog)
                logger.info(f"Cog Loaded: {cog.split('.')[-1]}")
            except commands.ExtensionError as e:
                logger.error("Failed to Load Cog", [("Cog", cog), ("Error", str(e))])

        from ticketbot.services.tickets import setup_ticket_views
        setup_ticket_views(self)

        self.tree.on_error = self.on_app_command_error

        try:
            synced = await self.tree.sync()
            logger.tree("Commands Synced", [("Count", str(len(synced)))], emoji="✅")
        except discord.HTTPException as e:
            logger.error("Command Sync Failed", [("Error", str(e))])

    # =========================================================================
    # On Ready
    # =========================================================================

    async def on_ready(self) -> None:
        """Initialize services when bot is ready."""
        if self._ready_initialized:
            logger.info("Bot Reconnected (skipping re-initialization)")
            return

        self._ready_initialized = True

        if not self.user:
            return

        logger.tree("BOT ONLINE", [
            ("Name", self.user.name),
            ("ID", str(self.user.id)),
            ("Guilds", str(len(self.guilds))),
        ], emoji="🚀")

        if self.config.error_webhook_url:
            logger.set_webhook(self.config.error_webhook_url)

        from ticketbot.services.tickets import TicketService
        self.ticket_service = TicketService(self, self.config, self.document, self.db)
        await self.ticket_service.start()

        logger.tree("TICKETBOT READY", [
            ("Panels", str(len(self.document.panels))),
            ("Audit Log", "Enabled" if self.ticket_service.audit.enabled else "Disabled"),
            ("Transcripts", "Enabled" if self.config.transcript_channel_id else "Disabled"),
        ], emoji="🎫")

    # =========================================================================
    # Error Catch-Alls
    # =========================================================================

    async def on_error(self, event_method: str, *args, **kwargs) -> None:
        """Log any exception raised by an event handler and keep running."""
        error = sys.exc_info()[1]
        if error is None:
            logger.error("Unknown Event Error", [("Event", event_method)])
            return
        ErrorHandler.handle(error, location=f"event.{event_method}")

    async def on_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        """Log a failed slash command and reply to the user."""
        original = getattr(error, "original", error)
        command_name = interaction.command.qualified_name if interaction.command else "unknown"
        await ErrorHandler.handle_interaction_error(interaction, original, f"command.{command_name}")

        if self.ticket_service is not None:
            await self.ticket_service.audit.log_bot_error(original, f"/{command_name}")

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> None:
        """Graceful shutdown with proper cleanup."""
        logger.info("Initiating Graceful Shutdown")

        if self.ticket_service:
            await self.ticket_service.stop()

        self.db.close()
        await super().close()

        logger.tree("SHUTDOWN COMPLETE", [
            ("Uptime", str(datetime.now() - self.start_time)),
        ], emoji="🛑")

    async def close(self) -> None:
        """Override close to ensure proper shutdown."""
        await self.shutdown()


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["TicketBot"]
