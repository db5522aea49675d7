"""
TicketBot - Error Handler
=========================

Error categorization, recovery hints and critical error capture.

Features:
- Categorizes exceptions (discord, database, config, general)
- Logs a recovery suggestion with each error
- Saves critical error context as JSON under logs/errors/
- Replies to the interaction that failed, if it can
- safe_execute decorator for fire-and-forget coroutines
"""

import functools
import json
import sqlite3
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import discord

from ticketbot.core.config import ConfigValidationError
from ticketbot.core.logger import logger


GENERIC_ERROR_MESSAGE = "❌ An error occurred while processing your request."


class ErrorContext:
    """Captures error context for logs and saved error files."""

    @staticmethod
    def get_full_context(e: BaseException, location: str, **kwargs) -> Dict[str, Any]:
        context = {
            "timestamp": datetime.now().isoformat(),
            "location": location,
            "error_type": type(e).__name__,
            "error_message": str(e),
            "traceback": "".join(traceback.format_exception(type(e), e, e.__traceback__)),
            "python_version": sys.version,
            "additional_context": {k: str(v)[:200] for k, v in kwargs.items()},
        }

        interaction = kwargs.get("interaction")
        if isinstance(interaction, discord.Interaction):
            data = interaction.data or {}
            context["discord_context"] = {
                "guild": interaction.guild.name if interaction.guild else "DM",
                "channel_id": interaction.channel_id,
                "user": str(interaction.user),
                "user_id": interaction.user.id,
                "custom_id": data.get("custom_id"),
                "command": interaction.command.qualified_name if interaction.command else None,
            }

        return context


class ErrorHandler:
    """Error handling with categories and recovery hints."""

    ERROR_CATEGORIES = {
        "config": (ConfigValidationError,),
        "discord": (discord.Forbidden, discord.NotFound, discord.HTTPException),
        "database": (sqlite3.Error,),
        "network": (ConnectionError, TimeoutError, OSError),
    }

    RECOVERY_SUGGESTIONS = (
        (ConfigValidationError, "Fix the configuration and restart"),
        (discord.Forbidden, "Check bot permissions (Manage Channels, Manage Roles) and role hierarchy"),
        (discord.NotFound, "Resource was deleted - stale rows are reconciled on next access"),
        (discord.HTTPException, "Discord API issue - retry the action"),
        (sqlite3.OperationalError, "Database locked or unavailable - retry the action"),
        (sqlite3.IntegrityError, "Database constraint violation - check for duplicate ids"),
        (sqlite3.Error, "General database error - check the database file"),
        (ConnectionError, "Network connection issue"),
        (TimeoutError, "Request timed out"),
    )

    @classmethod
    def categorize_error(cls, e: BaseException) -> str:
        for category, error_types in cls.ERROR_CATEGORIES.items():
            if isinstance(e, error_types):
                return category
        return "general"

    @classmethod
    def get_recovery_suggestion(cls, e: BaseException) -> str:
        for error_type, suggestion in cls.RECOVERY_SUGGESTIONS:
            if isinstance(e, error_type):
                return suggestion
        return "Unexpected error - check logs for details"

    @classmethod
    def handle(cls, e: BaseException, location: str, critical: bool = False, **context) -> None:
        """
        Log an error with category, recovery hint and context.

        Args:
            e: The exception.
            location: Where the error occurred.
            critical: Whether to also persist the full context to disk.
            **context: Additional context (interaction, channel id, ...).
        """
        category = cls.categorize_error(e)
        suggestion = cls.get_recovery_suggestion(e)
        full_context = ErrorContext.get_full_context(e, location, **context)

        details = [
            ("Location", location),
            ("Category", category.upper()),
            ("Type", full_context["error_type"]),
            ("Error", full_context["error_message"][:200]),
            ("Recovery", suggestion),
        ]
        if "discord_context" in full_context:
            dc = full_context["discord_context"]
            details.append(("User", f"{dc['user']} ({dc['user_id']})"))
            if dc.get("custom_id"):
                details.append(("Custom ID", dc["custom_id"]))
            if dc.get("command"):
                details.append(("Command", dc["command"]))

        if critical:
            logger.critical("CRITICAL ERROR", details)
            cls._store_critical_error(full_context)
        else:
            logger.error("Unhandled Error", details)

    @classmethod
    async def reply_with_error(
        cls,
        interaction: discord.Interaction,
        message: str = GENERIC_ERROR_MESSAGE,
    ) -> None:
        """Send an apologetic ephemeral reply; failures are logged."""
        try:
            if interaction.response.is_done():
                await interaction.followup.send(message, ephemeral=True)
            else:
                await interaction.response.send_message(message, ephemeral=True)
        except discord.HTTPException as e:
            logger.warning("Error Reply Failed", [
                ("User", str(interaction.user.id)),
                ("Error", str(e)[:100]),
            ])

    @classmethod
    async def handle_interaction_error(
        cls,
        interaction: discord.Interaction,
        error: BaseException,
        location: str,
    ) -> None:
        """Log an interaction failure and tell the user something went wrong."""
        cls.handle(error, location=location, interaction=interaction)
        await cls.reply_with_error(interaction)

    @staticmethod
    def _store_critical_error(context: Dict[str, Any]) -> Optional[Path]:
        error_dir = Path("logs/errors")
        try:
            error_dir.mkdir(exist_ok=True, parents=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            error_file = error_dir / f"error_{timestamp}.json"
            with open(error_file, "w", encoding="utf-8") as f:
                json.dump(context, f, indent=2, default=str)
        except OSError as save_error:
            logger.warning(f"Failed to save error details: {save_error}")
            return None

        logger.info(f"Critical error saved to {error_file}")
        return error_file


def safe_execute(func):
    """
    Decorator for fire-and-forget coroutines: log and return None on failure.

    Usage:
        @safe_execute
        async def post_audit(...):
            ...
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            ErrorHandler.handle(
                e,
                location=f"{func.__module__}.{func.__qualname__}",
                function_args=str(args)[:100],
                function_kwargs=str(kwargs)[:100],
            )
            return None

    return wrapper


__all__ = [
    "ErrorContext",
    "ErrorHandler",
    "safe_execute",
    "GENERIC_ERROR_MESSAGE",
]
