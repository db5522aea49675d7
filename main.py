#!/usr/bin/env python3
"""
TicketBot - Entry Point
=======================

Support-ticket bot: dropdown panels, intake forms and private ticket
channels with claim, approval, denial and close.

Startup order:
1. Load .env
2. Validate environment configuration (fail fast)
3. Load and validate the panel document (fail fast)
4. Point the database at DATABASE_PATH
5. Connect to Discord
"""

import asyncio
import sys

import discord
from dotenv import load_dotenv

from ticketbot.bot import TicketBot
from ticketbot.core.config import ConfigValidationError, validate_and_log_config
from ticketbot.core.database import set_db_path
from ticketbot.core.logger import logger
from ticketbot.core.panels import load_panels_document
from ticketbot.utils.error_handler import ErrorHandler


async def main() -> None:
    """
    Main entry point.

    Raises:
        SystemExit: If configuration is invalid or the bot fails to start.
    """
    load_dotenv()

    logger.tree("TICKETBOT STARTING", [
        ("Commands", "/ticket"),
    ], "🎫")

    try:
        config = validate_and_log_config()
        document = load_panels_document(config.config_path)
    except ConfigValidationError as e:
        logger.error("Invalid Configuration", [("Error", str(e))])
        sys.exit(1)

    set_db_path(config.database_path)

    bot = TicketBot(config, document)
    try:
        async with bot:
            await bot.start(config.discord_token)
    except (discord.LoginFailure, discord.PrivilegedIntentsRequired) as e:
        ErrorHandler.handle(e, location="main.main", critical=True)
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("🛑 Bot stopped by user (Ctrl+C)")
    except Exception as e:
        ErrorHandler.handle(
            e,
            location="main.__main__",
            critical=True,
        )
        sys.exit(1)
