"""
TicketBot - Commands Package
============================

Slash command cogs. Each module exposes an async setup(bot) and is listed
in COMMAND_COGS so the bot loads it with load_extension() on startup.

Available Commands:
    /ticket panel | create | list | alerts | categories | close | menu |
            deploy | cleanup | setup | refresh
"""

# =============================================================================
# Command Cog Registry
# =============================================================================

COMMAND_COGS = [
    "ticketbot.commands.ticket",
]


__all__ = [
    "COMMAND_COGS",
]
