"""
TicketBot - Configuration Module
================================

Environment configuration loaded once at startup.

DESIGN:
    Settings come from environment variables (populated from .env by
    main.py). Values are parsed and validated in load_config() so a bad
    deployment fails before the bot connects. The declarative panel
    document lives in core/panels.py and is validated separately.

    - get_config() returns the process-wide Config
    - ConfigValidationError is raised for missing or malformed values
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Set


# =============================================================================
# Close Actions
# =============================================================================

CLOSE_ACTION_DELETE = "delete"
CLOSE_ACTION_ARCHIVE = "archive"
CLOSE_ACTIONS = (CLOSE_ACTION_DELETE, CLOSE_ACTION_ARCHIVE)


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Bot configuration loaded from environment variables.

    Attributes:
        discord_token: Discord bot authentication token.
        config_path: Path of the panel document (JSON).
        database_path: SQLite database file.
        bypass_user_ids: Principals allowed to act as administrators.
        max_tickets_per_category: Open tickets a user may hold per category (0 = unlimited).
        owner_close_action: What happens to the channel when the owner closes.
        staff_close_action: What happens to the channel when staff close or deny.
    """

    # -------------------------------------------------------------------------
    # Required: Discord
    # -------------------------------------------------------------------------

    discord_token: str

    # -------------------------------------------------------------------------
    # Optional: Paths
    # -------------------------------------------------------------------------

    config_path: Path = Path("config.json")
    database_path: Path = Path("data") / "tickets.db"

    # -------------------------------------------------------------------------
    # Optional: Elevated Principals
    # -------------------------------------------------------------------------

    bypass_user_ids: Set[int] = field(default_factory=set)

    # -------------------------------------------------------------------------
    # Optional: Channels
    # -------------------------------------------------------------------------

    audit_channel_id: Optional[int] = None
    transcript_channel_id: Optional[int] = None
    open_category_name: str = "Open Tickets"
    closed_category_name: str = "Closed Tickets"

    # -------------------------------------------------------------------------
    # Optional: Ticket Policy
    # -------------------------------------------------------------------------

    max_tickets_per_category: int = 1
    owner_close_action: str = CLOSE_ACTION_DELETE
    staff_close_action: str = CLOSE_ACTION_ARCHIVE
    close_delay: float = 5.0
    cleanup_delete_delay: float = 1.0
    transcript_message_limit: int = 500

    # -------------------------------------------------------------------------
    # Optional: Display / Webhooks
    # -------------------------------------------------------------------------

    footer_text: str = "TicketBot"
    error_webhook_url: Optional[str] = None


# =============================================================================
# Embed Colors
# =============================================================================

class EmbedColors:
    """Color palette for ticket embeds."""

    GREEN = 0x2ECC71
    GOLD = 0xE6B84A
    RED = 0xDC3545
    BLUE = 0x3498DB
    BLURPLE = 0x5865F2
    GREY = 0x95A5A6

    SUCCESS = GREEN
    ERROR = RED
    WARNING = GOLD
    INFO = BLUE
    PANEL = BLURPLE
    CLAIMED = GOLD
    CLOSED = GREY


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


def _parse_int_optional(value: Optional[str], name: str) -> Optional[int]:
    """
    Parse an optional integer id.

    Raises:
        ConfigValidationError: If value is set but not an integer.
    """
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigValidationError(f"Invalid integer for {name}: {value}")


def _parse_int_set(value: Optional[str], name: str) -> Set[int]:
    """Parse comma-separated ids (e.g. "123,456") into a set."""
    if not value:
        return set()
    result = set()
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            result.add(int(part))
        except ValueError:
            raise ConfigValidationError(f"Invalid id in {name}: {part}")
    return result


def _parse_int_with_default(
    value: Optional[str],
    default: int,
    name: str,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """
    Parse optional integer with default and range clamping.

    Returns:
        Parsed integer within valid range, or default.
    """
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        from ticketbot.core.logger import logger
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default
    if min_val is not None and parsed < min_val:
        from ticketbot.core.logger import logger
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return min_val
    if max_val is not None and parsed > max_val:
        from ticketbot.core.logger import logger
        logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
        return max_val
    return parsed


def _parse_float_with_default(value: Optional[str], default: float, name: str, min_val: float = 0.0) -> float:
    if not value:
        return default
    try:
        parsed = float(value)
    except ValueError:
        from ticketbot.core.logger import logger
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default
    return max(parsed, min_val)


def _parse_close_action(value: Optional[str], default: str, name: str) -> str:
    if not value:
        return default
    action = value.strip().lower()
    if action not in CLOSE_ACTIONS:
        raise ConfigValidationError(
            f"Invalid {name}: {value} (expected one of: {', '.join(CLOSE_ACTIONS)})"
        )
    return action


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from ticketbot.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Returns:
        Validated Config object.

    Raises:
        ConfigValidationError: If a required variable is missing or invalid.
    """
    discord_token = os.getenv("DISCORD_TOKEN")
    if not discord_token:
        raise ConfigValidationError("Missing required environment variables: DISCORD_TOKEN")

    return Config(
        discord_token=discord_token,
        config_path=Path(os.getenv("TICKET_CONFIG_PATH", "config.json")),
        database_path=Path(os.getenv("DATABASE_PATH", str(Path("data") / "tickets.db"))),
        bypass_user_ids=_parse_int_set(os.getenv("BYPASS_USER_IDS"), "BYPASS_USER_IDS"),
        audit_channel_id=_parse_int_optional(os.getenv("AUDIT_CHANNEL_ID"), "AUDIT_CHANNEL_ID"),
        transcript_channel_id=_parse_int_optional(
            os.getenv("TRANSCRIPT_CHANNEL_ID"), "TRANSCRIPT_CHANNEL_ID"
        ),
        open_category_name=os.getenv("OPEN_CATEGORY_NAME", "Open Tickets"),
        closed_category_name=os.getenv("CLOSED_CATEGORY_NAME", "Closed Tickets"),
        max_tickets_per_category=_parse_int_with_default(
            os.getenv("MAX_TICKETS_PER_CATEGORY"), 1, "MAX_TICKETS_PER_CATEGORY", min_val=0, max_val=50
        ),
        owner_close_action=_parse_close_action(
            os.getenv("OWNER_CLOSE_ACTION"), CLOSE_ACTION_DELETE, "OWNER_CLOSE_ACTION"
        ),
        staff_close_action=_parse_close_action(
            os.getenv("STAFF_CLOSE_ACTION"), CLOSE_ACTION_ARCHIVE, "STAFF_CLOSE_ACTION"
        ),
        close_delay=_parse_float_with_default(os.getenv("TICKET_CLOSE_DELAY"), 5.0, "TICKET_CLOSE_DELAY"),
        cleanup_delete_delay=_parse_float_with_default(
            os.getenv("CLEANUP_DELETE_DELAY"), 1.0, "CLEANUP_DELETE_DELAY"
        ),
        transcript_message_limit=_parse_int_with_default(
            os.getenv("TRANSCRIPT_MESSAGE_LIMIT"), 500, "TRANSCRIPT_MESSAGE_LIMIT", min_val=10, max_val=5000
        ),
        footer_text=os.getenv("FOOTER_TEXT", "TicketBot"),
        error_webhook_url=_validate_url(os.getenv("ERROR_WEBHOOK_URL"), "ERROR_WEBHOOK_URL"),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading if needed.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def validate_and_log_config() -> Config:
    """Load the config (triggering validation) and log a summary."""
    from ticketbot.core.logger import logger

    config = get_config()

    logger.tree("Configuration Validated", [
        ("Panel Document", str(config.config_path)),
        ("Database", str(config.database_path)),
        ("Bypass Users", str(len(config.bypass_user_ids))),
        ("Max Per Category", str(config.max_tickets_per_category or "Unlimited")),
        ("Owner Close", config.owner_close_action),
        ("Staff Close", config.staff_close_action),
        ("Audit Channel", str(config.audit_channel_id or "Not set")),
    ], emoji="⚙️")
    return config


__all__ = [
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "CLOSE_ACTION_DELETE",
    "CLOSE_ACTION_ARCHIVE",
    "CLOSE_ACTIONS",
    "load_config",
    "get_config",
    "validate_and_log_config",
]
