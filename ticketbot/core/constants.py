"""
TicketBot - Centralized Constants
=================================

Fixed limits and timings shared across modules.
Tunable policy values live in core/config.py instead.
"""

# =============================================================================
# Database
# =============================================================================

DB_CONNECTION_TIMEOUT = 30.0          # sqlite3.connect timeout (seconds)
SQLITE_BUSY_TIMEOUT = 5000            # PRAGMA busy_timeout (ms)

# =============================================================================
# Discord Limits
# =============================================================================

CHANNEL_NAME_LIMIT = 100
EMBED_TITLE_LIMIT = 256
EMBED_DESCRIPTION_LIMIT = 4096
EMBED_FIELD_VALUE_LIMIT = 1024
EMBED_FIELDS_LIMIT = 25
SELECT_OPTIONS_LIMIT = 25
BUTTONS_PER_ROW = 5
ACTION_ROWS_LIMIT = 5

# =============================================================================
# Cleanup / History
# =============================================================================

PANEL_PURGE_SCAN_LIMIT = 100          # Messages scanned when purging a panel channel
SUMMARY_SCAN_LIMIT = 10               # Messages scanned for the summary when its id is unknown

# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "DB_CONNECTION_TIMEOUT",
    "SQLITE_BUSY_TIMEOUT",
    "CHANNEL_NAME_LIMIT",
    "EMBED_TITLE_LIMIT",
    "EMBED_DESCRIPTION_LIMIT",
    "EMBED_FIELD_VALUE_LIMIT",
    "EMBED_FIELDS_LIMIT",
    "SELECT_OPTIONS_LIMIT",
    "BUTTONS_PER_ROW",
    "ACTION_ROWS_LIMIT",
    "PANEL_PURGE_SCAN_LIMIT",
    "SUMMARY_SCAN_LIMIT",
]
