"""
Ticket System Constants
=======================

Custom ids, emojis and defaults for the ticket system.
"""

# =============================================================================
# Custom IDs
# =============================================================================

# Dropdown: "ticket_dropdown" (database panel) or "ticket_dropdown:<panel name>"
PANEL_SELECT_ID = "ticket_dropdown"

# Summary message buttons (inside the ticket channel)
CLAIM_BUTTON_PREFIX = "claim_ticket_"
CLOSE_BUTTON_PREFIX = "close_ticket_"
DELETE_BUTTON_PREFIX = "delete_ticket_"
ROLE_GIVER_PREFIX = "roleGiver_"

# /ticket menu buttons (sent to an admin)
APPROVE_BUTTON_PREFIX = "approve_ticket_"
DENY_BUTTON_PREFIX = "deny_ticket_"
MENU_CLOSE_BUTTON_PREFIX = "close_ticket_menu_"

# Modal: "ticket_form:<category name>"
FORM_MODAL_PREFIX = "ticket_form:"


# =============================================================================
# Button Groups
# =============================================================================

GROUP_BASE = "base"
GROUP_ROLE_GIVERS = "role_givers"


# =============================================================================
# Emojis
# =============================================================================

TICKET_EMOJI = "🎫"
CLAIM_EMOJI = "✋"
CLOSE_EMOJI = "🔒"
DELETE_EMOJI = "🗑️"
APPROVE_EMOJI = "✅"
DENY_EMOJI = "⛔"
ALERT_EMOJI = "🔔"


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_CHANNEL_TEMPLATE = "ticket-{username}"
DEFAULT_CHANNEL_NAME = "ticket"
DEFAULT_FORM_TITLE = "Ticket Details"
USED_LABEL_SUFFIX = "(Used)"
