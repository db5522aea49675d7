"""
TicketBot - Utilities
=====================

Discord API helpers, background task helpers and error handling.
"""
