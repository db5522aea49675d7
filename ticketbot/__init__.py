"""
TicketBot
=========

Discord support-ticket bot: category dropdowns, intake forms, private
ticket channels, staff claim / approve / deny / close, role grants,
transcripts and audit logging.
"""

__version__ = "1.0.0"
