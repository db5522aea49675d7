"""
TicketBot - Services
====================

Ticket lifecycle engine and the audit logger.
"""
