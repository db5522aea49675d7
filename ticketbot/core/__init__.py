"""
TicketBot - Core Package
========================

Configuration, logging, constants and persistence.
"""
