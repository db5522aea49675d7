"""
TicketBot - Ticket Errors
=========================

Domain errors raised inside the ticket service.

Public service operations catch TicketError and turn it into a
(success, message) result; the message is safe to show to users.
"""


class TicketError(Exception):
    """Base class for user-facing ticket failures."""

    pass


class TicketNotFound(TicketError):
    """The channel has no ticket row."""

    def __init__(self, channel_id: int) -> None:
        self.channel_id = channel_id
        super().__init__("This channel is not an active ticket.")


class CategoryNotFound(TicketError):
    """A category name did not resolve in config or the database."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Category **{name}** is not available.")


class TicketPermissionDenied(TicketError):
    """The actor is not allowed to perform the action."""

    pass


class TicketLimitReached(TicketError):
    """The user already holds the maximum number of open tickets in a category."""

    def __init__(self, message: str, existing_channel_id: int = 0) -> None:
        self.existing_channel_id = existing_channel_id
        super().__init__(message)


__all__ = [
    "TicketError",
    "TicketNotFound",
    "CategoryNotFound",
    "TicketPermissionDenied",
    "TicketLimitReached",
]
