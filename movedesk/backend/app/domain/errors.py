"""Exceptions shared by the domain, repositories and use cases."""


class MoveDeskError(Exception):
    """Base exception for MoveDesk errors."""


class ValidationError(MoveDeskError):
    """Raised when a quote or booking request is structurally invalid."""


class UpstreamUnavailable(MoveDeskError):
    """Raised when the pricing config or appointment store cannot be read."""


class SlotConflict(MoveDeskError):
    """Raised by the store when a write loses the race for a slot seat."""


class NotFound(MoveDeskError):
    """Raised when a booking id does not exist."""


class InvalidTransition(MoveDeskError):
    """Raised when an appointment cannot move to the requested state."""
