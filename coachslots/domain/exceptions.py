"""
Domain-specific exception hierarchy for the coach booking core.
"""


class CoachSlotsError(Exception):
    """Base class for all application-level errors."""


class InvalidDate(CoachSlotsError):
    """Raised when a calendar date is malformed or a date range is inverted."""


class InvalidService(CoachSlotsError):
    """Raised when a service cannot be subdivided into bookable windows."""


class InvalidSlotShape(CoachSlotsError):
    """Raised when a declared slot is neither a valid recurring nor a valid dated rule."""


class SlotNotFound(CoachSlotsError):
    """Raised when a mutation targets a declared slot that does not exist."""


class SlotAlreadyBooked(CoachSlotsError):
    """Raised at write time when another booking already holds the same window."""

    def __init__(self, message: str = "This time is no longer available", *, key=None):
        super().__init__(message)
        self.key = key


class WindowNotOffered(CoachSlotsError):
    """Raised when a window chosen for booking is no longer part of the availability."""


class BookingNotFound(CoachSlotsError):
    """Raised when cancelling a booking that does not exist."""


class StoreError(CoachSlotsError):
    """Raised when the backing store cannot be read or written."""
