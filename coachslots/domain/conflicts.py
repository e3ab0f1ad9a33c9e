"""
Marking of bookable windows that existing bookings already hold.

Matching is exact on (date, resource, start time, service) rather than by
interval overlap: materialization is deterministic, so an identical start
time for the same service means the identical window.
"""

from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from .models import BookableWindow, Booking, BookingKey, parse_date


def find_active_booking(bookings: Iterable[Booking], key: BookingKey) -> Optional[Booking]:
    """Return the non-cancelled booking holding ``key``, if any."""
    for booking in bookings:
        if booking.is_active and booking.key == key:
            return booking
    return None


def annotate(
    windows: Sequence[BookableWindow],
    bookings: Sequence[Booking],
    on_date,
    resource_id: str,
) -> List[BookableWindow]:
    """
    Return copies of ``windows`` with ``is_booked`` set from ``bookings``.

    Booked windows stay in the list so callers can show them as taken.
    """
    day = parse_date(on_date)
    taken = {
        (booking.start_time, booking.service_name)
        for booking in bookings
        if booking.is_active and booking.date == day and booking.resource_id == resource_id
    }

    return [
        replace(window, is_booked=_is_taken(window, day, taken))
        for window in windows
    ]


def _is_taken(window: BookableWindow, day, taken: set) -> bool:
    if window.date != day:
        return False
    return (window.start_time, window.service) in taken
