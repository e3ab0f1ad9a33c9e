"""
Core business logic for calculating bookable windows.

This is the heart of the application - pure domain logic without any
external dependencies (no store access, no I/O).
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from pendulum import Date

from .conflicts import annotate
from .exceptions import InvalidDate
from .materializer import SlotMaterializer
from .models import BookableWindow, Booking, Service, parse_date
from .resolver import DateLike, RuleResolver

logger = logging.getLogger(__name__)


class AvailabilityCalculator:
    """
    Calculates the bookable windows of one coach for a date.

    Algorithm:
    1. Resolve the declared slots applying on the date (blackouts veto all)
    2. Subdivide every slot once per offered service
    3. Mark windows held by existing bookings
    4. Drop windows that already started, when a cutoff is given
    """

    def __init__(self, resolver: RuleResolver, materializer: Optional[SlotMaterializer] = None):
        self.resolver = resolver
        self.materializer = materializer or SlotMaterializer()

    def windows_for_date(
        self,
        on_date: DateLike,
        services: Sequence[Service],
        bookings: Sequence[Booking],
        resource_id: str,
        not_before: Optional[datetime] = None,
    ) -> List[BookableWindow]:
        """
        Compute all windows offered on ``on_date``, booked ones included.

        Args:
            on_date: The calendar date
            services: The coach's service catalog
            bookings: Bookings of the coach (any dates; filtered here)
            resource_id: The coach/resource the bookings must belong to
            not_before: Local "now"; windows starting at or before it are dropped

        Returns:
            Windows sorted by start time
        """
        day = parse_date(on_date)
        catalog: Dict[str, Service] = {service.name: service for service in services}

        windows: List[BookableWindow] = []
        for slot in self.resolver.applicable_slots(day):
            for service in services:
                if not slot.window.offers(service.name):
                    continue
                windows.extend(self.materializer.materialize(slot, service, day))

            unknown = [name for name in slot.window.services if name not in catalog]
            if unknown:
                logger.debug("Slot %s offers unknown services %s, skipped", slot.id, unknown)

        windows = annotate(windows, bookings, day, resource_id)

        if not_before is not None:
            windows = [window for window in windows if _starts_after(window, not_before)]

        return sorted(
            windows,
            key=lambda w: (w.start_time, w.end_time, w.service, w.source_slot_id),
        )

    def windows_between(
        self,
        start: DateLike,
        end: DateLike,
        services: Sequence[Service],
        bookings: Sequence[Booking],
        resource_id: str,
        not_before: Optional[datetime] = None,
    ) -> Dict[Date, List[BookableWindow]]:
        """
        Compute windows for every day in ``[start, end]``.

        Days without any window are omitted from the result.
        """
        current = parse_date(start)
        last = parse_date(end)

        if last < current:
            raise InvalidDate(f"End date {last} is before start date {current}")

        result: Dict[Date, List[BookableWindow]] = {}
        while current <= last:
            windows = self.windows_for_date(
                current, services, bookings, resource_id, not_before=not_before
            )
            if windows:
                result[current] = windows
            current = current.add(days=1)

        return result


def _starts_after(window: BookableWindow, cutoff: datetime) -> bool:
    cutoff_time = cutoff.time().replace(second=0, microsecond=0)
    return (window.date, window.start_time) > (cutoff.date(), cutoff_time)
