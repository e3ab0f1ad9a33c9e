"""
In-memory record store for coach availability.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from pendulum import Date

from ..domain.conflicts import find_active_booking
from ..domain.exceptions import BookingNotFound, SlotAlreadyBooked, SlotNotFound
from ..domain.models import Booking, BookingStatus, DeclaredSlot, Service, parse_date

logger = logging.getLogger(__name__)


@dataclass
class ResourceData:
    """Everything the store keeps for one coach/resource."""
    slots: List[DeclaredSlot] = field(default_factory=list)
    blackout_dates: List[Date] = field(default_factory=list)
    services: List[Service] = field(default_factory=list)
    bookings: List[Booking] = field(default_factory=list)


class InMemoryAvailabilityStore:
    """
    Store adapter keeping all records in process memory.

    ``create_booking`` is the authoritative conflict point: the existence check
    and the insert happen under one lock, so of two concurrent writers for the
    same window exactly one succeeds.
    """

    def __init__(
        self,
        resources: Optional[Dict[str, ResourceData]] = None,
        write_latency: float = 0.0,
    ):
        """
        Initialize the store.

        Args:
            resources: Initial data per resource id
            write_latency: Seconds to wait inside each booking write, to mimic a remote store
        """
        self._resources: Dict[str, ResourceData] = dict(resources or {})
        self.write_latency = write_latency
        self._booking_lock = asyncio.Lock()

    @property
    def resource_ids(self) -> List[str]:
        return list(self._resources)

    def resource(self, resource_id: str) -> ResourceData:
        """Return the data of a resource; unknown ids read as empty and are not stored."""
        return self._resources.get(resource_id) or ResourceData()

    def _writable(self, resource_id: str) -> ResourceData:
        return self._resources.setdefault(resource_id, ResourceData())

    async def list_declared_slots(self, resource_id: str) -> List[DeclaredSlot]:
        return list(self.resource(resource_id).slots)

    async def list_blackout_dates(self, resource_id: str) -> List[Date]:
        return list(self.resource(resource_id).blackout_dates)

    async def list_bookings(self, resource_id: str, start_date, end_date) -> List[Booking]:
        start = parse_date(start_date)
        end = parse_date(end_date)
        return [
            booking
            for booking in self.resource(resource_id).bookings
            if start <= booking.date <= end
        ]

    async def list_services(self, resource_id: str) -> List[Service]:
        return list(self.resource(resource_id).services)

    async def write_declared_slot(self, resource_id: str, slot: DeclaredSlot) -> None:
        slots = self._writable(resource_id).slots
        for index, existing in enumerate(slots):
            if existing.id == slot.id:
                slots[index] = slot
                break
        else:
            slots.append(slot)
        self._changed()

    async def delete_declared_slot(self, resource_id: str, slot_id: str) -> None:
        data = self.resource(resource_id)
        remaining = [slot for slot in data.slots if slot.id != slot_id]
        if len(remaining) == len(data.slots):
            raise SlotNotFound(f"Slot {slot_id} not found for {resource_id}")
        data.slots = remaining
        self._changed()

    async def add_blackout_date(self, resource_id: str, day) -> None:
        data = self._writable(resource_id)
        day = parse_date(day)
        if day not in data.blackout_dates:
            data.blackout_dates = sorted([*data.blackout_dates, day])
            self._changed()

    async def remove_blackout_date(self, resource_id: str, day) -> None:
        data = self.resource(resource_id)
        day = parse_date(day)
        if day in data.blackout_dates:
            data.blackout_dates = [existing for existing in data.blackout_dates if existing != day]
            self._changed()

    async def create_booking(self, booking: Booking) -> Booking:
        async with self._booking_lock:
            bookings = self._writable(booking.resource_id).bookings

            holder = find_active_booking(bookings, booking.key)
            if holder is not None:
                logger.info("Rejected booking for %s: already held by %s", booking.key, holder.id)
                raise SlotAlreadyBooked(key=booking.key)

            if self.write_latency:
                await asyncio.sleep(self.write_latency)

            bookings.append(booking)
            self._changed()
            return booking

    async def cancel_booking(self, resource_id: str, booking_id: str) -> Booking:
        bookings = self.resource(resource_id).bookings
        for index, booking in enumerate(bookings):
            if booking.id == booking_id:
                cancelled = replace(booking, status=BookingStatus.CANCELLED)
                bookings[index] = cancelled
                self._changed()
                return cancelled
        raise BookingNotFound(f"Booking {booking_id} not found for {resource_id}")

    def _changed(self) -> None:
        """Hook called after every mutation."""
