"""
Application services for offering and booking coach availability.

The service fetches fresh snapshots through a store adapter and delegates
resolution, materialization, conflict marking and mutation planning to the
domain layer. The store protocol keeps the remote record store pluggable:
the JSON-file store, the in-memory store or a test stub.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence

from pendulum import Date

from ..domain.availability import AvailabilityCalculator
from ..domain.exceptions import WindowNotOffered
from ..domain.materializer import SlotMaterializer
from ..domain.models import BookableWindow, Booking, DeclaredSlot, Service, parse_date
from ..domain.mutations import MutationPlan, MutationPlanner, SlotCommand
from ..domain.resolver import DateLike, RuleResolver

logger = logging.getLogger(__name__)


class AvailabilityStoreProtocol(Protocol):
    """Protocol describing the record store operations needed by the service."""

    async def list_declared_slots(self, resource_id: str) -> List[DeclaredSlot]:
        """Return the declared slots of a coach."""

    async def list_blackout_dates(self, resource_id: str) -> List[Date]:
        """Return the blackout dates of a coach."""

    async def list_bookings(self, resource_id: str, start_date: Date, end_date: Date) -> List[Booking]:
        """Return bookings of a coach dated within ``[start_date, end_date]``."""

    async def list_services(self, resource_id: str) -> List[Service]:
        """Return the service catalog of a coach."""

    async def write_declared_slot(self, resource_id: str, slot: DeclaredSlot) -> None:
        """Insert or replace a declared slot by id."""

    async def delete_declared_slot(self, resource_id: str, slot_id: str) -> None:
        """Delete a declared slot."""

    async def add_blackout_date(self, resource_id: str, day: Date) -> None:
        """Add a blackout date."""

    async def remove_blackout_date(self, resource_id: str, day: Date) -> None:
        """Remove a blackout date."""

    async def create_booking(self, booking: Booking) -> Booking:
        """
        Persist a booking.

        Must atomically re-check that no active booking holds the same
        (date, resource, start time, service) and raise SlotAlreadyBooked otherwise.
        """

    async def cancel_booking(self, resource_id: str, booking_id: str) -> Booking:
        """Mark a booking as cancelled."""


class AvailabilityService:
    """
    Orchestrates snapshot retrieval, window calculation and slot mutations.

    The read side is an optimistic hint; ``book_window`` relies on the store's
    write-time check as the authority against double booking.
    """

    def __init__(
        self,
        store: AvailabilityStoreProtocol,
        materializer: Optional[SlotMaterializer] = None,
        planner: Optional[MutationPlanner] = None,
    ) -> None:
        self._store = store
        self._materializer = materializer or SlotMaterializer()
        self._planner = planner or MutationPlanner()

    async def find_windows(
        self,
        *,
        resource_id: str,
        on_date: DateLike,
        service_name: Optional[str] = None,
        not_before: Optional[datetime] = None,
    ) -> List[BookableWindow]:
        """
        Retrieve fresh data and compute the windows offered on a date.

        Booked windows are included with ``is_booked`` set.
        """
        day = parse_date(on_date)
        calculator, services = await self._load_calculator(resource_id)
        bookings = await self._store.list_bookings(resource_id, day, day)

        windows = calculator.windows_for_date(
            day, services, bookings, resource_id, not_before=not_before
        )

        if service_name is not None:
            windows = [window for window in windows if window.service == service_name]

        return windows

    async def find_open_days(
        self,
        *,
        resource_id: str,
        start_date: DateLike,
        end_date: DateLike,
        not_before: Optional[datetime] = None,
    ) -> Dict[Date, List[BookableWindow]]:
        """Return the days in range that still have at least one free window."""
        start = parse_date(start_date)
        end = parse_date(end_date)
        calculator, services = await self._load_calculator(resource_id)
        bookings = await self._store.list_bookings(resource_id, start, end)

        by_day = calculator.windows_between(
            start, end, services, bookings, resource_id, not_before=not_before
        )

        return {
            day: windows
            for day, windows in by_day.items()
            if any(not window.is_booked for window in windows)
        }

    async def declared_availability(self, *, resource_id: str) -> tuple[List[DeclaredSlot], List[Date]]:
        """Return the declared slots and blackout dates of a coach."""
        slots = await self._store.list_declared_slots(resource_id)
        blackout_dates = await self._store.list_blackout_dates(resource_id)
        return slots, blackout_dates

    async def apply(self, *, resource_id: str, command: SlotCommand) -> MutationPlan:
        """
        Plan a slot command against fresh data and issue the resulting writes.
        """
        slots = await self._store.list_declared_slots(resource_id)
        blackout_dates = await self._store.list_blackout_dates(resource_id)

        plan = self._planner.plan(command, slots, blackout_dates)

        if plan.is_empty:
            logger.info("%s for %s needs no writes", type(command).__name__, resource_id)
            return plan

        for slot_id in plan.deletes:
            await self._store.delete_declared_slot(resource_id, slot_id)
        for slot in plan.upserts:
            await self._store.write_declared_slot(resource_id, slot)
        for day in plan.blackouts_added:
            await self._store.add_blackout_date(resource_id, day)
        for day in plan.blackouts_removed:
            await self._store.remove_blackout_date(resource_id, day)

        logger.info(
            "%s for %s: %d upserted, %d deleted, %d blackouts added, %d removed",
            type(command).__name__,
            resource_id,
            len(plan.upserts),
            len(plan.deletes),
            len(plan.blackouts_added),
            len(plan.blackouts_removed),
        )
        return plan

    async def book_window(
        self,
        *,
        resource_id: str,
        window: BookableWindow,
        player_name: str = "",
        contact_email: str = "",
        notes: str = "",
        not_before: Optional[datetime] = None,
    ) -> Booking:
        """
        Book a chosen window.

        ``not_before`` applies the same cutoff as ``find_windows``: a window
        starting at or before it is no longer offered.

        Raises:
            WindowNotOffered: If the window is no longer part of the availability
            SlotAlreadyBooked: If another booking holds the window at write time
        """
        current = await self.find_windows(
            resource_id=resource_id,
            on_date=window.date,
            service_name=window.service,
            not_before=not_before,
        )
        offered = _match_window(current, window)
        if offered is None:
            raise WindowNotOffered(
                f"{window.service} at {window} is not offered by {resource_id} any more"
            )

        booking = Booking(
            id=uuid.uuid4().hex,
            resource_id=resource_id,
            date=offered.date,
            start_time=offered.start_time,
            end_time=offered.end_time,
            service_name=offered.service,
            player_name=player_name,
            contact_email=contact_email,
            location_id=offered.location_id,
            notes=notes,
        )

        created = await self._store.create_booking(booking)
        logger.info("Booked %s for %s (%s)", window, resource_id, created.id)
        return created

    async def cancel_booking(self, *, resource_id: str, booking_id: str) -> Booking:
        cancelled = await self._store.cancel_booking(resource_id, booking_id)
        logger.info("Cancelled booking %s for %s", booking_id, resource_id)
        return cancelled

    async def _load_calculator(self, resource_id: str) -> tuple[AvailabilityCalculator, List[Service]]:
        slots = await self._store.list_declared_slots(resource_id)
        blackout_dates = await self._store.list_blackout_dates(resource_id)
        services = await self._store.list_services(resource_id)

        resolver = RuleResolver(slots, blackout_dates)
        return AvailabilityCalculator(resolver, self._materializer), services


def _match_window(
    windows: Sequence[BookableWindow], chosen: BookableWindow
) -> Optional[BookableWindow]:
    """Find the freshly computed counterpart of a previously offered window."""
    for window in windows:
        if (
            window.start_time == chosen.start_time
            and window.end_time == chosen.end_time
            and window.service == chosen.service
        ):
            return window
    return None
