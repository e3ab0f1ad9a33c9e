"""
Tests for the AvailabilityService orchestration layer.
"""

import asyncio
import itertools
from datetime import time

import pendulum
import pytest

from coachslots.adapters.memory_store import InMemoryAvailabilityStore, ResourceData
from coachslots.domain.exceptions import (
    BookingNotFound,
    SlotAlreadyBooked,
    SlotNotFound,
    WindowNotOffered,
)
from coachslots.domain.models import (
    Booking,
    BookingStatus,
    DatedRule,
    RecurringRule,
    Service,
    TimeWindowSpec,
    parse_date,
)
from coachslots.domain.mutations import (
    AddBlackout,
    AddSlot,
    CopySlot,
    DeleteOccurrence,
    MutationPlanner,
    SlotDraft,
)
from coachslots.services.availability_service import AvailabilityService

COACH = "coach-sam"


def _build_store(write_latency: float = 0.0) -> InMemoryAvailabilityStore:
    weekly = RecurringRule(
        id="mon",
        day_of_week=1,
        window=TimeWindowSpec(
            start_time=time(9, 0),
            end_time=time(10, 0),
            services=("Private Lesson", "Assessment"),
        ),
    )
    extra = DatedRule(
        id="wed-extra",
        specific_date=parse_date("2025-03-12"),
        window=TimeWindowSpec(start_time=time(16, 0), end_time=time(17, 0), services=("Private Lesson",)),
    )
    data = ResourceData(
        slots=[weekly, extra],
        services=[Service("Private Lesson", 30), Service("Assessment", 60)],
    )
    return InMemoryAvailabilityStore(resources={COACH: data}, write_latency=write_latency)


def _build_service(store: InMemoryAvailabilityStore) -> AvailabilityService:
    counter = itertools.count(1)
    return AvailabilityService(store, planner=MutationPlanner(id_factory=lambda: f"new-{next(counter)}"))


def _booking(booking_id: str, start: time = time(9, 0)) -> Booking:
    return Booking(
        id=booking_id,
        resource_id=COACH,
        date=parse_date("2025-03-10"),
        start_time=start,
        end_time=time(9, 30),
        service_name="Private Lesson",
    )


def test_find_windows_lists_every_service():
    """Windows for all offered services come back sorted by start time."""
    service = _build_service(_build_store())

    windows = asyncio.run(service.find_windows(resource_id=COACH, on_date="2025-03-10"))

    assert [(w.start_time, w.service) for w in windows] == [
        (time(9, 0), "Private Lesson"),
        (time(9, 0), "Assessment"),
        (time(9, 30), "Private Lesson"),
    ]


def test_find_windows_service_filter():
    """Only windows for the requested service are returned."""
    service = _build_service(_build_store())

    windows = asyncio.run(
        service.find_windows(resource_id=COACH, on_date="2025-03-10", service_name="Assessment")
    )

    assert [(w.start_time, w.end_time) for w in windows] == [(time(9, 0), time(10, 0))]


def test_unknown_coach_has_no_windows():
    """A coach without records offers nothing."""
    service = _build_service(_build_store())

    assert asyncio.run(service.find_windows(resource_id="nobody", on_date="2025-03-10")) == []


def test_concurrent_create_booking_only_one_wins():
    """Two writers racing for the same window: exactly one succeeds."""
    store = _build_store(write_latency=0.01)

    async def scenario():
        return await asyncio.gather(
            store.create_booking(_booking("b1")),
            store.create_booking(_booking("b2")),
            return_exceptions=True,
        )

    results = asyncio.run(scenario())

    successes = [result for result in results if isinstance(result, Booking)]
    failures = [result for result in results if isinstance(result, SlotAlreadyBooked)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert str(failures[0]) == "This time is no longer available"
    assert len(store.resource(COACH).bookings) == 1


def test_concurrent_book_window_only_one_wins():
    """Two players booking the same offered window: one booking, one rejection."""
    store = _build_store(write_latency=0.01)
    service = _build_service(store)

    async def scenario():
        window = (await service.find_windows(resource_id=COACH, on_date="2025-03-10"))[1]
        results = await asyncio.gather(
            service.book_window(resource_id=COACH, window=window, player_name="Jamie"),
            service.book_window(resource_id=COACH, window=window, player_name="Riley"),
            return_exceptions=True,
        )
        after = await service.find_windows(resource_id=COACH, on_date="2025-03-10")
        return window, results, after

    window, results, after = asyncio.run(scenario())

    assert sum(isinstance(result, Booking) for result in results) == 1
    assert sum(isinstance(result, SlotAlreadyBooked) for result in results) == 1
    booked = [w for w in after if w.is_booked]
    assert [(w.start_time, w.service) for w in booked] == [(window.start_time, window.service)]


def test_overlapping_services_book_independently():
    """A booking for one service leaves overlapping windows of other services free."""
    store = _build_store()
    service = _build_service(store)

    async def scenario():
        windows = await service.find_windows(resource_id=COACH, on_date="2025-03-10")
        lesson = next(w for w in windows if w.service == "Private Lesson")
        await service.book_window(resource_id=COACH, window=lesson)
        return await service.find_windows(resource_id=COACH, on_date="2025-03-10")

    windows = asyncio.run(scenario())

    assert [(w.start_time, w.service, w.is_booked) for w in windows] == [
        (time(9, 0), "Private Lesson", True),
        (time(9, 0), "Assessment", False),
        (time(9, 30), "Private Lesson", False),
    ]


def test_cancel_then_rebook():
    """A cancelled booking frees the window again."""
    store = _build_store()
    service = _build_service(store)

    async def scenario():
        window = (await service.find_windows(resource_id=COACH, on_date="2025-03-12"))[0]
        first = await service.book_window(
            resource_id=COACH, window=window, player_name="Jamie", contact_email="parent@example.com"
        )
        cancelled = await service.cancel_booking(resource_id=COACH, booking_id=first.id)
        freed = await service.find_windows(resource_id=COACH, on_date="2025-03-12")
        second = await service.book_window(resource_id=COACH, window=window)
        return first, cancelled, freed, second

    first, cancelled, freed, second = asyncio.run(scenario())

    assert first.player_name == "Jamie"
    assert first.contact_email == "parent@example.com"
    assert cancelled.status is BookingStatus.CANCELLED
    assert not freed[0].is_booked
    assert second.id != first.id
    assert second.status is BookingStatus.CONFIRMED


def test_book_window_blacked_out_since_offered():
    """A window whose date was blacked out after it was shown cannot be booked."""
    store = _build_store()
    service = _build_service(store)

    async def scenario():
        window = (await service.find_windows(resource_id=COACH, on_date="2025-03-10"))[0]
        await service.apply(resource_id=COACH, command=AddBlackout("2025-03-10"))
        await service.book_window(resource_id=COACH, window=window)

    with pytest.raises(WindowNotOffered):
        asyncio.run(scenario())

    assert store.resource(COACH).bookings == []


def test_cancel_unknown_booking():
    """Cancelling a missing booking raises BookingNotFound."""
    service = _build_service(_build_store())

    with pytest.raises(BookingNotFound):
        asyncio.run(service.cancel_booking(resource_id=COACH, booking_id="ghost"))


def test_apply_writes_planned_slots():
    """Applying a copy command persists a new dated slot."""
    store = _build_store()
    service = _build_service(store)

    async def scenario():
        plan = await service.apply(resource_id=COACH, command=CopySlot("mon", "2025-03-13"))
        windows = await service.find_windows(resource_id=COACH, on_date="2025-03-13")
        return plan, windows

    plan, windows = asyncio.run(scenario())

    assert [slot.id for slot in plan.upserts] == ["new-1"]
    assert [slot.id for slot in store.resource(COACH).slots] == ["mon", "wed-extra", "new-1"]
    assert {w.source_slot_id for w in windows} == {"new-1"}


def test_apply_add_and_delete():
    """Adding and then deleting a slot through the service."""
    store = _build_store()
    service = _build_service(store)
    draft = SlotDraft(start_time="18:00", end_time="19:00", services=("Private Lesson",), is_recurring=False)

    async def scenario():
        await service.apply(resource_id=COACH, command=AddSlot(draft=draft, on_date="2025-03-14"))
        added = await service.find_windows(resource_id=COACH, on_date="2025-03-14")
        await service.apply(resource_id=COACH, command=DeleteOccurrence("new-1", "2025-03-14"))
        removed = await service.find_windows(resource_id=COACH, on_date="2025-03-14")
        return added, removed

    added, removed = asyncio.run(scenario())

    assert len(added) == 2
    assert removed == []


def test_apply_repeated_blackout_is_a_no_op():
    """A second identical blackout produces an empty plan."""
    store = _build_store()
    service = _build_service(store)

    async def scenario():
        first = await service.apply(resource_id=COACH, command=AddBlackout("2025-03-10"))
        second = await service.apply(resource_id=COACH, command=AddBlackout("2025-03-10"))
        return first, second

    first, second = asyncio.run(scenario())

    assert not first.is_empty
    assert second.is_empty
    assert store.resource(COACH).blackout_dates == [parse_date("2025-03-10")]


def test_apply_unknown_slot():
    """Commands targeting a missing slot raise SlotNotFound."""
    service = _build_service(_build_store())

    with pytest.raises(SlotNotFound):
        asyncio.run(service.apply(resource_id=COACH, command=CopySlot("ghost", "2025-03-13")))


def test_find_open_days_skips_fully_booked_days():
    """Days where every window is booked are not open."""
    store = _build_store()
    service = _build_service(store)

    async def scenario():
        for window in await service.find_windows(resource_id=COACH, on_date="2025-03-12"):
            await service.book_window(resource_id=COACH, window=window)
        return await service.find_open_days(
            resource_id=COACH, start_date="2025-03-09", end_date="2025-03-17"
        )

    open_days = asyncio.run(scenario())

    assert [day.to_date_string() for day in open_days] == ["2025-03-10", "2025-03-17"]


def test_declared_availability():
    """The declared slots and blackouts come back as stored."""
    store = _build_store()
    service = _build_service(store)

    async def scenario():
        await service.apply(resource_id=COACH, command=AddBlackout("2025-05-26"))
        return await service.declared_availability(resource_id=COACH)

    slots, blackouts = asyncio.run(scenario())

    assert [slot.id for slot in slots] == ["mon", "wed-extra"]
    assert blackouts == [parse_date("2025-05-26")]


def test_book_window_respects_cutoff():
    """A window that starts before the cutoff is no longer offered for booking."""
    store = _build_store()
    service = _build_service(store)
    cutoff = pendulum.datetime(2025, 3, 10, 9, 15, tz="America/New_York")

    async def scenario():
        windows = await service.find_windows(resource_id=COACH, on_date="2025-03-10")
        started, later = windows[0], windows[-1]
        with pytest.raises(WindowNotOffered):
            await service.book_window(resource_id=COACH, window=started, not_before=cutoff)
        return await service.book_window(resource_id=COACH, window=later, not_before=cutoff)

    booking = asyncio.run(scenario())

    assert booking.start_time == time(9, 30)
    assert len(store.resource(COACH).bookings) == 1
