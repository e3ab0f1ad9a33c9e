"""
Domain models for declared availability, services, bookings and bookable windows.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import ClassVar, Iterable, Optional, Tuple, Union

import pendulum
from pendulum import Date

from .exceptions import InvalidDate, InvalidSlotShape

MINUTES_PER_DAY = 24 * 60

WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)


def parse_date(value: Union[str, date, datetime]) -> Date:
    """
    Normalize a calendar date given as a string, date or datetime.

    Args:
        value: ``YYYY-MM-DD`` string, ``date`` or ``datetime``

    Returns:
        A pendulum ``Date``

    Raises:
        InvalidDate: If the value is not a valid calendar date
    """
    if isinstance(value, datetime):
        value = value.date()

    if isinstance(value, date):
        return pendulum.date(value.year, value.month, value.day)

    if isinstance(value, str):
        try:
            return pendulum.from_format(value.strip(), "YYYY-MM-DD").date()
        except ValueError as exc:
            raise InvalidDate(f"Invalid date '{value}', expected YYYY-MM-DD") from exc

    raise InvalidDate(f"Unsupported date value: {value!r}")


def parse_clock(value: Union[str, time]) -> time:
    """Parse an ``HH:MM`` time of day."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)

    try:
        return datetime.strptime(str(value).strip(), "%H:%M").time()
    except ValueError as exc:
        raise InvalidSlotShape(f"Invalid time '{value}', expected HH:MM") from exc


def weekday_index(day: date) -> int:
    """Day of week with 0=Sunday, 6=Saturday (the convention stored slots use)."""
    return day.isoweekday() % 7


def to_minutes(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    """Inverse of :func:`to_minutes`."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(hour=minutes // 60, minute=minutes % 60)


def format_clock(value: time) -> str:
    return value.strftime("%H:%M")


def _unique(names: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return tuple(seen)


@dataclass(frozen=True)
class TimeWindowSpec:
    """
    The time range and booking options shared by every kind of declared slot.

    Invariant: start_time is before end_time and buffers are non-negative.
    """
    start_time: time
    end_time: time
    services: Tuple[str, ...] = ()
    buffer_before: int = 0
    buffer_after: int = 0
    location_id: Optional[str] = None

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise InvalidSlotShape(
                f"Start time {format_clock(self.start_time)} must be before "
                f"end time {format_clock(self.end_time)}"
            )
        if self.buffer_before < 0 or self.buffer_after < 0:
            raise InvalidSlotShape("Buffers must be non-negative minute counts")
        object.__setattr__(self, "services", _unique(self.services))

    def span_minutes(self) -> int:
        """Return the length of the declared range in minutes."""
        return to_minutes(self.end_time) - to_minutes(self.start_time)

    def offers(self, service_name: str) -> bool:
        return service_name in self.services


@dataclass(frozen=True)
class RecurringRule:
    """
    Weekly availability on one day of the week, optionally bounded by
    an inclusive date range. A missing end date means the rule never expires.
    """
    id: str
    day_of_week: int
    window: TimeWindowSpec
    start_date: Optional[Date] = None
    end_date: Optional[Date] = None

    is_recurring: ClassVar[bool] = True

    def __post_init__(self):
        if not 0 <= self.day_of_week <= 6:
            raise InvalidSlotShape(f"day_of_week must be between 0 and 6, got {self.day_of_week}")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise InvalidSlotShape(
                f"Recurring start date {self.start_date} is after end date {self.end_date}"
            )

    def applies_on(self, day: date) -> bool:
        """Check whether the rule produces an occurrence on the given date."""
        if weekday_index(day) != self.day_of_week:
            return False
        if self.start_date is not None and day < self.start_date:
            return False
        if self.end_date is not None and day > self.end_date:
            return False
        return True

    def describe(self) -> str:
        text = f"every {WEEKDAY_NAMES[self.day_of_week]}"
        if self.start_date:
            text += f" from {self.start_date.isoformat()}"
        if self.end_date:
            text += f" until {self.end_date.isoformat()}"
        return text


@dataclass(frozen=True)
class DatedRule:
    """Availability on exactly one calendar date."""
    id: str
    specific_date: Date
    window: TimeWindowSpec

    is_recurring: ClassVar[bool] = False

    @property
    def day_of_week(self) -> int:
        return weekday_index(self.specific_date)

    def applies_on(self, day: date) -> bool:
        return day == self.specific_date

    def describe(self) -> str:
        return f"on {self.specific_date.isoformat()}"


DeclaredSlot = Union[RecurringRule, DatedRule]


@dataclass(frozen=True)
class Service:
    """A bookable service with a fixed duration in minutes."""
    name: str
    duration: int
    color: str = "#22c55e"


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


BookingKey = Tuple[Date, str, time, str]


@dataclass(frozen=True)
class Booking:
    """
    A reservation of one window with a coach.

    Only non-cancelled bookings take part in conflict detection.
    """
    id: str
    resource_id: str
    date: Date
    start_time: time
    end_time: time
    service_name: str
    status: BookingStatus = BookingStatus.CONFIRMED
    player_name: str = ""
    contact_email: str = ""
    location_id: Optional[str] = None
    notes: str = ""

    @property
    def is_active(self) -> bool:
        return self.status != BookingStatus.CANCELLED

    @property
    def key(self) -> BookingKey:
        return (self.date, self.resource_id, self.start_time, self.service_name)


@dataclass(frozen=True)
class BookableWindow:
    """
    A concrete, service-sized interval derived from a declared slot for one date.

    Never persisted; recomputed whenever slots, blackouts or bookings change.
    """
    date: Date
    start_time: time
    end_time: time
    service: str
    source_slot_id: str
    is_booked: bool = False
    location_id: Optional[str] = None

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return to_minutes(self.end_time) - to_minutes(self.start_time)

    def key(self, resource_id: str) -> BookingKey:
        return (self.date, resource_id, self.start_time, self.service)

    def format_display(self) -> str:
        """
        Format the window for display.
        Format: Weekday, Mon D, YYYY | HH:MM - HH:MM (N min)
        """
        day = parse_date(self.date)
        time_str = f"{format_clock(self.start_time)} - {format_clock(self.end_time)}"
        return f"{day.format('ddd, MMM D, YYYY')} | {time_str} ({self.duration_minutes()} min)"

    def __str__(self) -> str:
        return f"{parse_date(self.date).to_date_string()} {format_clock(self.start_time)} {self.service}"
