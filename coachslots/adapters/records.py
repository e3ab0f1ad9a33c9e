"""
Plain-record schemas of the remote entity store, using Pydantic.

Records use the store's snake_case keys; the original field names
(``service_names``, ``coach_id``, ``booking_date``, ``parent_email``) are
accepted as aliases on input.
"""

import datetime as dt
import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_serializer, field_validator

from ..domain.exceptions import InvalidSlotShape, StoreError
from ..domain.models import (
    Booking,
    BookingStatus,
    DatedRule,
    DeclaredSlot,
    RecurringRule,
    Service,
    TimeWindowSpec,
    format_clock,
    parse_date,
)

logger = logging.getLogger(__name__)


class SlotRecord(BaseModel):
    """Stored shape of a declared slot (both variants share one record type)."""
    id: str
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    start_time: dt.time
    end_time: dt.time
    services: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("services", "service_names"),
    )
    buffer_before: int = Field(default=0, ge=0)
    buffer_after: int = Field(default=0, ge=0)
    is_recurring: Optional[bool] = None
    recurring_start_date: Optional[dt.date] = None
    recurring_end_date: Optional[dt.date] = None
    specific_date: Optional[dt.date] = None
    # Older editor versions stored single-date slots as a list; read-only
    specific_dates: List[dt.date] = Field(default_factory=list, exclude=True)
    location_id: Optional[str] = None

    @field_validator("recurring_start_date", "recurring_end_date", "specific_date", mode="before")
    @classmethod
    def blank_date_as_none(cls, value: Any) -> Any:
        """The slot editor stores an empty string for "no end date"."""
        return None if value == "" else value

    @field_validator("specific_dates", mode="before")
    @classmethod
    def missing_dates_as_empty(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [day for day in value if day not in ("", None)]
        return value

    @field_validator("buffer_before", "buffer_after", mode="before")
    @classmethod
    def missing_buffer_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_serializer("start_time", "end_time")
    def serialize_clock(self, value: dt.time) -> str:
        return format_clock(value)

    def to_slots(self) -> List[DeclaredSlot]:
        """
        Convert the record into rule variants.

        Legacy records are migrated:
        - a non-recurring record with a ``specific_dates`` list becomes one
          dated rule per date (ids get a ``-YYYY-MM-DD`` suffix when there is
          more than one date);
        - a record without ``is_recurring`` and ``specific_date`` but with a
          ``day_of_week`` becomes an unbounded weekly rule.

        Raises:
            InvalidSlotShape: If the record matches neither variant
        """
        if not self.is_recurring and self.specific_date is None and self.specific_dates:
            dates = sorted({parse_date(day) for day in self.specific_dates})
            logger.warning(
                "Slot %s stores a list of dates; migrating it to %d single-date slot(s)",
                self.id,
                len(dates),
            )
            window = self._window()
            if len(dates) == 1:
                return [DatedRule(id=self.id, specific_date=dates[0], window=window)]
            return [
                DatedRule(id=f"{self.id}-{day.to_date_string()}", specific_date=day, window=window)
                for day in dates
            ]

        return [self.to_slot()]

    def to_slot(self) -> DeclaredSlot:
        """
        Convert a single-rule record into one of the two rule variants.

        Raises:
            InvalidSlotShape: If the record matches neither variant
        """
        window = self._window()

        if self.is_recurring and self.specific_date is None:
            if self.day_of_week is None:
                raise InvalidSlotShape(f"Recurring slot {self.id} has no day_of_week")
            return RecurringRule(
                id=self.id,
                day_of_week=self.day_of_week,
                window=window,
                start_date=_optional_date(self.recurring_start_date),
                end_date=_optional_date(self.recurring_end_date),
            )

        if self.specific_date is not None and not self.is_recurring:
            return DatedRule(id=self.id, specific_date=parse_date(self.specific_date), window=window)

        if self.is_recurring is None and self.specific_date is None and self.day_of_week is not None:
            logger.warning(
                "Slot %s has neither is_recurring nor specific_date; "
                "migrating it to an unbounded weekly rule",
                self.id,
            )
            return RecurringRule(id=self.id, day_of_week=self.day_of_week, window=window)

        raise InvalidSlotShape(
            f"Slot {self.id} must be either recurring or bound to a specific date"
        )

    def _window(self) -> TimeWindowSpec:
        return TimeWindowSpec(
            start_time=self.start_time,
            end_time=self.end_time,
            services=tuple(self.services),
            buffer_before=self.buffer_before,
            buffer_after=self.buffer_after,
            location_id=self.location_id,
        )

    @classmethod
    def from_slot(cls, slot: DeclaredSlot) -> "SlotRecord":
        window = slot.window
        data: Dict[str, Any] = {
            "id": slot.id,
            "day_of_week": slot.day_of_week,
            "start_time": window.start_time,
            "end_time": window.end_time,
            "services": list(window.services),
            "buffer_before": window.buffer_before,
            "buffer_after": window.buffer_after,
            "is_recurring": slot.is_recurring,
            "location_id": window.location_id,
        }
        if isinstance(slot, RecurringRule):
            data["recurring_start_date"] = _plain_date(slot.start_date)
            data["recurring_end_date"] = _plain_date(slot.end_date)
        else:
            data["specific_date"] = _plain_date(slot.specific_date)
        return cls.model_validate(data)


class ServiceRecord(BaseModel):
    name: str
    duration: int
    color: str = "#22c55e"

    def to_service(self) -> Service:
        return Service(name=self.name, duration=self.duration, color=self.color)


class BookingRecord(BaseModel):
    id: str
    resource_id: str = Field(validation_alias=AliasChoices("resource_id", "coach_id"))
    date: dt.date = Field(validation_alias=AliasChoices("date", "booking_date"))
    start_time: dt.time
    end_time: dt.time
    service_name: str
    status: BookingStatus = BookingStatus.CONFIRMED
    player_name: str = ""
    contact_email: str = Field(
        default="",
        validation_alias=AliasChoices("contact_email", "parent_email"),
    )
    location_id: Optional[str] = None
    notes: str = ""

    @field_validator("player_name", "contact_email", "notes", mode="before")
    @classmethod
    def missing_text_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_serializer("start_time", "end_time")
    def serialize_clock(self, value: dt.time) -> str:
        return format_clock(value)

    def to_booking(self) -> Booking:
        return Booking(
            id=self.id,
            resource_id=self.resource_id,
            date=parse_date(self.date),
            start_time=self.start_time,
            end_time=self.end_time,
            service_name=self.service_name,
            status=self.status,
            player_name=self.player_name,
            contact_email=self.contact_email,
            location_id=self.location_id,
            notes=self.notes,
        )

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingRecord":
        return cls.model_validate(
            {
                "id": booking.id,
                "resource_id": booking.resource_id,
                "date": _plain_date(booking.date),
                "start_time": booking.start_time,
                "end_time": booking.end_time,
                "service_name": booking.service_name,
                "status": booking.status,
                "player_name": booking.player_name,
                "contact_email": booking.contact_email,
                "location_id": booking.location_id,
                "notes": booking.notes,
            }
        )


def slots_from_record(data: Mapping[str, Any]) -> List[DeclaredSlot]:
    """
    Parse a stored slot record, migrating legacy shapes.

    Raises:
        InvalidSlotShape: If the record is malformed or matches neither rule variant
    """
    if not isinstance(data, Mapping):
        raise InvalidSlotShape(f"Slot record must be a mapping, got {data!r}")
    try:
        record = SlotRecord.model_validate(data)
    except ValidationError as exc:
        raise InvalidSlotShape(f"Invalid slot record {data.get('id', '?')}: {exc}") from exc
    return record.to_slots()


def slot_from_record(data: Mapping[str, Any]) -> DeclaredSlot:
    """Parse a stored record that holds exactly one slot."""
    slots = slots_from_record(data)
    if len(slots) != 1:
        raise InvalidSlotShape(f"Slot record {data.get('id', '?')} holds {len(slots)} slots")
    return slots[0]


def slot_to_record(slot: DeclaredSlot) -> Dict[str, Any]:
    return SlotRecord.from_slot(slot).model_dump(mode="json", exclude_none=True)


def service_from_record(data: Mapping[str, Any]) -> Service:
    try:
        return ServiceRecord.model_validate(data).to_service()
    except ValidationError as exc:
        raise StoreError(f"Invalid service record: {exc}") from exc


def service_to_record(service: Service) -> Dict[str, Any]:
    return {"name": service.name, "duration": service.duration, "color": service.color}


def booking_from_record(data: Mapping[str, Any]) -> Booking:
    try:
        return BookingRecord.model_validate(data).to_booking()
    except ValidationError as exc:
        raise StoreError(f"Invalid booking record {data.get('id', '?')}: {exc}") from exc


def booking_to_record(booking: Booking) -> Dict[str, Any]:
    return BookingRecord.from_booking(booking).model_dump(mode="json", exclude_none=True)


def _optional_date(value: Optional[dt.date]):
    return parse_date(value) if value is not None else None


def _plain_date(value: Optional[dt.date]) -> Optional[str]:
    return value.isoformat() if value is not None else None
