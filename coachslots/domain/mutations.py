"""
Planning of declared-slot writes for coach edits.

Each edit is an explicit command object. The planner turns a command plus the
current snapshot into a ``MutationPlan`` (slots to upsert, slot ids to delete,
blackout dates to add or remove); issuing those writes is the caller's job.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import time
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from pendulum import Date

from .exceptions import InvalidSlotShape, SlotNotFound
from .models import (
    DatedRule,
    DeclaredSlot,
    RecurringRule,
    TimeWindowSpec,
    format_clock,
    parse_clock,
    parse_date,
    weekday_index,
)
from .resolver import DateLike

logger = logging.getLogger(__name__)

ClockLike = Union[str, time]


@dataclass(frozen=True)
class SlotDraft:
    """
    The loosely shaped payload of the slot editor.

    ``build`` normalizes it into exactly one of the two rule variants.
    """
    start_time: ClockLike = "09:00"
    end_time: ClockLike = "17:00"
    services: Tuple[str, ...] = ()
    is_recurring: bool = True
    day_of_week: Optional[int] = None
    buffer_before: int = 0
    buffer_after: int = 0
    recurring_start_date: Optional[DateLike] = None
    recurring_end_date: Optional[DateLike] = None
    specific_date: Optional[DateLike] = None
    location_id: Optional[str] = None

    def window_spec(self) -> TimeWindowSpec:
        if not self.services:
            raise InvalidSlotShape("Select at least one service for the slot")

        return TimeWindowSpec(
            start_time=parse_clock(self.start_time),
            end_time=parse_clock(self.end_time),
            services=tuple(self.services),
            buffer_before=self.buffer_before,
            buffer_after=self.buffer_after,
            location_id=self.location_id,
        )

    def build(self, slot_id: str, on_date: Optional[DateLike] = None) -> DeclaredSlot:
        """
        Turn the draft into a declared slot.

        Args:
            slot_id: Id of the resulting slot
            on_date: The calendar date the editor was opened on, if any.
                It decides the weekday of recurring slots and the date of
                single-date slots.

        Raises:
            InvalidSlotShape: If the draft cannot form a valid slot
        """
        window = self.window_spec()

        if self.is_recurring:
            day_of_week = weekday_index(parse_date(on_date)) if on_date is not None else self.day_of_week
            if day_of_week is None:
                raise InvalidSlotShape("A recurring slot needs a day of week")

            return RecurringRule(
                id=slot_id,
                day_of_week=day_of_week,
                window=window,
                start_date=_optional_date(self.recurring_start_date),
                end_date=_optional_date(self.recurring_end_date),
            )

        specific_date = on_date if on_date is not None else self.specific_date
        if specific_date is None:
            raise InvalidSlotShape("A single-date slot needs a specific date")

        # recurring-only fields are dropped here
        return DatedRule(id=slot_id, specific_date=parse_date(specific_date), window=window)


def _optional_date(value: Optional[DateLike]) -> Optional[Date]:
    if value is None or value == "":
        return None
    return parse_date(value)


@dataclass(frozen=True)
class AddSlot:
    draft: SlotDraft
    on_date: Optional[DateLike] = None
    slot_id: Optional[str] = None


@dataclass(frozen=True)
class EditSlot:
    slot_id: str
    draft: SlotDraft
    on_date: Optional[DateLike] = None


@dataclass(frozen=True)
class DeleteOccurrence:
    """Delete "this occurrence only"."""
    slot_id: str
    on_date: DateLike


@dataclass(frozen=True)
class DeleteAllOccurrences:
    slot_id: str


@dataclass(frozen=True)
class CopySlot:
    """Drag-copy of a slot onto another calendar date."""
    slot_id: str
    target_date: DateLike


@dataclass(frozen=True)
class RemoveSegment:
    """Cut ``[start_time, end_time)`` out of a single-date slot."""
    slot_id: str
    start_time: ClockLike
    end_time: ClockLike


@dataclass(frozen=True)
class AddBlackout:
    on_date: DateLike


@dataclass(frozen=True)
class RemoveBlackout:
    on_date: DateLike


SlotCommand = Union[
    AddSlot,
    EditSlot,
    DeleteOccurrence,
    DeleteAllOccurrences,
    CopySlot,
    RemoveSegment,
    AddBlackout,
    RemoveBlackout,
]


@dataclass(frozen=True)
class MutationPlan:
    """The writes one command resolves to."""
    upserts: Tuple[DeclaredSlot, ...] = ()
    deletes: Tuple[str, ...] = ()
    blackouts_added: Tuple[Date, ...] = ()
    blackouts_removed: Tuple[Date, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.upserts or self.deletes or self.blackouts_added or self.blackouts_removed)

    def apply_to_slots(self, slots: Sequence[DeclaredSlot]) -> List[DeclaredSlot]:
        """
        Apply the plan to an in-memory slot list.

        Replaced slots keep their position; new slots are appended.
        """
        pending = {slot.id: slot for slot in self.upserts}
        result: List[DeclaredSlot] = []

        for slot in slots:
            if slot.id in self.deletes:
                continue
            result.append(pending.pop(slot.id, slot))

        result.extend(slot for slot in self.upserts if slot.id in pending)
        return result

    def apply_to_blackouts(self, blackout_dates: Iterable[DateLike]) -> List[Date]:
        dates = {parse_date(day) for day in blackout_dates}
        dates.difference_update(self.blackouts_removed)
        dates.update(self.blackouts_added)
        return sorted(dates)


class MutationPlanner:
    """
    Translates slot commands into the minimal set of declared-slot writes.

    Every resulting slot is a valid recurring or dated rule; drag-copies are
    always dated rules and never modify their source. Bookings are never touched.
    """

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)

    def plan(
        self,
        command: SlotCommand,
        slots: Sequence[DeclaredSlot],
        blackout_dates: Iterable[DateLike] = (),
    ) -> MutationPlan:
        """
        Plan the writes for ``command`` against the current snapshot.

        Raises:
            InvalidSlotShape: If the command would produce an invalid slot
            SlotNotFound: If the command targets a missing slot or occurrence
        """
        if isinstance(command, AddSlot):
            return self._plan_add(command, slots)
        if isinstance(command, EditSlot):
            return self._plan_edit(command, slots)
        if isinstance(command, DeleteOccurrence):
            return self._plan_delete_occurrence(command, slots)
        if isinstance(command, DeleteAllOccurrences):
            return MutationPlan(deletes=(_find(slots, command.slot_id).id,))
        if isinstance(command, CopySlot):
            return self._plan_copy(command, slots)
        if isinstance(command, RemoveSegment):
            return self._plan_remove_segment(command, slots)
        if isinstance(command, (AddBlackout, RemoveBlackout)):
            return self._plan_blackout(command, blackout_dates)

        raise TypeError(f"Unsupported command: {command!r}")

    def _plan_add(self, command: AddSlot, slots: Sequence[DeclaredSlot]) -> MutationPlan:
        slot_id = command.slot_id or self._new_id()
        if any(slot.id == slot_id for slot in slots):
            raise InvalidSlotShape(f"A slot with id {slot_id} already exists")

        return MutationPlan(upserts=(command.draft.build(slot_id, command.on_date),))

    def _plan_edit(self, command: EditSlot, slots: Sequence[DeclaredSlot]) -> MutationPlan:
        existing = _find(slots, command.slot_id)
        draft = command.draft

        # An editor opened from the slot list carries no date: keep the old placement
        if command.on_date is None:
            if draft.is_recurring and draft.day_of_week is None:
                draft = replace(draft, day_of_week=existing.day_of_week)
            if not draft.is_recurring and draft.specific_date is None and isinstance(existing, DatedRule):
                draft = replace(draft, specific_date=existing.specific_date)

        updated = draft.build(existing.id, command.on_date)
        if updated == existing:
            return MutationPlan()
        return MutationPlan(upserts=(updated,))

    def _plan_delete_occurrence(
        self, command: DeleteOccurrence, slots: Sequence[DeclaredSlot]
    ) -> MutationPlan:
        slot = _find(slots, command.slot_id)
        day = parse_date(command.on_date)

        if not slot.applies_on(day):
            raise SlotNotFound(f"Slot {slot.id} has no occurrence on {day.to_date_string()}")

        if slot.is_recurring:
            logger.warning(
                "Slot %s is recurring; deleting the occurrence on %s removes the whole rule",
                slot.id,
                day.to_date_string(),
            )

        return MutationPlan(deletes=(slot.id,))

    def _plan_copy(self, command: CopySlot, slots: Sequence[DeclaredSlot]) -> MutationPlan:
        source = _find(slots, command.slot_id)
        copy = DatedRule(
            id=self._new_id(),
            specific_date=parse_date(command.target_date),
            window=source.window,
        )
        return MutationPlan(upserts=(copy,))

    def _plan_remove_segment(
        self, command: RemoveSegment, slots: Sequence[DeclaredSlot]
    ) -> MutationPlan:
        slot = _find(slots, command.slot_id)
        if not isinstance(slot, DatedRule):
            raise InvalidSlotShape(
                f"Slot {slot.id} is recurring; copy the occurrence to a date before cutting it"
            )

        start = parse_clock(command.start_time)
        end = parse_clock(command.end_time)
        window = slot.window

        if start < window.start_time or end > window.end_time or start >= end:
            raise InvalidSlotShape(
                f"Segment {format_clock(start)}-{format_clock(end)} is not inside "
                f"{format_clock(window.start_time)}-{format_clock(window.end_time)}"
            )

        if start == window.start_time and end == window.end_time:
            return MutationPlan(deletes=(slot.id,))

        if start == window.start_time:
            return MutationPlan(upserts=(replace(slot, window=replace(window, start_time=end)),))

        if end == window.end_time:
            return MutationPlan(upserts=(replace(slot, window=replace(window, end_time=start)),))

        head = replace(slot, window=replace(window, end_time=start))
        tail = DatedRule(
            id=self._new_id(),
            specific_date=slot.specific_date,
            window=replace(window, start_time=end),
        )
        return MutationPlan(upserts=(head, tail))

    def _plan_blackout(
        self, command: Union[AddBlackout, RemoveBlackout], blackout_dates: Iterable[DateLike]
    ) -> MutationPlan:
        day = parse_date(command.on_date)
        current = {parse_date(existing) for existing in blackout_dates}

        if isinstance(command, AddBlackout):
            return MutationPlan() if day in current else MutationPlan(blackouts_added=(day,))
        return MutationPlan(blackouts_removed=(day,)) if day in current else MutationPlan()


def _find(slots: Sequence[DeclaredSlot], slot_id: str) -> DeclaredSlot:
    for slot in slots:
        if slot.id == slot_id:
            return slot
    raise SlotNotFound(f"Slot {slot_id} not found")
