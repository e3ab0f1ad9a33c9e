"""
Resolution of declared availability rules for a calendar date.
"""

import logging
from datetime import date
from typing import FrozenSet, Iterable, List, Sequence, Union

from pendulum import Date

from .exceptions import InvalidDate
from .models import DeclaredSlot, parse_date

logger = logging.getLogger(__name__)

DateLike = Union[str, date]


class RuleResolver:
    """
    Determines which declared slots apply on a given date.

    Rules:
    1. A blackout date vetoes every rule
    2. Dated rules apply on their specific date only
    3. Recurring rules apply on their weekday, within their inclusive bounds
    """

    def __init__(self, slots: Sequence[DeclaredSlot], blackout_dates: Iterable[DateLike] = ()):
        self.slots = list(slots)
        self.blackout_dates: FrozenSet[Date] = frozenset(
            parse_date(day) for day in blackout_dates
        )

    def is_blackout(self, day: DateLike) -> bool:
        return parse_date(day) in self.blackout_dates

    def applicable_slots(self, day: DateLike) -> List[DeclaredSlot]:
        """
        Return the declared slots that apply on ``day``, in declaration order.

        Raises:
            InvalidDate: If ``day`` is not a valid calendar date
        """
        target = parse_date(day)

        if target in self.blackout_dates:
            logger.debug("%s is a blackout date, no slots apply", target)
            return []

        return [slot for slot in self.slots if slot.applies_on(target)]

    def open_days(self, start: DateLike, end: DateLike) -> List[Date]:
        """
        List the dates in ``[start, end]`` that have at least one applicable slot.

        Used for month views where only days with availability are selectable.
        """
        current = parse_date(start)
        last = parse_date(end)

        if last < current:
            raise InvalidDate(f"End date {last} is before start date {current}")

        days: List[Date] = []
        while current <= last:
            if self.applicable_slots(current):
                days.append(current)
            current = current.add(days=1)

        return days
