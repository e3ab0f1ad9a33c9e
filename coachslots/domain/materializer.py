"""
Subdivision of declared slots into service-sized bookable windows.

Pure domain logic: no store access and no I/O.
"""

import logging
from typing import List

from .exceptions import InvalidService
from .models import (
    BookableWindow,
    DeclaredSlot,
    Service,
    from_minutes,
    parse_date,
    to_minutes,
)

logger = logging.getLogger(__name__)


class SlotMaterializer:
    """
    Packs windows of a fixed service duration into a declared slot.

    Algorithm:
    1. Start the cursor at slot start + buffer_before
    2. Emit [cursor, cursor + duration) while cursor + duration + buffer_after
       still fits before the slot end
    3. Advance by duration + buffer_before + buffer_after and repeat

    Packing is greedy and favors the earliest times. Each service is packed
    against the full declared range, independently of other services.
    """

    def __init__(self, strict: bool = False):
        # strict: raise InvalidService instead of warning when nothing fits
        self.strict = strict

    def materialize(self, slot: DeclaredSlot, service: Service, on_date) -> List[BookableWindow]:
        """
        Compute the bookable windows of one service within one slot.

        Args:
            slot: The applicable declared slot
            service: The service to subdivide the slot for
            on_date: The calendar date the windows belong to

        Returns:
            Windows in chronological order (possibly empty)

        Raises:
            InvalidService: If the duration is not positive, or in strict mode
                when buffers leave no room for a single window
        """
        if service.duration <= 0:
            raise InvalidService(
                f"Service '{service.name}' must have a positive duration, got {service.duration}"
            )

        day = parse_date(on_date)
        window = slot.window
        step = service.duration + window.buffer_before + window.buffer_after

        if step > window.span_minutes():
            message = (
                f"Service '{service.name}' ({service.duration} min plus "
                f"{window.buffer_before}/{window.buffer_after} min buffers) "
                f"does not fit in slot {slot.id}"
            )
            if self.strict:
                raise InvalidService(message)
            logger.warning(message)
            return []

        end = to_minutes(window.end_time)
        cursor = to_minutes(window.start_time) + window.buffer_before
        windows: List[BookableWindow] = []

        while cursor + service.duration + window.buffer_after <= end:
            windows.append(
                BookableWindow(
                    date=day,
                    start_time=from_minutes(cursor),
                    end_time=from_minutes(cursor + service.duration),
                    service=service.name,
                    source_slot_id=slot.id,
                    location_id=window.location_id,
                )
            )
            cursor += step

        return windows
