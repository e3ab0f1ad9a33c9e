"""
Tests for slot materialization.
"""

import logging
from datetime import time

import pytest

from coachslots.domain.exceptions import InvalidService
from coachslots.domain.materializer import SlotMaterializer
from coachslots.domain.models import (
    DatedRule,
    RecurringRule,
    Service,
    TimeWindowSpec,
    parse_date,
    to_minutes,
)


def _slot(start, end, buffer_before=0, buffer_after=0, location_id=None):
    return RecurringRule(
        id="mon",
        day_of_week=1,
        window=TimeWindowSpec(
            start_time=start,
            end_time=end,
            services=("A",),
            buffer_before=buffer_before,
            buffer_after=buffer_after,
            location_id=location_id,
        ),
    )


class TestSlotMaterializer:
    """Tests for SlotMaterializer."""

    def test_full_day_with_buffer_before(self):
        """Test a 09:00-17:00 slot, 60 min service, 10 min buffer before."""
        slot = _slot(time(9, 0), time(17, 0), buffer_before=10)

        windows = SlotMaterializer().materialize(slot, Service("A", 60), "2025-03-10")

        assert [(w.start_time, w.end_time) for w in windows] == [
            (time(9, 10), time(10, 10)),
            (time(10, 20), time(11, 20)),
            (time(11, 30), time(12, 30)),
            (time(12, 40), time(13, 40)),
            (time(13, 50), time(14, 50)),
            (time(15, 0), time(16, 0)),
        ]
        assert windows[-1].end_time <= time(17, 0)

    def test_single_date_slot_without_buffers(self):
        """Test a 09:00-10:00 single-date slot with a 30 min service."""
        slot = DatedRule(
            id="once",
            specific_date=parse_date("2025-03-10"),
            window=TimeWindowSpec(start_time=time(9, 0), end_time=time(10, 0), services=("A",)),
        )

        windows = SlotMaterializer().materialize(slot, Service("A", 30), "2025-03-10")

        assert [(w.start_time, w.end_time) for w in windows] == [
            (time(9, 0), time(9, 30)),
            (time(9, 30), time(10, 0)),
        ]
        assert all(w.source_slot_id == "once" and not w.is_booked for w in windows)

    def test_durations_and_gaps(self):
        """Test every window has the service duration and buffers separate them."""
        slot = _slot(time(8, 0), time(12, 0), buffer_before=5, buffer_after=10)

        windows = SlotMaterializer().materialize(slot, Service("A", 45), "2025-03-10")

        assert len(windows) == 4
        assert all(w.duration_minutes() == 45 for w in windows)
        for previous, following in zip(windows, windows[1:]):
            gap = to_minutes(following.start_time) - to_minutes(previous.end_time)
            assert gap >= 15
        assert windows[-1].end_time == time(11, 50)

    def test_windows_carry_date_and_location(self):
        """Test windows record the date, service and location."""
        slot = _slot(time(9, 0), time(10, 0), location_id="main-field")

        window = SlotMaterializer().materialize(slot, Service("A", 60), "2025-03-10")[0]

        assert window.date == parse_date("2025-03-10")
        assert window.service == "A"
        assert window.location_id == "main-field"

    def test_service_too_long_yields_nothing(self, caplog):
        """Test that buffers plus duration exceeding the slot yield zero windows and a warning."""
        slot = _slot(time(9, 0), time(10, 0), buffer_before=10, buffer_after=10)

        with caplog.at_level(logging.WARNING):
            windows = SlotMaterializer().materialize(slot, Service("A", 45), "2025-03-10")

        assert windows == []
        assert "does not fit" in caplog.text

    def test_service_too_long_strict(self):
        """Test strict mode reports an impossible service as an error."""
        slot = _slot(time(9, 0), time(9, 30))

        with pytest.raises(InvalidService, match="does not fit"):
            SlotMaterializer(strict=True).materialize(slot, Service("A", 45), "2025-03-10")

    @pytest.mark.parametrize("duration", [0, -30])
    def test_non_positive_duration_rejected(self, duration):
        """Test that zero or negative durations raise InvalidService."""
        slot = _slot(time(9, 0), time(17, 0))

        with pytest.raises(InvalidService, match="positive duration"):
            SlotMaterializer().materialize(slot, Service("A", duration), "2025-03-10")

    def test_materialization_is_deterministic(self):
        """Test identical inputs give identical window lists."""
        slot = _slot(time(9, 0), time(17, 0), buffer_before=10, buffer_after=5)
        materializer = SlotMaterializer()

        first = materializer.materialize(slot, Service("A", 50), "2025-03-10")
        second = materializer.materialize(slot, Service("A", 50), "2025-03-10")

        assert first == second
        assert [str(w) for w in first] == [str(w) for w in second]
