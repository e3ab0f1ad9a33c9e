"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityCalculator
from .materializer import SlotMaterializer
from .models import (
    BookableWindow,
    Booking,
    BookingStatus,
    DatedRule,
    DeclaredSlot,
    RecurringRule,
    Service,
    TimeWindowSpec,
)
from .mutations import MutationPlan, MutationPlanner, SlotDraft
from .resolver import RuleResolver

__all__ = [
    "AvailabilityCalculator",
    "BookableWindow",
    "Booking",
    "BookingStatus",
    "DatedRule",
    "DeclaredSlot",
    "MutationPlan",
    "MutationPlanner",
    "RecurringRule",
    "RuleResolver",
    "Service",
    "SlotDraft",
    "SlotMaterializer",
    "TimeWindowSpec",
]
