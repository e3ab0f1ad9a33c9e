"""
JSON-file record store, for running the booking core without a remote backend.
"""

import json
from pathlib import Path
from typing import Any, Dict

from ..domain.exceptions import CoachSlotsError, StoreError
from ..domain.models import parse_date
from .memory_store import InMemoryAvailabilityStore, ResourceData
from .records import (
    booking_from_record,
    booking_to_record,
    service_from_record,
    service_to_record,
    slots_from_record,
    slot_to_record,
)


class JsonFileStore(InMemoryAvailabilityStore):
    """
    Store adapter backed by a single JSON document.

    Layout::

        {"resources": {"<coach id>": {"slots": [...], "blackout_dates": [...],
                                      "services": [...], "bookings": [...]}}}

    The whole document is rewritten after every mutation.
    """

    def __init__(self, path: Path, write_latency: float = 0.0):
        self.path = Path(path)
        super().__init__(resources=self._load(), write_latency=write_latency)

    def _load(self) -> Dict[str, ResourceData]:
        """Load all resources from the JSON file (an absent file is an empty store)."""
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f) or {}
        except json.JSONDecodeError as exc:
            raise StoreError(f"Invalid JSON in {self.path}: {exc}") from exc

        raw_resources = document.get("resources", {}) if isinstance(document, dict) else None
        if not isinstance(raw_resources, dict):
            raise StoreError(f"{self.path} must contain a 'resources' mapping")

        resources: Dict[str, ResourceData] = {}
        for resource_id, raw in raw_resources.items():
            if not isinstance(raw, dict):
                raise StoreError(f"Resource '{resource_id}' in {self.path} must be a mapping")
            try:
                resources[resource_id] = _resource_from_document(raw)
            except CoachSlotsError as exc:
                raise StoreError(f"Invalid data for resource '{resource_id}' in {self.path}: {exc}") from exc

        return resources

    def save(self) -> None:
        """Write the whole store back to disk."""
        document = {
            "resources": {
                resource_id: _resource_to_document(self.resource(resource_id))
                for resource_id in self.resource_ids
            }
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
            f.write("\n")

    def _changed(self) -> None:
        self.save()


def _resource_from_document(raw: Dict[str, Any]) -> ResourceData:
    return ResourceData(
        slots=[slot for record in raw.get("slots", []) for slot in slots_from_record(record)],
        blackout_dates=sorted(parse_date(day) for day in raw.get("blackout_dates", [])),
        services=[service_from_record(record) for record in raw.get("services", [])],
        bookings=[booking_from_record(record) for record in raw.get("bookings", [])],
    )


def _resource_to_document(data: ResourceData) -> Dict[str, Any]:
    return {
        "slots": [slot_to_record(slot) for slot in data.slots],
        "blackout_dates": [day.to_date_string() for day in data.blackout_dates],
        "services": [service_to_record(service) for service in data.services],
        "bookings": [booking_to_record(booking) for booking in data.bookings],
    }
