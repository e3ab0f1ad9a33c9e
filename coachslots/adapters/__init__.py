"""
Adapters layer - Record store integrations.
"""

from .json_store import JsonFileStore
from .memory_store import InMemoryAvailabilityStore, ResourceData

__all__ = ["InMemoryAvailabilityStore", "JsonFileStore", "ResourceData"]
