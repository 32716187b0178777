"""Adapters - backend implementations of the EventStoreBackend port.

The EventKit adapter needs PyObjC and is imported on demand from
``ekstore.adapters.eventkit``.
"""

from .memory_store import MemoryDatabase, MemoryEventStore

__all__ = [
    "MemoryDatabase",
    "MemoryEventStore",
]
