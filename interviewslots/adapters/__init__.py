"""
Adapters layer - Repository implementations (in-memory and JSON file).
"""

from .json_store import JsonStore
from .memory_store import (
    InMemoryAvailabilityRepository,
    InMemoryCommitmentRepository,
    InMemoryPersonRepository,
    counter_ids,
)

__all__ = [
    "InMemoryAvailabilityRepository",
    "InMemoryCommitmentRepository",
    "InMemoryPersonRepository",
    "JsonStore",
    "counter_ids",
]
