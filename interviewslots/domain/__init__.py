"""
Domain layer - Pure business logic without external dependencies.
"""

from .exceptions import (
    InvalidOffsetError,
    RepositoryUnavailableError,
    SchedulingError,
    SlotUnavailableError,
    UnknownPersonError,
)
from .matching import DedupPolicy, deduplicate, exclude_conflicts, group_by_day, sort_candidates
from .models import CandidateSlot, Commitment, Granule, Person, TimeRange
from .run_detector import RunDetector
from .slot_grid import GridSlot, SlotGridGenerator, WorkingWindow

__all__ = [
    "CandidateSlot",
    "Commitment",
    "DedupPolicy",
    "Granule",
    "GridSlot",
    "InvalidOffsetError",
    "Person",
    "RepositoryUnavailableError",
    "RunDetector",
    "SchedulingError",
    "SlotGridGenerator",
    "SlotUnavailableError",
    "TimeRange",
    "UnknownPersonError",
    "WorkingWindow",
    "deduplicate",
    "exclude_conflicts",
    "group_by_day",
    "sort_candidates",
]
