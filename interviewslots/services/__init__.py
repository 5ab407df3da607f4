"""
Service layer helpers that orchestrate repositories and domain logic.
"""

from .candidate_matcher import CandidateMatcher, default_window
from .repositories import AvailabilityRepository, CommitmentRepository, PersonRepository
from .scheduling import SchedulingService

__all__ = [
    "AvailabilityRepository",
    "CandidateMatcher",
    "CommitmentRepository",
    "PersonRepository",
    "SchedulingService",
    "default_window",
]
