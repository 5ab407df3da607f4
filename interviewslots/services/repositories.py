"""
Repository protocols the services read from and write to.

Each entity kind has a single ``list_in_range(window, owner_id=None)`` query;
passing an owner narrows the result to that person.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Set

from ..domain.models import Commitment, Granule, Person, TimeRange


class AvailabilityRepository(Protocol):
    """Storage of availability granules."""

    def list_in_range(self, window: TimeRange, owner_id: Optional[str] = None) -> List[Granule]:
        """Return granules lying fully inside ``window``, ascending by start."""

    def list_owners_in_range(self, window: TimeRange) -> Set[str]:
        """Return the ids of everyone with at least one granule inside ``window``."""

    def add(self, granule: Granule) -> Granule:
        """Store a granule and return it with its assigned id."""

    def delete_in_range(self, owner_id: str, window: TimeRange) -> int:
        """Delete the owner's granules inside ``window`` and return how many went."""

    def mark_scheduled(
        self, owner_id: str, window: TimeRange, *, require_free: bool = True
    ) -> List[Granule]:
        """
        Flag the owner's granules inside ``window`` as scheduled.

        With ``require_free`` this is a conditional write: unless the owner's
        granules tile the whole window and none of them is scheduled yet,
        nothing changes and ``SlotUnavailableError`` is raised.
        """

    def mark_free(self, owner_id: str, window: TimeRange) -> List[Granule]:
        """Clear the scheduled flag of the owner's granules inside ``window``."""


class CommitmentRepository(Protocol):
    """Storage of booked interviews."""

    def list_in_range(
        self, window: TimeRange, owner_id: Optional[str] = None
    ) -> List[Commitment]:
        """Return commitments overlapping ``window``, ascending by start."""

    def list_for_person(self, person_id: str) -> List[Commitment]:
        """Return every commitment the person takes part in, ascending by start."""

    def get(self, commitment_id: int) -> Optional[Commitment]:
        """Return the commitment with the given id, if stored."""

    def add(self, commitment: Commitment) -> Commitment:
        """Store a commitment and return it with its assigned id."""

    def set_shadow(self, commitment_id: int, shadow_id: str, *, expected: str = "") -> Commitment:
        """
        Conditionally replace the shadow of a commitment.

        Raises ``SlotUnavailableError`` if the commitment is gone or its
        current shadow is not ``expected``.
        """


class PersonRepository(Protocol):
    """Storage of registered people."""

    def get(self, person_id: str) -> Optional[Person]:
        """Return the person with the given id, if stored."""

    def add(self, person: Person) -> Person:
        """Create or replace a person."""
