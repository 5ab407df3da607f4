"""
In-memory repositories, used in tests and as the working set of the JSON store.
"""

import itertools
import threading
from typing import Callable, Dict, List, Optional, Sequence, Set

from ..domain.exceptions import SlotUnavailableError
from ..domain.models import Commitment, Granule, Person, TimeRange

IdFactory = Callable[[], int]


def counter_ids(start: int = 1) -> IdFactory:
    """Return an id source yielding start, start + 1, ..."""
    return itertools.count(start).__next__


def _granule_key(granule: Granule):
    return (granule.start, granule.owner_id, granule.granule_id)


def _fills(granules: Sequence[Granule], window: TimeRange) -> bool:
    """Check that ascending granules tile ``window`` without a gap."""
    if not granules:
        return False
    if granules[0].start != window.start or granules[-1].end != window.end:
        return False
    return all(prev.end == cur.start for prev, cur in zip(granules, granules[1:]))


class InMemoryAvailabilityRepository:
    """
    Keeps granules in a dict keyed by id.

    Every read and write holds the lock, so the conditional
    ``mark_scheduled`` cannot interleave with another booking and readers
    never see the dict mid-update.
    """

    def __init__(self, id_factory: Optional[IdFactory] = None):
        self._granules: Dict[int, Granule] = {}
        self._next_id = id_factory or counter_ids()
        self._lock = threading.Lock()

    def list_in_range(self, window: TimeRange, owner_id: Optional[str] = None) -> List[Granule]:
        with self._lock:
            return self._select(window, owner_id)

    def list_owners_in_range(self, window: TimeRange) -> Set[str]:
        with self._lock:
            return {granule.owner_id for granule in self._select(window)}

    def add(self, granule: Granule) -> Granule:
        with self._lock:
            stored = granule.with_id(self._next_id())
            self._granules[stored.granule_id] = stored
        return stored

    def delete_in_range(self, owner_id: str, window: TimeRange) -> int:
        with self._lock:
            doomed = [granule.granule_id for granule in self._select(window, owner_id)]
            for granule_id in doomed:
                del self._granules[granule_id]
        return len(doomed)

    def mark_scheduled(
        self, owner_id: str, window: TimeRange, *, require_free: bool = True
    ) -> List[Granule]:
        with self._lock:
            affected = self._select(window, owner_id)
            if require_free:
                if not _fills(affected, window):
                    raise SlotUnavailableError(f"{owner_id} is not available during {window}")
                if any(granule.scheduled for granule in affected):
                    raise SlotUnavailableError(f"{owner_id} is already scheduled during {window}")
            return self._store_flags(affected, True)

    def mark_free(self, owner_id: str, window: TimeRange) -> List[Granule]:
        with self._lock:
            return self._store_flags(self._select(window, owner_id), False)

    def restore(self, granules: List[Granule]) -> None:
        """Put back the given versions of granules, keeping their ids."""
        with self._lock:
            for granule in granules:
                self._granules[granule.granule_id] = granule

    def discard(self, granule_id: int) -> None:
        with self._lock:
            self._granules.pop(granule_id, None)

    def all(self) -> List[Granule]:
        with self._lock:
            return sorted(self._granules.values(), key=_granule_key)

    def load(self, granules: List[Granule]) -> None:
        """Replace the stored granules, keeping their ids."""
        with self._lock:
            self._granules = {granule.granule_id: granule for granule in granules}

    def _select(self, window: TimeRange, owner_id: Optional[str] = None) -> List[Granule]:
        found = [
            granule
            for granule in self._granules.values()
            if window.contains(granule.when) and (owner_id is None or granule.owner_id == owner_id)
        ]
        return sorted(found, key=_granule_key)

    def _store_flags(self, granules: List[Granule], scheduled: bool) -> List[Granule]:
        updated = [granule.with_scheduled(scheduled) for granule in granules]
        for granule in updated:
            self._granules[granule.granule_id] = granule
        return updated


class InMemoryCommitmentRepository:
    """Keeps commitments in a dict keyed by id."""

    def __init__(self, id_factory: Optional[IdFactory] = None):
        self._commitments: Dict[int, Commitment] = {}
        self._next_id = id_factory or counter_ids()
        self._lock = threading.Lock()

    def list_in_range(
        self, window: TimeRange, owner_id: Optional[str] = None
    ) -> List[Commitment]:
        return [
            commitment
            for commitment in self.all()
            if window.overlaps(commitment.when)
            and (owner_id is None or commitment.involves(owner_id))
        ]

    def list_for_person(self, person_id: str) -> List[Commitment]:
        return [commitment for commitment in self.all() if commitment.involves(person_id)]

    def get(self, commitment_id: int) -> Optional[Commitment]:
        with self._lock:
            return self._commitments.get(commitment_id)

    def add(self, commitment: Commitment) -> Commitment:
        with self._lock:
            stored = commitment.with_id(self._next_id())
            self._commitments[stored.commitment_id] = stored
        return stored

    def set_shadow(self, commitment_id: int, shadow_id: str, *, expected: str = "") -> Commitment:
        """
        Replace the shadow of a commitment, but only if its current shadow is
        ``expected``. Raises SlotUnavailableError otherwise.
        """
        with self._lock:
            current = self._commitments.get(commitment_id)
            if current is None:
                raise SlotUnavailableError(f"No interview with id {commitment_id}")
            if current.shadow_id != expected:
                raise SlotUnavailableError(f"Interview {commitment_id} already has a shadow")
            updated = current.with_shadow(shadow_id)
            self._commitments[commitment_id] = updated
        return updated

    def discard(self, commitment_id: int) -> None:
        with self._lock:
            self._commitments.pop(commitment_id, None)

    def all(self) -> List[Commitment]:
        with self._lock:
            return sorted(
                self._commitments.values(), key=lambda c: (c.when.start, c.commitment_id)
            )

    def load(self, commitments: List[Commitment]) -> None:
        with self._lock:
            self._commitments = {c.commitment_id: c for c in commitments}


class InMemoryPersonRepository:
    """Keeps people in a dict keyed by person id."""

    def __init__(self):
        self._people: Dict[str, Person] = {}
        self._lock = threading.Lock()

    def get(self, person_id: str) -> Optional[Person]:
        with self._lock:
            return self._people.get(person_id)

    def add(self, person: Person) -> Person:
        with self._lock:
            self._people[person.person_id] = person
        return person

    def all(self) -> List[Person]:
        with self._lock:
            return sorted(self._people.values(), key=lambda p: p.person_id)

    def load(self, people: List[Person]) -> None:
        with self._lock:
            self._people = {person.person_id: person for person in people}
