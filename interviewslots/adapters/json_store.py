"""
JSON file backed repositories.

The whole store lives in one document::

    {
        "granules": [{"id": 1, "owner_id": "alice", "start": "...Z", "end": "...Z",
                      "scheduled": false}],
        "commitments": [{"id": 1, "start": "...", "end": "...", "interviewer_id": "alice",
                         "interviewee_id": "bob", "shadow_id": "", "position": "SWE"}],
        "people": [{"person_id": "alice", "name": "Alice", "qualified_positions": ["SWE"],
                    "ok_shadow": true}]
    }

It is read once on open and rewritten after every change.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from ..domain.exceptions import RepositoryUnavailableError
from ..domain.models import Commitment, Granule, Person, TimeRange
from ..domain.time_labels import parse_utc, utc_encoding
from .memory_store import (
    IdFactory,
    InMemoryAvailabilityRepository,
    InMemoryCommitmentRepository,
    InMemoryPersonRepository,
    counter_ids,
)

logger = logging.getLogger(__name__)


class GranuleRecord(BaseModel):
    id: int
    owner_id: str
    start: str
    end: str
    scheduled: bool = False


class CommitmentRecord(BaseModel):
    id: int
    start: str
    end: str
    interviewer_id: str
    interviewee_id: str
    shadow_id: str = ""
    position: str = ""


class PersonRecord(BaseModel):
    person_id: str
    name: str = ""
    email: str = ""
    company: str = ""
    job: str = ""
    qualified_positions: List[str] = Field(default_factory=list)
    ok_shadow: bool = False


class StoreDocument(BaseModel):
    granules: List[GranuleRecord] = Field(default_factory=list)
    commitments: List[CommitmentRecord] = Field(default_factory=list)
    people: List[PersonRecord] = Field(default_factory=list)


class JsonStore:
    """
    Opens a JSON document and exposes it through the three repositories.

    Args:
        path: Location of the document; a missing file is an empty store
        id_factory: Optional id source shared by granules and commitments.
            Defaults to counting up from the highest stored id.
    """

    def __init__(self, path: Path, id_factory: Optional[IdFactory] = None):
        self.path = Path(path)
        self._lock = threading.RLock()
        document = self._read_document()

        if id_factory is None:
            highest = max(
                [record.id for record in document.granules]
                + [record.id for record in document.commitments],
                default=0,
            )
            id_factory = counter_ids(highest + 1)

        self.availability = JsonAvailabilityRepository(self, id_factory)
        self.commitments = JsonCommitmentRepository(self, id_factory)
        self.people = JsonPersonRepository(self)

        try:
            self.availability.load([_granule_from_record(r) for r in document.granules])
            self.commitments.load([_commitment_from_record(r) for r in document.commitments])
        except ValueError as exc:
            raise RepositoryUnavailableError(f"Invalid time range in {self.path}: {exc}") from exc
        self.people.load([_person_from_record(r) for r in document.people])
        logger.debug(
            "Opened %s: %d granule(s), %d commitment(s), %d person(s)",
            self.path,
            len(document.granules),
            len(document.commitments),
            len(document.people),
        )

    def save(self) -> None:
        """
        Write the current state back to disk.

        Raises:
            RepositoryUnavailableError: If the file cannot be written
        """
        with self._lock:
            document = StoreDocument(
                granules=[_granule_to_record(g) for g in self.availability.all()],
                commitments=[_commitment_to_record(c) for c in self.commitments.all()],
                people=[_person_to_record(p) for p in self.people.all()],
            )
            temporary = self.path.with_name(self.path.name + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(temporary, "w", encoding="utf-8") as f:
                    f.write(document.model_dump_json(indent=2))
                os.replace(temporary, self.path)
            except OSError as exc:
                raise RepositoryUnavailableError(
                    f"Could not write store {self.path}: {exc}"
                ) from exc

    def _read_document(self) -> StoreDocument:
        if not self.path.exists():
            return StoreDocument()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as exc:
            raise RepositoryUnavailableError(f"Could not read store {self.path}: {exc}") from exc

        if not text.strip():
            return StoreDocument()

        try:
            return StoreDocument.model_validate_json(text)
        except ValidationError as exc:
            raise RepositoryUnavailableError(f"Invalid store file {self.path}: {exc}") from exc


class JsonAvailabilityRepository(InMemoryAvailabilityRepository):
    """
    Availability repository that persists every change to its store.

    When the store cannot be written the in-memory change is undone, so
    memory never runs ahead of the file.
    """

    def __init__(self, store: JsonStore, id_factory: IdFactory):
        super().__init__(id_factory)
        self._store = store

    def add(self, granule: Granule) -> Granule:
        stored = super().add(granule)
        try:
            self._store.save()
        except RepositoryUnavailableError:
            self.discard(stored.granule_id)
            raise
        return stored

    def delete_in_range(self, owner_id: str, window: TimeRange) -> int:
        before = self.list_in_range(window, owner_id)
        removed = super().delete_in_range(owner_id, window)
        if removed:
            self._save_or_restore(before)
        return removed

    def mark_scheduled(
        self, owner_id: str, window: TimeRange, *, require_free: bool = True
    ) -> List[Granule]:
        before = self.list_in_range(window, owner_id)
        updated = super().mark_scheduled(owner_id, window, require_free=require_free)
        if updated:
            self._save_or_restore(before)
        return updated

    def mark_free(self, owner_id: str, window: TimeRange) -> List[Granule]:
        before = self.list_in_range(window, owner_id)
        updated = super().mark_free(owner_id, window)
        if updated:
            self._save_or_restore(before)
        return updated

    def _save_or_restore(self, before: List[Granule]) -> None:
        try:
            self._store.save()
        except RepositoryUnavailableError:
            self.restore(before)
            raise


class JsonCommitmentRepository(InMemoryCommitmentRepository):
    """Commitment repository that persists every change to its store."""

    def __init__(self, store: JsonStore, id_factory: IdFactory):
        super().__init__(id_factory)
        self._store = store

    def add(self, commitment: Commitment) -> Commitment:
        stored = super().add(commitment)
        try:
            self._store.save()
        except RepositoryUnavailableError:
            self.discard(stored.commitment_id)
            raise
        return stored

    def set_shadow(self, commitment_id: int, shadow_id: str, *, expected: str = "") -> Commitment:
        updated = super().set_shadow(commitment_id, shadow_id, expected=expected)
        try:
            self._store.save()
        except RepositoryUnavailableError:
            super().set_shadow(commitment_id, expected, expected=shadow_id)
            raise
        return updated


class JsonPersonRepository(InMemoryPersonRepository):
    """Person repository that persists every change to its store."""

    def __init__(self, store: JsonStore):
        super().__init__()
        self._store = store

    def add(self, person: Person) -> Person:
        stored = super().add(person)
        self._store.save()
        return stored


def _granule_from_record(record: GranuleRecord) -> Granule:
    return Granule(
        owner_id=record.owner_id,
        when=TimeRange(start=parse_utc(record.start), end=parse_utc(record.end)),
        scheduled=record.scheduled,
        granule_id=record.id,
    )


def _granule_to_record(granule: Granule) -> GranuleRecord:
    return GranuleRecord(
        id=granule.granule_id,
        owner_id=granule.owner_id,
        start=utc_encoding(granule.start),
        end=utc_encoding(granule.end),
        scheduled=granule.scheduled,
    )


def _commitment_from_record(record: CommitmentRecord) -> Commitment:
    return Commitment(
        when=TimeRange(start=parse_utc(record.start), end=parse_utc(record.end)),
        interviewer_id=record.interviewer_id,
        interviewee_id=record.interviewee_id,
        shadow_id=record.shadow_id,
        position=record.position,
        commitment_id=record.id,
    )


def _commitment_to_record(commitment: Commitment) -> CommitmentRecord:
    return CommitmentRecord(
        id=commitment.commitment_id,
        start=utc_encoding(commitment.when.start),
        end=utc_encoding(commitment.when.end),
        interviewer_id=commitment.interviewer_id,
        interviewee_id=commitment.interviewee_id,
        shadow_id=commitment.shadow_id,
        position=commitment.position,
    )


def _person_from_record(record: PersonRecord) -> Person:
    return Person(
        person_id=record.person_id,
        name=record.name,
        email=record.email,
        company=record.company,
        job=record.job,
        qualified_positions=frozenset(record.qualified_positions),
        ok_shadow=record.ok_shadow,
    )


def _person_to_record(person: Person) -> PersonRecord:
    return PersonRecord(
        person_id=person.person_id,
        name=person.name,
        email=person.email,
        company=person.company,
        job=person.job,
        qualified_positions=sorted(person.qualified_positions),
        ok_shadow=person.ok_shadow,
    )
