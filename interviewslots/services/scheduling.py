"""
Application services around the matching engine: editing availability,
looking up interviewers for an hour, booking interviews and joining them
as a shadow.
"""

from __future__ import annotations

import logging
from itertools import groupby
from typing import Callable, Iterable, List, Optional, Sequence

from pendulum import DateTime

from ..domain.exceptions import SlotUnavailableError, UnknownPersonError
from ..domain.matching import DedupPolicy
from ..domain.models import CandidateSlot, Commitment, Granule, Person, TimeRange
from ..domain.run_detector import RunDetector
from ..domain.slot_grid import GridSlot, SlotGridGenerator
from ..domain.time_labels import to_local, validate_offset
from .candidate_matcher import (
    DEFAULT_SEARCH_DAYS,
    CandidateMatcher,
    default_window,
    read_repository,
)
from .repositories import AvailabilityRepository, CommitmentRepository, PersonRepository

logger = logging.getLogger(__name__)


def _check_days(days: int) -> None:
    if days < 1:
        raise ValueError(f"days must be at least 1, got {days}")


class SchedulingService:
    """
    Coordinates the repositories, the slot grid and the matching engine.

    Candidate slots handed out by ``search`` are snapshots; ``book`` reads
    everything again and relies on the repository's conditional write so
    that two requesters cannot take the same interviewer hour.
    """

    def __init__(
        self,
        availability: AvailabilityRepository,
        commitments: CommitmentRepository,
        people: PersonRepository,
        grid: Optional[SlotGridGenerator] = None,
        run_detector: Optional[RunDetector] = None,
        choose_interviewer: Callable[[Sequence[str]], str] = min,
    ) -> None:
        self._availability = availability
        self._commitments = commitments
        self._people = people
        self._grid = grid or SlotGridGenerator()
        self._run_detector = run_detector or RunDetector.for_interview(
            granule_minutes=self._grid.window.granule_minutes
        )
        self._matcher = CandidateMatcher(availability, commitments, self._run_detector)
        self._choose_interviewer = choose_interviewer

    @property
    def matcher(self) -> CandidateMatcher:
        return self._matcher

    @property
    def interview_minutes(self) -> int:
        return self._run_detector.run_minutes

    def availability_grid(
        self,
        person_id: str,
        instant: DateTime,
        timezone_offset_minutes: int,
        days: int = 7,
    ) -> List[List[GridSlot]]:
        """
        Return the person's grid for ``days`` days starting on the local day
        of ``instant``, with their declared and booked cells flagged.
        """
        validate_offset(timezone_offset_minutes)
        _check_days(days)
        window = self._grid.window_for_days(instant, timezone_offset_minutes, days)
        granules = read_repository(
            f"availability of {person_id}",
            lambda: self._availability.list_in_range(window, owner_id=person_id),
        )
        return self._grid.slots_for_days(instant, timezone_offset_minutes, days, granules)

    def replace_availability(
        self,
        person_id: str,
        window: TimeRange,
        slot_starts: Iterable[DateTime],
    ) -> List[Granule]:
        """
        Replace the person's declared availability inside ``window``.

        Granules under one of the person's existing commitments are stored
        as already scheduled.

        Raises:
            ValueError: If a slot does not lie inside ``window``
        """
        granule_minutes = self._grid.window.granule_minutes
        slots = sorted(
            {TimeRange.from_start(start, granule_minutes) for start in slot_starts},
            key=TimeRange.sort_key,
        )
        outside = [slot for slot in slots if not window.contains(slot)]
        if outside:
            raise ValueError(f"Slot {outside[0]} lies outside of {window}")

        busy = read_repository(
            f"commitments of {person_id}",
            lambda: self._commitments.list_in_range(window, owner_id=person_id),
        )
        removed = self._availability.delete_in_range(person_id, window)

        stored = [
            self._availability.add(
                Granule(
                    owner_id=person_id,
                    when=slot,
                    scheduled=any(commitment.when.overlaps(slot) for commitment in busy),
                )
            )
            for slot in slots
        ]
        logger.info(
            "Replaced %d granule(s) of %s with %d in %s", removed, person_id, len(stored), window
        )
        return stored

    def eligibility_for(self, position: Optional[str]) -> Optional[Callable[[str], bool]]:
        """
        Return a predicate accepting people qualified for ``position``.

        No position means everyone is eligible. Unknown people never are.
        """
        if not position:
            return None

        def eligible(person_id: str) -> bool:
            person = self._find_person(person_id)
            return person is not None and person.is_qualified_for(position)

        return eligible

    def search(
        self,
        requester_id: str,
        timezone_offset_minutes: int,
        *,
        now: DateTime,
        position: Optional[str] = None,
        days: int = DEFAULT_SEARCH_DAYS,
        dedupe: DedupPolicy = DedupPolicy.BY_INSTANT,
    ) -> List[List[CandidateSlot]]:
        """Return day-grouped candidates from ``now`` through ``days`` days later."""
        _check_days(days)
        return self._matcher.compute_candidates(
            requester_id,
            timezone_offset_minutes,
            default_window(now, days),
            eligible=self.eligibility_for(position),
            dedupe=dedupe,
        )

    def available_interviewer_ids(
        self,
        requester_id: str,
        start: DateTime,
        position: Optional[str] = None,
    ) -> List[str]:
        """
        Return the sorted ids of people, other than the requester, with a
        free unbroken run covering the interview starting at ``start``.
        """
        hour = TimeRange.from_start(start, self.interview_minutes)
        owners = read_repository(
            "people with availability",
            lambda: self._availability.list_owners_in_range(hour),
        )
        eligible = self.eligibility_for(position)

        available: List[str] = []
        for owner in sorted(owners):
            if owner == requester_id or (eligible is not None and not eligible(owner)):
                continue
            granules = read_repository(
                f"availability of {owner}",
                lambda owner=owner: self._availability.list_in_range(hour, owner_id=owner),
            )
            if self._run_detector.covers(granules, hour):
                available.append(owner)
        return available

    def available_interviewers(
        self,
        requester_id: str,
        start: DateTime,
        position: Optional[str] = None,
    ) -> List[Person]:
        """Return the person records of everyone free for the interview at ``start``."""
        people: List[Person] = []
        for person_id in self.available_interviewer_ids(requester_id, start, position):
            person = self._find_person(person_id)
            if person is None:
                logger.warning("Skipping %s: free at %s but not registered", person_id, start)
                continue
            people.append(person)
        return people

    def book(self, requester_id: str, start: DateTime, position: str = "") -> Commitment:
        """
        Book an interview for the requester starting at ``start``.

        If storing the interview fails, the granules flagged for it are
        released again before the error propagates.

        Raises:
            SlotUnavailableError: If the requester is already committed in that
                hour, nobody is free any more, or another booking won the race
        """
        hour = TimeRange.from_start(start.in_timezone("UTC"), self.interview_minutes)

        clashes = read_repository(
            f"commitments of {requester_id}",
            lambda: self._commitments.list_in_range(hour, owner_id=requester_id),
        )
        if clashes:
            raise SlotUnavailableError(f"{requester_id} is already booked during {hour}")

        candidates = self.available_interviewer_ids(requester_id, hour.start, position or None)
        if not candidates:
            raise SlotUnavailableError(f"No interviewer is available during {hour}")

        interviewer_id = self._choose_interviewer(candidates)
        # Fails if the interviewer's hour was booked or withdrawn since the lookup.
        self._availability.mark_scheduled(interviewer_id, hour)
        try:
            self._availability.mark_scheduled(requester_id, hour, require_free=False)
            commitment = self._commitments.add(
                Commitment(
                    when=hour,
                    interviewer_id=interviewer_id,
                    interviewee_id=requester_id,
                    position=position,
                )
            )
        except Exception:
            logger.warning(
                "Booking %s with %s at %s failed, releasing their granules",
                requester_id,
                interviewer_id,
                hour,
            )
            # Neither party has a commitment in this hour any more.
            self._availability.mark_free(interviewer_id, hour)
            self._availability.mark_free(requester_id, hour)
            raise

        logger.info(
            "Booked interview %s: %s with %s at %s",
            commitment.commitment_id,
            requester_id,
            interviewer_id,
            hour,
        )
        return commitment

    def shadowable_interviews(
        self,
        shadow_id: str,
        window: TimeRange,
        position: Optional[str] = None,
    ) -> List[Commitment]:
        """
        Return the interviews in ``window`` the person could join as shadow.

        An interview qualifies when it has no shadow yet, the person takes no
        part in it or in anything overlapping it, both participants accept a
        shadow and, if given, it is for ``position``.
        """
        interviews = read_repository(
            "interviews", lambda: self._commitments.list_in_range(window)
        )
        own = read_repository(
            f"commitments of {shadow_id}",
            lambda: self._commitments.list_for_person(shadow_id),
        )
        return [
            interview
            for interview in interviews
            if not interview.has_shadow()
            and (not position or interview.position == position)
            and not any(mine.when.overlaps(interview.when) for mine in own)
            and self._accepts_shadow(interview)
        ]

    def search_shadowable(
        self,
        shadow_id: str,
        timezone_offset_minutes: int,
        *,
        now: DateTime,
        position: Optional[str] = None,
        days: int = DEFAULT_SEARCH_DAYS,
    ) -> List[List[Commitment]]:
        """Return shadowable interviews from ``now`` on, grouped by the viewer's local day."""
        validate_offset(timezone_offset_minutes)
        _check_days(days)
        interviews = self.shadowable_interviews(shadow_id, default_window(now, days), position)
        return [
            list(day)
            for _, day in groupby(
                interviews,
                key=lambda c: to_local(c.when.start, timezone_offset_minutes).date(),
            )
        ]

    def join_as_shadow(self, commitment_id: int, shadow_id: str) -> Commitment:
        """
        Add the person as shadow of an interview and flag their granules in
        that hour as scheduled.

        Raises:
            SlotUnavailableError: If the interview is gone, already has a
                shadow, does not accept one, or clashes with the person's
                own commitments
        """
        interview = read_repository(
            f"interview {commitment_id}", lambda: self._commitments.get(commitment_id)
        )
        if interview is None:
            raise SlotUnavailableError(f"No interview with id {commitment_id}")
        if interview.involves(shadow_id):
            raise SlotUnavailableError(f"{shadow_id} already takes part in interview {commitment_id}")
        if not self._accepts_shadow(interview):
            raise SlotUnavailableError(f"Interview {commitment_id} does not accept a shadow")
        clashes = read_repository(
            f"commitments of {shadow_id}",
            lambda: self._commitments.list_in_range(interview.when, owner_id=shadow_id),
        )
        if clashes:
            raise SlotUnavailableError(f"{shadow_id} is already booked during {interview.when}")

        updated = self._commitments.set_shadow(commitment_id, shadow_id)
        try:
            self._availability.mark_scheduled(shadow_id, interview.when, require_free=False)
        except Exception:
            self._commitments.set_shadow(commitment_id, "", expected=shadow_id)
            raise

        logger.info("%s joined interview %s as shadow", shadow_id, commitment_id)
        return updated

    def commitments_for(self, person_id: str) -> List[Commitment]:
        return read_repository(
            f"commitments of {person_id}",
            lambda: self._commitments.list_for_person(person_id),
        )

    def register_person(self, person: Person) -> Person:
        return self._people.add(person)

    def get_person(self, person_id: str) -> Person:
        person = self._find_person(person_id)
        if person is None:
            raise UnknownPersonError(f"Unknown person: {person_id}")
        return person

    def _find_person(self, person_id: str) -> Optional[Person]:
        return read_repository(f"person {person_id}", lambda: self._people.get(person_id))

    def _accepts_shadow(self, interview: Commitment) -> bool:
        for person_id in (interview.interviewer_id, interview.interviewee_id):
            person = self._find_person(person_id)
            if person is None or not person.ok_shadow:
                return False
        return True
