"""
Candidate matching engine.

The engine reads availability and commitments through the repository
protocols and delegates the actual work to the pure domain steps. It keeps
no state between calls: every result is a snapshot of what the repositories
returned, so a booking step has to re-check before writing.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, TypeVar

from pendulum import DateTime

from ..domain.exceptions import RepositoryUnavailableError, SchedulingError
from ..domain.matching import DedupPolicy, deduplicate, exclude_conflicts, group_by_day
from ..domain.models import CandidateSlot, Granule, TimeRange
from ..domain.run_detector import RunDetector
from ..domain.time_labels import format_long_date, format_time_range, to_local, validate_offset
from .repositories import AvailabilityRepository, CommitmentRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SEARCH_DAYS = 27


def read_repository(description: str, query: Callable[[], T]) -> T:
    """
    Run a repository query, turning unexpected failures into
    RepositoryUnavailableError so they are never mistaken for "no data".
    """
    try:
        return query()
    except SchedulingError:
        raise
    except Exception as exc:
        raise RepositoryUnavailableError(f"Failed to read {description}: {exc}") from exc


def default_window(now: DateTime, days: int = DEFAULT_SEARCH_DAYS) -> TimeRange:
    """Return the search window from ``now`` through ``days`` days later."""
    return TimeRange(start=now, end=now.add(days=days))


class CandidateMatcher:
    """
    Produces day-grouped interview candidates for a requester.

    Algorithm:
    1. Reject an out-of-range offset before touching any repository
    2. Collect everyone with availability in the window, minus the requester
       and anyone the eligibility predicate refuses
    3. Run the run detector over each person's granules
    4. Label each run start in the requester's offset
    5. Drop starts overlapping the requester's own commitments
    6. Deduplicate, sort ascending and group by local day
    """

    def __init__(
        self,
        availability: AvailabilityRepository,
        commitments: CommitmentRepository,
        run_detector: Optional[RunDetector] = None,
    ) -> None:
        self._availability = availability
        self._commitments = commitments
        self._run_detector = run_detector or RunDetector()

    @property
    def interview_minutes(self) -> int:
        return self._run_detector.run_minutes

    def compute_candidates(
        self,
        requester_id: str,
        timezone_offset_minutes: int,
        window: TimeRange,
        *,
        eligible: Optional[Callable[[str], bool]] = None,
        dedupe: DedupPolicy = DedupPolicy.BY_INSTANT,
    ) -> List[List[CandidateSlot]]:
        """
        Return candidate slots grouped into days, earliest first.

        Raises:
            InvalidOffsetError: If the offset exceeds 720 minutes
            RepositoryUnavailableError: If a repository read fails
        """
        return group_by_day(
            self.find_candidates(
                requester_id,
                timezone_offset_minutes,
                window,
                eligible=eligible,
                dedupe=dedupe,
            )
        )

    def find_candidates(
        self,
        requester_id: str,
        timezone_offset_minutes: int,
        window: TimeRange,
        *,
        eligible: Optional[Callable[[str], bool]] = None,
        dedupe: DedupPolicy = DedupPolicy.BY_INSTANT,
    ) -> List[CandidateSlot]:
        """Return the flat, ascending list of candidate slots."""
        validate_offset(timezone_offset_minutes)

        owners = read_repository(
            "people with availability",
            lambda: self._availability.list_owners_in_range(window),
        )
        # A person is never matched with themself.
        owners = {owner for owner in owners if owner != requester_id}
        if eligible is not None:
            owners = {owner for owner in owners if eligible(owner)}

        candidates: List[CandidateSlot] = []
        for owner in sorted(owners):
            granules = read_repository(
                f"availability of {owner}",
                lambda owner=owner: self._availability.list_in_range(window, owner_id=owner),
            )
            candidates.extend(self._candidates_for(owner, granules, timezone_offset_minutes))

        busy = read_repository(
            f"commitments of {requester_id}",
            lambda: self._commitments.list_in_range(window, owner_id=requester_id),
        )
        free = exclude_conflicts(candidates, busy, self.interview_minutes)
        result = deduplicate(free, dedupe)

        logger.debug(
            "Matched %d candidate(s) for %s from %d person(s); %d removed by %d commitment(s)",
            len(result),
            requester_id,
            len(owners),
            len(candidates) - len(free),
            len(busy),
        )
        return result

    def _candidates_for(
        self,
        owner_id: str,
        granules: List[Granule],
        timezone_offset_minutes: int,
    ) -> List[CandidateSlot]:
        return [
            CandidateSlot(
                instant=start.in_timezone("UTC"),
                date_label=format_long_date(to_local(start, timezone_offset_minutes)),
                time_label=format_time_range(
                    start, self.interview_minutes, timezone_offset_minutes
                ),
                owner_id=owner_id,
            )
            for start in self._run_detector.run_start_instants(granules)
        ]

