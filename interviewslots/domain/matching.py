"""
Pure steps of candidate matching: conflict exclusion, deduplication,
ordering and grouping by day.

Nothing here performs I/O; the service layer feeds in repository data.
"""

from enum import Enum
from itertools import groupby
from typing import Dict, Iterable, List, Sequence, Tuple

from pendulum import DateTime

from .models import CandidateSlot, Commitment, TimeRange


class DedupPolicy(str, Enum):
    """How candidates from several people at the same instant are collapsed."""

    # "Is anyone free then?" - one slot per instant, owner dropped
    BY_INSTANT = "instant"
    # "Who is free then?" - one slot per (instant, owner)
    BY_INSTANT_AND_OWNER = "instant_and_owner"


def candidate_sort_key(candidate: CandidateSlot) -> Tuple[DateTime, str]:
    return (candidate.instant, candidate.owner_id or "")


def sort_candidates(candidates: Iterable[CandidateSlot]) -> List[CandidateSlot]:
    """Sort ascending by instant; ties are broken by owner id."""
    return sorted(candidates, key=candidate_sort_key)


def exclude_conflicts(
    candidates: Iterable[CandidateSlot],
    commitments: Sequence[Commitment],
    interview_minutes: int,
) -> List[CandidateSlot]:
    """
    Drop candidates whose interview span overlaps any of the commitments.
    """
    busy = [commitment.when for commitment in commitments]
    return [
        candidate
        for candidate in candidates
        if not any(
            TimeRange.from_start(candidate.instant, interview_minutes).overlaps(when)
            for when in busy
        )
    ]


def deduplicate(
    candidates: Iterable[CandidateSlot],
    policy: DedupPolicy = DedupPolicy.BY_INSTANT,
) -> List[CandidateSlot]:
    """
    Collapse duplicate candidates and return them sorted.

    With ``BY_INSTANT`` the candidate of the lowest owner id represents the
    instant and its owner is cleared.
    """
    unique: Dict[object, CandidateSlot] = {}

    for candidate in sort_candidates(candidates):
        if policy is DedupPolicy.BY_INSTANT:
            key: object = candidate.instant
            candidate = CandidateSlot(
                instant=candidate.instant,
                date_label=candidate.date_label,
                time_label=candidate.time_label,
            )
        else:
            key = (candidate.instant, candidate.owner_id)
        unique.setdefault(key, candidate)

    return list(unique.values())


def group_by_day(candidates: Sequence[CandidateSlot]) -> List[List[CandidateSlot]]:
    """
    Partition sorted candidates into consecutive runs sharing a date label.

    Order is preserved within and across days.
    """
    return [list(day) for _, day in groupby(candidates, key=lambda slot: slot.date_label)]
