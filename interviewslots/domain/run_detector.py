"""
Detection of unbroken runs of free granules.

A 60-minute interview needs four 15-minute granules of the same person
that are all unscheduled and follow each other without a gap.
"""

from datetime import timedelta
from typing import List, Sequence

from pendulum import DateTime

from .models import Granule, TimeRange


class RunDetector:
    """
    Finds every granule index that starts a run long enough for one interview.

    Algorithm:
    1. Walk the ascending granules once, tracking the length of the current
       streak of free, unit-length, gap-free granules of one owner
    2. A scheduled granule, a gap or an owner change resets the streak
    3. Whenever the streak reaches the required length, the granule
       ``required_run_length - 1`` positions back starts a run
    """

    def __init__(self, required_run_length: int = 4, granule_minutes: int = 15):
        if required_run_length < 1:
            raise ValueError("required_run_length must be at least 1")
        if granule_minutes <= 0:
            raise ValueError("granule_minutes must be greater than zero")
        self.required_run_length = required_run_length
        self.granule_minutes = granule_minutes
        self._unit = timedelta(minutes=granule_minutes)

    @classmethod
    def for_interview(cls, interview_minutes: int = 60, granule_minutes: int = 15) -> "RunDetector":
        """Build a detector for interviews of the given length."""
        if interview_minutes % granule_minutes:
            raise ValueError(
                f"Interview length {interview_minutes} is not a multiple of {granule_minutes}"
            )
        return cls(
            required_run_length=interview_minutes // granule_minutes,
            granule_minutes=granule_minutes,
        )

    @property
    def run_minutes(self) -> int:
        return self.required_run_length * self.granule_minutes

    def find_run_starts(self, granules: Sequence[Granule]) -> List[int]:
        """
        Return the indices ``i`` where ``granules[i:i + required_run_length]``
        are all free and gap-free.

        Args:
            granules: One person's granules in ascending start order
        """
        starts: List[int] = []
        streak = 0

        for index, granule in enumerate(granules):
            if granule.scheduled or granule.when.duration() != self._unit:
                streak = 0
                continue

            if streak and self._continues(granules[index - 1], granule):
                streak += 1
            else:
                streak = 1

            if streak >= self.required_run_length:
                starts.append(index - self.required_run_length + 1)

        return starts

    def run_start_instants(self, granules: Sequence[Granule]) -> List[DateTime]:
        """Return the start instants of every run in ``granules``."""
        return [granules[index].start for index in self.find_run_starts(granules)]

    def covers(self, granules: Sequence[Granule], window: TimeRange) -> bool:
        """
        Check whether the granules inside ``window`` form one free run that
        spans the whole window.
        """
        inside = [granule for granule in granules if window.contains(granule.when)]
        if len(inside) != self.required_run_length:
            return False
        if inside[0].start != window.start or inside[-1].end != window.end:
            return False
        return self.find_run_starts(inside) == [0]

    @staticmethod
    def _continues(previous: Granule, current: Granule) -> bool:
        return previous.owner_id == current.owner_id and previous.end == current.start
