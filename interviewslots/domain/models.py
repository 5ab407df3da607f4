"""
Domain models for time ranges, availability granules and interview slots.
"""

from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import FrozenSet, List, Optional, Tuple

from pendulum import DateTime


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable span of time between two instants.

    A range whose start equals its end is legal but degenerate: it contains
    nothing (not even itself) and does not overlap itself.
    Invariant: start must not come after end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Start time {self.start} must not be after end time {self.end}")

    @classmethod
    def from_start(cls, start: DateTime, minutes: int) -> "TimeRange":
        """Build a range of the given length starting at ``start``."""
        return cls(start=start, end=start.add(minutes=minutes))

    def duration(self) -> timedelta:
        """Return the duration of the range."""
        return self.end - self.start

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int(self.duration().total_seconds() / 60)

    def is_empty(self) -> bool:
        return self.start == self.end

    def overlaps(self, other: "TimeRange") -> bool:
        """
        Check if this range overlaps with another.

        Ranges that only touch at a boundary (08:45-09:00 and 09:00-09:15)
        do not overlap.
        """
        return other.end > self.start and other.start < self.end

    def contains(self, other: "TimeRange") -> bool:
        """
        Check if ``other`` lies completely inside this range.

        Bounds are inclusive, so equal non-empty ranges contain each other.
        """
        if self.is_empty():
            return False
        return other.start >= self.start and other.end <= self.end

    def contains_instant(self, instant: DateTime) -> bool:
        """Check if an instant falls inside the range. The end is exclusive."""
        if self.is_empty():
            return False
        return self.start <= instant < self.end

    def sort_key(self) -> Tuple[DateTime, DateTime]:
        return (self.start, self.end)

    def __str__(self) -> str:
        return f"{self.start.to_iso8601_string()} - {self.end.to_iso8601_string()}"


@dataclass(frozen=True)
class Granule:
    """
    One fixed-width slice of a person's declared availability.

    ``scheduled`` flips to True once an interview occupies the slice.
    """
    owner_id: str
    when: TimeRange
    scheduled: bool = False
    granule_id: Optional[int] = None

    @property
    def start(self) -> DateTime:
        return self.when.start

    @property
    def end(self) -> DateTime:
        return self.when.end

    def with_scheduled(self, scheduled: bool = True) -> "Granule":
        return replace(self, scheduled=scheduled)

    def with_id(self, granule_id: int) -> "Granule":
        return replace(self, granule_id=granule_id)


@dataclass(frozen=True)
class Commitment:
    """
    An already booked interview.

    The shadow is an optional observer who joined after booking; an empty
    string means nobody is shadowing.
    """
    when: TimeRange
    interviewer_id: str
    interviewee_id: str
    shadow_id: str = ""
    position: str = ""
    commitment_id: Optional[int] = None

    def participants(self) -> List[str]:
        """Return the ids of everyone taking part in the interview."""
        return [
            person_id
            for person_id in (self.interviewer_id, self.interviewee_id, self.shadow_id)
            if person_id
        ]

    def involves(self, person_id: str) -> bool:
        return person_id in self.participants()

    def with_id(self, commitment_id: int) -> "Commitment":
        return replace(self, commitment_id=commitment_id)

    def with_shadow(self, shadow_id: str) -> "Commitment":
        return replace(self, shadow_id=shadow_id)

    def has_shadow(self) -> bool:
        return bool(self.shadow_id)


@dataclass(frozen=True)
class CandidateSlot:
    """
    A bookable interview start, labelled for the person viewing it.

    ``owner_id`` is only filled in when the caller asked to keep track of who
    is free; slots collapsed by instant carry ``None``.
    """
    instant: DateTime
    date_label: str
    time_label: str
    owner_id: Optional[str] = None

    @property
    def utc_encoding(self) -> str:
        """Return the instant as an ISO 8601 UTC string, e.g. 2020-07-07T16:30:00Z."""
        return self.instant.in_timezone("UTC").format("YYYY-MM-DDTHH:mm:ss[Z]")

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Tuesday 7/7 | 12:30 PM - 1:30 PM
        """
        return f"{self.date_label} | {self.time_label}"


@dataclass(frozen=True)
class Person:
    """
    A registered user who can interview or be interviewed.

    ``ok_shadow`` means the person accepts an observer in their interviews.
    """
    person_id: str
    name: str = ""
    email: str = ""
    company: str = ""
    job: str = ""
    qualified_positions: FrozenSet[str] = field(default_factory=frozenset)
    ok_shadow: bool = False

    def is_qualified_for(self, position: str) -> bool:
        return position in self.qualified_positions
