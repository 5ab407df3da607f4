"""
Domain-specific exception hierarchy for the interview slot matcher.
"""


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class InvalidOffsetError(SchedulingError, ValueError):
    """Raised when a timezone offset is outside of +/- 720 minutes."""

    def __init__(self, offset_minutes: int, limit_minutes: int = 720):
        self.offset_minutes = offset_minutes
        self.limit_minutes = limit_minutes
        super().__init__(
            f"Offset greater than {limit_minutes} minutes "
            f"({limit_minutes // 60} hours): {offset_minutes}"
        )


class RepositoryUnavailableError(SchedulingError):
    """Raised when availability, commitment or person data cannot be read or written."""


class SlotUnavailableError(SchedulingError):
    """Raised when a slot can no longer be booked."""


class UnknownPersonError(SchedulingError, LookupError):
    """Raised when a person id has no stored record."""
