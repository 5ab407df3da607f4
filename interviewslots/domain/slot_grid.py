"""
Quantized slot grid for a viewer's local working window.

The grid is the set of fixed-width cells a person can mark as available.
Each cell is keyed by its UTC instant and labelled in the viewer's offset.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from pendulum import DateTime

from .models import Granule, TimeRange
from .time_labels import (
    format_short_date,
    format_time,
    to_local,
    utc_encoding,
    validate_offset,
)


@dataclass(frozen=True)
class WorkingWindow:
    """
    Local hours covered by the grid.

    The last cell starts at ``latest_hour`` plus the last granule of that hour,
    so the defaults give 8:00 AM through 7:45 PM.
    """
    earliest_hour: int = 8
    latest_hour: int = 19
    granule_minutes: int = 15

    def __post_init__(self):
        if not 0 <= self.earliest_hour <= self.latest_hour <= 23:
            raise ValueError(
                f"Invalid working window {self.earliest_hour}:00 - {self.latest_hour}:00"
            )
        if self.granule_minutes <= 0 or 60 % self.granule_minutes:
            raise ValueError(f"granule_minutes must divide 60, got {self.granule_minutes}")

    def hours_and_minutes(self) -> List[Tuple[int, int]]:
        """Return every permitted (hour, minute) cell start in order."""
        return [
            (hour, minute)
            for hour in range(self.earliest_hour, self.latest_hour + 1)
            for minute in range(0, 60, self.granule_minutes)
        ]

    def cells_per_day(self) -> int:
        return (self.latest_hour - self.earliest_hour + 1) * (60 // self.granule_minutes)


@dataclass(frozen=True)
class GridSlot:
    """
    One cell of the grid as shown to a viewer.

    ``selected`` means the viewer declared availability for the cell,
    ``scheduled`` means an interview already occupies it.
    """
    instant: DateTime
    time_label: str
    date_label: str
    selected: bool = False
    scheduled: bool = False

    @property
    def utc_encoding(self) -> str:
        return utc_encoding(self.instant)


class SlotGridGenerator:
    """
    Generates day-by-day grids of cells for a fixed UTC offset.

    The local calendar day comes from the reference instant read at the
    offset; the time of day of the reference instant plays no part, so a
    reference at local midnight still yields that whole day.
    """

    def __init__(self, window: Optional[WorkingWindow] = None):
        self.window = window or WorkingWindow()
        self._cells = self.window.hours_and_minutes()

    def slots_for_day(
        self,
        instant: DateTime,
        timezone_offset_minutes: int,
        granules: Iterable[Granule] = (),
    ) -> List[GridSlot]:
        """
        Build the cells for the local day containing ``instant``.

        Args:
            instant: Any instant on the wanted local day
            timezone_offset_minutes: Viewer offset from UTC in minutes
            granules: The viewer's own granules, used for selected/scheduled flags

        Raises:
            InvalidOffsetError: If the offset exceeds 720 minutes
        """
        validate_offset(timezone_offset_minutes)
        return self._build_day(instant, timezone_offset_minutes, self._index(granules))

    def slots_for_days(
        self,
        instant: DateTime,
        timezone_offset_minutes: int,
        days: int = 7,
        granules: Iterable[Granule] = (),
    ) -> List[List[GridSlot]]:
        """Build one list of cells per day, starting on the day of ``instant``."""
        validate_offset(timezone_offset_minutes)
        if days < 1:
            raise ValueError(f"days must be at least 1, got {days}")

        by_start = self._index(granules)
        return [
            self._build_day(instant.add(days=day), timezone_offset_minutes, by_start)
            for day in range(days)
        ]

    def window_for_days(
        self,
        instant: DateTime,
        timezone_offset_minutes: int,
        days: int = 7,
    ) -> TimeRange:
        """
        Return the UTC range from the first cell of the first day to the end
        of the last cell of the last day.
        """
        first_day = self._local_cell(instant, timezone_offset_minutes, *self._cells[0])
        last_day = self._local_cell(
            instant.add(days=days - 1), timezone_offset_minutes, *self._cells[-1]
        )
        return TimeRange(
            start=first_day.in_timezone("UTC"),
            end=last_day.add(minutes=self.window.granule_minutes).in_timezone("UTC"),
        )

    def _build_day(
        self,
        instant: DateTime,
        timezone_offset_minutes: int,
        by_start: Dict[str, Granule],
    ) -> List[GridSlot]:
        date_label = format_short_date(to_local(instant, timezone_offset_minutes))
        slots: List[GridSlot] = []

        for hour, minute in self._cells:
            local = self._local_cell(instant, timezone_offset_minutes, hour, minute)
            cell_instant = local.in_timezone("UTC")
            granule = by_start.get(utc_encoding(cell_instant))

            slots.append(
                GridSlot(
                    instant=cell_instant,
                    time_label=format_time(local),
                    date_label=date_label,
                    selected=granule is not None,
                    scheduled=granule is not None and granule.scheduled,
                )
            )

        return slots

    @staticmethod
    def _local_cell(
        instant: DateTime, timezone_offset_minutes: int, hour: int, minute: int
    ) -> DateTime:
        return to_local(instant, timezone_offset_minutes).set(
            hour=hour, minute=minute, second=0, microsecond=0
        )

    @staticmethod
    def _index(granules: Iterable[Granule]) -> Dict[str, Granule]:
        return {utc_encoding(granule.start): granule for granule in granules}
