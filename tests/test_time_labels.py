"""
Tests for offset handling and label formatting.
"""

import pendulum
import pytest

from interviewslots.domain.exceptions import InvalidOffsetError
from interviewslots.domain.time_labels import (
    format_long_date,
    format_short_date,
    format_time,
    format_time_range,
    parse_utc,
    to_local,
    utc_encoding,
    validate_offset,
)


class TestOffsets:
    """Tests for offset validation and conversion."""

    @pytest.mark.parametrize("offset", [740, -740, 721, -721])
    def test_rejects_offsets_beyond_twelve_hours(self, offset):
        """Test that offsets past 720 minutes are invalid input."""
        with pytest.raises(InvalidOffsetError) as excinfo:
            validate_offset(offset)

        assert excinfo.value.offset_minutes == offset
        assert isinstance(excinfo.value, ValueError)

    @pytest.mark.parametrize("offset", [720, -720, 0, -240, 330])
    def test_accepts_offsets_within_twelve_hours(self, offset):
        assert validate_offset(offset) == offset

    def test_to_local_applies_fixed_offset(self):
        """Test that wall time is UTC shifted by the offset."""
        local = to_local(pendulum.parse("2020-07-07T12:00:00Z"), -240)

        assert (local.year, local.month, local.day, local.hour) == (2020, 7, 7, 8)

    def test_to_local_crosses_date_line(self):
        """Test that a large positive offset moves to the next calendar day."""
        local = to_local(pendulum.parse("2020-07-07T20:00:00Z"), 330)

        assert (local.day, local.hour, local.minute) == (8, 1, 30)


class TestLabels:
    """Tests for human-readable labels."""

    def test_utc_afternoon_label(self):
        """Test labelling 14:00Z on a Tuesday with offset 0."""
        local = to_local(pendulum.parse("2020-07-07T14:00:00Z"), 0)

        assert format_time(local) == "2:00 PM"
        assert format_short_date(local) == "Tue 7/7"
        assert format_long_date(local) == "Tuesday 7/7"

    def test_morning_and_noon_labels(self):
        """Test the 12-hour clock around noon."""
        morning = to_local(pendulum.parse("2020-07-07T08:05:00Z"), 0)
        noon = to_local(pendulum.parse("2020-07-07T12:15:00Z"), 0)

        assert format_time(morning) == "8:05 AM"
        assert format_time(noon) == "12:15 PM"

    def test_format_time_range(self):
        """Test an hour-long range in the viewer's offset."""
        label = format_time_range(pendulum.parse("2020-07-07T20:00:00Z"), 60, -240)

        assert label == "4:00 PM - 5:00 PM"

    def test_utc_encoding_and_parse(self):
        """Test that the encoding is ISO 8601 in UTC and parses back."""
        instant = pendulum.parse("2020-07-07T08:00:00-04:00")

        encoded = utc_encoding(instant)

        assert encoded == "2020-07-07T12:00:00Z"
        assert parse_utc(encoded) == instant

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_utc("not a time")
