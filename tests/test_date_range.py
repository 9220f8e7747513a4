"""Tests for calendar date range normalization."""

from datetime import UTC, date, datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import pytz

from ppe_console.services.date_range import (
    DateRange,
    default_range,
    normalize_date_range,
    parse_calendar_date,
    to_api_instant,
    today_in_zone,
)


class TestNormalizeDateRange:
    """Tests for normalize_date_range."""

    def test_single_day_in_new_york(self) -> None:
        """Test that one local day maps to the matching UTC instants."""
        window = normalize_date_range("2024-01-05", "2024-01-05", "America/New_York")

        assert window.to_params() == {
            "from": "2024-01-05T05:00:00.000Z",
            "to": "2024-01-06T04:59:59.000Z",
        }

    def test_boundaries_in_new_york(self) -> None:
        """Test which local instants fall inside a one-day window."""
        tz = pytz.timezone("America/New_York")
        window = normalize_date_range("2024-01-05", "2024-01-05", "America/New_York")

        just_before = tz.localize(datetime(2024, 1, 4, 23, 59, 59, 999000))
        first_moment = tz.localize(datetime(2024, 1, 5, 0, 0, 0))
        last_second = tz.localize(datetime(2024, 1, 5, 23, 59, 59))
        next_day = tz.localize(datetime(2024, 1, 6, 0, 0, 0))

        assert not window.contains(just_before)
        assert window.contains(first_moment)
        assert window.contains(last_second)
        assert not window.contains(next_day)

    def test_start_not_after_end(self) -> None:
        """Test that a same-day window is ordered."""
        window = normalize_date_range("2024-07-01", "2024-07-01", "Asia/Kolkata")

        assert window.start is not None and window.end is not None
        assert window.start <= window.end
        assert to_api_instant(window.start) == "2024-06-30T18:30:00.000Z"

    def test_daylight_saving_offset_per_date(self) -> None:
        """Test that each bound uses the offset in effect on its own date."""
        window = normalize_date_range("2024-03-09", "2024-03-10", "America/New_York")

        assert window.to_params() == {
            "from": "2024-03-09T05:00:00.000Z",
            "to": "2024-03-11T03:59:59.000Z",
        }

    @pytest.mark.parametrize(("date_from", "date_to"), [(None, None), ("", "")])
    def test_missing_bounds(self, date_from: str | None, date_to: str | None) -> None:
        """Test that absent dates give an unbounded range."""
        window = normalize_date_range(date_from, date_to, "UTC")

        assert window == DateRange()
        assert window.to_params() == {}

    def test_only_upper_bound(self) -> None:
        """Test a range open on the lower side."""
        window = normalize_date_range(None, "2024-01-05", "UTC")

        assert window.start is None
        assert window.to_params() == {"to": "2024-01-05T23:59:59.000Z"}

    @pytest.mark.parametrize("value", ["2024-13-01", "05/01/2024", "yesterday"])
    def test_malformed_date(self, value: str) -> None:
        """Test that unparseable dates raise ValueError."""
        with pytest.raises(ValueError):
            normalize_date_range(value, None, "UTC")

    def test_unknown_zone(self) -> None:
        """Test that an unknown zone name raises ValueError."""
        with pytest.raises(ValueError, match="Unknown timezone"):
            normalize_date_range("2024-01-05", None, "Mars/Olympus")

    def test_host_zone_when_unset(self) -> None:
        """Test that without a zone the bounds carry the host's offset."""
        window = normalize_date_range("2024-01-05", "2024-01-05")

        assert window.start is not None and window.end is not None
        assert window.start.tzinfo is not None
        assert (window.start.hour, window.start.minute) == (0, 0)
        assert (window.end.hour, window.end.minute, window.end.second) == (23, 59, 59)


class TestToApiInstant:
    """Tests for to_api_instant."""

    def test_millisecond_precision(self) -> None:
        instant = datetime(2024, 1, 5, 5, 0, 0, 123456, tzinfo=UTC)
        assert to_api_instant(instant) == "2024-01-05T05:00:00.123Z"

    def test_converts_offset_to_utc(self) -> None:
        instant = datetime(2024, 1, 5, 0, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert to_api_instant(instant) == "2024-01-05T05:00:00.000Z"

    def test_naive_rejected(self) -> None:
        with pytest.raises(ValueError):
            to_api_instant(datetime(2024, 1, 5))


class TestHelpers:
    """Tests for small date helpers."""

    def test_parse_calendar_date(self) -> None:
        assert parse_calendar_date(" 2024-01-05 ") == date(2024, 1, 5)

    def test_default_range(self) -> None:
        """Test the default 30-day analytics window."""
        assert default_range(date(2024, 3, 1)) == ("2024-01-31", "2024-03-01")


class TestTodayInZone:
    """Tests for today_in_zone."""

    @pytest.mark.parametrize(
        ("tz_name", "expected"),
        [
            ("America/New_York", date(2024, 1, 5)),
            ("Pacific/Kiritimati", date(2024, 1, 6)),
        ],
    )
    def test_calendar_day_of_the_zone(self, tz_name: str, expected: date) -> None:
        """Test that 20:00 UTC is already the next day east of the date line."""
        instant = datetime(2024, 1, 5, 20, 0, tzinfo=UTC)
        clock = MagicMock()
        clock.now.side_effect = lambda tz: instant.astimezone(tz)

        with patch("ppe_console.services.date_range.datetime", clock):
            assert today_in_zone(tz_name) == expected

    def test_host_zone_when_unset(self) -> None:
        assert today_in_zone(None) == date.today()

    def test_unknown_zone(self) -> None:
        with pytest.raises(ValueError, match="Unknown timezone"):
            today_in_zone("Mars/Olympus_Mons")
