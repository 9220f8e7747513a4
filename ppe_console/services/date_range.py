"""Calendar date range to absolute instants.

A bare "YYYY-MM-DD" read as UTC shifts the window by the user's UTC offset and
drops or adds records at the day boundaries. Dates here are read in the user's
zone instead: the from-day starts at local 00:00:00, the to-day ends at local
23:59:59.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta

import pytz

DATE_FORMAT = "%Y-%m-%d"
START_OF_DAY = time(0, 0, 0)
END_OF_DAY = time(23, 59, 59)


@dataclass(frozen=True)
class DateRange:
    """Inclusive instant bounds; None means unbounded on that side."""

    start: datetime | None = None
    end: datetime | None = None

    def contains(self, instant: datetime) -> bool:
        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant > self.end:
            return False
        return True

    def to_params(self) -> dict[str, str]:
        """Query parameters for GET /images ("from"/"to"), omitting open bounds."""
        params: dict[str, str] = {}
        if self.start is not None:
            params["from"] = to_api_instant(self.start)
        if self.end is not None:
            params["to"] = to_api_instant(self.end)
        return params


def _check_zone(tz_name: str | None) -> None:
    if tz_name:
        try:
            pytz.timezone(tz_name)
        except pytz.UnknownTimeZoneError as e:
            raise ValueError(f"Unknown timezone: {tz_name}") from e


def _localize(naive: datetime, tz_name: str | None) -> datetime:
    """Attach the user's zone to a naive local wall-clock time."""
    if tz_name:
        return pytz.timezone(tz_name).localize(naive)
    # Host zone; resolves the offset in effect on that date
    return naive.astimezone()


def parse_calendar_date(value: str) -> date:
    """Parse "YYYY-MM-DD", raising ValueError for anything else."""
    return datetime.strptime(value.strip(), DATE_FORMAT).date()


def start_of_day(day: date, tz_name: str | None = None) -> datetime:
    return _localize(datetime.combine(day, START_OF_DAY), tz_name)


def end_of_day(day: date, tz_name: str | None = None) -> datetime:
    return _localize(datetime.combine(day, END_OF_DAY), tz_name)


def normalize_date_range(
    date_from: str | None,
    date_to: str | None,
    tz_name: str | None = None,
) -> DateRange:
    """Convert a local calendar date range into absolute instants.

    Args:
        date_from: "YYYY-MM-DD" or empty/None for no lower bound
        date_to: "YYYY-MM-DD" or empty/None for no upper bound
        tz_name: IANA zone name; None uses the host's local zone

    Returns:
        DateRange with timezone-aware start/end

    Raises:
        ValueError: If a date is malformed or the zone is unknown
    """
    _check_zone(tz_name)
    start = start_of_day(parse_calendar_date(date_from), tz_name) if date_from else None
    end = end_of_day(parse_calendar_date(date_to), tz_name) if date_to else None
    return DateRange(start=start, end=end)


def to_api_instant(instant: datetime) -> str:
    """Format an aware datetime as UTC with millisecond precision, e.g. 2024-01-05T05:00:00.000Z."""
    if instant.tzinfo is None:
        raise ValueError("Instant must be timezone-aware")
    utc = instant.astimezone(UTC)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def format_local_date(day: date) -> str:
    return day.strftime(DATE_FORMAT)


def default_range(today: date, days: int = 30) -> tuple[str, str]:
    """Default Analytics window: the last `days` days up to and including today."""
    return format_local_date(today - timedelta(days=days)), format_local_date(today)


def today_in_zone(tz_name: str | None = None) -> date:
    """The current calendar date in the user's zone.

    Raises:
        ValueError: If the zone is unknown
    """
    _check_zone(tz_name)
    if tz_name:
        return datetime.now(pytz.timezone(tz_name)).date()
    return date.today()
