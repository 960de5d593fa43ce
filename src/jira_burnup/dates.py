"""Epoch-day date helpers shared by the burn-up builder.

Every timestamp in a burn-up model is an integer count of milliseconds since
the Unix epoch, floored to UTC midnight. Keeping all arithmetic on that grid
makes the model independent of the host timezone and of DST transitions.
"""

import math
from datetime import date, datetime, timedelta, timezone

from dateutil import parser as date_parser

DAY_MS = 24 * 60 * 60 * 1000

_EPOCH = date(1970, 1, 1)


def date_to_ms(d: date) -> int:
    """Convert a calendar date to its UTC-midnight epoch milliseconds."""
    return (d - _EPOCH).days * DAY_MS


def ms_to_date(ms: float) -> date:
    """Convert epoch milliseconds to the UTC calendar date containing them."""
    return _EPOCH + timedelta(days=math.floor(ms / DAY_MS))


def ms_to_iso(ms: float | None) -> str | None:
    """Format epoch milliseconds as ``YYYY-MM-DD`` (UTC)."""
    if ms is None:
        return None
    return ms_to_date(ms).isoformat()


def epoch_day_floor_ms(ms: float | None) -> int | None:
    """Floor a timestamp to UTC midnight of its calendar day."""
    if ms is None or not math.isfinite(ms):
        return None
    return math.floor(ms / DAY_MS) * DAY_MS


def parse_iso_date(value: str | None) -> int | None:
    """Parse a ``YYYY-MM-DD`` string into epoch-day milliseconds.

    Anything after the date portion is ignored. Returns None instead of
    raising when the value is missing or malformed.
    """
    if not value:
        return None
    try:
        return date_to_ms(date.fromisoformat(str(value).strip()[:10]))
    except (ValueError, TypeError):
        return None


def parse_jira_date(value: str | None) -> int | None:
    """Parse a JIRA timestamp into epoch-day milliseconds.

    Accepts plain dates as well as full ISO-8601 timestamps such as
    ``2024-01-15T10:30:00.000+0000``. Offsets are honoured by converting to
    UTC before flooring; naive timestamps are taken as UTC. Returns None
    instead of raising for anything that is not ISO-8601, so partial values
    such as ``"March 5"`` are dropped rather than completed from the clock.
    """
    if not value:
        return None
    text = str(value).strip()
    try:
        parsed = date_parser.isoparse(text)
    except (ValueError, OverflowError):
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return date_to_ms(parsed.astimezone(timezone.utc).date())


def subtract_working_days(end_ms: int, working_days: int) -> int:
    """Step back ``working_days`` weekdays (Mon-Fri) from an epoch-day."""
    current = ms_to_date(end_ms)
    left = max(0, math.floor(working_days))

    while left > 0:
        current -= timedelta(days=1)
        if current.weekday() < 5:
            left -= 1
    return date_to_ms(current)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with halves going towards +infinity."""
    return math.floor(value + 0.5)


def today_ms() -> int:
    """Return today's UTC date as epoch-day milliseconds.

    Only the service and web layers call this; the model builder always
    receives "today" from its caller.
    """
    return date_to_ms(datetime.now(timezone.utc).date())
