"""Local calendar helpers shared by the dispatch gates and the focus view."""

import re
from datetime import date, datetime, time

from reprise.domain.errors import InvalidEmailTimeError

_EMAIL_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def local_date(instant: datetime, now: datetime) -> date:
    """Calendar date of `instant` in the time zone of `now`."""
    if instant.tzinfo is None:
        # Naive instants are taken to be in local time already.
        return instant.date()
    return instant.astimezone(now.tzinfo).date()


def same_local_date(instant: datetime | None, now: datetime) -> bool:
    if instant is None:
        return False
    return local_date(instant, now) == now.date()


def parse_email_time(value: str) -> time:
    """
    Parse a local "HH:MM" time of day.

    Raises:
        InvalidEmailTimeError: malformed or out of range.
    """
    if not isinstance(value, str):
        raise InvalidEmailTimeError(str(value))
    match = _EMAIL_TIME_RE.match(value)
    if not match:
        raise InvalidEmailTimeError(value)
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidEmailTimeError(value)
    return time(hour, minute)


def is_before_time_of_day(now: datetime, email_time: str | None) -> bool:
    """True if `now` is earlier in the local day than `email_time`. None never gates."""
    if email_time is None or (isinstance(email_time, str) and not email_time.strip()):
        return False
    gate = parse_email_time(email_time)
    return now.time().replace(tzinfo=None) < gate
