"""System clock adapter."""

from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from reprise.domain.ports import Clock


class SystemClock(Clock):
    """
    Wall-clock time in a configured zone.

    With no zone configured, the system local zone is used.
    """

    def __init__(self, timezone: str | None = None):
        self._tz: tzinfo | None = ZoneInfo(timezone) if timezone else None

    def now(self) -> datetime:
        if self._tz is None:
            return datetime.now().astimezone()
        return datetime.now(self._tz)
