"""Injectable clock used by services, batch jobs and the scheduler."""

from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from reportdesk.core.config import get_settings


def resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def to_storage(value: datetime) -> datetime:
    """Convert an aware instant to the naive UTC form persisted in the database."""

    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class Clock:
    """Wall clock in the configured reference timezone."""

    def __init__(self, tz: tzinfo | None = None) -> None:
        self.tz = tz if tz is not None else resolve_timezone(get_settings().timezone)

    def now(self) -> datetime:
        """Current aware instant in the reference timezone."""

        return datetime.now(self.tz)

    def utcnow(self) -> datetime:
        """Current instant as naive UTC, the storage form for timestamps."""

        return to_storage(self.now())

    def today(self) -> date:
        return self.now().date()

    def start_of_day(self, day: date) -> datetime:
        return datetime(day.year, day.month, day.day, tzinfo=self.tz)


class FrozenClock(Clock):
    """Clock pinned to a fixed instant; used by tests and replays."""

    def __init__(self, instant: datetime, tz: tzinfo | None = None) -> None:
        if instant.tzinfo is None:
            base_tz = tz if tz is not None else resolve_timezone(get_settings().timezone)
            instant = instant.replace(tzinfo=base_tz)
        super().__init__(tz if tz is not None else instant.tzinfo)
        self.instant = instant.astimezone(self.tz)

    def now(self) -> datetime:
        return self.instant

    def set(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self.tz)
        self.instant = instant.astimezone(self.tz)


def get_clock() -> Clock:
    """FastAPI dependency returning the process clock."""

    return Clock()
