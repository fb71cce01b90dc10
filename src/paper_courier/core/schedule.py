"""Weekly schedule: parsing and next-fire-instant resolution."""

import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo

from dateutil import tz

from paper_courier.core.errors import InvalidConfig

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
LOCAL_TIMEZONE = "local"

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def resolve_timezone(name: str) -> tzinfo:
    """Turn a timezone setting into a tzinfo.

    ``"local"`` means the system timezone; anything else must be a name
    that dateutil knows (e.g. ``Europe/Berlin`` or ``UTC``).
    """
    if not name or name.strip().lower() == LOCAL_TIMEZONE:
        return tz.tzlocal()
    zone = tz.gettz(name.strip())
    if zone is None:
        raise InvalidConfig(f"timezone = '{name}' is not a known timezone")
    return zone


def parse_weekday(value: str) -> int:
    """Map a three-letter weekday token (exactly ``Mon`` .. ``Sun``) to 0 .. 6."""
    token = str(value)
    if token not in WEEKDAYS:
        choices = ", ".join(f"'{day}'" for day in WEEKDAYS)
        raise InvalidConfig(
            f"weekday = '{value}' is not a valid weekday format. Choose from {choices}"
        )
    return WEEKDAYS.index(token)


def parse_time(value: str) -> time:
    """Parse ``HH:MM`` on a 24h clock."""
    text = str(value).strip()
    if ":" not in text:
        raise InvalidConfig(
            f"time = '{value}': missing splicer ':'. 'HH:MM' is the valid format"
        )
    match = _TIME_PATTERN.match(text)
    if not match:
        raise InvalidConfig(f"time = '{value}' is not a valid time format. 'HH:MM' is the valid format")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour >= 24:
        raise InvalidConfig(f"time = '{value}': set hour between 0 <= 'HH' < 24")
    if minute >= 60:
        raise InvalidConfig(f"time = '{value}': set minute between 0 <= 'MM' < 60")
    return time(hour, minute)


@dataclass(frozen=True)
class ScheduleSpec:
    """A weekday and time of day in a fixed timezone."""

    weekday: int
    time_of_day: time
    tzinfo: tzinfo

    @classmethod
    def parse(cls, weekday: str, time_str: str, timezone: str = LOCAL_TIMEZONE) -> "ScheduleSpec":
        return cls(
            weekday=parse_weekday(weekday),
            time_of_day=parse_time(time_str),
            tzinfo=resolve_timezone(timezone),
        )

    def resolve_next(self, now: datetime) -> datetime:
        """Return the next fire instant strictly after ``now``.

        If ``now`` is exactly a fire instant the following week's instant
        is returned, so the same instant never fires twice. Wall-clock
        times skipped by a DST jump are moved forward to the first valid
        instant.
        """
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")

        local_now = now.astimezone(self.tzinfo)
        days_ahead = (self.weekday - local_now.weekday()) % 7
        now_utc = now.astimezone(tz.UTC)

        for offset in (days_ahead, days_ahead + 7):
            day = local_now.date() + timedelta(days=offset)
            candidate = tz.resolve_imaginary(
                datetime.combine(day, self.time_of_day, tzinfo=self.tzinfo)
            )
            if candidate.astimezone(tz.UTC) > now_utc:
                return candidate

        raise AssertionError("unreachable: a week ahead is always in the future")

    def period_key(self, instant: datetime) -> str:
        """ISO year and week of ``instant`` in the schedule timezone."""
        if instant.tzinfo is None:
            raise ValueError("instant must be timezone-aware")
        year, week, _ = instant.astimezone(self.tzinfo).isocalendar()
        return f"{year}-W{week:02d}"

    def describe(self) -> str:
        return f"{WEEKDAYS[self.weekday]} {self.time_of_day.strftime('%H:%M')}"
