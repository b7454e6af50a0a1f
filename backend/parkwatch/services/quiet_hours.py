"""Global delivery window in park-local time. Outside it, delivery is deferred (events stay pending)."""
from dataclasses import dataclass
from datetime import datetime, time
from zoneinfo import ZoneInfo

from parkwatch.core.timeutil import as_utc


def parse_hhmm(value: str) -> time:
    hour, _, minute = (value or "").strip().partition(":")
    return time(int(hour), int(minute))


@dataclass(frozen=True)
class QuietHours:
    start: time  # first allowed minute
    end: time  # last allowed minute, inclusive
    tz: ZoneInfo

    @classmethod
    def from_config(cls, config) -> "QuietHours":
        return cls(
            start=parse_hhmm(config.quiet_hours_start),
            end=parse_hhmm(config.quiet_hours_end),
            tz=ZoneInfo(config.park_timezone),
        )

    def local_time(self, now: datetime) -> datetime:
        return as_utc(now).astimezone(self.tz)

    def allows(self, now: datetime) -> bool:
        t = self.local_time(now).time().replace(second=0, microsecond=0)
        if self.start <= self.end:
            return self.start <= t <= self.end
        # Window wraps midnight (e.g. 22:00-02:00)
        return t >= self.start or t <= self.end

    def window_info(self, now: datetime, overridden: bool = False) -> dict:
        return {
            "start": self.start.strftime("%H:%M"),
            "end": self.end.strftime("%H:%M"),
            "timezone": self.tz.key,
            "local_time": self.local_time(now).isoformat(timespec="seconds"),
            "in_window": self.allows(now),
            "overridden": overridden,
        }
