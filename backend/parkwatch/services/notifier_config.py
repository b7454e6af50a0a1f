"""
Explicit configuration for one notifier run.

Built once from Settings and passed into the runner and its collaborators, so nothing
below the entry point reads the environment.
"""
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from parkwatch.config import Settings
from parkwatch.core.constants import SCOPES
from parkwatch.core.errors import ConfigurationError
from parkwatch.services.quiet_hours import parse_hhmm


@dataclass(frozen=True)
class NotifierConfig:
    database_url: str = ""
    vapid_public_key: str = ""
    vapid_private_key: str = ""
    vapid_subject: str = "mailto:notify@example.com"
    webpush_ttl_seconds: int = 86_400
    pushover_token: str = ""
    pushover_api_url: str = "https://api.pushover.net/1/messages.json"
    pushover_priority: int = 0
    pushover_url_title: str = "Open"
    park_timezone: str = "Asia/Tokyo"
    quiet_hours_start: str = "08:00"
    quiet_hours_end: str = "21:59"
    batch_size: int = 200
    retention_days: int = 7
    wait_spike_threshold: int = 20
    wave_threshold: int = 12
    wave_bucket_seconds: int = 60
    notify_scope: str = "favorites"
    notify_url: str = "/"
    provider_timeout_seconds: float = 10.0
    delivery_workers: int = 8
    invocation_deadline_seconds: float = 25.0
    deadline_margin_seconds: float = 3.0
    extra_vapid_claims: dict = field(default_factory=dict)

    @classmethod
    def from_settings(cls, s: Settings) -> "NotifierConfig":
        return cls(
            database_url=s.database_url,
            vapid_public_key=s.vapid_public_key,
            vapid_private_key=s.vapid_private_key,
            vapid_subject=s.vapid_subject,
            webpush_ttl_seconds=s.webpush_ttl_seconds,
            pushover_token=s.pushover_token,
            pushover_api_url=s.pushover_api_url,
            pushover_priority=s.pushover_priority,
            pushover_url_title=s.pushover_url_title,
            park_timezone=s.park_timezone,
            quiet_hours_start=s.quiet_hours_start,
            quiet_hours_end=s.quiet_hours_end,
            batch_size=s.batch_size,
            retention_days=s.retention_days,
            wait_spike_threshold=s.wait_spike_threshold,
            wave_threshold=s.wave_threshold,
            wave_bucket_seconds=s.wave_bucket_seconds,
            notify_scope=s.notify_scope,
            notify_url=s.notify_url,
            provider_timeout_seconds=s.provider_timeout_seconds,
            delivery_workers=s.delivery_workers,
            invocation_deadline_seconds=s.invocation_deadline_seconds,
            deadline_margin_seconds=s.deadline_margin_seconds,
        )

    @property
    def webpush_enabled(self) -> bool:
        return bool(self.vapid_public_key and self.vapid_private_key)

    @property
    def pushover_enabled(self) -> bool:
        return bool(self.pushover_token)

    @property
    def vapid_claims(self) -> dict:
        return {"sub": self.vapid_subject, **self.extra_vapid_claims}

    def validate(self) -> None:
        """Raise ConfigurationError listing every problem; called before any event is touched."""
        problems: list[str] = []
        if not self.database_url:
            problems.append("DATABASE_URL is not set")
        if not self.webpush_enabled and not self.pushover_enabled:
            problems.append("no transport configured (set VAPID_PUBLIC_KEY/VAPID_PRIVATE_KEY or PUSHOVER_TOKEN)")
        if bool(self.vapid_public_key) != bool(self.vapid_private_key):
            problems.append("VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY must be set together")
        for name in ("quiet_hours_start", "quiet_hours_end"):
            try:
                parse_hhmm(getattr(self, name))
            except ValueError:
                problems.append(f"{name.upper()} must be HH:MM, got {getattr(self, name)!r}")
        try:
            ZoneInfo(self.park_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            problems.append(f"PARK_TIMEZONE {self.park_timezone!r} is not a known time zone")
        if self.notify_scope not in SCOPES:
            problems.append(f"NOTIFY_SCOPE must be one of {SCOPES}, got {self.notify_scope!r}")
        if self.batch_size < 1:
            problems.append("BATCH_SIZE must be positive")
        if problems:
            raise ConfigurationError(problems)
