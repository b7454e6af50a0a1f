"""
Send notifications via the Pushover messages API (mobile gateway).
Requires PUSHOVER_TOKEN (application token); each recipient is a profile's user_key.
If not configured, the dispatcher never builds a client and gateway targets are skipped.
"""
import logging

import httpx

from parkwatch.core.constants import PUSHOVER_RATE_LIMITED_STATUS

logger = logging.getLogger(__name__)

SENT = "sent"
FAILED = "failed"
RATE_LIMITED = "rate_limited"


class PushoverClient:
    """Thin form-POST client. One httpx.Client is shared across delivery threads."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.pushover.net/1/messages.json",
        priority: int = 0,
        url_title: str = "Open",
        timeout: float = 10.0,
        http: httpx.Client | None = None,
    ):
        self.token = token
        self.api_url = api_url
        self.priority = priority
        self.url_title = url_title
        self._http = http or httpx.Client(timeout=timeout)
        self._owns_http = http is None

    @classmethod
    def from_config(cls, config, http: httpx.Client | None = None) -> "PushoverClient":
        return cls(
            token=config.pushover_token,
            api_url=config.pushover_api_url,
            priority=config.pushover_priority,
            url_title=config.pushover_url_title,
            timeout=config.provider_timeout_seconds,
            http=http,
        )

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "PushoverClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def send(self, user_key: str, title: str, message: str, url: str = "/") -> str:
        """
        Send one message to one user key.
        Returns SENT, RATE_LIMITED (HTTP 429, no retry this run) or FAILED.
        """
        form = {
            "token": self.token,
            "user": user_key,
            "title": title,
            "message": message,
            "url": url,
            "url_title": self.url_title,
            "priority": str(self.priority),
        }
        try:
            resp = self._http.post(self.api_url, data=form)
        except httpx.HTTPError as e:
            logger.warning("Pushover request failed for user %s...: %s", user_key[:8], e)
            return FAILED
        if resp.status_code == 200:
            return SENT
        if resp.status_code == PUSHOVER_RATE_LIMITED_STATUS:
            logger.warning("Pushover rate limited (429) for user %s...", user_key[:8])
            return RATE_LIMITED
        logger.warning("Pushover returned %s for user %s...: %s", resp.status_code, user_key[:8], resp.text[:200])
        return FAILED
