"""
Delivery dispatcher: one rendered notification -> every resolved target, over both transports.

Sends fan out on a bounded thread pool; provider calls never touch the session. After all
futures complete, the calling thread prunes gone subscriptions and writes the audit log.
One target's failure never stops the others.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from parkwatch.core.errors import PushDeliveryError, PushGoneError
from parkwatch.models.notification_log import NotificationLog
from parkwatch.services import pushover, state_store
from parkwatch.services.audience import Audience, principal_of
from parkwatch.services.pushover import PushoverClient
from parkwatch.services.webpush import WebPushSender, WebPushTarget, build_payload

logger = logging.getLogger(__name__)

_OK = "ok"
_GONE = "gone"
_FAILED = "failed"


@dataclass
class DeliveryReport:
    webpush_sent: int = 0
    webpush_failed: int = 0
    webpush_pruned: int = 0
    gateway_sent: int = 0
    gateway_failed: int = 0
    gateway_rate_limited: int = 0

    @property
    def attempted(self) -> int:
        return (
            self.webpush_sent
            + self.webpush_failed
            + self.webpush_pruned
            + self.gateway_sent
            + self.gateway_failed
            + self.gateway_rate_limited
        )

    @property
    def total_sent(self) -> int:
        return self.webpush_sent + self.gateway_sent

    def add(self, other: "DeliveryReport") -> None:
        for name, value in asdict(other).items():
            setattr(self, name, getattr(self, name) + value)

    def to_dict(self) -> dict:
        return {**asdict(self), "attempted": self.attempted, "total_sent": self.total_sent}


class DeliveryDispatcher:
    def __init__(
        self,
        db: Session,
        config,
        webpush_sender: WebPushSender | None = None,
        pushover_client: PushoverClient | None = None,
    ):
        self.db = db
        self.config = config
        self.url = config.notify_url
        if webpush_sender is None and config.webpush_enabled:
            webpush_sender = WebPushSender.from_config(config)
        if pushover_client is None and config.pushover_enabled:
            pushover_client = PushoverClient.from_config(config)
        self.webpush_sender = webpush_sender
        self.pushover_client = pushover_client
        self._executor: ThreadPoolExecutor | None = None

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=max(1, self.config.delivery_workers),
                thread_name_prefix="notify_delivery",
            )
        return self._executor

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        if self.pushover_client is not None:
            self.pushover_client.close()

    # --- workers (no session access) ---

    def _send_webpush(self, target: WebPushTarget, payload_json: str) -> str:
        try:
            self.webpush_sender.send(target, payload_json)
            return _OK
        except PushGoneError:
            return _GONE
        except PushDeliveryError as e:
            logger.warning("Web Push delivery failed for %s: %s", target.endpoint[:60], e)
            return _FAILED

    def _send_gateway(self, user_key: str, title: str, body: str) -> str:
        try:
            return self.pushover_client.send(user_key, title, body, self.url)
        except Exception as e:
            logger.warning("Pushover delivery failed for %s: %s", user_key[:8], e)
            return pushover.FAILED

    # --- public ---

    def deliver(self, audience: Audience, title: str, body: str, kind: str = "", payload: dict | None = None) -> DeliveryReport:
        report = DeliveryReport()
        delivered_to: set[str] = set()
        executor = self._get_executor()

        webpush_futures = []
        if self.webpush_sender is not None:
            payload_json = build_payload(title, body, self.url)
            for sub in audience.webpush_targets:
                owner = principal_of(sub)
                target = WebPushTarget.from_subscription(sub, owner.recipient_id if owner else "")
                webpush_futures.append((target, executor.submit(self._send_webpush, target, payload_json)))

        gateway_futures = []
        if self.pushover_client is not None:
            # One message per unique user_key; several principals may share a key
            recipients_by_key: dict[str, set[str]] = {}
            for profile in audience.gateway_targets:
                key = (profile.user_key or "").strip()
                if not key:
                    continue
                owner = principal_of(profile)
                recipients_by_key.setdefault(key, set())
                if owner is not None:
                    recipients_by_key[key].add(owner.recipient_id)
            for key, recipients in recipients_by_key.items():
                gateway_futures.append((recipients, executor.submit(self._send_gateway, key, title, body)))

        gone: list[str] = []
        for target, future in webpush_futures:
            outcome = future.result()
            if outcome == _OK:
                report.webpush_sent += 1
                delivered_to.add(target.recipient_id)
            elif outcome == _GONE:
                gone.append(target.endpoint)
            else:
                report.webpush_failed += 1

        for recipients, future in gateway_futures:
            outcome = future.result()
            if outcome == pushover.SENT:
                report.gateway_sent += 1
                delivered_to |= recipients
            elif outcome == pushover.RATE_LIMITED:
                report.gateway_rate_limited += 1
            else:
                report.gateway_failed += 1

        for endpoint in gone:
            report.webpush_pruned += state_store.delete_subscription(self.db, endpoint)
            logger.info("Removed expired push subscription %s", endpoint[:60])

        self._write_audit_log(delivered_to, kind, title, body, payload or {})
        return report

    def _write_audit_log(self, recipients: set[str], kind: str, title: str, body: str, payload: dict) -> None:
        """Best-effort notification history; a failure here never affects delivery."""
        recipients.discard("")
        if not recipients:
            return
        try:
            with self.db.begin_nested():
                self.db.add_all(
                    NotificationLog(recipient_id=r, kind=kind, title=title, body=body, payload=payload)
                    for r in sorted(recipients)
                )
        except SQLAlchemyError as e:
            logger.debug("notification_log insert failed (ignored): %s", e)
