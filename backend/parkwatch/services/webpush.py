"""
Web Push delivery via pywebpush (VAPID).

send() never touches the database, so it can run on worker threads; the dispatcher
prunes gone subscriptions on the calling thread.
"""
import json
import logging
from dataclasses import dataclass

from pywebpush import WebPushException, webpush

from parkwatch.core.constants import WEBPUSH_GONE_STATUSES
from parkwatch.core.errors import PushDeliveryError, PushGoneError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebPushTarget:
    endpoint: str
    p256dh: str
    auth: str
    recipient_id: str

    @classmethod
    def from_subscription(cls, sub, recipient_id: str) -> "WebPushTarget":
        return cls(endpoint=sub.endpoint, p256dh=sub.p256dh, auth=sub.auth, recipient_id=recipient_id)

    @property
    def subscription_info(self) -> dict:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}


def build_payload(title: str, body: str, url: str) -> str:
    return json.dumps({"title": title, "body": body, "url": url}, ensure_ascii=False)


class WebPushSender:
    def __init__(self, vapid_private_key: str, vapid_claims: dict, ttl: int = 86_400, timeout: float = 10.0):
        self.vapid_private_key = vapid_private_key
        self.vapid_claims = vapid_claims
        self.ttl = ttl
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "WebPushSender":
        return cls(
            vapid_private_key=config.vapid_private_key,
            vapid_claims=config.vapid_claims,
            ttl=config.webpush_ttl_seconds,
            timeout=config.provider_timeout_seconds,
        )

    def send(self, target: WebPushTarget, payload_json: str) -> None:
        """
        Deliver one payload to one subscription.

        Raises:
            PushGoneError: the push service answered 404/410 (subscription no longer valid)
            PushDeliveryError: any other failure, including timeouts
        """
        try:
            webpush(
                subscription_info=target.subscription_info,
                data=payload_json,
                vapid_private_key=self.vapid_private_key,
                # pywebpush adds aud/exp to the claims dict it is given
                vapid_claims=dict(self.vapid_claims),
                ttl=self.ttl,
                headers={"Urgency": "high"},
                timeout=self.timeout,
            )
        except WebPushException as e:
            response = getattr(e, "response", None)
            if response is not None and response.status_code in WEBPUSH_GONE_STATUSES:
                raise PushGoneError(target.endpoint) from e
            raise PushDeliveryError(str(e)) from e
        except Exception as e:
            raise PushDeliveryError(str(e)) from e
