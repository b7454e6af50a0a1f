#!/usr/bin/env python3
"""Send a test notification to the most recently registered Web Push subscription and/or
Pushover profile. Gone subscriptions are deleted, as in a real run.
Run from backend: python scripts/send_test_push.py [--transport webpush|pushover|both]
"""
import argparse
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from parkwatch.config import settings
from parkwatch.core.errors import PushDeliveryError, PushGoneError
from parkwatch.db.session import SessionLocal
from parkwatch.models.push_subscription import PushSubscription
from parkwatch.models.pushover_profile import PushoverProfile
from parkwatch.services import pushover, state_store
from parkwatch.services.audience import principal_of
from parkwatch.services.notifier_config import NotifierConfig
from parkwatch.services.pushover import PushoverClient
from parkwatch.services.webpush import WebPushSender, WebPushTarget, build_payload

TITLE = "Test notification"
BODY = "Sent to the latest registered endpoint."


def _ping_webpush(db, config) -> bool:
    if not config.webpush_enabled:
        print("Web Push: VAPID keys not set; skipped.")
        return True
    sub = db.query(PushSubscription).order_by(PushSubscription.id.desc()).first()
    if sub is None:
        print("Web Push: no push_subscriptions.")
        return True
    owner = principal_of(sub)
    target = WebPushTarget.from_subscription(sub, owner.recipient_id if owner else "")
    try:
        WebPushSender.from_config(config).send(target, build_payload(TITLE, BODY, config.notify_url))
    except PushGoneError:
        state_store.delete_subscription(db, sub.endpoint)
        db.commit()
        print(f"Web Push: {sub.endpoint[:60]} is gone; subscription deleted.")
        return False
    except PushDeliveryError as e:
        print(f"Web Push: failed: {e}", file=sys.stderr)
        return False
    print(f"Web Push: sent to {sub.endpoint[:60]}")
    return True


def _ping_pushover(db, config) -> bool:
    if not config.pushover_enabled:
        print("Pushover: PUSHOVER_TOKEN not set; skipped.")
        return True
    profile = db.query(PushoverProfile).order_by(PushoverProfile.id.desc()).first()
    if profile is None:
        print("Pushover: no pushover_profiles.")
        return True
    with PushoverClient.from_config(config) as client:
        outcome = client.send(profile.user_key, TITLE, BODY, config.notify_url)
    print(f"Pushover: {outcome} ({profile.label or profile.user_key[:8] + '...'})")
    return outcome == pushover.SENT


def main():
    parser = argparse.ArgumentParser(description="Send a test notification to the latest endpoint")
    parser.add_argument("--transport", choices=("webpush", "pushover", "both"), default="both")
    args = parser.parse_args()

    config = NotifierConfig.from_settings(settings)
    db = SessionLocal()
    try:
        ok = True
        if args.transport in ("webpush", "both"):
            ok = _ping_webpush(db, config) and ok
        if args.transport in ("pushover", "both"):
            ok = _ping_pushover(db, config) and ok
    finally:
        db.close()
    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
