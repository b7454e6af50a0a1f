"""
Idempotency ledger (notified_events): at-most-once delivery per uniq_key.

register() claims a key with INSERT ... ON CONFLICT DO NOTHING; the unique constraint on
uniq_key is the backstop when two runs overlap, and the loser sees DUPLICATE rather than
an error. Rows are written before dispatch and never depend on delivery success: a crash
after the claim loses that notification instead of sending it twice.
"""
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from parkwatch.core.timeutil import as_utc
from parkwatch.db.inserts import insert_if_absent
from parkwatch.models.event_queue import QueuedEvent
from parkwatch.models.notified_event import NotifiedEvent

logger = logging.getLogger(__name__)

ACCEPTED = "accepted"
DUPLICATE = "duplicate"


def build_uniq_key(family: str, park_id: int, name: str, kind: str, changed_at: datetime) -> str:
    """Deterministic key from identifying fields only (never payload content)."""
    ts = as_utc(changed_at).strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"{family}|{park_id}|{name}|{kind}|{ts}"


def is_registered(db: Session, uniq_key: str) -> bool:
    return db.query(NotifiedEvent.id).filter(NotifiedEvent.uniq_key == uniq_key).first() is not None


def register(db: Session, event: QueuedEvent) -> str:
    """Atomically claim event.uniq_key. Returns ACCEPTED or DUPLICATE. Caller commits."""
    inserted = insert_if_absent(
        db,
        NotifiedEvent,
        {
            "uniq_key": event.uniq_key,
            "kind": event.kind,
            "park_id": event.park_id,
            "name_raw": event.name_raw,
            "event": event.event,
            "changed_at": as_utc(event.changed_at),
            "sent_at": None,
        },
        ["uniq_key"],
    )
    if not inserted:
        logger.debug("Ledger: %s already registered", event.uniq_key)
        return DUPLICATE
    return ACCEPTED


def mark_sent(db: Session, uniq_key: str, now: datetime) -> None:
    db.query(NotifiedEvent).filter(NotifiedEvent.uniq_key == uniq_key).update(
        {NotifiedEvent.sent_at: now}, synchronize_session=False
    )
