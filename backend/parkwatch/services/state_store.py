"""
State store accessor: every read/write the notifier makes against the relational store.

Observations are append-only (written by ingestion, read here). Current-state rows and the
event queue are updated only by the batch runner.
"""
import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from parkwatch.core.timeutil import as_utc
from parkwatch.db.inserts import insert_if_absent
from parkwatch.models.alert_rule import AlertRule
from parkwatch.models.attraction import Attraction
from parkwatch.models.attraction_current_state import AttractionCurrentState
from parkwatch.models.attraction_status import AttractionStatus
from parkwatch.models.event_queue import QueuedEvent
from parkwatch.models.notified_event import NotifiedEvent
from parkwatch.models.push_subscription import PushSubscription

logger = logging.getLogger(__name__)


# --- Observations ---


def latest_observations(db: Session, attraction_ids: list[int] | None = None) -> list[AttractionStatus]:
    """Most recent observation per attraction (ties on observed_at broken by highest id)."""
    newest = db.query(
        AttractionStatus.attraction_id.label("attraction_id"),
        func.max(AttractionStatus.observed_at).label("observed_at"),
    )
    if attraction_ids is not None:
        newest = newest.filter(AttractionStatus.attraction_id.in_(attraction_ids))
    newest = newest.group_by(AttractionStatus.attraction_id).subquery()
    rows = (
        db.query(AttractionStatus)
        .join(
            newest,
            (AttractionStatus.attraction_id == newest.c.attraction_id)
            & (AttractionStatus.observed_at == newest.c.observed_at),
        )
        .order_by(AttractionStatus.id.asc())
        .all()
    )
    by_attraction: dict[int, AttractionStatus] = {}
    for row in rows:
        by_attraction[row.attraction_id] = row
    return list(by_attraction.values())


def attractions_by_id(db: Session, ids: list[int]) -> dict[int, Attraction]:
    if not ids:
        return {}
    return {a.id: a for a in db.query(Attraction).filter(Attraction.id.in_(ids)).all()}


# --- Current state ---


def get_current_state(db: Session, attraction_id: int) -> AttractionCurrentState | None:
    return db.get(AttractionCurrentState, attraction_id)


def current_states(db: Session, attraction_ids: list[int]) -> dict[int, AttractionCurrentState]:
    if not attraction_ids:
        return {}
    rows = db.query(AttractionCurrentState).filter(AttractionCurrentState.attraction_id.in_(attraction_ids)).all()
    return {r.attraction_id: r for r in rows}


def dirty_states(db: Session) -> list[AttractionCurrentState]:
    return db.query(AttractionCurrentState).filter(AttractionCurrentState.dirty.is_(True)).all()


def mark_dirty(state: AttractionCurrentState, changed_at: datetime) -> None:
    state.dirty = True
    state.changed_at = as_utc(changed_at)


def acknowledge_state(state: AttractionCurrentState) -> None:
    """before := now, dirty := False."""
    state.is_open_before = state.is_open_now
    state.dpa_before = state.dpa_now
    state.pp_before = state.pp_now
    state.wait_before = state.wait_now
    state.dirty = False


# --- Event queue ---


def enqueue_event(db: Session, classified) -> bool:
    """Insert a classified event unless its uniq_key is already queued. Returns True if inserted."""
    return insert_if_absent(
        db,
        QueuedEvent,
        {
            "attraction_id": classified.attraction_id,
            "park_id": classified.park_id,
            "name_raw": classified.name,
            "kind": classified.kind,
            "family": classified.family,
            "event": classified.payload_json(),
            "changed_at": as_utc(classified.changed_at),
            "uniq_key": classified.uniq_key,
        },
        ["uniq_key"],
    )


def pending_events(db: Session, limit: int) -> list[QueuedEvent]:
    """Oldest-first pending events, bounded to limit."""
    return (
        db.query(QueuedEvent)
        .filter(QueuedEvent.sent_at.is_(None))
        .order_by(QueuedEvent.changed_at.asc(), QueuedEvent.id.asc())
        .limit(limit)
        .all()
    )


def pending_count(db: Session) -> int:
    return db.query(func.count(QueuedEvent.id)).filter(QueuedEvent.sent_at.is_(None)).scalar() or 0


def has_pending_events(db: Session, attraction_id: int) -> bool:
    return (
        db.query(QueuedEvent.id)
        .filter(QueuedEvent.attraction_id == attraction_id, QueuedEvent.sent_at.is_(None))
        .first()
        is not None
    )


def mark_event_sent(event: QueuedEvent, now: datetime) -> None:
    if event.sent_at is None:
        event.sent_at = now


def count_events_in_bucket(db: Session, park_id: int, kind: str, start: datetime, end: datetime) -> int:
    """Same-kind events of one park with start <= changed_at < end (sent or not)."""
    return (
        db.query(func.count(QueuedEvent.id))
        .filter(
            QueuedEvent.park_id == park_id,
            QueuedEvent.kind == kind,
            QueuedEvent.changed_at >= as_utc(start),
            QueuedEvent.changed_at < as_utc(end),
        )
        .scalar()
        or 0
    )


# --- Rules / subscriptions ---


def min_spike_threshold_override(db: Session, park_id: int) -> int | None:
    return (
        db.query(func.min(AlertRule.wait_spike_threshold))
        .filter(AlertRule.park_id == park_id, AlertRule.wait_spike_threshold >= 1)
        .scalar()
    )


def delete_subscription(db: Session, endpoint: str) -> int:
    return (
        db.query(PushSubscription)
        .filter(PushSubscription.endpoint == endpoint)
        .delete(synchronize_session=False)
    )


# --- Retention ---


def purge_expired(db: Session, cutoff: datetime) -> tuple[int, int]:
    """
    Age out event_queue and notified_events rows with changed_at < cutoff.
    Raw events go first so a purged ledger key has no queued source left to re-register it.
    Returns (events_deleted, ledger_deleted). Caller commits.
    """
    cutoff = as_utc(cutoff)
    events = (
        db.query(QueuedEvent)
        .filter(QueuedEvent.changed_at < cutoff)
        .delete(synchronize_session=False)
    )
    ledger = (
        db.query(NotifiedEvent)
        .filter(NotifiedEvent.changed_at < cutoff)
        .delete(synchronize_session=False)
    )
    return events, ledger


def release_orphaned_states(db: Session) -> int:
    """Acknowledge dirty states whose pending events are gone (aged out). Returns count released."""
    released = 0
    for state in dirty_states(db):
        if not has_pending_events(db, state.attraction_id):
            acknowledge_state(state)
            released += 1
    return released
