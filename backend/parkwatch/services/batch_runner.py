"""
Batch runner: one complete notifier cycle per invocation.

    validate config -> detect -> quiet-hours gate -> load -> process -> purge

Detect folds the newest observation of every attraction into its current state and queues
classified events. Outside the delivery window the run stops after detection; pending events
stay pending (deferred, never dropped).

Per event, oldest first:
    ledger hit            -> retire (duplicate)
    unrenderable payload  -> retire (invalid)
    nobody to notify      -> retire (no_audience)
    ledger claim lost     -> retire (duplicate)
    otherwise             -> claim committed, dispatch, mark ledger sent, retire
Retiring the last pending event of an attraction acknowledges its current state.

The claim is committed before anything is sent: a crash mid-dispatch loses that notification
rather than sending it twice. Per-event datastore errors roll back to the last commit and are
reported; the loop continues. Only ConfigurationError escapes run().
"""
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from parkwatch.core.constants import SCOPES
from parkwatch.core.errors import MalformedEventError
from parkwatch.core.timeutil import utcnow
from parkwatch.models.event_queue import QueuedEvent
from parkwatch.services import ledger, state_store
from parkwatch.services.audience import AudienceResolver
from parkwatch.services.change_detector import ChangeDetector
from parkwatch.services.dispatcher import DeliveryDispatcher, DeliveryReport
from parkwatch.services.event_classifier import classify, render
from parkwatch.services.quiet_hours import QuietHours

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    scope: str
    ok: bool = True
    processed: int = 0
    sent: int = 0
    duplicates: int = 0
    no_audience: int = 0
    invalid: int = 0
    failed: int = 0
    counts: Counter = field(default_factory=Counter)  # dispatched events per kind
    delivery: DeliveryReport = field(default_factory=DeliveryReport)
    window: dict = field(default_factory=dict)
    deferred: bool = False
    deadline_reached: bool = False
    purged: dict = field(default_factory=lambda: {"events": 0, "ledger": 0})
    detected: int = 0
    errors: list[dict] = field(default_factory=list)

    def add_error(self, stage: str, exc: Exception, event: QueuedEvent | None = None) -> None:
        self.errors.append(
            {
                "stage": stage,
                "event_id": getattr(event, "id", None),
                "uniq_key": getattr(event, "uniq_key", None),
                "error": str(exc)[:300],
            }
        )

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "scope": self.scope,
            "processed": self.processed,
            "sent": self.sent,
            "duplicates": self.duplicates,
            "no_audience": self.no_audience,
            "invalid": self.invalid,
            "failed": self.failed,
            "counts": dict(self.counts),
            "delivery": self.delivery.to_dict(),
            "window": self.window,
            "deferred": self.deferred,
            "deadline_reached": self.deadline_reached,
            "purged": dict(self.purged),
            "detected": self.detected,
            "errors": list(self.errors),
        }


class BatchRunner:
    def __init__(
        self,
        db: Session,
        config,
        dispatcher: DeliveryDispatcher | None = None,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.db = db
        self.config = config
        self.dispatcher = dispatcher
        self.clock = clock
        self.monotonic = monotonic
        self.detector = ChangeDetector(spike_threshold=config.wait_spike_threshold)

    # --- phases ---

    def run(self, override_quiet_hours: bool = False, batch_size: int | None = None, scope: str | None = None) -> RunReport:
        self.config.validate()
        scope = (scope or self.config.notify_scope).strip().lower()
        if scope not in SCOPES:
            raise ValueError(f"scope must be one of {SCOPES}, got {scope!r}")
        started = self.monotonic()
        now = self.clock()
        report = RunReport(scope=scope)
        quiet = QuietHours.from_config(self.config)
        report.window = quiet.window_info(now, overridden=override_quiet_hours)

        report.detected = self.detect_changes(report)

        if not override_quiet_hours and not quiet.allows(now):
            report.deferred = True
            logger.info(
                "Notifier: outside delivery window (%s-%s %s, local %s); %s event(s) deferred",
                report.window["start"],
                report.window["end"],
                report.window["timezone"],
                report.window["local_time"],
                self._pending_count(),
            )
            return report

        try:
            batch = state_store.pending_events(self.db, batch_size or self.config.batch_size)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Notifier: could not load pending events: %s", e)
            report.ok = False
            report.add_error("load", e)
            return report

        resolver = AudienceResolver(self.db, self.config, scope=scope)
        dispatcher = self.dispatcher or DeliveryDispatcher(self.db, self.config)
        try:
            for event in batch:
                if self._deadline_near(started):
                    report.deadline_reached = True
                    logger.warning(
                        "Notifier: deadline near; stopping with %s of %s event(s) processed",
                        report.processed,
                        len(batch),
                    )
                    break
                self.process_event(event, resolver, dispatcher, report)
        finally:
            if dispatcher is not self.dispatcher:
                dispatcher.close()

        self.purge(report)
        logger.info(
            "Notifier: processed=%s sent=%s duplicates=%s no_audience=%s invalid=%s failed=%s deliveries=%s",
            report.processed,
            report.sent,
            report.duplicates,
            report.no_audience,
            report.invalid,
            report.failed,
            report.delivery.total_sent,
        )
        return report

    def detect_changes(self, report: RunReport) -> int:
        """Fold latest observations into current state; queue classified events. Returns events queued."""
        try:
            observations = state_store.latest_observations(self.db)
            ids = [o.attraction_id for o in observations]
            attractions = state_store.attractions_by_id(self.db, ids)
            states = state_store.current_states(self.db, ids)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Notifier: detection skipped, observations unavailable: %s", e)
            report.add_error("detect", e)
            return 0

        queued = 0
        thresholds: dict[int, int] = {}
        for obs in observations:
            attraction = attractions.get(obs.attraction_id)
            if attraction is None:
                continue
            try:
                threshold = self._detection_threshold(attraction.park_id, thresholds)
                detection = self.detector.observe(states.get(obs.attraction_id), obs, threshold)
                if detection.created:
                    self.db.add(detection.state)
                elif detection.skipped:
                    continue
                else:
                    events = classify(
                        attraction.id, attraction.park_id, attraction.name, detection.deltas, detection.changed_at
                    )
                    for ev in events:
                        if state_store.enqueue_event(self.db, ev):
                            queued += 1
                            logger.info("Notifier: queued %s for %s (%s)", ev.kind, ev.name, ev.uniq_key)
                    if events:
                        state_store.mark_dirty(detection.state, detection.changed_at)
                    else:
                        state_store.acknowledge_state(detection.state)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.warning("Notifier: detection failed for attraction %s: %s", obs.attraction_id, e)
                report.add_error("detect", e)
        return queued

    def process_event(self, event: QueuedEvent, resolver: AudienceResolver, dispatcher: DeliveryDispatcher, report: RunReport) -> None:
        report.processed += 1
        try:
            if ledger.is_registered(self.db, event.uniq_key):
                report.duplicates += 1
                self._retire(event)
                return
            try:
                title, body, payload = render(event.kind, event.name_raw, event.event)
            except MalformedEventError as e:
                logger.warning("Notifier: retiring malformed event %s: %s", event.id, e)
                report.invalid += 1
                report.add_error("render", e, event)
                self._retire(event)
                return
            audience = resolver.resolve(event, payload)
            if audience.is_empty:
                logger.debug("Notifier: no audience for %s", event.uniq_key)
                report.no_audience += 1
                self._retire(event)
                return
            if ledger.register(self.db, event) == ledger.DUPLICATE:
                report.duplicates += 1
                self._retire(event)
                return
            self.db.commit()

            delivery = dispatcher.deliver(audience, title, body, kind=event.kind, payload=payload)
            report.delivery.add(delivery)
            ledger.mark_sent(self.db, event.uniq_key, self.clock())
            report.sent += 1
            report.counts[event.kind] += 1
            self._retire(event)
        except SQLAlchemyError as e:
            self.db.rollback()
            report.failed += 1
            report.add_error("datastore", e, event)
            logger.warning("Notifier: event %s failed: %s", event.uniq_key, e)

    def purge(self, report: RunReport | None = None) -> dict:
        """Age out queue and ledger rows past the retention horizon."""
        cutoff = self.clock() - timedelta(days=self.config.retention_days)
        try:
            events, ledger_rows = state_store.purge_expired(self.db, cutoff)
            released = state_store.release_orphaned_states(self.db)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Notifier: retention purge failed: %s", e)
            if report is not None:
                report.add_error("purge", e)
            return {"events": 0, "ledger": 0}
        if events or ledger_rows or released:
            logger.info(
                "Notifier: purged %s event(s), %s ledger row(s) before %s; released %s state(s)",
                events,
                ledger_rows,
                cutoff.isoformat(),
                released,
            )
        purged = {"events": events, "ledger": ledger_rows}
        if report is not None:
            report.purged = purged
        return purged

    # --- helpers ---

    def _retire(self, event: QueuedEvent) -> None:
        state_store.mark_event_sent(event, self.clock())
        self.db.flush()
        if event.attraction_id is not None and not state_store.has_pending_events(self.db, event.attraction_id):
            state = state_store.get_current_state(self.db, event.attraction_id)
            if state is not None and state.dirty:
                state_store.acknowledge_state(state)
        self.db.commit()

    def _detection_threshold(self, park_id: int, cache: dict[int, int]) -> int:
        if park_id not in cache:
            override = state_store.min_spike_threshold_override(self.db, park_id)
            default = self.config.wait_spike_threshold
            cache[park_id] = min(default, override) if override is not None else default
        return cache[park_id]

    def _deadline_near(self, started: float) -> bool:
        budget = self.config.invocation_deadline_seconds - self.config.deadline_margin_seconds
        return self.monotonic() - started >= budget

    def _pending_count(self) -> int:
        try:
            return state_store.pending_count(self.db)
        except SQLAlchemyError:
            self.db.rollback()
            return -1
