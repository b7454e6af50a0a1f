"""
Audience resolver: who receives one event, and over which transport.

1. Candidates = principals who favorited (park, attraction) ∪ principals in "all" mode for the park.
2. Category gate: close/reopen need notify_close_reopen, dpa_*/pp_* need notify_dpa_sale,
   wait_spike is always allowed. No rule row = allowed.
3. Rush suppression (close/reopen only): a principal with mute_open_close_waves skips the event
   when the park's same-kind count in the event's time bucket reaches its wave threshold.
   Per principal, never global.
4. wait_spike honours each principal's own spike threshold.
5. Partition into Web Push subscriptions and Pushover profiles; a principal with both gets both.

Quiet hours are applied to the whole batch by the runner, not per principal.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, NamedTuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from parkwatch.core.constants import (
    KIND_WAIT_SPIKE,
    PRINCIPAL_DEVICE,
    PRINCIPAL_USER,
    RULE_FOR_KIND,
    SCOPE_ALL,
    SCOPE_FAVORITES,
    WAVE_KINDS,
)
from parkwatch.core.errors import MalformedEventError
from parkwatch.core.timeutil import bucket_start
from parkwatch.models.alert_rule import AlertRule
from parkwatch.models.event_queue import QueuedEvent
from parkwatch.models.favorite import Favorite
from parkwatch.models.push_subscription import PushSubscription
from parkwatch.models.pushover_profile import PushoverProfile
from parkwatch.services import state_store
from parkwatch.services.event_classifier import decode_payload

logger = logging.getLogger(__name__)


class Principal(NamedTuple):
    kind: str  # user | device
    id: str

    @property
    def recipient_id(self) -> str:
        return f"{self.kind}:{self.id}"


def principal_of(row: Any) -> Principal | None:
    """Owner of a favorite / rule / subscription / profile row."""
    if row.user_id:
        return Principal(PRINCIPAL_USER, row.user_id)
    if row.device_id:
        return Principal(PRINCIPAL_DEVICE, row.device_id)
    return None


@dataclass
class Audience:
    webpush_targets: list[PushSubscription] = field(default_factory=list)
    gateway_targets: list[PushoverProfile] = field(default_factory=list)
    principals: set[Principal] = field(default_factory=set)
    suppressed_by_rule: int = 0
    suppressed_by_wave: int = 0
    suppressed_by_threshold: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.webpush_targets and not self.gateway_targets


def allow_by_rule(rule: AlertRule | None, kind: str) -> bool:
    flag = RULE_FOR_KIND.get(kind)
    if flag is None or rule is None:
        return True
    return bool(getattr(rule, flag))


class AudienceResolver:
    """One instance per run: caches rules per park and rush counts per bucket."""

    def __init__(self, db: Session, config, scope: str | None = None):
        self.db = db
        self.config = config
        self.scope = (scope or config.notify_scope or SCOPE_FAVORITES).lower()
        self._rules: dict[int, dict[Principal, AlertRule]] = {}
        self._wave_counts: dict[tuple, int] = {}
        self._owners: set[Principal] | None = None

    # --- lookups ---

    def rules_for_park(self, park_id: int) -> dict[Principal, AlertRule]:
        if park_id not in self._rules:
            rules: dict[Principal, AlertRule] = {}
            for row in self.db.query(AlertRule).filter(AlertRule.park_id == park_id).all():
                p = principal_of(row)
                if p is not None:
                    rules[p] = row
            self._rules[park_id] = rules
        return self._rules[park_id]

    def favorited_by(self, park_id: int, name: str) -> set[Principal]:
        rows = (
            self.db.query(Favorite)
            .filter(Favorite.park_id == park_id, Favorite.attraction_name == name)
            .all()
        )
        return {p for p in (principal_of(r) for r in rows) if p is not None}

    def endpoint_owners(self) -> set[Principal]:
        """Every principal holding at least one enabled delivery endpoint (for scope=all)."""
        if self._owners is None:
            owners: set[Principal] = set()
            if self.config.webpush_enabled:
                for row in self.db.query(PushSubscription.user_id, PushSubscription.device_id).all():
                    p = principal_of(row)
                    if p is not None:
                        owners.add(p)
            if self.config.pushover_enabled:
                for row in self.db.query(PushoverProfile.user_id, PushoverProfile.device_id).all():
                    p = principal_of(row)
                    if p is not None:
                        owners.add(p)
            self._owners = owners
        return self._owners

    def wave_count(self, event: QueuedEvent, width_seconds: int) -> int:
        start = bucket_start(event.changed_at, width_seconds)
        key = (event.park_id, event.kind, start, width_seconds)
        if key not in self._wave_counts:
            self._wave_counts[key] = state_store.count_events_in_bucket(
                self.db, event.park_id, event.kind, start, start + timedelta(seconds=width_seconds)
            )
        return self._wave_counts[key]

    # --- resolution ---

    def candidates(self, event: QueuedEvent) -> set[Principal]:
        rules = self.rules_for_park(event.park_id)
        candidates = set(self.favorited_by(event.park_id, event.name_raw))
        for p, rule in rules.items():
            if (rule.notify_mode or "").lower() == SCOPE_ALL:
                candidates.add(p)
        if self.scope == SCOPE_ALL:
            for p in self.endpoint_owners():
                rule = rules.get(p)
                if rule is None or (rule.notify_mode or "").lower() != SCOPE_FAVORITES:
                    candidates.add(p)
        return candidates

    def is_wave_muted(self, event: QueuedEvent, rule: AlertRule | None) -> bool:
        if event.kind not in WAVE_KINDS or rule is None or not rule.mute_open_close_waves:
            return False
        threshold = rule.wave_threshold or self.config.wave_threshold
        width = rule.wave_bucket_seconds or self.config.wave_bucket_seconds
        return self.wave_count(event, width) >= threshold

    def passes_spike_threshold(self, event: QueuedEvent, payload: dict, rule: AlertRule | None) -> bool:
        if event.kind != KIND_WAIT_SPIKE:
            return True
        threshold = self.config.wait_spike_threshold
        if rule is not None and rule.wait_spike_threshold is not None and rule.wait_spike_threshold >= 1:
            threshold = rule.wait_spike_threshold
        try:
            delta = abs(int(payload.get("delta", 0)))
        except (TypeError, ValueError):
            return False
        return delta >= threshold

    def resolve(self, event: QueuedEvent, payload: dict | None = None) -> Audience:
        if payload is None:
            try:
                payload = decode_payload(event.event)
            except MalformedEventError:
                payload = {}
        audience = Audience()
        rules = self.rules_for_park(event.park_id)
        for p in self.candidates(event):
            rule = rules.get(p)
            if not allow_by_rule(rule, event.kind):
                audience.suppressed_by_rule += 1
                continue
            if self.is_wave_muted(event, rule):
                audience.suppressed_by_wave += 1
                continue
            if not self.passes_spike_threshold(event, payload, rule):
                audience.suppressed_by_threshold += 1
                continue
            audience.principals.add(p)
        if not audience.principals:
            return audience

        users = sorted(p.id for p in audience.principals if p.kind == PRINCIPAL_USER)
        devices = sorted(p.id for p in audience.principals if p.kind == PRINCIPAL_DEVICE)
        if self.config.webpush_enabled:
            audience.webpush_targets = _owned_by(self.db, PushSubscription, users, devices)
        if self.config.pushover_enabled:
            audience.gateway_targets = _owned_by(self.db, PushoverProfile, users, devices)
        if audience.suppressed_by_wave:
            logger.info(
                "Audience: %s principal(s) muted %s wave for %s (park %s)",
                audience.suppressed_by_wave,
                event.kind,
                event.name_raw,
                event.park_id,
            )
        return audience


def _owned_by(db: Session, model, users: list[str], devices: list[str]) -> list:
    clauses = []
    if users:
        clauses.append(model.user_id.in_(users))
    if devices:
        clauses.append(model.device_id.in_(devices))
    if not clauses:
        return []
    return db.query(model).filter(or_(*clauses)).order_by(model.id.asc()).all()


def parse_recipient(recipient_id: str) -> Principal | None:
    """"user:<id>" / "device:<id>" -> Principal, or None if malformed."""
    kind, _, ident = (recipient_id or "").partition(":")
    if kind not in (PRINCIPAL_USER, PRINCIPAL_DEVICE) or not ident.strip():
        return None
    return Principal(kind, ident.strip())


def broadcast_audience(db: Session, config, principal: Principal | None = None) -> Audience:
    """Every enabled endpoint, or only those owned by one principal. No rules or waves apply."""
    audience = Audience()
    for enabled, model, attr in (
        (config.webpush_enabled, PushSubscription, "webpush_targets"),
        (config.pushover_enabled, PushoverProfile, "gateway_targets"),
    ):
        if not enabled:
            continue
        if principal is None:
            rows = db.query(model).order_by(model.id.asc()).all()
        elif principal.kind == PRINCIPAL_USER:
            rows = _owned_by(db, model, [principal.id], [])
        else:
            rows = _owned_by(db, model, [], [principal.id])
        setattr(audience, attr, rows)
        audience.principals.update(p for p in (principal_of(r) for r in rows) if p is not None)
    return audience
