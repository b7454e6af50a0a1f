"""
Event classifier: raw deltas -> semantic events with rendered title/body.

- operating: closed -> operating = reopen, operating -> closed = close.
- dpa / pp: only crossings into or out of "active" emit *_start / *_end. Lateral moves among
  non-active tokens (sold_out -> inactive) are recorded in state but never notified.
- wait: a delta that already passed the detector's threshold emits wait_spike.
A DPA and a PP crossing in the same observation are two independent events.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from parkwatch.core.constants import (
    EVENT_KINDS,
    FAMILY_DPA,
    FAMILY_OPERATING,
    FAMILY_PP,
    FAMILY_WAIT,
    KIND_CLOSE,
    KIND_DPA_END,
    KIND_DPA_START,
    KIND_PP_END,
    KIND_PP_START,
    KIND_REOPEN,
    KIND_WAIT_SPIKE,
)
from parkwatch.core.errors import MalformedEventError
from parkwatch.core.status_vocabulary import ACTIVE
from parkwatch.services.change_detector import RawDelta
from parkwatch.services.ledger import build_uniq_key

# (family) -> (start kind, end kind) for sale-status boundaries
_BOUNDARY_KINDS = {
    FAMILY_DPA: (KIND_DPA_START, KIND_DPA_END),
    FAMILY_PP: (KIND_PP_START, KIND_PP_END),
}

TITLE_TEMPLATES = {
    KIND_REOPEN: "{name} reopened",
    KIND_CLOSE: "{name} closed",
    KIND_DPA_START: "{name}: DPA sales started",
    KIND_DPA_END: "{name}: DPA sales ended",
    KIND_PP_START: "{name}: Priority Pass issuing started",
    KIND_PP_END: "{name}: Priority Pass issuing ended",
    KIND_WAIT_SPIKE: "{name}: wait time spike",
}

TOKEN_LABELS = {
    "active": "on sale",
    "sold_out": "sold out",
    "inactive": "not offered",
    "suspended": "paused",
    "unrecognized": "unknown",
}


@dataclass
class ClassifiedEvent:
    attraction_id: int
    park_id: int
    name: str
    family: str
    kind: str
    changed_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def uniq_key(self) -> str:
        return build_uniq_key(self.family, self.park_id, self.name, self.kind, self.changed_at)

    @property
    def title(self) -> str:
        return render_title(self.kind, self.name)

    @property
    def body(self) -> str:
        return render_body(self.kind, self.payload)

    def payload_json(self) -> str:
        return json.dumps(self.payload, ensure_ascii=False, sort_keys=True)


def classify_delta(delta: RawDelta) -> str | None:
    """Return the event kind for one raw delta, or None when it is not notifiable."""
    if delta.family == FAMILY_OPERATING:
        if delta.before is False and delta.after is True:
            return KIND_REOPEN
        if delta.before is True and delta.after is False:
            return KIND_CLOSE
        return None
    if delta.family in _BOUNDARY_KINDS:
        start, end = _BOUNDARY_KINDS[delta.family]
        was_active = delta.before == ACTIVE
        is_active = delta.after == ACTIVE
        if is_active and not was_active:
            return start
        if was_active and not is_active:
            return end
        return None
    if delta.family == FAMILY_WAIT:
        return KIND_WAIT_SPIKE
    return None


def classify(
    attraction_id: int,
    park_id: int,
    name: str,
    deltas: list[RawDelta],
    changed_at: datetime,
) -> list[ClassifiedEvent]:
    """Map every delta of one observation to zero or one event each (never merged)."""
    events: list[ClassifiedEvent] = []
    for delta in deltas:
        kind = classify_delta(delta)
        if kind is None:
            continue
        payload: dict[str, Any] = {"family": delta.family, "before": delta.before, "after": delta.after}
        if kind == KIND_WAIT_SPIKE:
            payload["delta"] = delta.after - delta.before
        if kind == KIND_REOPEN and delta.wait_time is not None:
            payload["wait_time"] = delta.wait_time
        events.append(
            ClassifiedEvent(
                attraction_id=attraction_id,
                park_id=park_id,
                name=name,
                family=delta.family,
                kind=kind,
                changed_at=changed_at,
                payload=payload,
            )
        )
    return events


def render_title(kind: str, name: str) -> str:
    template = TITLE_TEMPLATES.get(kind)
    if template is None:
        raise MalformedEventError(f"unknown event kind {kind!r}")
    return template.format(name=name)


def _label(token: Any) -> str:
    if token is None:
        return "-"
    return TOKEN_LABELS.get(token, str(token))


def render_body(kind: str, payload: dict[str, Any]) -> str:
    if kind == KIND_REOPEN:
        wait = payload.get("wait_time")
        return "Operating again." + (f" Current wait: {wait} min." if wait is not None else "")
    if kind == KIND_CLOSE:
        return "Operation suspended."
    if kind in (KIND_DPA_START, KIND_DPA_END):
        return f"DPA: {_label(payload.get('before'))} → {_label(payload.get('after'))}"
    if kind in (KIND_PP_START, KIND_PP_END):
        return f"Priority Pass: {_label(payload.get('before'))} → {_label(payload.get('after'))}"
    if kind == KIND_WAIT_SPIKE:
        try:
            before, after = int(payload["before"]), int(payload["after"])
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedEventError(f"wait_spike payload missing before/after: {payload!r}") from e
        delta = int(payload.get("delta", after - before))
        return f"Wait time {before} → {after} min ({delta:+d} min)"
    raise MalformedEventError(f"unknown event kind {kind!r}")


def decode_payload(payload_json: str | None) -> dict[str, Any]:
    """Parse a queued row's JSON payload. Raises MalformedEventError unless it is an object."""
    try:
        payload = json.loads(payload_json) if payload_json else {}
    except (TypeError, json.JSONDecodeError) as e:
        raise MalformedEventError(f"event payload is not JSON: {e}") from e
    if not isinstance(payload, dict):
        raise MalformedEventError("event payload must be a JSON object")
    return payload


def render(kind: str, name: str, payload_json: str | None) -> tuple[str, str, dict[str, Any]]:
    """Render a queued row. Returns (title, body, payload). Raises MalformedEventError."""
    if kind not in EVENT_KINDS:
        raise MalformedEventError(f"unknown event kind {kind!r}")
    payload = decode_payload(payload_json)
    if not (name or "").strip():
        raise MalformedEventError("event has no attraction name")
    return render_title(kind, name), render_body(kind, payload), payload
