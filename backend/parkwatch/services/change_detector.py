"""
Change detector: newest observation vs. last acknowledged state -> raw deltas.

Comparison rules:
- operating flag: any flip.
- DPA / PP statuses: compared as canonical tokens (status_vocabulary), never raw strings.
- wait time: |now - before| >= spike threshold; missing on either side is not a delta.
- NULL in an observation = not reported by that source; the acknowledged value carries forward.

No deltas on the first observation of an attraction. While a state is dirty (events from the
previous change still pending) detection is skipped for that attraction, so re-running the
detector can only ever reproduce the same change with the same changed_at.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from parkwatch.core.constants import FAMILY_DPA, FAMILY_OPERATING, FAMILY_PP, FAMILY_WAIT
from parkwatch.core.status_vocabulary import canonicalize_status
from parkwatch.core.timeutil import as_utc
from parkwatch.models.attraction_current_state import AttractionCurrentState
from parkwatch.models.attraction_status import AttractionStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawDelta:
    family: str
    before: Any
    after: Any
    wait_time: int | None = None  # current wait, for rendering reopen


@dataclass(frozen=True)
class ObservedValues:
    is_open: bool | None = None
    dpa: str | None = None
    pp: str | None = None
    wait: int | None = None

    @classmethod
    def before_of(cls, state: AttractionCurrentState) -> "ObservedValues":
        return cls(state.is_open_before, state.dpa_before, state.pp_before, state.wait_before)

    def fold(self, observation: AttractionStatus) -> "ObservedValues":
        """Overlay the fields the observation reports; keep ours where it reports NULL."""
        dpa = canonicalize_status(observation.dpa_status)
        pp = canonicalize_status(observation.pp_status)
        return ObservedValues(
            is_open=observation.is_open if observation.is_open is not None else self.is_open,
            dpa=dpa if dpa is not None else self.dpa,
            pp=pp if pp is not None else self.pp,
            wait=observation.wait_time if observation.wait_time is not None else self.wait,
        )


@dataclass
class Detection:
    state: AttractionCurrentState
    deltas: list[RawDelta]
    changed_at: datetime | None = None
    created: bool = False  # first observation: state row was just created
    skipped: str | None = None  # "dirty" | "stale" when nothing was compared


class ChangeDetector:
    def __init__(self, spike_threshold: int = 20):
        self.spike_threshold = spike_threshold

    def diff(self, before: ObservedValues, now: ObservedValues, spike_threshold: int | None = None) -> list[RawDelta]:
        threshold = self.spike_threshold if spike_threshold is None else spike_threshold
        deltas: list[RawDelta] = []
        if before.is_open is not None and now.is_open is not None and before.is_open != now.is_open:
            deltas.append(RawDelta(FAMILY_OPERATING, before.is_open, now.is_open, wait_time=now.wait))
        if before.dpa is not None and now.dpa is not None and before.dpa != now.dpa:
            deltas.append(RawDelta(FAMILY_DPA, before.dpa, now.dpa))
        if before.pp is not None and now.pp is not None and before.pp != now.pp:
            deltas.append(RawDelta(FAMILY_PP, before.pp, now.pp))
        if before.wait is not None and now.wait is not None and abs(now.wait - before.wait) >= threshold:
            deltas.append(RawDelta(FAMILY_WAIT, before.wait, now.wait))
        return deltas

    def observe(
        self,
        state: AttractionCurrentState | None,
        observation: AttractionStatus,
        spike_threshold: int | None = None,
    ) -> Detection:
        """
        Fold one observation into the attraction's state and return the deltas it causes.
        Sets *_now and observed_at; the caller decides dirty vs. acknowledge once it knows
        whether any delta classified into a notifiable event.
        """
        observed_at = as_utc(observation.observed_at)
        if state is None:
            values = ObservedValues().fold(observation)
            state = AttractionCurrentState(
                attraction_id=observation.attraction_id,
                dirty=False,
                observed_at=observed_at,
            )
            _write_now(state, values)
            _write_before(state, values)
            logger.debug("First observation for attraction %s; no deltas", observation.attraction_id)
            return Detection(state=state, deltas=[], created=True)
        if state.dirty:
            return Detection(state=state, deltas=[], skipped="dirty")
        last = as_utc(state.observed_at)
        if last is not None and observed_at <= last:
            return Detection(state=state, deltas=[], skipped="stale")

        before = ObservedValues.before_of(state)
        now = before.fold(observation)
        deltas = self.diff(before, now, spike_threshold)
        _write_now(state, now)
        state.observed_at = observed_at
        return Detection(state=state, deltas=deltas, changed_at=observed_at)


def _write_now(state: AttractionCurrentState, values: ObservedValues) -> None:
    state.is_open_now = values.is_open
    state.dpa_now = values.dpa
    state.pp_now = values.pp
    state.wait_now = values.wait


def _write_before(state: AttractionCurrentState, values: ObservedValues) -> None:
    state.is_open_before = values.is_open
    state.dpa_before = values.dpa
    state.pp_before = values.pp
    state.wait_before = values.wait
