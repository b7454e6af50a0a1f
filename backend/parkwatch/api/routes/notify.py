"""
Notifier invocation API.

POST /notify/run        one complete cycle (detect, gate, deliver, purge); 202 with the run report.
POST /notify/broadcast  ad-hoc message to every endpoint, or to one recipient.
GET  /notify/status     configuration and queue diagnostics (never returns credential values).
"""
import logging
from typing import Any, Literal, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from parkwatch.config import settings
from parkwatch.core.errors import ConfigurationError, notifier_error_to_http
from parkwatch.core.timeutil import utcnow
from parkwatch.db.session import get_db
from parkwatch.models.push_subscription import PushSubscription
from parkwatch.models.pushover_profile import PushoverProfile
from parkwatch.services import state_store
from parkwatch.services.audience import broadcast_audience, parse_recipient
from parkwatch.services.batch_runner import BatchRunner
from parkwatch.services.dispatcher import DeliveryDispatcher
from parkwatch.services.notifier_config import NotifierConfig
from parkwatch.services.quiet_hours import QuietHours

router = APIRouter()
logger = logging.getLogger(__name__)


def get_notifier_config() -> NotifierConfig:
    return NotifierConfig.from_settings(settings)


def _handle_notifier_error(exc: Exception, log_message: str) -> NoReturn:
    logger.error("%s: %s", log_message, exc)
    raise notifier_error_to_http(exc) from exc


@router.post("/notify/run", status_code=202)
def run_notifier(
    override_quiet_hours: bool = Query(False, description="Deliver even outside the quiet-hours window"),
    batch_size: int | None = Query(None, ge=1, le=1000),
    scope: Literal["favorites", "all"] | None = Query(None),
    db: Session = Depends(get_db),
    config: NotifierConfig = Depends(get_notifier_config),
) -> dict[str, Any]:
    """
    Run the notifier once. Per-event failures are reported in `errors`, not raised.
    Missing credentials or an invalid window return 503 before any event is touched.
    """
    try:
        report = BatchRunner(db, config).run(
            override_quiet_hours=override_quiet_hours,
            batch_size=batch_size,
            scope=scope,
        )
    except ConfigurationError as exc:
        _handle_notifier_error(exc, "Notifier run refused")
    return report.to_dict()


@router.get("/notify/status")
def notifier_status(
    db: Session = Depends(get_db),
    config: NotifierConfig = Depends(get_notifier_config),
) -> dict[str, Any]:
    problems: list[str] = []
    try:
        config.validate()
    except ConfigurationError as exc:
        problems = exc.problems
    window = None
    if not problems:
        window = QuietHours.from_config(config).window_info(utcnow())
    return {
        "ok": not problems,
        "problems": problems,
        "webpush_configured": config.webpush_enabled,
        "pushover_configured": config.pushover_enabled,
        "scope": config.notify_scope,
        "subscriptions": db.query(func.count(PushSubscription.id)).scalar() or 0,
        "pushover_profiles": db.query(func.count(PushoverProfile.id)).scalar() or 0,
        "pending_events": state_store.pending_count(db),
        "window": window,
    }


class BroadcastBody(BaseModel):
    kind: str = Field(default="broadcast", min_length=1, max_length=16)
    title: str = Field(..., min_length=1, max_length=256)
    body: str = Field(default="", max_length=2000)
    recipient_id: str | None = Field(default=None, description='"user:<id>" or "device:<id>"; omit for everyone')
    meta: dict[str, Any] = Field(default_factory=dict)


@router.post("/notify/broadcast")
def broadcast(
    body: BroadcastBody,
    db: Session = Depends(get_db),
    config: NotifierConfig = Depends(get_notifier_config),
) -> dict[str, Any]:
    """
    Send one message to every subscription and Pushover profile, or only to one recipient's.
    Quiet hours, rules and the ledger do not apply. Delivered recipients land in notification history.
    """
    try:
        config.validate()
    except ConfigurationError as exc:
        _handle_notifier_error(exc, "Broadcast refused")
    principal = None
    if body.recipient_id is not None:
        principal = parse_recipient(body.recipient_id)
        if principal is None:
            raise HTTPException(status_code=400, detail="recipient_id must look like user:<id> or device:<id>")

    audience = broadcast_audience(db, config, principal)
    dispatcher = DeliveryDispatcher(db, config)
    try:
        report = dispatcher.deliver(audience, body.title, body.body, kind=body.kind, payload=body.meta)
        db.commit()
    finally:
        dispatcher.close()
    logger.info(
        "Broadcast %r to %s: %s sent",
        body.kind,
        body.recipient_id or "everyone",
        report.total_sent,
    )
    return {"ok": True, "sent": report.total_sent, "delivery": report.to_dict()}
