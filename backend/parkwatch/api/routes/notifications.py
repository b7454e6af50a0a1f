"""
Notification history API (read side of notification_log).

Recipient identified by X-Recipient-Id header or ?recipient_id=, in the form "user:<id>" or "device:<id>".
Supports: list (with unread filter), mark one read, mark all read.
"""
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from parkwatch.db.session import get_db
from parkwatch.models.notification_log import NotificationLog

router = APIRouter()
logger = logging.getLogger(__name__)


def _recipient_id(
    x_recipient_id: str | None = Header(None, alias="X-Recipient-Id"),
    recipient_id: str | None = Query(None),
) -> str:
    rid = (x_recipient_id or recipient_id or "").strip()
    if not rid:
        raise HTTPException(status_code=400, detail="recipient_id required (X-Recipient-Id header or query)")
    return rid


# --- List ---


@router.get("/notifications")
def list_notifications(
    db: Session = Depends(get_db),
    recipient_id: str = Depends(_recipient_id),
    limit: int = Query(80, ge=1, le=200),
    unread_only: bool = Query(False),
) -> dict[str, Any]:
    """List delivered notifications for the recipient, newest first."""
    q = db.query(NotificationLog).filter(NotificationLog.recipient_id == recipient_id)
    if unread_only:
        q = q.filter(NotificationLog.read_at.is_(None))
    rows = q.order_by(NotificationLog.created_at.desc(), NotificationLog.id.desc()).limit(limit).all()
    unread_count = (
        db.query(NotificationLog)
        .filter(NotificationLog.recipient_id == recipient_id, NotificationLog.read_at.is_(None))
        .count()
    )
    return {
        "notifications": [
            {
                "id": r.id,
                "kind": r.kind,
                "title": r.title,
                "body": r.body,
                "read": r.read_at is not None,
                "read_at": r.read_at.isoformat() if r.read_at else None,
                "created_at": r.created_at.isoformat() if r.created_at else None,
                "payload": r.payload or {},
            }
            for r in rows
        ],
        "unread_count": unread_count,
    }


# --- Mark one read ---


@router.patch("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    recipient_id: str = Depends(_recipient_id),
) -> dict[str, Any]:
    row = (
        db.query(NotificationLog)
        .filter(NotificationLog.id == notification_id, NotificationLog.recipient_id == recipient_id)
        .first()
    )
    if not row:
        return {"ok": False, "error": "not_found"}
    if row.read_at is None:
        row.read_at = datetime.now(timezone.utc)
        db.commit()
    return {"ok": True, "id": notification_id, "read_at": row.read_at.isoformat()}


# --- Mark all read ---


@router.post("/notifications/mark-all-read")
def mark_all_read(
    db: Session = Depends(get_db),
    recipient_id: str = Depends(_recipient_id),
) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    updated = (
        db.query(NotificationLog)
        .filter(NotificationLog.recipient_id == recipient_id, NotificationLog.read_at.is_(None))
        .update({NotificationLog.read_at: now}, synchronize_session=False)
    )
    db.commit()
    return {"ok": True, "recipient_id": recipient_id, "marked_count": updated}
