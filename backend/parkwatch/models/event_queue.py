"""Pending/retired notification events. sent_at NULL = pending; set exactly once when retired.

uniq_key is built from identifying fields only (family|park|name|kind|changed_at) so
re-detection after a crash produces the same key.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.sql import func

from parkwatch.db.base import Base


class QueuedEvent(Base):
    __tablename__ = "event_queue"

    id = Column(Integer, primary_key=True, autoincrement=True)
    attraction_id = Column(Integer, ForeignKey("attractions.id"), nullable=True, index=True)
    park_id = Column(Integer, nullable=False)
    name_raw = Column(String(256), nullable=False)
    kind = Column(String(16), nullable=False)  # reopen | close | dpa_start | dpa_end | pp_start | pp_end | wait_spike
    family = Column(String(16), nullable=False)  # operating | dpa | pp | wait
    event = Column(Text, nullable=True)  # JSON payload for rendering
    changed_at = Column(DateTime(timezone=True), nullable=False)
    uniq_key = Column(String(512), nullable=False, unique=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_event_queue_pending", "sent_at", "changed_at"),
        Index("ix_event_queue_park_kind_changed", "park_id", "kind", "changed_at"),
    )
