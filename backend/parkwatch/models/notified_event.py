"""Delivery ledger. A row for uniq_key is the only source of truth for "already delivered"."""
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from parkwatch.db.base import Base


class NotifiedEvent(Base):
    __tablename__ = "notified_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uniq_key = Column(String(512), nullable=False, unique=True)
    kind = Column(String(16), nullable=False)
    park_id = Column(Integer, nullable=False)
    name_raw = Column(String(256), nullable=False)
    event = Column(Text, nullable=True)
    changed_at = Column(DateTime(timezone=True), nullable=False, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)  # NULL = claimed, dispatch not confirmed
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
