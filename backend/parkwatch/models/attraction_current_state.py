"""Last acknowledged state per attraction (one row each).

*_before = acknowledged values; *_now = latest observed values (canonical tokens for statuses).
dirty=True while events derived from before -> now are still pending. When dirty is False,
before == now for every field.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from parkwatch.db.base import Base


class AttractionCurrentState(Base):
    __tablename__ = "attraction_current_state"

    attraction_id = Column(Integer, ForeignKey("attractions.id"), primary_key=True)
    is_open_before = Column(Boolean, nullable=True)
    is_open_now = Column(Boolean, nullable=True)
    dpa_before = Column(String(32), nullable=True)
    dpa_now = Column(String(32), nullable=True)
    pp_before = Column(String(32), nullable=True)
    pp_now = Column(String(32), nullable=True)
    wait_before = Column(Integer, nullable=True)
    wait_now = Column(Integer, nullable=True)
    dirty = Column(Boolean, nullable=False, default=False, server_default="0")
    changed_at = Column(DateTime(timezone=True), nullable=True)  # observed_at of the change being notified
    observed_at = Column(DateTime(timezone=True), nullable=True)  # newest observation folded in
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
