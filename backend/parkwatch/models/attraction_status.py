"""Observation: append-only snapshot of one attraction.

NULL means the source did not report the field (the status page has no operating flag,
the wait-time feed has no sale statuses). Status strings are stored raw, as scraped.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func

from parkwatch.db.base import Base


class AttractionStatus(Base):
    __tablename__ = "attraction_status"

    id = Column(Integer, primary_key=True, autoincrement=True)
    attraction_id = Column(Integer, ForeignKey("attractions.id"), nullable=False)
    observed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    is_open = Column(Boolean, nullable=True)
    dpa_status = Column(String(64), nullable=True)
    pp_status = Column(String(64), nullable=True)
    wait_time = Column(Integer, nullable=True)  # minutes
    source = Column(String(32), nullable=True)  # tdr | qt

    __table_args__ = (Index("ix_attraction_status_attraction_observed", "attraction_id", "observed_at"),)
