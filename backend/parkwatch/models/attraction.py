"""Watched attraction (ride). Identity is (park_id, name); the display name can be refreshed by ingestion."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from parkwatch.db.base import Base


class Attraction(Base):
    __tablename__ = "attractions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    park_id = Column(Integer, ForeignKey("parks.id"), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    tdr_url = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (UniqueConstraint("park_id", "name", name="uq_attractions_park_name"),)
