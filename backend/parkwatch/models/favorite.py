"""Favorite edge: (principal, park, attraction name). Keyed by name, as the feeds report it."""
from sqlalchemy import CheckConstraint, Column, Index, Integer, String, UniqueConstraint

from parkwatch.db.base import Base


class Favorite(Base):
    __tablename__ = "favorites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=True)
    device_id = Column(String(64), nullable=True)
    park_id = Column(Integer, nullable=False)
    attraction_name = Column(String(256), nullable=False)

    __table_args__ = (
        CheckConstraint("(user_id IS NULL) <> (device_id IS NULL)", name="ck_favorites_one_owner"),
        UniqueConstraint("user_id", "park_id", "attraction_name", name="uq_favorites_user"),
        UniqueConstraint("device_id", "park_id", "attraction_name", name="uq_favorites_device"),
        Index("ix_favorites_park_name", "park_id", "attraction_name"),
    )
