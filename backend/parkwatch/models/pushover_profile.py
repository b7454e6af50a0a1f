"""Pushover (mobile gateway) profile: user_key is the per-recipient credential."""
from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from parkwatch.db.base import Base


class PushoverProfile(Base):
    __tablename__ = "pushover_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_key = Column(String(64), nullable=False)
    label = Column(String(64), nullable=True)
    user_id = Column(String(64), nullable=True, index=True)
    device_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("(user_id IS NULL) <> (device_id IS NULL)", name="ck_pushover_profiles_one_owner"),
    )
