"""Web Push subscription owned by exactly one principal (user or anonymous device)."""
from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from parkwatch.db.base import Base


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    endpoint = Column(Text, nullable=False, unique=True)
    p256dh = Column(String(256), nullable=False)
    auth = Column(String(128), nullable=False)
    user_id = Column(String(64), nullable=True, index=True)
    device_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("(user_id IS NULL) <> (device_id IS NULL)", name="ck_push_subscriptions_one_owner"),
    )
