"""Per-principal, per-park alert toggles and rush-suppression settings.

No row = allow every category, no suppression. NULL overrides fall back to configured defaults.
notify_mode: favorites (only favorited attractions) | all (every attraction in the park).
"""
from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String, UniqueConstraint

from parkwatch.db.base import Base


class AlertRule(Base):
    __tablename__ = "alert_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=True)
    device_id = Column(String(64), nullable=True)
    park_id = Column(Integer, nullable=False, index=True)
    notify_close_reopen = Column(Boolean, nullable=False, default=True, server_default="1")
    notify_dpa_sale = Column(Boolean, nullable=False, default=True, server_default="1")
    notify_mode = Column(String(16), nullable=True)
    mute_open_close_waves = Column(Boolean, nullable=False, default=False, server_default="0")
    wave_threshold = Column(Integer, nullable=True)
    wave_bucket_seconds = Column(Integer, nullable=True)
    wait_spike_threshold = Column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint("(user_id IS NULL) <> (device_id IS NULL)", name="ck_alert_rules_one_owner"),
        UniqueConstraint("user_id", "park_id", name="uq_alert_rules_user_park"),
        UniqueConstraint("device_id", "park_id", name="uq_alert_rules_device_park"),
    )
