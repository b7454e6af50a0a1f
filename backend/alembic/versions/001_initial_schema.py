"""Initial notifier schema: parks, attractions, observations, current state, event queue,
ledger, subscriptions, Pushover profiles, favorites, alert rules, notification log.

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ONE_OWNER = "(user_id IS NULL) <> (device_id IS NULL)"


def upgrade() -> None:
    op.create_table(
        "parks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(16), nullable=False, unique=True),
        sa.Column("name", sa.String(128), nullable=True),
        sa.Column("qt_park_id", sa.Integer(), nullable=True, unique=True),
    )

    op.create_table(
        "attractions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("park_id", sa.Integer(), sa.ForeignKey("parks.id"), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("tdr_url", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("park_id", "name", name="uq_attractions_park_name"),
    )
    op.create_index("ix_attractions_park_id", "attractions", ["park_id"])

    op.create_table(
        "attraction_status",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("attraction_id", sa.Integer(), sa.ForeignKey("attractions.id"), nullable=False),
        sa.Column("observed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("is_open", sa.Boolean(), nullable=True),
        sa.Column("dpa_status", sa.String(64), nullable=True),
        sa.Column("pp_status", sa.String(64), nullable=True),
        sa.Column("wait_time", sa.Integer(), nullable=True),
        sa.Column("source", sa.String(32), nullable=True),
    )
    op.create_index("ix_attraction_status_attraction_observed", "attraction_status", ["attraction_id", "observed_at"])

    op.create_table(
        "attraction_current_state",
        sa.Column("attraction_id", sa.Integer(), sa.ForeignKey("attractions.id"), primary_key=True),
        sa.Column("is_open_before", sa.Boolean(), nullable=True),
        sa.Column("is_open_now", sa.Boolean(), nullable=True),
        sa.Column("dpa_before", sa.String(32), nullable=True),
        sa.Column("dpa_now", sa.String(32), nullable=True),
        sa.Column("pp_before", sa.String(32), nullable=True),
        sa.Column("pp_now", sa.String(32), nullable=True),
        sa.Column("wait_before", sa.Integer(), nullable=True),
        sa.Column("wait_now", sa.Integer(), nullable=True),
        sa.Column("dirty", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "event_queue",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("attraction_id", sa.Integer(), sa.ForeignKey("attractions.id"), nullable=True),
        sa.Column("park_id", sa.Integer(), nullable=False),
        sa.Column("name_raw", sa.String(256), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("family", sa.String(16), nullable=False),
        sa.Column("event", sa.Text(), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("uniq_key", sa.String(512), nullable=False, unique=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_event_queue_attraction_id", "event_queue", ["attraction_id"])
    op.create_index("ix_event_queue_pending", "event_queue", ["sent_at", "changed_at"])
    op.create_index("ix_event_queue_park_kind_changed", "event_queue", ["park_id", "kind", "changed_at"])

    op.create_table(
        "notified_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("uniq_key", sa.String(512), nullable=False, unique=True),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("park_id", sa.Integer(), nullable=False),
        sa.Column("name_raw", sa.String(256), nullable=False),
        sa.Column("event", sa.Text(), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_notified_events_changed_at", "notified_events", ["changed_at"])

    op.create_table(
        "push_subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("endpoint", sa.Text(), nullable=False, unique=True),
        sa.Column("p256dh", sa.String(256), nullable=False),
        sa.Column("auth", sa.String(128), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("device_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(_ONE_OWNER, name="ck_push_subscriptions_one_owner"),
    )
    op.create_index("ix_push_subscriptions_user_id", "push_subscriptions", ["user_id"])
    op.create_index("ix_push_subscriptions_device_id", "push_subscriptions", ["device_id"])

    op.create_table(
        "pushover_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_key", sa.String(64), nullable=False),
        sa.Column("label", sa.String(64), nullable=True),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("device_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(_ONE_OWNER, name="ck_pushover_profiles_one_owner"),
    )
    op.create_index("ix_pushover_profiles_user_id", "pushover_profiles", ["user_id"])
    op.create_index("ix_pushover_profiles_device_id", "pushover_profiles", ["device_id"])

    op.create_table(
        "favorites",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("device_id", sa.String(64), nullable=True),
        sa.Column("park_id", sa.Integer(), nullable=False),
        sa.Column("attraction_name", sa.String(256), nullable=False),
        sa.CheckConstraint(_ONE_OWNER, name="ck_favorites_one_owner"),
        sa.UniqueConstraint("user_id", "park_id", "attraction_name", name="uq_favorites_user"),
        sa.UniqueConstraint("device_id", "park_id", "attraction_name", name="uq_favorites_device"),
    )
    op.create_index("ix_favorites_park_name", "favorites", ["park_id", "attraction_name"])

    op.create_table(
        "alert_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("device_id", sa.String(64), nullable=True),
        sa.Column("park_id", sa.Integer(), nullable=False),
        sa.Column("notify_close_reopen", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("notify_dpa_sale", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("notify_mode", sa.String(16), nullable=True),
        sa.Column("mute_open_close_waves", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("wave_threshold", sa.Integer(), nullable=True),
        sa.Column("wave_bucket_seconds", sa.Integer(), nullable=True),
        sa.Column("wait_spike_threshold", sa.Integer(), nullable=True),
        sa.CheckConstraint(_ONE_OWNER, name="ck_alert_rules_one_owner"),
        sa.UniqueConstraint("user_id", "park_id", name="uq_alert_rules_user_park"),
        sa.UniqueConstraint("device_id", "park_id", name="uq_alert_rules_device_park"),
    )
    op.create_index("ix_alert_rules_park_id", "alert_rules", ["park_id"])

    op.create_table(
        "notification_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("recipient_id", sa.String(80), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("payload", sa.JSON().with_variant(postgresql.JSONB(), "postgresql"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notification_log_recipient_id", "notification_log", ["recipient_id"])
    op.create_index("ix_notification_log_kind", "notification_log", ["kind"])


def downgrade() -> None:
    op.drop_table("notification_log")
    op.drop_table("alert_rules")
    op.drop_table("favorites")
    op.drop_table("pushover_profiles")
    op.drop_table("push_subscriptions")
    op.drop_table("notified_events")
    op.drop_table("event_queue")
    op.drop_table("attraction_current_state")
    op.drop_table("attraction_status")
    op.drop_table("attractions")
    op.drop_table("parks")
