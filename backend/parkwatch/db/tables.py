"""
Single source of truth for database tables that exist after migrations (001).

Use these names when writing raw SQL (e.g. TRUNCATE). alembic/env.py asserts the
registered models match ALL_TABLE_NAMES.
"""
# All tables that exist in the DB. Must match models and migration 001.
ALL_TABLE_NAMES = (
    "parks",
    "attractions",
    "attraction_status",
    "attraction_current_state",
    "event_queue",
    "notified_events",
    "push_subscriptions",
    "pushover_profiles",
    "favorites",
    "alert_rules",
    "notification_log",
)
