"""
Pytest configuration and fixtures for notifier tests.

Provides:
- In-memory SQLite engine/session (StaticPool, SAVEPOINT-capable)
- A NotifierConfig with both transports configured and an always-open window
- Factories for parks, attractions, observations, endpoints, favorites, rules, queued events
"""
import os
from unittest.mock import Mock, patch
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from pywebpush import WebPushException
from sqlalchemy.pool import StaticPool

# Set test environment before importing parkwatch modules (settings are read at import)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["VAPID_PUBLIC_KEY"] = ""
os.environ["VAPID_PRIVATE_KEY"] = ""
os.environ["PUSHOVER_TOKEN"] = ""

from parkwatch.core.constants import (  # noqa: E402
    FAMILY_DPA,
    FAMILY_OPERATING,
    FAMILY_PP,
    FAMILY_WAIT,
    KIND_CLOSE,
    KIND_DPA_END,
    KIND_DPA_START,
    KIND_PP_END,
    KIND_PP_START,
    KIND_REOPEN,
    KIND_WAIT_SPIKE,
)
from parkwatch.db.base import Base  # noqa: E402
import parkwatch.models  # noqa: E402,F401
from parkwatch.models import (  # noqa: E402
    AlertRule,
    Attraction,
    AttractionCurrentState,
    AttractionStatus,
    Favorite,
    Park,
    PushSubscription,
    PushoverProfile,
    QueuedEvent,
)
from parkwatch.services import state_store  # noqa: E402
from parkwatch.services.event_classifier import ClassifiedEvent  # noqa: E402
from parkwatch.services.notifier_config import NotifierConfig  # noqa: E402

T0 = datetime(2026, 5, 1, 3, 0, 0, tzinfo=timezone.utc)  # 12:00 in Asia/Tokyo

FAMILY_FOR_KIND = {
    KIND_REOPEN: FAMILY_OPERATING,
    KIND_CLOSE: FAMILY_OPERATING,
    KIND_DPA_START: FAMILY_DPA,
    KIND_DPA_END: FAMILY_DPA,
    KIND_PP_START: FAMILY_PP,
    KIND_PP_END: FAMILY_PP,
    KIND_WAIT_SPIKE: FAMILY_WAIT,
}

DEFAULT_PAYLOADS = {
    KIND_REOPEN: {"before": False, "after": True},
    KIND_CLOSE: {"before": True, "after": False},
    KIND_DPA_START: {"before": "sold_out", "after": "active"},
    KIND_DPA_END: {"before": "active", "after": "sold_out"},
    KIND_PP_START: {"before": "inactive", "after": "active"},
    KIND_PP_END: {"before": "active", "after": "inactive"},
    KIND_WAIT_SPIKE: {"before": 10, "after": 40, "delta": 30},
}


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite: let SQLAlchemy own BEGIN so SAVEPOINT (begin_nested) behaves
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_con, con_record):
        dbapi_con.isolation_level = None
        dbapi_con.execute("pragma foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def config():
    return NotifierConfig(
        database_url="sqlite://",
        vapid_public_key="test-public-key",
        vapid_private_key="test-private-key",
        pushover_token="test-app-token",
        quiet_hours_start="00:00",
        quiet_hours_end="23:59",
        delivery_workers=4,
    )


# ============================================================================
# Sample Data Factories
# ============================================================================


@pytest.fixture
def park(db):
    row = Park(code="TDS", name="Tokyo DisneySea", qt_park_id=275)
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def make_attraction(db, park):
    def _create(name="Space Voyage", park_id=None):
        row = Attraction(park_id=park_id or park.id, name=name)
        db.add(row)
        db.commit()
        return row

    return _create


@pytest.fixture
def observe(db):
    """Append an observation (raw strings, as ingestion writes them)."""

    def _create(attraction, observed_at, is_open=None, dpa=None, pp=None, wait=None, source="tdr"):
        row = AttractionStatus(
            attraction_id=attraction.id,
            observed_at=observed_at,
            is_open=is_open,
            dpa_status=dpa,
            pp_status=pp,
            wait_time=wait,
            source=source,
        )
        db.add(row)
        db.commit()
        return row

    return _create


@pytest.fixture
def make_state(db):
    """Acknowledged current state (dirty=False, before == now)."""

    def _create(attraction, observed_at, is_open=None, dpa=None, pp=None, wait=None):
        row = AttractionCurrentState(
            attraction_id=attraction.id,
            is_open_before=is_open,
            is_open_now=is_open,
            dpa_before=dpa,
            dpa_now=dpa,
            pp_before=pp,
            pp_now=pp,
            wait_before=wait,
            wait_now=wait,
            dirty=False,
            observed_at=observed_at,
        )
        db.add(row)
        db.commit()
        return row

    return _create


def _owner(user_id, device_id):
    if user_id is None and device_id is None:
        raise ValueError("user_id or device_id required")
    return {"user_id": user_id, "device_id": device_id}


@pytest.fixture
def subscribe(db):
    counter = {"n": 0}

    def _create(user_id=None, device_id=None, endpoint=None):
        counter["n"] += 1
        row = PushSubscription(
            endpoint=endpoint or f"https://push.example.com/send/{counter['n']}",
            p256dh="BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM",
            auth="tBHItJI5svbpez7KI4CCXg",
            **_owner(user_id, device_id),
        )
        db.add(row)
        db.commit()
        return row

    return _create


@pytest.fixture
def pushover_profile(db):
    def _create(user_key, user_id=None, device_id=None, label=None):
        row = PushoverProfile(user_key=user_key, label=label, **_owner(user_id, device_id))
        db.add(row)
        db.commit()
        return row

    return _create


@pytest.fixture
def favorite(db, park):
    def _create(attraction_name, user_id=None, device_id=None, park_id=None):
        row = Favorite(park_id=park_id or park.id, attraction_name=attraction_name, **_owner(user_id, device_id))
        db.add(row)
        db.commit()
        return row

    return _create


@pytest.fixture
def rule(db, park):
    def _create(user_id=None, device_id=None, park_id=None, **fields):
        row = AlertRule(park_id=park_id or park.id, **_owner(user_id, device_id), **fields)
        db.add(row)
        db.commit()
        return row

    return _create


@pytest.fixture
def queue_event(db):
    """Queue a classified event directly (bypassing detection). Returns the QueuedEvent row."""

    def _create(attraction, kind, changed_at, payload=None):
        family = FAMILY_FOR_KIND[kind]
        body = {"family": family, **(payload if payload is not None else DEFAULT_PAYLOADS[kind])}
        classified = ClassifiedEvent(
            attraction_id=attraction.id,
            park_id=attraction.park_id,
            name=attraction.name,
            family=family,
            kind=kind,
            changed_at=changed_at,
            payload=body,
        )
        state_store.enqueue_event(db, classified)
        db.commit()
        return db.query(QueuedEvent).filter(QueuedEvent.uniq_key == classified.uniq_key).one()

    return _create


# ============================================================================
# Transport fakes
# ============================================================================


def fake_webpush(subscription_info, data, **kwargs):
    """Push service stand-in keyed on the endpoint's last path segment."""
    endpoint = subscription_info["endpoint"]
    if endpoint.endswith("/gone"):
        raise WebPushException("Push failed: 410 Gone", response=Mock(status_code=410))
    if endpoint.endswith("/missing"):
        raise WebPushException("Push failed: 404 Not Found", response=Mock(status_code=404))
    if endpoint.endswith("/flaky"):
        raise WebPushException("Push failed: 503", response=Mock(status_code=503))
    if endpoint.endswith("/timeout"):
        raise TimeoutError("read timed out")
    return Mock(status_code=201)


@pytest.fixture
def webpush_mock():
    with patch("parkwatch.services.webpush.webpush", side_effect=fake_webpush) as mock:
        yield mock
