import dataclasses
from datetime import timedelta

from parkwatch.core.constants import KIND_CLOSE, KIND_DPA_START, KIND_REOPEN, KIND_WAIT_SPIKE
from parkwatch.services.audience import AudienceResolver, Principal, broadcast_audience, parse_recipient

from conftest import T0


def _endpoints(audience):
    return sorted(s.endpoint for s in audience.webpush_targets)


def test_favorites_define_candidates(db, config, make_attraction, queue_event, favorite, subscribe):
    voyage = make_attraction("Space Voyage")
    favorite("Space Voyage", user_id="u1")
    favorite("Soaring", user_id="u2")
    subscribe(user_id="u1", endpoint="https://push.example.com/u1")
    subscribe(user_id="u2", endpoint="https://push.example.com/u2")

    audience = AudienceResolver(db, config).resolve(queue_event(voyage, KIND_CLOSE, T0))

    assert audience.principals == {Principal("user", "u1")}
    assert _endpoints(audience) == ["https://push.example.com/u1"]


def test_favorite_on_another_park_does_not_match(db, config, make_attraction, queue_event, favorite, subscribe):
    voyage = make_attraction("Space Voyage")
    favorite("Space Voyage", user_id="u1", park_id=voyage.park_id + 100)
    subscribe(user_id="u1")
    assert AudienceResolver(db, config).resolve(queue_event(voyage, KIND_CLOSE, T0)).is_empty


def test_category_gating(db, config, make_attraction, queue_event, favorite, subscribe, rule):
    voyage = make_attraction("Space Voyage")
    for uid in ("no_rule", "no_dpa", "no_close"):
        favorite("Space Voyage", user_id=uid)
        subscribe(user_id=uid)
    rule(user_id="no_dpa", notify_dpa_sale=False)
    rule(user_id="no_close", notify_close_reopen=False)
    resolver = AudienceResolver(db, config)

    dpa = resolver.resolve(queue_event(voyage, KIND_DPA_START, T0))
    close = resolver.resolve(queue_event(voyage, KIND_CLOSE, T0))
    spike = resolver.resolve(queue_event(voyage, KIND_WAIT_SPIKE, T0))

    assert {p.id for p in dpa.principals} == {"no_rule", "no_close"}
    assert {p.id for p in close.principals} == {"no_rule", "no_dpa"}
    assert {p.id for p in spike.principals} == {"no_rule", "no_dpa", "no_close"}
    assert dpa.suppressed_by_rule == 1


def test_rush_suppression_is_per_subscriber(db, config, make_attraction, queue_event, favorite, subscribe, rule):
    """15 closes in one minute, threshold 12: muted subscriber gets none, the other gets all."""
    rides = [make_attraction(f"Ride {i}") for i in range(15)]
    for ride in rides:
        favorite(ride.name, device_id="muted")
        favorite(ride.name, device_id="plain")
    subscribe(device_id="muted")
    subscribe(device_id="plain")
    rule(device_id="muted", mute_open_close_waves=True, wave_threshold=12)
    rule(device_id="plain", mute_open_close_waves=False)
    events = [queue_event(ride, KIND_CLOSE, T0 + timedelta(seconds=i)) for i, ride in enumerate(rides)]

    resolver = AudienceResolver(db, config)
    received = {"muted": 0, "plain": 0}
    for event in events:
        for p in resolver.resolve(event).principals:
            received[p.id] += 1

    assert received == {"muted": 0, "plain": 15}


def test_rush_below_threshold_is_delivered(db, config, make_attraction, queue_event, favorite, subscribe, rule):
    rides = [make_attraction(f"Ride {i}") for i in range(11)]
    for ride in rides:
        favorite(ride.name, device_id="muted")
    subscribe(device_id="muted")
    rule(device_id="muted", mute_open_close_waves=True)
    events = [queue_event(ride, KIND_CLOSE, T0) for ride in rides]

    resolver = AudienceResolver(db, config)
    assert all(not resolver.resolve(e).is_empty for e in events)


def test_rush_counts_only_same_kind_and_bucket(db, config, make_attraction, queue_event, favorite, subscribe, rule):
    rides = [make_attraction(f"Ride {i}") for i in range(12)]
    for ride in rides:
        favorite(ride.name, device_id="muted")
    subscribe(device_id="muted")
    rule(device_id="muted", mute_open_close_waves=True, wave_threshold=12)
    # 6 closes and 6 reopens in the same minute, none reaching 12 on its own
    events = [queue_event(r, KIND_CLOSE if i % 2 else KIND_REOPEN, T0) for i, r in enumerate(rides)]
    # A later close in the next minute lands in a different bucket
    late = queue_event(make_attraction("Late Ride"), KIND_CLOSE, T0 + timedelta(minutes=1))
    favorite("Late Ride", device_id="muted")

    resolver = AudienceResolver(db, config)
    assert all(not resolver.resolve(e).is_empty for e in events + [late])


def test_rush_never_applies_to_sale_status(db, config, make_attraction, queue_event, favorite, subscribe, rule):
    rides = [make_attraction(f"Ride {i}") for i in range(13)]
    for ride in rides:
        favorite(ride.name, user_id="u1")
    subscribe(user_id="u1")
    rule(user_id="u1", mute_open_close_waves=True, wave_threshold=12)
    events = [queue_event(ride, KIND_DPA_START, T0) for ride in rides]

    resolver = AudienceResolver(db, config)
    assert all(not resolver.resolve(e).is_empty for e in events)


def test_wider_bucket_from_rule(db, config, make_attraction, queue_event, favorite, subscribe, rule):
    rides = [make_attraction(f"Ride {i}") for i in range(3)]
    for ride in rides:
        favorite(ride.name, user_id="u1")
    subscribe(user_id="u1")
    rule(user_id="u1", mute_open_close_waves=True, wave_threshold=3, wave_bucket_seconds=300)
    # Three closes over three minutes all fall in one five-minute bucket
    events = [queue_event(ride, KIND_CLOSE, T0 + timedelta(minutes=i)) for i, ride in enumerate(rides)]

    resolver = AudienceResolver(db, config)
    assert all(resolver.resolve(e).is_empty for e in events)


def test_spike_threshold_per_subscriber(db, config, make_attraction, queue_event, favorite, subscribe, rule):
    ride = make_attraction("Soaring")
    for uid in ("default", "sensitive", "relaxed"):
        favorite("Soaring", user_id=uid)
        subscribe(user_id=uid)
    rule(user_id="sensitive", wait_spike_threshold=10)
    rule(user_id="relaxed", wait_spike_threshold=60)
    event = queue_event(ride, KIND_WAIT_SPIKE, T0, payload={"before": 30, "after": 45, "delta": 15})

    audience = AudienceResolver(db, config).resolve(event, {"before": 30, "after": 45, "delta": 15})

    assert {p.id for p in audience.principals} == {"sensitive"}
    assert audience.suppressed_by_threshold == 2


def test_scope_all_reaches_endpoint_owners_without_favorites(db, config, make_attraction, queue_event, subscribe, rule, pushover_profile):
    ride = make_attraction("Soaring")
    subscribe(device_id="d1")
    pushover_profile("ukey-2", user_id="u2")
    subscribe(device_id="fav_only")
    rule(device_id="fav_only", notify_mode="favorites")
    event = queue_event(ride, KIND_REOPEN, T0)

    narrow = AudienceResolver(db, config).resolve(event)
    wide = AudienceResolver(db, config, scope="all").resolve(event)

    assert narrow.is_empty
    assert wide.principals == {Principal("device", "d1"), Principal("user", "u2")}


def test_rule_mode_all_without_global_scope(db, config, make_attraction, queue_event, subscribe, rule):
    ride = make_attraction("Soaring")
    subscribe(device_id="d1")
    rule(device_id="d1", notify_mode="all")
    assert AudienceResolver(db, config).resolve(queue_event(ride, KIND_CLOSE, T0)).principals == {
        Principal("device", "d1")
    }


def test_partition_by_transport(db, config, make_attraction, queue_event, favorite, subscribe, pushover_profile):
    ride = make_attraction("Soaring")
    favorite("Soaring", user_id="both")
    favorite("Soaring", user_id="gateway_only")
    subscribe(user_id="both", endpoint="https://push.example.com/both")
    pushover_profile("key-both", user_id="both")
    pushover_profile("key-gw", user_id="gateway_only")

    audience = AudienceResolver(db, config).resolve(queue_event(ride, KIND_CLOSE, T0))

    assert _endpoints(audience) == ["https://push.example.com/both"]
    assert sorted(p.user_key for p in audience.gateway_targets) == ["key-both", "key-gw"]


def test_disabled_transport_yields_no_targets(db, config, make_attraction, queue_event, favorite, subscribe, pushover_profile):
    ride = make_attraction("Soaring")
    favorite("Soaring", user_id="u1")
    subscribe(user_id="u1")
    pushover_profile("key-1", user_id="u1")
    webpush_only = dataclasses.replace(config, pushover_token="")

    audience = AudienceResolver(db, webpush_only).resolve(queue_event(ride, KIND_CLOSE, T0))

    assert len(audience.webpush_targets) == 1
    assert audience.gateway_targets == []


def test_resolve_reads_stored_payload_when_none_given(db, config, make_attraction, queue_event, favorite, subscribe, rule):
    ride = make_attraction("Soaring")
    for uid in ("default", "sensitive"):
        favorite("Soaring", user_id=uid)
        subscribe(user_id=uid)
    rule(user_id="sensitive", wait_spike_threshold=10)
    event = queue_event(ride, KIND_WAIT_SPIKE, T0, payload={"before": 30, "after": 45, "delta": 15})
    resolver = AudienceResolver(db, config)

    implicit = resolver.resolve(event)
    explicit = resolver.resolve(event, {"before": 30, "after": 45, "delta": 15})

    assert implicit.principals == explicit.principals == {Principal("user", "sensitive")}


def test_unreadable_stored_payload_counts_as_no_delta(db, config, make_attraction, queue_event, favorite, subscribe):
    ride = make_attraction("Soaring")
    favorite("Soaring", user_id="u1")
    subscribe(user_id="u1")
    event = queue_event(ride, KIND_WAIT_SPIKE, T0)
    event.event = "{not json"
    db.commit()

    audience = AudienceResolver(db, config).resolve(event)

    assert audience.is_empty
    assert audience.suppressed_by_threshold == 1


def test_non_positive_spike_threshold_falls_back_to_default(db, config, make_attraction, queue_event, favorite, subscribe, rule):
    ride = make_attraction("Soaring")
    for uid in ("zero", "negative"):
        favorite("Soaring", user_id=uid)
        subscribe(user_id=uid)
    rule(user_id="zero", wait_spike_threshold=0)
    rule(user_id="negative", wait_spike_threshold=-5)
    small = queue_event(ride, KIND_WAIT_SPIKE, T0, payload={"before": 30, "after": 35, "delta": 5})
    large = queue_event(ride, KIND_WAIT_SPIKE, T0 + timedelta(minutes=1), payload={"before": 30, "after": 55, "delta": 25})
    resolver = AudienceResolver(db, config)

    assert resolver.resolve(small).is_empty
    assert {p.id for p in resolver.resolve(large).principals} == {"zero", "negative"}


def test_broadcast_audience_everyone_or_one_recipient(db, config, subscribe, pushover_profile):
    subscribe(user_id="u1", endpoint="https://push.example.com/u1")
    subscribe(device_id="d1", endpoint="https://push.example.com/d1")
    pushover_profile("key-u1", user_id="u1")

    everyone = broadcast_audience(db, config)
    one = broadcast_audience(db, config, parse_recipient("user:u1"))

    assert _endpoints(everyone) == ["https://push.example.com/d1", "https://push.example.com/u1"]
    assert everyone.principals == {Principal("user", "u1"), Principal("device", "d1")}
    assert _endpoints(one) == ["https://push.example.com/u1"]
    assert [p.user_key for p in one.gateway_targets] == ["key-u1"]


def test_parse_recipient():
    assert parse_recipient("device:abc") == Principal("device", "abc")
    assert parse_recipient("admin:abc") is None
    assert parse_recipient("user:") is None
    assert parse_recipient("") is None
