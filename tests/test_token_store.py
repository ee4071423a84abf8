from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from jambojet.core.exceptions import InvalidExpiry
from jambojet.models.credential import (
    EVENT_TOKEN_CLEARED,
    EVENT_TOKEN_INSTALLED,
    StoredCredentialRecord,
)
from jambojet.services import TokenCipherService, TokenStore


def test_install_then_fetch_returns_token(store, clock) -> None:
    store.install("tok-A", clock() + timedelta(seconds=3600))

    assert store.fetch() == "tok-A"
    assert store.is_valid() is True
    assert store.remaining_seconds() == 3600
    assert store.expires_at() == clock() + timedelta(seconds=3600)


def test_clear_makes_store_absent(store, clock) -> None:
    store.install("tok-A", clock() + timedelta(seconds=3600))

    assert store.clear() is True

    assert store.fetch() is None
    assert store.is_valid() is False
    assert store.remaining_seconds() == 0
    assert store.expires_at() is None


def test_clear_on_empty_store_is_a_noop(store) -> None:
    assert store.clear() is True
    assert store.clear() is True
    assert store.fetch() is None


def test_expired_token_reads_as_absent_before_shared_eviction(store, clock, shared_cache) -> None:
    store.install("tok-A", clock() + timedelta(seconds=10))

    clock.advance(11)

    assert store.is_valid() is False
    assert store.fetch() is None
    assert store.remaining_seconds() == 0
    # The shared entry has a real-time TTL and is still physically present.
    assert shared_cache.inner.get(store.shared_key) is not None


def test_expiry_boundary_is_strict(store, clock) -> None:
    store.install("tok-A", clock() + timedelta(seconds=1))
    assert store.is_valid() is True

    clock.advance(0.999)
    assert store.is_valid() is True
    assert store.fetch() == "tok-A"

    clock.advance(0.001)
    assert store.is_valid() is False
    assert store.fetch() is None


@pytest.mark.parametrize("offset", [0, -1, -3600])
def test_install_rejects_non_future_expiry(store, clock, shared_cache, offset) -> None:
    store.install("tok-A", clock() + timedelta(seconds=60))
    raw_before = shared_cache.inner.get(store.shared_key)

    with pytest.raises(InvalidExpiry):
        store.install("tok-B", clock() + timedelta(seconds=offset))

    assert store.fetch() == "tok-A"
    assert shared_cache.inner.get(store.shared_key) == raw_before


def test_install_rejects_non_future_expiry_on_empty_store(store, clock) -> None:
    with pytest.raises(InvalidExpiry):
        store.install("tok-A", clock())

    assert store.fetch() is None


@pytest.mark.parametrize("value", ["", "   "])
def test_install_rejects_empty_token(store, clock, value) -> None:
    with pytest.raises(ValueError):
        store.install(value, clock() + timedelta(seconds=60))


def test_install_replaces_previous_token_regardless_of_age(store, clock) -> None:
    store.install("tok-A", clock() + timedelta(hours=10))
    store.install("tok-B", clock() + timedelta(seconds=5))

    assert store.fetch() == "tok-B"
    assert store.remaining_seconds() == 5


def test_naive_expiry_is_treated_as_utc(store, clock) -> None:
    naive = (clock() + timedelta(seconds=120)).replace(tzinfo=None)

    store.install("tok-A", naive)

    assert store.expires_at() == clock() + timedelta(seconds=120)
    assert store.remaining_seconds() == 120


def test_remaining_seconds_is_non_increasing_and_never_negative(store, clock) -> None:
    store.install("tok-A", clock() + timedelta(seconds=30))

    readings = []
    for _ in range(8):
        readings.append(store.remaining_seconds())
        clock.advance(4.5)
    readings.append(store.remaining_seconds())

    assert readings == sorted(readings, reverse=True)
    assert min(readings) == 0
    assert all(value >= 0 for value in readings)


def test_shared_entry_ttl_matches_remaining_lifetime(clock) -> None:
    class RecordingCache:
        def __init__(self) -> None:
            self.calls = []

        def set(self, key, value, ttl_seconds):
            self.calls.append((key, ttl_seconds))

    cache = RecordingCache()
    store = TokenStore(cache, key_prefix="jambojet_global_", clock=clock)

    store.install("tok-A", clock() + timedelta(seconds=1234.5))

    assert cache.calls == [("jambojet_global_token", 1234.5)]


def test_shared_record_stores_value_and_expiry_together(store, clock, shared_cache) -> None:
    expires_at = clock() + timedelta(seconds=90)
    store.install("tok-A", expires_at)

    record = StoredCredentialRecord.model_validate_json(shared_cache.inner.get(store.shared_key))

    assert record.token == "tok-A"
    assert record.expires_at == expires_at
    assert record.encrypted is False


def test_fetch_refills_local_tier_from_shared_tier(store, clock, shared_cache) -> None:
    store.install("tok-A", clock() + timedelta(seconds=600))
    store.forget_local()

    assert store.fetch() == "tok-A"

    # Served from the refilled local tier even with the shared tier down.
    shared_cache.down = True
    assert store.fetch() == "tok-A"


def test_second_process_sees_token_installed_by_first(shared_cache, clock) -> None:
    first = TokenStore(shared_cache, clock=clock)
    second = TokenStore(shared_cache, clock=clock)

    first.install("tok-A", clock() + timedelta(seconds=600))

    assert second.fetch() == "tok-A"
    assert second.remaining_seconds() == 600


def test_expired_local_token_is_replaced_by_newer_shared_token(shared_cache, clock) -> None:
    first = TokenStore(shared_cache, clock=clock)
    second = TokenStore(shared_cache, clock=clock)
    first.install("tok-A", clock() + timedelta(seconds=10))
    assert second.fetch() == "tok-A"

    clock.advance(20)
    first.install("tok-B", clock() + timedelta(seconds=10))

    assert second.fetch() == "tok-B"


def test_expired_shared_record_is_not_served(shared_cache, clock) -> None:
    first = TokenStore(shared_cache, clock=clock)
    first.install("tok-A", clock() + timedelta(seconds=10))
    clock.advance(30)

    second = TokenStore(shared_cache, clock=clock)

    assert second.fetch() is None
    assert second.is_valid() is False


def test_clear_removes_token_for_other_processes(shared_cache, clock) -> None:
    first = TokenStore(shared_cache, clock=clock)
    first.install("tok-A", clock() + timedelta(seconds=600))

    first.clear()

    assert TokenStore(shared_cache, clock=clock).fetch() is None


def test_clear_with_expected_skips_when_token_was_replaced(store, clock) -> None:
    store.install("tok-A", clock() + timedelta(seconds=600))
    store.install("tok-B", clock() + timedelta(seconds=600))

    assert store.clear(expected="tok-A") is False
    assert store.fetch() == "tok-B"

    assert store.clear(expected="tok-B") is True
    assert store.fetch() is None


def test_clear_with_expected_keeps_newer_token_from_another_process(shared_cache, clock) -> None:
    first = TokenStore(shared_cache, clock=clock)
    second = TokenStore(shared_cache, clock=clock)
    first.install("tok-A", clock() + timedelta(seconds=600))
    second.install("tok-B", clock() + timedelta(seconds=600))

    assert first.clear(expected="tok-A") is True

    assert TokenStore(shared_cache, clock=clock).fetch() == "tok-B"
    assert first.fetch() == "tok-B"
    assert second.fetch() == "tok-B"


def test_clear_with_expected_keeps_newer_encrypted_token(shared_cache, clock) -> None:
    cipher = TokenCipherService(secret="shared-secret")
    first = TokenStore(shared_cache, clock=clock, cipher=cipher)
    second = TokenStore(shared_cache, clock=clock, cipher=cipher)
    first.install("tok-A", clock() + timedelta(seconds=600))
    second.install("tok-B", clock() + timedelta(seconds=600))

    first.clear(expected="tok-A")

    assert TokenStore(shared_cache, clock=clock, cipher=cipher).fetch() == "tok-B"


def test_clear_with_expected_removes_matching_shared_record(shared_cache, clock) -> None:
    writer = TokenStore(shared_cache, clock=clock)
    writer.install("tok-A", clock() + timedelta(seconds=600))
    other = TokenStore(shared_cache, clock=clock)

    assert other.clear(expected="tok-A") is True

    assert shared_cache.inner.get(writer.shared_key) is None
    writer.forget_local()
    assert writer.fetch() is None


def test_clear_with_expected_leaves_record_rewritten_after_read(shared_cache, clock) -> None:
    store = TokenStore(shared_cache, clock=clock)
    store.install("tok-A", clock() + timedelta(seconds=600))
    writer = TokenStore(shared_cache, clock=clock)
    original_get = shared_cache.get

    def get_then_race(key):
        raw = original_get(key)
        writer.install("tok-B", clock() + timedelta(seconds=600))
        return raw

    shared_cache.get = get_then_race
    store.clear(expected="tok-A")
    del shared_cache.get

    assert TokenStore(shared_cache, clock=clock).fetch() == "tok-B"


def test_malformed_shared_record_reads_as_absent(store, shared_cache) -> None:
    shared_cache.inner.set(store.shared_key, "{not json", 60)

    assert store.fetch() is None
    assert store.is_valid() is False


def test_encrypted_record_round_trips_between_processes(shared_cache, clock) -> None:
    cipher = TokenCipherService(secret="shared-secret")
    first = TokenStore(shared_cache, clock=clock, cipher=cipher)
    second = TokenStore(shared_cache, clock=clock, cipher=TokenCipherService(secret="shared-secret"))

    first.install("tok-secret", clock() + timedelta(seconds=600))

    raw = shared_cache.inner.get(first.shared_key)
    assert "tok-secret" not in raw
    assert second.fetch() == "tok-secret"


def test_encrypted_record_is_ignored_without_matching_secret(shared_cache, clock) -> None:
    writer = TokenStore(shared_cache, clock=clock, cipher=TokenCipherService(secret="one"))
    writer.install("tok-secret", clock() + timedelta(seconds=600))

    assert TokenStore(shared_cache, clock=clock).fetch() is None
    assert (
        TokenStore(shared_cache, clock=clock, cipher=TokenCipherService(secret="two")).fetch()
        is None
    )


def test_events_are_emitted_for_install_and_clear(store, clock) -> None:
    events = []
    store.add_listener(events.append)

    store.install("tok-A", clock() + timedelta(seconds=300))
    store.install("tok-B", clock() + timedelta(seconds=600))
    store.clear()

    assert [event.kind for event in events] == [
        EVENT_TOKEN_INSTALLED,
        EVENT_TOKEN_INSTALLED,
        EVENT_TOKEN_CLEARED,
    ]
    assert events[0].replaced is False
    assert events[0].expires_in_seconds == 300
    assert events[1].replaced is True
    assert events[1].expires_at == clock() + timedelta(seconds=600)


def test_failing_listener_does_not_break_install(store, clock) -> None:
    def broken(event):
        raise RuntimeError("sink down")

    store.add_listener(broken)

    store.install("tok-A", clock() + timedelta(seconds=60))

    assert store.fetch() == "tok-A"


def test_install_logs_expiry_without_token_value(store, clock, caplog) -> None:
    caplog.set_level("INFO", logger="jambojet.services.token_store")

    store.install("tok-very-secret", clock() + timedelta(seconds=60))

    assert "expires_in_seconds=60" in caplog.text
    assert "tok-very-secret" not in caplog.text


def test_concurrent_installs_leave_tiers_consistent(shared_cache) -> None:
    store = TokenStore(shared_cache)
    expires_at = datetime.now(timezone.utc) + timedelta(hours=1)
    installed = {f"tok-{i}" for i in range(16)}
    observed = []
    barrier = threading.Barrier(16)

    def worker(value: str) -> None:
        barrier.wait()
        store.install(value, expires_at)
        observed.append(store.fetch())

    threads = [threading.Thread(target=worker, args=(value,)) for value in installed]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert set(observed) <= installed
    final = store.fetch()
    record = StoredCredentialRecord.model_validate_json(shared_cache.inner.get(store.shared_key))
    assert record.token == final
