"""Unit tests for the ephemeral registration store."""

import asyncio
from datetime import timedelta

import pytest

from errors import ErrorCode, ServiceUnavailableError
from services.registration_store import EphemeralRegistrationStore
from shared.generators import generate_one_time_token


@pytest.fixture
def store(clock):
    return EphemeralRegistrationStore(ttl=timedelta(hours=24), capacity=3, clock=clock)


def _pending(store, email="a@test.com"):
    return store.new_registration(
        email=email, password_hash="$argon2id$fake", name="Ada", ip_address="10.0.0.1"
    )


class TestStoreAndConsume:
    def test_consume_returns_original_payload_once(self, store):
        token = generate_one_time_token()
        registration = _pending(store)
        store.store(token, registration)

        assert store.consume(token) == registration
        assert store.consume(token) is None

    def test_expiry_is_fixed_ttl_from_creation(self, store, clock):
        registration = _pending(store)
        assert registration.expires_at - registration.created_at == timedelta(hours=24)
        assert registration.created_at == clock.now

    def test_expired_token_yields_none_and_is_removed(self, store, clock):
        token = generate_one_time_token()
        store.store(token, _pending(store))
        clock.advance(hours=24)
        assert store.consume(token) is None
        assert len(store) == 0

    def test_unknown_token(self, store):
        assert store.consume("0" * 64) is None

    async def test_concurrent_consumers_get_one_payload(self, store):
        token = generate_one_time_token()
        store.store(token, _pending(store))

        async def redeem():
            await asyncio.sleep(0)
            return store.consume(token)

        results = await asyncio.gather(*(redeem() for _ in range(5)))
        assert sum(r is not None for r in results) == 1


class TestLookups:
    def test_peek_does_not_consume(self, store):
        token = generate_one_time_token()
        store.store(token, _pending(store))
        assert store.peek(token) is True
        assert store.consume(token) is not None
        assert store.peek(token) is False

    def test_find_by_email(self, store):
        store.store(generate_one_time_token(), _pending(store, "b@test.com"))
        assert store.find_by_email("b@test.com").name == "Ada"
        assert store.find_by_email("c@test.com") is None
        assert store.has_pending("b@test.com")

    def test_find_by_email_ignores_expired(self, store, clock):
        store.store(generate_one_time_token(), _pending(store))
        clock.advance(hours=25)
        assert store.find_by_email("a@test.com") is None

    def test_new_entry_for_same_email_replaces_old(self, store):
        first, second = generate_one_time_token(), generate_one_time_token()
        store.store(first, _pending(store))
        store.store(second, _pending(store))
        assert len(store) == 1
        assert store.consume(first) is None
        assert store.consume(second) is not None


class TestRegenerate:
    def test_old_token_stops_working(self, store, clock):
        old, new = generate_one_time_token(), generate_one_time_token()
        original = _pending(store)
        store.store(old, original)
        clock.advance(hours=1)

        refreshed = store.regenerate_token("a@test.com", new)

        assert refreshed.expires_at == original.expires_at
        assert store.consume(old) is None
        assert store.consume(new) is not None

    def test_resends_do_not_outlive_creation_ttl(self, store, clock):
        token = generate_one_time_token()
        original = _pending(store)
        store.store(token, original)

        for _ in range(3):
            clock.advance(hours=7)
            token = generate_one_time_token()
            assert store.regenerate_token("a@test.com", token) is not None

        clock.advance(hours=3, seconds=1)
        assert clock.now > original.created_at + timedelta(hours=24)
        assert not store.has_pending("a@test.com")
        assert store.regenerate_token("a@test.com", generate_one_time_token()) is None
        assert store.consume(token) is None

    def test_nothing_pending(self, store):
        assert store.regenerate_token("nobody@test.com", generate_one_time_token()) is None


class TestCapacity:
    def test_full_store_sweeps_then_accepts(self, store, clock):
        for i in range(3):
            store.store(generate_one_time_token(), _pending(store, f"u{i}@test.com"))
        clock.advance(hours=25)

        store.store(generate_one_time_token(), _pending(store, "late@test.com"))

        assert len(store) == 1

    def test_full_store_rejects_loudly(self, store):
        for i in range(3):
            store.store(generate_one_time_token(), _pending(store, f"u{i}@test.com"))

        with pytest.raises(ServiceUnavailableError) as exc:
            store.store(generate_one_time_token(), _pending(store, "extra@test.com"))
        assert exc.value.error_code == ErrorCode.REGISTRATION_CAPACITY_EXCEEDED
        assert exc.value.status_code == 503
        assert len(store) == 3


class TestSweepAndStats:
    def test_sweep_counts_removed(self, store, clock):
        store.store(generate_one_time_token(), _pending(store, "old@test.com"))
        clock.advance(hours=23)
        store.store(generate_one_time_token(), _pending(store, "new@test.com"))
        clock.advance(hours=2)
        assert store.sweep_expired() == 1
        assert store.has_pending("new@test.com")

    def test_stats(self, store, clock):
        store.store(generate_one_time_token(), _pending(store, "old@test.com"))
        clock.advance(hours=25)
        store.store(generate_one_time_token(), _pending(store, "new@test.com"))
        stats = store.stats()
        assert (stats.total, stats.valid, stats.expired, stats.capacity) == (2, 1, 1, 3)
        assert stats.usage_percent == pytest.approx(66.67)

    def test_pending_view_hides_secrets(self, store, clock):
        store.store(generate_one_time_token(), _pending(store))
        clock.advance(minutes=90)
        [entry] = store.pending()
        assert entry["email"] == "a@test.com"
        assert entry["minutes_remaining"] == 22 * 60 + 30
        assert "password_hash" not in entry
        assert "token" not in entry

    def test_clear(self, store):
        store.store(generate_one_time_token(), _pending(store))
        store.clear()
        assert len(store) == 0
        assert not store.has_pending("a@test.com")
