"""
Tests for the feature-flag snapshot and its Redis overrides.
"""

from decimal import Decimal

import pytest

from chessbook.core import feature_flags as flags_module
from chessbook.core.config import Settings
from chessbook.core.feature_flags import BookingPolicy, FeatureFlagSnapshot, apply_overrides


class FakeFlagStore:
    def __init__(self, values: dict):
        self.values = values
        self.reads = 0

    async def hgetall(self, key):
        assert key == flags_module.FLAGS_KEY
        self.reads += 1
        return dict(self.values)


class BrokenFlagStore:
    async def hgetall(self, key):
        raise ConnectionError("redis went away")


def use_store(monkeypatch, store):
    async def fake_get_redis():
        return store

    monkeypatch.setattr(flags_module, "get_redis", fake_get_redis)


def test_overrides_parse_booleans_and_fee():
    policy = apply_overrides(
        BookingPolicy(),
        {"allow_new_bookings": "false", "allow_refunds": "0", "platform_fee_amount": "15.50"},
    )
    assert policy.allow_new_bookings is False
    assert policy.allow_refunds is False
    assert policy.enable_online_payment is True
    assert policy.platform_fee_amount == Decimal("15.50")


def test_malformed_overrides_are_ignored():
    base = BookingPolicy()
    policy = apply_overrides(base, {"platform_fee_amount": "lots", "unknown_flag": "true"})
    assert policy == base

    assert apply_overrides(base, {"platform_fee_amount": "-5"}).platform_fee_amount == Decimal("10")


def test_platform_fee_switch():
    assert BookingPolicy(platform_fee_enabled=False).offline_platform_fee == Decimal("0")
    assert BookingPolicy(platform_fee_amount=Decimal("12")).offline_platform_fee == Decimal("12")


def test_policy_from_settings():
    settings = Settings(ALLOW_REFUNDS=False, OFFLINE_PLATFORM_FEE=Decimal("20"), BOOKING_REFERENCE_PREFIX="KC")
    policy = BookingPolicy.from_settings(settings)
    assert policy.allow_refunds is False
    assert policy.platform_fee_amount == Decimal("20")
    assert policy.reference_prefix == "KC"


@pytest.mark.asyncio
async def test_snapshot_without_redis_uses_settings(monkeypatch):
    use_store(monkeypatch, None)
    snapshot = FeatureFlagSnapshot(Settings(ENABLE_OFFLINE_PAYMENT=False), ttl_seconds=60)

    policy = await snapshot.get()
    assert policy.enable_offline_payment is False


@pytest.mark.asyncio
async def test_snapshot_is_cached_until_invalidated(monkeypatch):
    store = FakeFlagStore({"allow_new_bookings": "false"})
    use_store(monkeypatch, store)
    snapshot = FeatureFlagSnapshot(Settings(), ttl_seconds=3600)

    assert (await snapshot.get()).allow_new_bookings is False
    store.values["allow_new_bookings"] = "true"
    assert (await snapshot.get()).allow_new_bookings is False
    assert store.reads == 1

    snapshot.invalidate()
    assert (await snapshot.get()).allow_new_bookings is True
    assert store.reads == 2


@pytest.mark.asyncio
async def test_snapshot_expires_after_ttl(monkeypatch):
    store = FakeFlagStore({})
    use_store(monkeypatch, store)
    snapshot = FeatureFlagSnapshot(Settings(), ttl_seconds=0)

    await snapshot.get()
    await snapshot.get()
    assert store.reads == 2


@pytest.mark.asyncio
async def test_snapshot_fails_open_to_defaults(monkeypatch):
    use_store(monkeypatch, BrokenFlagStore())
    snapshot = FeatureFlagSnapshot(Settings(), ttl_seconds=60)

    policy = await snapshot.get()
    assert policy == BookingPolicy.from_settings(Settings())
