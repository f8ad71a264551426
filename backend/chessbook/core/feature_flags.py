"""
Feature flags.

Defaults come from Settings; operators override them at runtime by writing
to the Redis hash "settings:flags" (field names are the lower-case flag
names, values "true"/"false" or a decimal for platform_fee_amount).

The snapshot is process-wide and refreshed at most every
FEATURE_FLAG_TTL_SECONDS. Routes read it once per request and hand the
resulting BookingPolicy to the services, which never look at globals.
"""

import time
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Optional

from chessbook.core.config import Settings, get_settings
from chessbook.core.logging import get_logger
from chessbook.infrastructure.redis_client import get_redis

logger = get_logger(__name__)

FLAGS_KEY = "settings:flags"

_BOOL_FLAGS = (
    "allow_new_bookings",
    "allow_booking_cancellation",
    "enable_online_payment",
    "enable_offline_payment",
    "allow_refunds",
    "platform_fee_enabled",
)


@dataclass(frozen=True)
class BookingPolicy:
    allow_new_bookings: bool = True
    allow_booking_cancellation: bool = True
    enable_online_payment: bool = True
    enable_offline_payment: bool = True
    allow_refunds: bool = True
    platform_fee_enabled: bool = True
    platform_fee_amount: Decimal = Decimal("10")
    reference_prefix: str = "CC"
    reference_max_attempts: int = 5
    currency: str = "INR"

    @property
    def offline_platform_fee(self) -> Decimal:
        return self.platform_fee_amount if self.platform_fee_enabled else Decimal("0")

    @classmethod
    def from_settings(cls, settings: Settings) -> "BookingPolicy":
        return cls(
            allow_new_bookings=settings.ALLOW_NEW_BOOKINGS,
            allow_booking_cancellation=settings.ALLOW_BOOKING_CANCELLATION,
            enable_online_payment=settings.ENABLE_ONLINE_PAYMENT,
            enable_offline_payment=settings.ENABLE_OFFLINE_PAYMENT,
            allow_refunds=settings.ALLOW_REFUNDS,
            platform_fee_enabled=settings.PLATFORM_FEE_ENABLED,
            platform_fee_amount=settings.OFFLINE_PLATFORM_FEE,
            reference_prefix=settings.BOOKING_REFERENCE_PREFIX,
            reference_max_attempts=settings.BOOKING_REFERENCE_MAX_ATTEMPTS,
            currency=settings.CURRENCY,
        )


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def apply_overrides(policy: BookingPolicy, raw: dict[str, str]) -> BookingPolicy:
    """Overlay stored flag values on a policy. Unknown or malformed fields are ignored."""
    changes: dict = {}
    for name in _BOOL_FLAGS:
        if name in raw:
            changes[name] = _parse_bool(raw[name])

    if "platform_fee_amount" in raw:
        try:
            amount = Decimal(raw["platform_fee_amount"])
        except InvalidOperation:
            logger.warning("feature_flag_invalid", flag="platform_fee_amount", value=raw["platform_fee_amount"])
        else:
            if amount >= 0:
                changes["platform_fee_amount"] = amount

    return replace(policy, **changes) if changes else policy


class FeatureFlagSnapshot:
    def __init__(self, settings: Optional[Settings] = None, ttl_seconds: Optional[int] = None):
        self.settings = settings or get_settings()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else self.settings.FEATURE_FLAG_TTL_SECONDS
        self._policy: Optional[BookingPolicy] = None
        self._loaded_at = 0.0

    def invalidate(self) -> None:
        self._policy = None
        logger.info("feature_flags_invalidated")

    async def _load(self) -> BookingPolicy:
        policy = BookingPolicy.from_settings(self.settings)
        redis = await get_redis()
        if redis is None:
            return policy

        try:
            raw = await redis.hgetall(FLAGS_KEY)
        except Exception as e:
            # Fail open to configured defaults
            logger.warning("feature_flags_load_failed", error=str(e))
            return policy

        return apply_overrides(policy, raw or {})

    async def get(self) -> BookingPolicy:
        now = time.monotonic()
        if self._policy is None or now - self._loaded_at >= self.ttl_seconds:
            self._policy = await self._load()
            self._loaded_at = now
            logger.debug("feature_flags_loaded", policy=str(self._policy))
        return self._policy


feature_flags = FeatureFlagSnapshot()
