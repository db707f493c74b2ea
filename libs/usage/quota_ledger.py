"""
Token quota ledger in Redis.

Tracks per-user token consumption in daily and monthly buckets and answers
allow/deny questions for the chat usage guard.

Keys:
    usage:{user_id}:day:{YYYY-MM-DD}   tokens used today
    usage:{user_id}:month:{YYYY-MM}    tokens used this month
    usage:{user_id}:limits             hash with optional daily/monthly overrides
    usage:unlimited                    set of user ids without limits
"""

from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from legalchat.schemas.chat import UsageDecision

logger = structlog.get_logger(__name__)

DAY_TTL_SECONDS = 2 * 86400
MONTH_TTL_SECONDS = 32 * 86400
UNLIMITED_KEY = "usage:unlimited"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RedisQuotaLedger:
    """
    Daily/monthly token quotas backed by Redis.

    Usage:
        ledger = RedisQuotaLedger(redis_client, daily_limit=2000, monthly_limit=50000)
        decision = await ledger.check_limit(user_id, estimated_tokens=120)
        await ledger.record_usage(user_id, tokens=845)
    """

    def __init__(
        self,
        redis_client,
        daily_limit: int = 2000,
        monthly_limit: int = 50000,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.redis = redis_client
        self.daily_limit = daily_limit
        self.monthly_limit = monthly_limit
        self._clock = clock or _utcnow

    def _keys(self, user_id: str) -> tuple[str, str]:
        now = self._clock()
        return (
            f"usage:{user_id}:day:{now.strftime('%Y-%m-%d')}",
            f"usage:{user_id}:month:{now.strftime('%Y-%m')}",
        )

    async def _limits_for(self, user_id: str) -> tuple[int, int]:
        overrides = await self.redis.hgetall(f"usage:{user_id}:limits")
        daily = int(overrides.get("daily", self.daily_limit))
        monthly = int(overrides.get("monthly", self.monthly_limit))
        return daily, monthly

    async def check_limit(self, user_id: str, estimated_tokens: int) -> UsageDecision:
        """
        Decide whether ``estimated_tokens`` fit the user's remaining quota.

        Daily buckets are checked before monthly ones. A new day or month starts
        from zero because the bucket keys are date-stamped.
        """
        if await self.redis.sismember(UNLIMITED_KEY, user_id):
            return UsageDecision(allowed=True, remaining_daily=-1, remaining_monthly=-1)

        daily_limit, monthly_limit = await self._limits_for(user_id)
        day_key, month_key = self._keys(user_id)
        daily_used, monthly_used = await self.redis.mget(day_key, month_key)

        remaining_daily = daily_limit - int(daily_used or 0)
        if estimated_tokens > remaining_daily:
            return UsageDecision(
                allowed=False,
                reason="Daily token limit exceeded",
                remaining_daily=remaining_daily,
            )

        remaining_monthly = monthly_limit - int(monthly_used or 0)
        if estimated_tokens > remaining_monthly:
            return UsageDecision(
                allowed=False,
                reason="Monthly token limit exceeded",
                remaining_monthly=remaining_monthly,
            )

        return UsageDecision(
            allowed=True,
            remaining_daily=remaining_daily,
            remaining_monthly=remaining_monthly,
        )

    async def record_usage(self, user_id: str, tokens: int) -> None:
        """Add consumed tokens to the current day and month buckets."""
        day_key, month_key = self._keys(user_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.incrby(day_key, tokens)
            pipe.expire(day_key, DAY_TTL_SECONDS)
            pipe.incrby(month_key, tokens)
            pipe.expire(month_key, MONTH_TTL_SECONDS)
            await pipe.execute()

        logger.debug("Token usage recorded", user_id=user_id, tokens=tokens)

    async def set_limits(self, user_id: str, daily: Optional[int] = None, monthly: Optional[int] = None) -> None:
        """Override the default limits for one user (e.g. a paid plan)."""
        mapping = {}
        if daily is not None:
            mapping["daily"] = daily
        if monthly is not None:
            mapping["monthly"] = monthly
        if mapping:
            await self.redis.hset(f"usage:{user_id}:limits", mapping=mapping)

    async def set_unlimited(self, user_id: str, unlimited: bool = True) -> None:
        if unlimited:
            await self.redis.sadd(UNLIMITED_KEY, user_id)
        else:
            await self.redis.srem(UNLIMITED_KEY, user_id)
