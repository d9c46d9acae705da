"""Quota policy: decides whether a caller may spend another upstream request.

Three tiers are checked in strict priority order, and the first deny wins:

1. global   -- service-wide requests per day (optional)
2. minute   -- requests per identity per minute
3. daily    -- requests per identity per day

A denied request never touches a counter. An admitted request increments
every configured tier before returning, so the whole read-decide-increment
sequence completes before the caller reaches its first await.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from slidegate.config import QuotaConfig
from slidegate.store import CounterStore, GlobalDailyCounter, InMemoryCounterStore
from slidegate.windows import day_bucket, day_label, minute_bucket, window_key


class QuotaTier(str, Enum):
    """Which quota rule a decision refers to."""

    MINUTE = "minute"
    DAILY = "daily"
    GLOBAL = "global"


@dataclass(frozen=True)
class TierUsage:
    """Count and limit for one tier at decision time."""

    tier: QuotaTier
    count: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


@dataclass
class QuotaDecision:
    """Result of a single quota evaluation. Produced fresh per request."""

    allowed: bool
    tier: QuotaTier
    current_count: int
    limit_value: int
    usage: List[TierUsage] = field(default_factory=list)
    evaluated_at: float = 0.0

    def usage_for(self, tier: QuotaTier) -> Optional[TierUsage]:
        for item in self.usage:
            if item.tier == tier:
                return item
        return None


class QuotaPolicy:
    """Per-identity and global request quotas over injected counter stores."""

    def __init__(
        self,
        config: QuotaConfig,
        minute_store: Optional[CounterStore] = None,
        daily_store: Optional[CounterStore] = None,
        global_counter: Optional[GlobalDailyCounter] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.minute_store = minute_store if minute_store is not None else InMemoryCounterStore()
        self.daily_store = daily_store if daily_store is not None else InMemoryCounterStore()
        self.global_counter = global_counter if global_counter is not None else GlobalDailyCounter()
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def global_enabled(self) -> bool:
        return self.config.global_daily is not None

    def now(self) -> float:
        return self._clock()

    def evaluate(self, identity: str, now: Optional[float] = None) -> QuotaDecision:
        """Decide whether identity may make a request, counting it if so.

        Args:
            identity: Caller identity used as the counter key.
            now: Epoch seconds; defaults to the injected clock.

        Returns:
            A QuotaDecision. Denials leave every counter untouched.
        """
        return self._decide(identity, now, commit=True)

    def peek(self, identity: str, now: Optional[float] = None) -> QuotaDecision:
        """Evaluate without counting the request (the global rollover still applies)."""
        return self._decide(identity, now, commit=False)

    def _decide(
        self, identity: str, now: Optional[float], commit: bool
    ) -> QuotaDecision:
        if now is None:
            now = self._clock()
        cfg = self.config

        minute_idx = minute_bucket(now)
        day_idx = day_bucket(now, cfg.daily_window, cfg.timezone)
        minute_key = window_key(identity, minute_idx)
        day_key = window_key(identity, day_idx)

        with self._lock:
            global_count = 0
            if self.global_enabled:
                self.global_counter.roll(day_label(now, cfg.daily_window, cfg.timezone))
                global_count = self.global_counter.count
                if global_count >= cfg.global_daily:
                    return self._deny(
                        QuotaTier.GLOBAL,
                        global_count,
                        cfg.global_daily,
                        now,
                        minute=self.minute_store.get(minute_key),
                        daily=self.daily_store.get(day_key),
                        global_=global_count,
                    )

            minute_count = self.minute_store.get(minute_key)
            daily_count = self.daily_store.get(day_key)

            if minute_count >= cfg.requests_per_minute:
                return self._deny(
                    QuotaTier.MINUTE,
                    minute_count,
                    cfg.requests_per_minute,
                    now,
                    minute=minute_count,
                    daily=daily_count,
                    global_=global_count,
                )

            if daily_count >= cfg.daily_per_identity:
                return self._deny(
                    QuotaTier.DAILY,
                    daily_count,
                    cfg.daily_per_identity,
                    now,
                    minute=minute_count,
                    daily=daily_count,
                    global_=global_count,
                )

            if commit:
                minute_count = self.minute_store.increment(minute_key)
                daily_count = self.daily_store.increment(day_key)
                if self.global_enabled:
                    global_count = self.global_counter.increment()
                self.minute_store.sweep(minute_idx, cfg.retain_buckets)
                self.daily_store.sweep(day_idx, cfg.retain_buckets)

            usage = self._usage(minute_count, daily_count, global_count)
            tightest = min(usage, key=lambda u: u.remaining)
            return QuotaDecision(
                allowed=True,
                tier=tightest.tier,
                current_count=tightest.count,
                limit_value=tightest.limit,
                usage=usage,
                evaluated_at=now,
            )

    def _usage(self, minute: int, daily: int, global_: int) -> List[TierUsage]:
        cfg = self.config
        usage = [
            TierUsage(QuotaTier.MINUTE, minute, cfg.requests_per_minute),
            TierUsage(QuotaTier.DAILY, daily, cfg.daily_per_identity),
        ]
        if self.global_enabled:
            usage.append(TierUsage(QuotaTier.GLOBAL, global_, cfg.global_daily))
        return usage

    def _deny(
        self,
        tier: QuotaTier,
        count: int,
        limit: int,
        now: float,
        *,
        minute: int,
        daily: int,
        global_: int
    ) -> QuotaDecision:
        return QuotaDecision(
            allowed=False,
            tier=tier,
            current_count=count,
            limit_value=limit,
            usage=self._usage(minute, daily, global_),
            evaluated_at=now,
        )
