"""Counter storage for quota accounting.

Counters live in process memory only; a restart clears them. Anything that
implements the CounterStore protocol (e.g. a Redis-backed store for
multi-instance deployments) can be handed to the QuotaPolicy instead.
"""

from dataclasses import dataclass, field
from typing import Dict, Protocol

from slidegate.windows import key_bucket


class CounterStore(Protocol):
    """Mapping from window key to request count."""

    def get(self, key: str) -> int:
        """Return the count for key, or 0 if absent."""
        ...

    def increment(self, key: str) -> int:
        """Add one to the count for key and return the new value."""
        ...

    def sweep(self, current_bucket: int, retain: int = 1) -> int:
        """Evict keys whose bucket is older than current_bucket - retain.

        Returns:
            The number of evicted keys.
        """
        ...

    def __len__(self) -> int:
        ...


@dataclass
class InMemoryCounterStore:
    """Dict-backed CounterStore with opportunistic eviction."""

    _counts: Dict[str, int] = field(default_factory=dict)

    def get(self, key: str) -> int:
        return self._counts.get(key, 0)

    def increment(self, key: str) -> int:
        value = self.get(key) + 1
        self._counts[key] = value
        return value

    def sweep(self, current_bucket: int, retain: int = 1) -> int:
        cutoff = current_bucket - retain
        stale = [key for key in self._counts if key_bucket(key) < cutoff]
        for key in stale:
            del self._counts[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._counts)


@dataclass
class GlobalDailyCounter:
    """Single service-wide counter, reset lazily on the first request of a new day."""

    count: int = 0
    day: str = ""

    def roll(self, today: str) -> bool:
        """Reset the counter if ``today`` differs from the stored day.

        Returns:
            True if the counter was reset.
        """
        if self.day == today:
            return False
        self.day = today
        self.count = 0
        return True

    def increment(self) -> int:
        self.count += 1
        return self.count
