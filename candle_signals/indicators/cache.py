"""
Computation Cache - Memoizes EMA-family values within one update cycle.

Keys are (kind, period, sample length, cycle id). Two different histories of
the same length would otherwise share entries, so every cycle gets a fresh id
and entries of earlier cycles are dropped when a new one starts.
"""

from typing import Callable, Dict, Hashable, Tuple


CacheKey = Tuple[str, Hashable, int, int]


class ComputationCache:
    """Per-cycle memo table owned by the indicator engine."""

    def __init__(self):
        self.cycle_id = 0
        self._values: Dict[CacheKey, float] = {}
        self.hits = 0
        self.misses = 0

    def begin_cycle(self) -> int:
        """Start a new cycle, discarding entries of the previous one."""
        self.cycle_id += 1
        self._values.clear()
        return self.cycle_id

    def key(self, kind: str, period: Hashable, sample_length: int) -> CacheKey:
        return (kind, period, sample_length, self.cycle_id)

    def get_or_compute(
        self,
        kind: str,
        period: Hashable,
        sample_length: int,
        compute: Callable[[], float]
    ) -> float:
        """Return the cached value for the key, computing it on a miss."""
        key = self.key(kind, period, sample_length)
        if key in self._values:
            self.hits += 1
            return self._values[key]

        self.misses += 1
        value = compute()
        self._values[key] = value
        return value

    def clear(self) -> None:
        self._values.clear()

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)
