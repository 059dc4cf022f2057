"""
Rates from monotonic counters sampled at irregular intervals.

The computer keeps the previous sample of every entity per session. The
first sample of an entity yields 0. A counter that went backwards (reset or
wrap) also yields 0, and its new value becomes the baseline for the next
call either way.
"""

import time
from typing import Dict, Optional

from hostmetrics.config import MIN_RATE_INTERVAL_SECONDS
from hostmetrics.models import CounterSample


def now_ms() -> int:
    return int(time.time() * 1000)


class RateComputer:
    """
    Per-session table of prior counter samples.

    Entity keys are namespaced by source, e.g. ``diskstats:sda:read`` or
    ``netdev:eth0:rx``, so two tools reporting the same device never share a
    baseline.
    """

    def __init__(self, logger=None, min_interval_seconds: float = MIN_RATE_INTERVAL_SECONDS):
        self.logger = logger
        self.min_interval_seconds = min_interval_seconds
        self._samples: Dict[str, Dict[str, CounterSample]] = {}

    def _swap(self, session_id: str, entity_key: str, counter_value: int,
              timestamp_ms: int) -> Optional[CounterSample]:
        table = self._samples.setdefault(session_id, {})
        previous = table.get(entity_key)
        table[entity_key] = CounterSample(entity_key, counter_value, timestamp_ms)
        return previous

    def update(self, session_id: str, entity_key: str, counter_value: int,
               timestamp_ms: int) -> float:
        """
        Record a counter sample and return the rate per second since the last one.

        Args:
            session_id: Session the entity belongs to.
            entity_key: Namespaced entity identifier.
            counter_value: Current cumulative counter value.
            timestamp_ms: Sample time in epoch milliseconds.

        Returns:
            ``max(0, new - old) / max(min_interval, elapsed_seconds)``, or 0.0
            for the first sample.
        """
        previous = self._swap(session_id, entity_key, counter_value, timestamp_ms)
        if previous is None:
            return 0.0

        delta = counter_value - previous.counter_value
        if delta < 0:
            if self.logger:
                self.logger.debug(f'Counter {entity_key} went backwards in session {session_id}; '
                                  f'treating as reset')
            return 0.0
        elapsed = max(self.min_interval_seconds, (timestamp_ms - previous.timestamp_ms) / 1000)
        return delta / elapsed

    def delta(self, session_id: str, entity_key: str, counter_value: int,
              timestamp_ms: int) -> Optional[int]:
        """
        Record a counter sample and return the clamped raw increase.

        Returns:
            None for the first sample, otherwise ``max(0, new - old)``.
        """
        previous = self._swap(session_id, entity_key, counter_value, timestamp_ms)
        if previous is None:
            return None
        return max(0, counter_value - previous.counter_value)

    def has_session(self, session_id: str) -> bool:
        return session_id in self._samples

    def destroy(self, session_id: str) -> None:
        """Drop every stored sample for ``session_id``."""
        self._samples.pop(session_id, None)
