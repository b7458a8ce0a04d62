"""Bounded per-identity response timing history."""

from __future__ import annotations

import math
import threading
from collections import OrderedDict, deque

from clawtrap.detection.models import TimingProfile


def summarize(samples: list[float] | tuple[float, ...]) -> TimingProfile | None:
    """Compute mean, population stddev and upper median of *samples*."""
    if not samples:
        return None
    ordered = sorted(samples)
    mean = sum(samples) / len(samples)
    variance = sum((t - mean) ** 2 for t in samples) / len(samples)
    return TimingProfile(
        samples=tuple(samples),
        mean=mean,
        stddev=math.sqrt(variance),
        median=ordered[len(ordered) // 2],
    )


class TimingTracker:
    """Ring buffer of recent response times per source identity.

    At most ``max_identities`` identities are tracked; :meth:`cleanup`
    removes the least recently updated half once that is exceeded.
    """

    def __init__(self, max_samples: int = 50, max_identities: int = 10000) -> None:
        self._max_samples = max_samples
        self._max_identities = max_identities
        self._history: OrderedDict[str, deque[float]] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._history

    def record(self, identity: str, response_time_ms: float) -> list[float]:
        """Append a sample and return a snapshot of the identity's history."""
        with self._lock:
            history = self._history.get(identity)
            if history is None:
                history = deque(maxlen=self._max_samples)
                self._history[identity] = history
            else:
                self._history.move_to_end(identity)
            history.append(float(response_time_ms))
            return list(history)

    def samples(self, identity: str) -> list[float]:
        with self._lock:
            history = self._history.get(identity)
            return list(history) if history else []

    def profile(self, identity: str) -> TimingProfile | None:
        """Return the timing profile for *identity*, or None without samples."""
        return summarize(self.samples(identity))

    def cleanup(self, max_identities: int | None = None) -> int:
        """Evict the oldest half of identities when over capacity.

        Returns:
            Number of identities removed.
        """
        limit = self._max_identities if max_identities is None else max_identities
        with self._lock:
            if len(self._history) <= limit:
                return 0
            to_remove = len(self._history) // 2
            for _ in range(to_remove):
                self._history.popitem(last=False)
            return to_remove
