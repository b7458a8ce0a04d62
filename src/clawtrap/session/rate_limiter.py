"""Per-source connection rate limiting."""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field

from clawtrap.session.models import AdmissionDecision


@dataclass
class RateLimitState:
    """Track admission timestamps for a source."""

    timestamps: list[float] = field(default_factory=list)


class RateLimiter:
    """Sliding-window rate limiter for new connections."""

    def __init__(
        self,
        max_per_window: int = 20,
        window_seconds: float = 60.0,
    ) -> None:
        """Initialize rate limiter.

        Args:
            max_per_window: Maximum admissions per source per window.
            window_seconds: Time window in seconds.
        """
        self._max_per_window = max_per_window
        self._window_seconds = window_seconds
        self._states: dict[str, RateLimitState] = defaultdict(RateLimitState)
        self._lock = threading.Lock()

    def check(self, identity: str, now: float | None = None) -> AdmissionDecision:
        """Check, and on success record, an admission for *identity*.

        Args:
            identity: The source identity.
            now: Current time (seconds since the epoch); defaults to now.

        Returns:
            An allowed decision, or a rejection carrying the seconds until
            the oldest admission leaves the window.
        """
        now = time.time() if now is None else now
        with self._lock:
            state = self._states[identity]

            # Clean old timestamps
            state.timestamps = [
                ts for ts in state.timestamps if now - ts < self._window_seconds
            ]

            if len(state.timestamps) >= self._max_per_window:
                retry_after = self._window_seconds - (now - state.timestamps[0])
                return AdmissionDecision(
                    allowed=False,
                    reason="rate_limited",
                    retry_after=max(0.0, retry_after),
                )

            state.timestamps.append(now)
            return AdmissionDecision(allowed=True)

    def cleanup(self, now: float | None = None) -> int:
        """Forget sources with no admission inside the window.

        Returns:
            Number of sources forgotten.
        """
        now = time.time() if now is None else now
        with self._lock:
            idle = [
                identity
                for identity, state in self._states.items()
                if not state.timestamps or now - state.timestamps[-1] >= self._window_seconds
            ]
            for identity in idle:
                del self._states[identity]
        return len(idle)

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
