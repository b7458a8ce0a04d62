"""Live session registry with admission control and eviction.

All mutation happens under one lock, so a session is either fully present
or fully absent for every reader. Session ids are random UUIDs and are
never handed out twice.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
import time
import uuid
from collections.abc import Iterable
from typing import Any

from clawtrap.detection.models import DetectedAttack
from clawtrap.errors import SessionNotFoundError
from clawtrap.logging import get_logger
from clawtrap.session.models import AdmissionDecision, Session
from clawtrap.session.rate_limiter import RateLimiter

log = get_logger("clawtrap.session.registry")

EVICTION_FRACTION = 0.1


class SessionRegistry:
    """Track live sessions, enforce capacity and expire old ones."""

    def __init__(
        self,
        *,
        max_sessions: int = 10000,
        max_age_seconds: float = 3600.0,
        sweep_interval_seconds: float = 60.0,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self._max_sessions = max_sessions
        self._max_age_seconds = max_age_seconds
        self._sweep_interval_seconds = sweep_interval_seconds
        self._rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()
        self._running = False
        self._task: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    @property
    def is_running(self) -> bool:
        return self._running

    def admit(self, identity: str) -> AdmissionDecision:
        """Apply per-source connection-rate admission control."""
        decision = self._rate_limiter.check(identity)
        if not decision.allowed:
            log.warning(
                "admission_rejected",
                identity=identity,
                reason=decision.reason,
                retry_after=round(decision.retry_after or 0.0, 1),
            )
        return decision

    def create(self, identity: str, metadata: dict[str, Any] | None = None) -> Session:
        """Register a new session, evicting the oldest ones when full."""
        session = Session(
            id=uuid.uuid4().hex,
            source_identity=identity,
            metadata=dict(metadata or {}),
        )
        with self._lock:
            evicted = self._evict_for_capacity()
            self._sessions[session.id] = session
            live = len(self._sessions)

        if evicted:
            log.warning("sessions_evicted_for_capacity", evicted=len(evicted), live=live)
        log.debug("session_created", session_id=session.id, identity=identity)
        return session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Session | None:
        """Remove a session; returns it, or None if it was already gone."""
        with self._lock:
            return self._sessions.pop(session_id, None)

    def sessions(self) -> list[Session]:
        """Snapshot of the live sessions."""
        with self._lock:
            return list(self._sessions.values())

    def record_message(
        self, session_id: str, attacks: Iterable[DetectedAttack] = ()
    ) -> Session:
        """Count one message on a session and accumulate its attacks.

        Raises:
            SessionNotFoundError: If the session is unknown or was removed.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            session.message_count += 1
            session.detected_attacks.extend(attacks)
            return session

    def mark(self, session_id: str, flag: str) -> bool:
        """Set a boolean metadata flag once.

        Returns:
            True if the flag was newly set, False if it was already set.

        Raises:
            SessionNotFoundError: If the session is unknown or was removed.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            if session.metadata.get(flag):
                return False
            session.metadata[flag] = True
            return True

    def sweep(self, now: float | None = None) -> int:
        """Remove sessions older than the maximum age.

        Returns:
            Number of sessions removed.
        """
        now = time.time() if now is None else now
        with self._lock:
            expired = [
                sid
                for sid, session in self._sessions.items()
                if session.age(now) > self._max_age_seconds
            ]
            for sid in expired:
                del self._sessions[sid]

        self._rate_limiter.cleanup(now)
        if expired:
            log.info("sessions_expired", count=len(expired))
        return len(expired)

    async def start(self) -> None:
        """Start the background age sweep."""
        if self._running:
            log.warning("session_sweep_already_running")
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        log.info("session_sweep_started", interval=self._sweep_interval_seconds)

    async def stop(self) -> None:
        """Stop the background age sweep."""
        self._running = False
        task = self._task
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            self._task = None
        log.info("session_sweep_stopped")

    def _evict_for_capacity(self) -> list[Session]:
        # Caller holds the lock
        if len(self._sessions) < self._max_sessions:
            return []
        count = max(1, int(len(self._sessions) * EVICTION_FRACTION))
        oldest = sorted(self._sessions.values(), key=lambda s: s.started_at)[:count]
        for session in oldest:
            del self._sessions[session.id]
        return oldest

    async def _sweep_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._sweep_interval_seconds)
                if not self._running:
                    break
                self.sweep()
            except asyncio.CancelledError:
                break
            except Exception:
                log.exception("session_sweep_error")
