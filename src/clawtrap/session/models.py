"""Session registry data models."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from clawtrap.detection.models import DetectedAttack


@dataclass
class Session:
    """A live connection or conversation with one source.

    Only the :class:`SessionRegistry` that created it mutates a session.
    """

    id: str
    source_identity: str
    started_at: float = field(default_factory=time.time)
    message_count: int = 0
    detected_attacks: list[DetectedAttack] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def age(self, now: float | None = None) -> float:
        """Seconds since the session started."""
        return (now if now is not None else time.time()) - self.started_at

    def summary(self, now: float | None = None) -> dict[str, Any]:
        """JSON-serialisable summary for logging and reporting."""
        return {
            "session_id": self.id,
            "source_identity": self.source_identity,
            "duration_ms": round(self.age(now) * 1000),
            "message_count": self.message_count,
            "detected_attacks": [a.to_dict() for a in self.detected_attacks],
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of admission control for one connection attempt."""

    allowed: bool
    reason: str | None = None
    retry_after: float | None = None  # seconds

    def __bool__(self) -> bool:
        return self.allowed
