"""Finding records carried by the reporting pipeline.

Findings are plain JSON-serialisable dictionaries with an ``event_type`` and
a ``timestamp``. The builders here give each kind of finding a stable shape.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from clawtrap.detection.models import AgentClassification, DetectedAttack


class FindingType(StrEnum):
    """``event_type`` values of the findings emitted by the honeypot."""

    ATTACK_DETECTED = "attack_detected"
    AGENT_CLASSIFIED = "agent_classified"
    CANARY_TRIGGERED = "canary_triggered"
    TOOL_CALL_ATTEMPTED = "tool_call_attempted"
    SESSION_CLOSED = "session_closed"
    LOG = "log"


@dataclass
class QueuedEvent:
    """A finding waiting in the pipeline buffer."""

    finding: dict[str, Any]
    priority: bool = False
    enqueued_at: float = field(default_factory=time.monotonic)


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


def to_jsonable(value: Any) -> Any:
    """Recursively coerce *value* into JSON-compatible types."""
    if value is None or isinstance(value, str | int | float | bool):
        return value
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        return [to_jsonable(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_jsonable(to_dict())
    return str(value)


def attack_finding(
    attacks: Iterable[DetectedAttack],
    *,
    source_identity: str,
    session_id: str | None,
    content: str,
    instance_id: str | None = None,
) -> dict[str, Any]:
    """Finding for the attacks detected in one message."""
    attack_list = [a.to_dict() for a in attacks]
    return {
        "event_type": FindingType.ATTACK_DETECTED.value,
        "timestamp": utc_now(),
        "instance_id": instance_id,
        "source": {"identity": source_identity, "session_id": session_id},
        "content_preview": content[:200],
        "content_length": len(content),
        "attacks": attack_list,
        "max_severity": max(
            (a["severity"] for a in attack_list),
            key=("low", "medium", "high", "critical").index,
            default=None,
        ),
    }


def classification_finding(
    classification: AgentClassification,
    *,
    source_identity: str,
    session_id: str | None,
    instance_id: str | None = None,
) -> dict[str, Any]:
    """Finding for a source classified as an autonomous agent."""
    return {
        "event_type": FindingType.AGENT_CLASSIFIED.value,
        "timestamp": utc_now(),
        "instance_id": instance_id,
        "source": {"identity": source_identity, "session_id": session_id},
        "classification": classification.to_dict(),
    }


def tool_call_finding(
    tool_name: str,
    arguments: Any,
    *,
    source_identity: str,
    session_id: str | None,
    instance_id: str | None = None,
) -> dict[str, Any]:
    """Finding for a tool invocation attempted by a client."""
    return {
        "event_type": FindingType.TOOL_CALL_ATTEMPTED.value,
        "timestamp": utc_now(),
        "instance_id": instance_id,
        "source": {"identity": source_identity, "session_id": session_id},
        "tool_name": tool_name,
        "arguments": to_jsonable(arguments),
    }


def session_finding(
    summary: Mapping[str, Any], *, instance_id: str | None = None
) -> dict[str, Any]:
    """Finding summarizing a closed session."""
    return {
        "event_type": FindingType.SESSION_CLOSED.value,
        "timestamp": utc_now(),
        "instance_id": instance_id,
        "session": to_jsonable(summary),
    }
