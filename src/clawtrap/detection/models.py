"""Data models for attack detection and agent classification."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Severity(StrEnum):
    """Ordered severity levels of a detected attack."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Position in the ordering, ``LOW`` = 0."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {sev: i for i, sev in enumerate(Severity)}


def regex_flags(flags: str) -> int:
    """Translate a JS-style flag string (``"gi"``) into :mod:`re` flags.

    ``g`` and ``u`` have no Python equivalent and are ignored.
    """
    value = 0
    for flag in flags:
        if flag == "i":
            value |= re.IGNORECASE
        elif flag == "m":
            value |= re.MULTILINE
        elif flag == "s":
            value |= re.DOTALL
    return value


class SignalKind(StrEnum):
    """Families of evidence the agent classifier fuses."""

    USER_AGENT = "user_agent"
    TIMING = "timing"
    BEHAVIOR = "behavior"
    GOAL_HIJACK = "goal_hijack"
    HEADER_ANOMALY = "header_anomaly"


@dataclass(frozen=True)
class DetectionRule:
    """A declarative detection rule: a regex plus the finding it produces."""

    name: str
    type: str
    subtype: str
    pattern: str
    confidence: float
    severity: Severity
    category: str
    flags: str = "i"
    description: str = ""

    def regex_flags(self) -> int:
        return regex_flags(self.flags)


@dataclass(frozen=True)
class DetectedAttack:
    """A single finding produced by the attack pattern engine."""

    type: str
    subtype: str
    pattern_matched: str
    confidence: float  # (0, 1]
    severity: Severity
    category: str

    @property
    def key(self) -> tuple[str, str]:
        """Deduplication key."""
        return (self.type, self.subtype)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        return {
            "type": self.type,
            "subtype": self.subtype,
            "pattern_matched": self.pattern_matched,
            "confidence": round(self.confidence, 2),
            "severity": self.severity.value,
            "category": self.category,
        }


@dataclass(frozen=True)
class AgentSignal:
    """One piece of evidence that the source is an autonomous agent."""

    kind: SignalKind
    indicator: str
    weight: float  # [0, 1]

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "indicator": self.indicator, "weight": self.weight}


@dataclass(frozen=True)
class TimingProfile:
    """Summary statistics of an identity's recent response times (ms)."""

    samples: tuple[float, ...]
    mean: float
    stddev: float
    median: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "samples": list(self.samples),
            "mean_ms": round(self.mean),
            "stddev_ms": round(self.stddev),
            "median_ms": self.median,
        }


@dataclass(frozen=True)
class AgentClassification:
    """Result of fusing every emitted signal for one source."""

    is_ai_agent: bool
    confidence: float
    signals: tuple[AgentSignal, ...] = field(default_factory=tuple)
    timing_profile: TimingProfile | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_ai_agent": self.is_ai_agent,
            "confidence": self.confidence,
            "signals": [s.to_dict() for s in self.signals],
            "timing_profile": self.timing_profile.to_dict() if self.timing_profile else None,
        }
