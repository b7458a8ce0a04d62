"""Attack detection and agent classification.

Re-exports the public API for convenience::

    from clawtrap.detection import AttackPatternEngine, AgentClassifier
"""

from clawtrap.detection.classifier import GOAL_HIJACK_TRAPS, AgentClassifier, fuse_confidence
from clawtrap.detection.engine import AttackPatternEngine
from clawtrap.detection.models import (
    AgentClassification,
    AgentSignal,
    DetectedAttack,
    DetectionRule,
    Severity,
    SignalKind,
    TimingProfile,
)
from clawtrap.detection.rules import BUILTIN_RULES, load_rules, validate_rule
from clawtrap.detection.timing import TimingTracker

__all__ = [
    "AgentClassification",
    "AgentClassifier",
    "AgentSignal",
    "AttackPatternEngine",
    "BUILTIN_RULES",
    "DetectedAttack",
    "DetectionRule",
    "GOAL_HIJACK_TRAPS",
    "Severity",
    "SignalKind",
    "TimingProfile",
    "TimingTracker",
    "fuse_confidence",
    "load_rules",
    "validate_rule",
]
