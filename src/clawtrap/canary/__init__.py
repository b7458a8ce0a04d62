"""Canary tokens: fake credentials planted in bait content."""

from clawtrap.canary.generator import BAIT_TOKEN_TYPES, CanaryGenerator
from clawtrap.canary.models import CanaryEvent, CanaryEventType, CanaryToken, CanaryTokenType
from clawtrap.canary.reporter import CanaryReporter

__all__ = [
    "BAIT_TOKEN_TYPES",
    "CanaryEvent",
    "CanaryEventType",
    "CanaryGenerator",
    "CanaryReporter",
    "CanaryToken",
    "CanaryTokenType",
]
