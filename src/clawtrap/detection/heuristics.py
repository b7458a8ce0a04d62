"""Heuristic checks that run independently of the rule set.

Covers encoded payloads, invisible Unicode, oversized input and token
flooding. Each check returns a list of :class:`DetectedAttack`.
"""

from __future__ import annotations

import base64
import binascii
import re
from collections import Counter
from collections.abc import Callable

from clawtrap.detection.models import DetectedAttack, Severity

# Contiguous runs of the base64 alphabet, optional padding
_BASE64_BLOB = re.compile(r"[A-Za-z0-9+/]{50,}={0,2}")

# Zero-width, joiner, directional and BOM code points
_INVISIBLE_UNICODE = re.compile(r"[\u200b-\u200f\u2028-\u202f\u2060-\u2064\u2066-\u2069\ufeff]")

DEFAULT_MAX_LENGTH = 50_000
DEFAULT_MAX_REPEATS = 50


def decode_base64_blob(blob: str) -> str | None:
    """Decode a base64 run to text, or return None if it is not decodable."""
    stripped = blob.rstrip("=")
    # A single trailing character can never complete a byte
    if len(stripped) % 4 == 1:
        stripped = stripped[:-1]
    if not stripped:
        return None
    try:
        raw = base64.b64decode(stripped + "=" * (-len(stripped) % 4), validate=True)
    except (binascii.Error, ValueError):
        return None
    return raw.decode("utf-8", errors="ignore")


def check_base64(
    text: str,
    detect: Callable[[str], list[DetectedAttack]],
) -> list[DetectedAttack]:
    """Flag base64 blobs whose decoded text itself triggers detections.

    *detect* must not recurse into this check again; the engine passes a
    depth-limited detector so nested encodings stop after one level.
    """
    for match in _BASE64_BLOB.finditer(text):
        decoded = decode_base64_blob(match.group(0))
        if decoded and detect(decoded):
            return [
                DetectedAttack(
                    type="obfuscation",
                    subtype="base64_encoded_attack",
                    pattern_matched=match.group(0)[:50] + "...",
                    confidence=0.9,
                    severity=Severity.CRITICAL,
                    category="obfuscation",
                )
            ]
    return []


def check_invisible_unicode(text: str) -> list[DetectedAttack]:
    """Flag zero-width and bidi-control characters."""
    count = len(_INVISIBLE_UNICODE.findall(text))
    if not count:
        return []
    return [
        DetectedAttack(
            type="obfuscation",
            subtype="unicode_tricks",
            pattern_matched=f"invisible unicode characters detected (count={count})",
            confidence=0.7,
            severity=Severity.MEDIUM,
            category="obfuscation",
        )
    ]


def check_length(text: str, max_length: int = DEFAULT_MAX_LENGTH) -> list[DetectedAttack]:
    """Flag input longer than *max_length* characters."""
    if len(text) <= max_length:
        return []
    return [
        DetectedAttack(
            type="abuse",
            subtype="excessive_length",
            pattern_matched=f"input length: {len(text)}",
            confidence=0.6,
            severity=Severity.MEDIUM,
            category="abuse",
        )
    ]


def check_repetition(text: str, max_repeats: int = DEFAULT_MAX_REPEATS) -> list[DetectedAttack]:
    """Flag any token longer than 3 characters repeated more than *max_repeats* times."""
    counts = Counter(word for word in text.split() if len(word) > 3)
    if not counts:
        return []
    word, repeats = counts.most_common(1)[0]
    if repeats <= max_repeats:
        return []
    return [
        DetectedAttack(
            type="abuse",
            subtype="repetition_attack",
            pattern_matched=f"word repeated {repeats} times: {word[:40]}",
            confidence=0.65,
            severity=Severity.LOW,
            category="abuse",
        )
    ]
