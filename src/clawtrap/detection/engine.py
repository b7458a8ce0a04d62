"""Attack pattern engine.

Runs every compiled :class:`DetectionRule` against the lower-cased and the
original text, then the built-in heuristics, and collapses the findings to
one per ``(type, subtype)`` pair.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from clawtrap.detection.heuristics import (
    DEFAULT_MAX_LENGTH,
    DEFAULT_MAX_REPEATS,
    check_base64,
    check_invisible_unicode,
    check_length,
    check_repetition,
)
from clawtrap.detection.models import DetectedAttack, DetectionRule
from clawtrap.detection.rules import BUILTIN_RULES
from clawtrap.errors import NoUsableRulesError
from clawtrap.logging import get_logger

log = get_logger("clawtrap.detection.engine")

DEFAULT_MAX_SCAN_LENGTH = 10_000


def _compile(rules: Iterable[DetectionRule]) -> list[tuple[re.Pattern[str], DetectionRule]]:
    compiled: list[tuple[re.Pattern[str], DetectionRule]] = []
    seen: set[str] = set()
    for rule in rules:
        if rule.name in seen:
            log.warning("duplicate_rule_skipped", rule=rule.name)
            continue
        try:
            pattern = re.compile(rule.pattern, rule.regex_flags())
        except re.error as e:
            log.warning("rule_compile_failed", rule=rule.name, error=str(e))
            continue
        seen.add(rule.name)
        compiled.append((pattern, rule))
    return compiled


def deduplicate(attacks: Iterable[DetectedAttack]) -> list[DetectedAttack]:
    """Keep the highest-confidence finding per ``(type, subtype)``.

    First-seen order of the pairs is preserved.
    """
    best: dict[tuple[str, str], DetectedAttack] = {}
    for attack in attacks:
        current = best.get(attack.key)
        if current is None or attack.confidence > current.confidence:
            best[attack.key] = attack
    return list(best.values())


class AttackPatternEngine:
    """Scan free text for known attack patterns.

    The engine is immutable after construction and safe to share between
    concurrent connections.
    """

    def __init__(
        self,
        rules: Iterable[DetectionRule] | None = None,
        *,
        max_length: int = DEFAULT_MAX_LENGTH,
        max_repeats: int = DEFAULT_MAX_REPEATS,
        max_scan_length: int = DEFAULT_MAX_SCAN_LENGTH,
    ) -> None:
        """Compile the rule set.

        Args:
            rules: Externally loaded rules. When omitted, or when none of them
                compile, the built-in rule set is used instead.
            max_length: Input length above which ``abuse/excessive_length``
                is reported.
            max_repeats: Repeat count above which ``abuse/repetition_attack``
                is reported.
            max_scan_length: Number of leading characters the rules are
                matched against; bounds regex work on hostile input.

        Raises:
            NoUsableRulesError: If neither the given nor the built-in rules
                yield a single usable rule.
        """
        self._max_length = max_length
        self._max_repeats = max_repeats
        self._max_scan_length = max_scan_length

        compiled = _compile(rules) if rules is not None else []
        if not compiled:
            if rules is not None:
                log.warning("no_usable_rules_falling_back_to_builtin")
            compiled = _compile(BUILTIN_RULES)
        if not compiled:
            raise NoUsableRulesError("no detection rule could be compiled")

        self._compiled = compiled
        log.info("attack_pattern_engine_ready", rules=len(compiled))

    @property
    def rule_count(self) -> int:
        """Number of usable rules."""
        return len(self._compiled)

    @property
    def rules(self) -> list[DetectionRule]:
        return [rule for _, rule in self._compiled]

    def rules_by_category(self, category: str) -> list[DetectionRule]:
        """Return the usable rules belonging to *category*."""
        return [rule for _, rule in self._compiled if rule.category == category]

    def detect(self, text: Any) -> list[DetectedAttack]:
        """Return the deduplicated attacks found in *text*.

        Never raises: empty or non-string input yields an empty list.
        """
        if not isinstance(text, str) or not text:
            return []
        try:
            attacks = self._match_rules(text)
            attacks.extend(check_base64(text, self._match_rules))
            attacks.extend(check_invisible_unicode(text))
            attacks.extend(check_length(text, self._max_length))
            attacks.extend(check_repetition(text, self._max_repeats))
        except Exception:
            log.exception("detection_failed", length=len(text))
            return []
        return deduplicate(attacks)

    def _match_rules(self, text: str) -> list[DetectedAttack]:
        text = text[: self._max_scan_length]
        lowered = text.lower()
        attacks: list[DetectedAttack] = []
        for pattern, rule in self._compiled:
            match = pattern.search(lowered) or pattern.search(text)
            if match is None:
                continue
            attacks.append(
                DetectedAttack(
                    type=rule.type,
                    subtype=rule.subtype,
                    pattern_matched=match.group(0)[:200],
                    confidence=rule.confidence,
                    severity=rule.severity,
                    category=rule.category,
                )
            )
        return attacks
