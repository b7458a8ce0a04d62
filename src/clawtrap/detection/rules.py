"""Detection rule sets: the built-in defaults and the YAML rule-file loader.

Rule files are YAML documents with a top-level ``patterns`` list::

    version: "1"
    category: prompt_injection
    patterns:
      - name: system_prompt_extraction
        type: prompt_injection
        subtype: system_prompt_extraction
        pattern: '(ignore|forget).{0,100}(previous|prior).{0,100}(instruction|prompt)'
        flags: gi
        confidence: 0.9
        severity: high
        category: prompt_injection

Loading is forgiving: an unreadable file or an invalid rule is logged and
skipped so that startup never fails on a single bad entry.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from clawtrap.detection.models import DetectionRule, Severity, regex_flags
from clawtrap.errors import RuleLoadError
from clawtrap.logging import get_logger

log = get_logger("clawtrap.detection.rules")

_REQUIRED_FIELDS = ("name", "type", "subtype", "pattern", "confidence", "severity")


def _rule(
    name: str,
    type_: str,
    subtype: str,
    pattern: str,
    confidence: float,
    severity: Severity,
    *,
    flags: str = "i",
) -> DetectionRule:
    return DetectionRule(
        name=name,
        type=type_,
        subtype=subtype,
        pattern=pattern,
        confidence=confidence,
        severity=severity,
        category=type_,
        flags=flags,
    )


BUILTIN_RULES: tuple[DetectionRule, ...] = (
    # --- Prompt injection ---
    _rule(
        "system_prompt_extraction",
        "prompt_injection",
        "system_prompt_extraction",
        r"(ignore|forget|disregard).{0,100}(previous|above|prior|system).{0,100}(instruction|prompt|message|context)",
        0.9,
        Severity.HIGH,
    ),
    _rule(
        "instruction_override",
        "prompt_injection",
        "instruction_override",
        r"(new instruction|override|replace).{0,100}(system|instruction|rule)",
        0.85,
        Severity.HIGH,
    ),
    _rule(
        "role_manipulation",
        "prompt_injection",
        "role_manipulation",
        r"(you are now|act as|pretend to be|roleplay as).{0,100}(admin|root|developer|hacker|unrestricted)",
        0.8,
        Severity.HIGH,
    ),
    # Chat-template delimiters are case sensitive
    _rule(
        "delimiter_injection",
        "prompt_injection",
        "delimiter_injection",
        r"(\[INST\]|\[/INST\]|<\|im_start\|>|<\|im_end\|>|<<SYS>>|###\s*(?:system|instruction)|```system)",
        0.95,
        Severity.CRITICAL,
        flags="",
    ),
    _rule(
        "context_manipulation",
        "prompt_injection",
        "context_manipulation",
        r"(the following|below is|here is).{0,100}(system prompt|instruction|your rules)",
        0.75,
        Severity.MEDIUM,
    ),
    _rule(
        "output_format_injection",
        "prompt_injection",
        "output_format_injection",
        r"(output|respond|reply).{0,100}(json|xml|format|only).{0,100}(no|without|skip).{0,100}(explanation|filter|safety)",
        0.7,
        Severity.MEDIUM,
    ),
    # --- Jailbreak ---
    _rule(
        "dan_jailbreak",
        "jailbreak",
        "DAN_variants",
        r"(do anything now|\bdan\b|jailbreak|unrestricted mode|no limitations)",
        0.95,
        Severity.CRITICAL,
    ),
    _rule(
        "developer_mode",
        "jailbreak",
        "developer_mode",
        r"((developer|dev|debug|maintenance) mode.{0,100}(enable|activate|\bon\b)"
        r"|(enable|activate|turn on|switch to).{0,100}(developer|dev|debug|maintenance) mode)",
        0.9,
        Severity.CRITICAL,
    ),
    _rule(
        "evil_persona",
        "jailbreak",
        "character_roleplay",
        r"(evil|unrestricted|uncensored|unfiltered).{0,100}\b(version|mode|persona|ai|assistant)\b",
        0.85,
        Severity.HIGH,
    ),
    _rule(
        "hypothetical_framing",
        "jailbreak",
        "hypothetical_framing",
        r"(hypothetically|theoretically|imagine if|what if|in a fictional).{0,100}(could you|would you|how would)",
        0.6,
        Severity.MEDIUM,
    ),
    _rule(
        "encoded_instruction",
        "jailbreak",
        "base64_encoding",
        r"(decode|interpret|execute|follow).{0,100}(base64|encoded|encrypted)",
        0.8,
        Severity.HIGH,
    ),
    _rule(
        "grandma_exploit",
        "jailbreak",
        "character_roleplay",
        r"(grandma|grandmother).{0,100}(used to|would tell|recipe|story).{0,100}(napalm|explosive|hack|illegal)",
        0.9,
        Severity.HIGH,
    ),
    # --- Tool abuse ---
    _rule(
        "code_execution_request",
        "tool_abuse",
        "arbitrary_code_execution",
        r"\b(execute|run|eval)\b.{0,100}\b(code|script|command|shell|bash|python|javascript)",
        0.8,
        Severity.CRITICAL,
    ),
    _rule(
        "file_system_access",
        "tool_abuse",
        "file_system_access",
        r"\b(read|write|delete|access|list)\b.{0,100}(\bfiles?\b|\bdirector(y|ies)\b|\bfolders?\b|\bpath\b|/etc|/home|/root|~/)",
        0.75,
        Severity.HIGH,
    ),
    _rule(
        "network_request",
        "tool_abuse",
        "network_requests",
        r"\b(fetch|request|call|connect|curl|wget)\b.{0,100}\b(url|api|endpoint|server|https?)\b",
        0.65,
        Severity.MEDIUM,
    ),
    _rule(
        "data_exfiltration",
        "tool_abuse",
        "data_exfiltration",
        r"\b(send|upload|post|transfer)\b.{0,100}\b(data|information|credentials|secrets|keys)\b.{0,100}\b(server|api|webhook|url)",
        0.85,
        Severity.CRITICAL,
    ),
    _rule(
        "credential_access",
        "tool_abuse",
        "credential_access",
        r"(api.?key|\bsecret|\bpassword|\btoken|credential|aws.?access|private.?key)",
        0.7,
        Severity.HIGH,
    ),
    # --- Agent manipulation ---
    _rule(
        "agent_hijacking",
        "agent_manipulation",
        "multi_agent_hijacking",
        r"\b(tell|instruct|command|order)\b.{0,100}\b(other|another|next)\b.{0,100}\b(agents?|assistants?|ai)\b",
        0.75,
        Severity.HIGH,
    ),
    _rule(
        "workspace_escape",
        "agent_manipulation",
        "workspace_escape",
        r"(escape|break out|leave|exit).{0,100}(sandbox|container|workspace|environment)",
        0.85,
        Severity.CRITICAL,
    ),
    _rule(
        "permission_escalation",
        "agent_manipulation",
        "permission_escalation",
        r"\b(elevate|escalate|increase|grant)\b.{0,100}\b(permissions?|privileges?|access|role)",
        0.8,
        Severity.CRITICAL,
    ),
    # --- Indirect injection ---
    _rule(
        "indirect_via_content",
        "indirect_injection",
        "via_fake_content",
        r"(important instruction|ignore safety|follow these steps|execute immediately)",
        0.7,
        Severity.HIGH,
    ),
)


def validate_rule(data: Mapping[str, Any]) -> list[str]:
    """Return a list of problems with a raw rule mapping (empty if valid)."""
    errors = [f"Missing {name}" for name in _REQUIRED_FIELDS if not data.get(name)]

    pattern = data.get("pattern")
    if pattern:
        try:
            re.compile(str(pattern), regex_flags(str(data.get("flags") or "i")))
        except re.error as e:
            errors.append(f"Invalid regex: {e}")

    confidence = data.get("confidence")
    if confidence is not None:
        try:
            value = float(confidence)
        except (TypeError, ValueError):
            errors.append(f"Confidence is not a number: {confidence!r}")
        else:
            if not 0 < value <= 1:
                errors.append("Confidence must be in (0, 1]")

    severity = data.get("severity")
    if severity and severity not in {s.value for s in Severity}:
        errors.append(f"Invalid severity: {severity}")

    return errors


def rule_from_mapping(data: Mapping[str, Any]) -> DetectionRule:
    """Build a :class:`DetectionRule` from a raw mapping.

    Raises:
        RuleLoadError: If the mapping fails :func:`validate_rule`.
    """
    errors = validate_rule(data)
    if errors:
        raise RuleLoadError(f"rule {data.get('name', '<unnamed>')!r}: {'; '.join(errors)}")
    return DetectionRule(
        name=str(data["name"]),
        type=str(data["type"]),
        subtype=str(data["subtype"]),
        pattern=str(data["pattern"]),
        confidence=float(data["confidence"]),
        severity=Severity(data["severity"]),
        category=str(data.get("category") or data["type"]),
        flags=str(data.get("flags") or "i"),
        description=str(data.get("description") or ""),
    )


def load_rules(patterns_dir: str | Path) -> list[DetectionRule]:
    """Load every rule from the ``*.yml`` / ``*.yaml`` files in *patterns_dir*.

    Files are read in name order so the resulting rule order is stable.
    Bad files and bad rules are skipped with a warning.
    """
    directory = Path(patterns_dir)
    if not directory.is_dir():
        log.info("patterns_dir_not_found", patterns_dir=str(directory))
        return []

    rules: list[DetectionRule] = []
    files = sorted(p for p in directory.iterdir() if p.suffix in (".yml", ".yaml"))
    for path in files:
        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            log.warning("rule_file_load_failed", file=path.name, error=str(e))
            continue

        entries = parsed.get("patterns") if isinstance(parsed, dict) else None
        if not isinstance(entries, list):
            log.warning("rule_file_has_no_patterns", file=path.name)
            continue

        file_category = parsed.get("category")
        loaded = 0
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            try:
                rules.append(rule_from_mapping({"category": file_category, **entry}))
                loaded += 1
            except RuleLoadError as e:
                log.warning("rule_skipped", file=path.name, error=str(e))
        log.info("rule_file_loaded", file=path.name, rules=loaded)

    return rules
