"""Tests for detection rule validation and YAML rule loading."""

import dataclasses
import re
import textwrap
from pathlib import Path

import pytest

from clawtrap.detection.models import DetectionRule, Severity, regex_flags
from clawtrap.detection.rules import BUILTIN_RULES, load_rules, rule_from_mapping, validate_rule
from clawtrap.errors import RuleLoadError


def _valid_mapping(**overrides):
    data = {
        "name": "open_sesame",
        "type": "recon",
        "subtype": "magic_words",
        "pattern": r"open\s+sesame",
        "confidence": 0.5,
        "severity": "low",
    }
    data.update(overrides)
    return data


def _write(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content), encoding="utf-8")


class TestBuiltinRules:
    """Sanity checks on the built-in rule set."""

    def test_every_builtin_rule_validates(self) -> None:
        for rule in BUILTIN_RULES:
            assert validate_rule(dataclasses.asdict(rule)) == [], rule.name

    def test_names_are_unique(self) -> None:
        names = [rule.name for rule in BUILTIN_RULES]
        assert len(names) == len(set(names))

    def test_covers_expected_categories(self) -> None:
        categories = {rule.category for rule in BUILTIN_RULES}
        assert {
            "prompt_injection",
            "jailbreak",
            "tool_abuse",
            "agent_manipulation",
            "indirect_injection",
        } <= categories

    def test_confidences_in_range(self) -> None:
        assert all(0 < rule.confidence <= 1 for rule in BUILTIN_RULES)


class TestRegexFlags:
    """Tests for JS-style flag translation."""

    def test_case_insensitive(self) -> None:
        assert regex_flags("gi") == re.IGNORECASE

    def test_multiline_dotall(self) -> None:
        assert regex_flags("ms") == re.MULTILINE | re.DOTALL

    def test_unsupported_flags_ignored(self) -> None:
        assert regex_flags("gu") == 0
        assert regex_flags("") == 0

    def test_rule_uses_flags(self) -> None:
        rule = rule_from_mapping(_valid_mapping(flags="g"))
        assert rule.regex_flags() == 0


class TestValidateRule:
    """Tests for validate_rule."""

    def test_valid(self) -> None:
        assert validate_rule(_valid_mapping()) == []

    def test_missing_fields(self) -> None:
        errors = validate_rule({"name": "lonely"})
        assert "Missing type" in errors
        assert "Missing pattern" in errors
        assert "Missing severity" in errors

    def test_invalid_regex(self) -> None:
        errors = validate_rule(_valid_mapping(pattern="(unclosed"))
        assert any(e.startswith("Invalid regex") for e in errors)

    @pytest.mark.parametrize("confidence", [1.5, -0.2])
    def test_confidence_out_of_range(self, confidence: float) -> None:
        assert "Confidence must be in (0, 1]" in validate_rule(_valid_mapping(confidence=confidence))

    def test_confidence_not_a_number(self) -> None:
        errors = validate_rule(_valid_mapping(confidence="very"))
        assert any(e.startswith("Confidence is not a number") for e in errors)

    def test_unknown_severity(self) -> None:
        assert "Invalid severity: urgent" in validate_rule(_valid_mapping(severity="urgent"))


class TestRuleFromMapping:
    """Tests for rule_from_mapping."""

    def test_builds_rule(self) -> None:
        rule = rule_from_mapping(_valid_mapping(description="test rule"))
        assert rule == DetectionRule(
            name="open_sesame",
            type="recon",
            subtype="magic_words",
            pattern=r"open\s+sesame",
            confidence=0.5,
            severity=Severity.LOW,
            category="recon",
            flags="i",
            description="test rule",
        )

    def test_explicit_category(self) -> None:
        assert rule_from_mapping(_valid_mapping(category="probing")).category == "probing"

    def test_invalid_raises(self) -> None:
        with pytest.raises(RuleLoadError, match="open_sesame"):
            rule_from_mapping(_valid_mapping(severity="urgent"))


class TestLoadRules:
    """Tests for loading rule files from a directory."""

    def test_missing_directory(self, tmp_path: Path) -> None:
        assert load_rules(tmp_path / "nope") == []

    def test_loads_yaml_files_in_name_order(self, tmp_path: Path) -> None:
        _write(
            tmp_path / "b_jailbreak.yaml",
            """\
            category: jailbreak
            patterns:
              - name: dan
                type: jailbreak
                subtype: DAN_variants
                pattern: 'do anything now'
                flags: gi
                confidence: 0.95
                severity: critical
            """,
        )
        _write(
            tmp_path / "a_injection.yml",
            """\
            version: "1"
            patterns:
              - name: extraction
                type: prompt_injection
                subtype: system_prompt_extraction
                pattern: '(ignore|forget).*(previous|prior).*(instruction|prompt)'
                confidence: 0.9
                severity: high
            """,
        )

        rules = load_rules(tmp_path)
        assert [r.name for r in rules] == ["extraction", "dan"]
        assert rules[0].category == "prompt_injection"
        assert rules[1].category == "jailbreak"
        assert rules[1].flags == "gi"

    def test_file_category_is_default_only(self, tmp_path: Path) -> None:
        _write(
            tmp_path / "rules.yml",
            """\
            category: misc
            patterns:
              - name: one
                type: recon
                subtype: port_scan
                pattern: 'port_scan'
                confidence: 0.4
                severity: low
              - name: two
                type: recon
                subtype: scan
                pattern: 'scan'
                confidence: 0.4
                severity: low
                category: scanning
            """,
        )
        assert [r.category for r in load_rules(tmp_path)] == ["misc", "scanning"]

    def test_invalid_rules_are_skipped(self, tmp_path: Path) -> None:
        _write(
            tmp_path / "mixed.yml",
            """\
            patterns:
              - name: good
                type: recon
                subtype: port_scan
                pattern: 'port_scan'
                confidence: 0.4
                severity: low
              - name: bad_regex
                type: recon
                subtype: port_scan
                pattern: '(unclosed'
                confidence: 0.4
                severity: low
              - name: bad_severity
                type: recon
                subtype: port_scan
                pattern: 'x'
                confidence: 0.4
                severity: urgent
              - just a string
            """,
        )
        assert [r.name for r in load_rules(tmp_path)] == ["good"]

    def test_unreadable_and_malformed_files_are_skipped(self, tmp_path: Path) -> None:
        _write(tmp_path / "broken.yml", "patterns: [unclosed\n")
        _write(tmp_path / "empty.yml", "version: 1\n")
        _write(tmp_path / "notes.txt", "patterns: []\n")
        _write(
            tmp_path / "ok.yml",
            """\
            patterns:
              - name: ok
                type: recon
                subtype: port_scan
                pattern: 'port_scan'
                confidence: 0.4
                severity: low
            """,
        )
        assert [r.name for r in load_rules(tmp_path)] == ["ok"]
