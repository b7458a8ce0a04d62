"""Per-message control flow of the honeypot.

For every inbound message: attribute it to a session, detect attacks, look
for canary tokens, classify the source, compose a deceptive reply and emit
findings. Transports call into :class:`Honeypot` and only deal with framing
and delivery.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from clawtrap.canary.generator import CanaryGenerator
from clawtrap.canary.models import CanaryToken, CanaryTokenType
from clawtrap.canary.reporter import CanaryReporter
from clawtrap.config import Settings
from clawtrap.detection.classifier import GOAL_HIJACK_TRAPS, AgentClassifier
from clawtrap.detection.engine import AttackPatternEngine
from clawtrap.detection.models import AgentClassification, DetectedAttack, Severity
from clawtrap.detection.rules import load_rules
from clawtrap.detection.timing import TimingTracker
from clawtrap.errors import AdmissionRejectedError, SessionNotFoundError
from clawtrap.logging import get_logger
from clawtrap.reporting.models import (
    attack_finding,
    classification_finding,
    session_finding,
    tool_call_finding,
)
from clawtrap.reporting.pipeline import ReportingPipeline
from clawtrap.reporting.sinks import HttpCallbackSink, LogSink, ReportingSink
from clawtrap.responder.agent import DeceptiveResponder
from clawtrap.session.models import Session
from clawtrap.session.rate_limiter import RateLimiter
from clawtrap.session.registry import SessionRegistry

log = get_logger("clawtrap.honeypot")

_AGENT_REPORTED = "agent_reported"


@dataclass
class MessageOutcome:
    """Reply and findings for one chat message."""

    session_id: str
    reply: str
    attacks: list[DetectedAttack] = field(default_factory=list)
    classification: AgentClassification | None = None
    canary_matches: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "attacks": [a.to_dict() for a in self.attacks],
            "classification": self.classification.to_dict() if self.classification else None,
            "canary_matches": list(self.canary_matches),
        }


class Honeypot:
    """Wire the detection, deception and tracking components together."""

    def __init__(
        self,
        *,
        engine: AttackPatternEngine,
        classifier: AgentClassifier,
        canaries: CanaryGenerator,
        canary_reporter: CanaryReporter,
        responder: DeceptiveResponder,
        registry: SessionRegistry,
        pipeline: ReportingPipeline,
        instance_id: str = "local-dev",
        alert_on: tuple[str, ...] = ("critical", "high"),
    ) -> None:
        self._engine = engine
        self._classifier = classifier
        self._canaries = canaries
        self._canary_reporter = canary_reporter
        self._responder = responder
        self._registry = registry
        self._pipeline = pipeline
        self._instance_id = instance_id
        self._alert_on = frozenset(alert_on)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        sink: ReportingSink | None = None,
    ) -> Honeypot:
        """Build every component from *settings*."""
        rules = load_rules(settings.patterns_dir)
        engine = AttackPatternEngine(rules or None)

        if sink is None:
            if settings.canary_callback_url:
                sink = HttpCallbackSink(
                    settings.canary_callback_url, timeout=settings.report_timeout_seconds
                )
            else:
                sink = LogSink()
        pipeline = ReportingPipeline(
            sink,
            max_size=settings.report_queue_max,
            drop_fraction=settings.report_drop_fraction,
            flush_interval_seconds=settings.report_flush_interval_seconds,
        )

        canaries = CanaryGenerator(settings.instance_id)
        return cls(
            engine=engine,
            classifier=AgentClassifier(
                TimingTracker(
                    max_samples=settings.timing_max_samples,
                    max_identities=settings.timing_max_identities,
                )
            ),
            canaries=canaries,
            canary_reporter=CanaryReporter(
                canaries,
                pipeline,
                enabled=settings.canary_enabled,
                high_priority_types=settings.canary_high_priority_types,
            ),
            responder=DeceptiveResponder(
                assistant_name=settings.assistant_name,
                model_name=settings.model_name,
                personality=settings.personality,
                delay_range_ms=settings.response_delay_range,
            ),
            registry=SessionRegistry(
                max_sessions=settings.session_max_sessions,
                max_age_seconds=settings.session_max_age_seconds,
                sweep_interval_seconds=settings.session_sweep_interval_seconds,
                rate_limiter=RateLimiter(
                    max_per_window=settings.admission_max_per_window,
                    window_seconds=settings.admission_window_seconds,
                ),
            ),
            pipeline=pipeline,
            instance_id=settings.instance_id,
            alert_on=tuple(settings.alert_on),
        )

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def engine(self) -> AttackPatternEngine:
        return self._engine

    @property
    def classifier(self) -> AgentClassifier:
        return self._classifier

    @property
    def responder(self) -> DeceptiveResponder:
        return self._responder

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def pipeline(self) -> ReportingPipeline:
        return self._pipeline

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self._pipeline.start()
        await self._registry.start()
        log.info("honeypot_started", instance_id=self._instance_id, rules=self._engine.rule_count)

    async def stop(self) -> None:
        """Stop background work; the pipeline flushes one last time."""
        await self._registry.stop()
        await self._pipeline.stop()
        log.info("honeypot_stopped", instance_id=self._instance_id)

    # ------------------------------------------------------------------
    # Bait content
    # ------------------------------------------------------------------

    def bait_tokens(self) -> dict[CanaryTokenType, CanaryToken]:
        """Mint a fresh set of canary credentials for bait content."""
        return self._canaries.token_set()

    @property
    def trap_phrases(self) -> tuple[str, ...]:
        """Goal-hijack phrases to hide in bait content."""
        return GOAL_HIJACK_TRAPS

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def open_session(
        self,
        identity: str,
        *,
        user_agent: str | None = None,
        headers: Mapping[str, str] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> Session:
        """Admit a new connection and register its session.

        Raises:
            AdmissionRejectedError: If admission control refuses the source.
        """
        decision = self._registry.admit(identity)
        if not decision.allowed:
            raise AdmissionRejectedError(identity, decision)

        session_metadata: dict[str, Any] = dict(metadata or {})
        session_metadata["user_agent"] = user_agent
        session_metadata["headers"] = dict(headers) if headers is not None else None
        session = self._registry.create(identity, session_metadata)
        log.info(
            "session_opened",
            session_id=session.id,
            identity=identity,
            user_agent=user_agent,
            live_sessions=len(self._registry),
        )
        return session

    def close_session(self, session_id: str, *, reason: str | None = None) -> Session | None:
        """Remove a session and report its summary."""
        session = self._registry.remove(session_id)
        if session is None:
            return None

        summary = session.summary()
        summary.pop("metadata", None)
        log.info(
            "session_closed",
            session_id=session.id,
            identity=session.source_identity,
            reason=reason,
            duration_ms=summary["duration_ms"],
            message_count=session.message_count,
            attack_count=len(session.detected_attacks),
        )
        self._pipeline.enqueue(session_finding(summary, instance_id=self._instance_id))
        return session

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def handle_message(
        self,
        session_id: str,
        content: Any,
        *,
        response_time_ms: float | None = None,
    ) -> MessageOutcome:
        """Run one chat message through detection, classification and reply.

        Args:
            session_id: Session the message arrived on.
            content: Raw message text; non-string content is treated as empty.
            response_time_ms: Time the source took to answer the previous reply.

        Raises:
            SessionNotFoundError: If the session is unknown or was removed.
        """
        session = self._require(session_id)
        text = content if isinstance(content, str) else ""

        attacks = self._engine.detect(text)
        self._registry.record_message(session_id, attacks)
        if attacks:
            self._report_attacks(session, attacks, text)

        canary_matches: list[str] = []
        if self._canary_reporter.enabled:
            canary_matches = self._canary_reporter.scan(
                text,
                source_identity=session.source_identity,
                context="websocket_chat",
                session_id=session_id,
            )

        classification = self._classify(session, text, response_time_ms)
        reply = self._responder.respond(text, attacks)

        log.info(
            "chat_message",
            session_id=session_id,
            identity=session.source_identity,
            content_length=len(text),
            attacks_detected=len(attacks),
            is_ai_agent=classification.is_ai_agent,
        )
        return MessageOutcome(
            session_id=session_id,
            reply=reply,
            attacks=attacks,
            classification=classification,
            canary_matches=canary_matches,
        )

    def handle_tool_call(
        self, session_id: str, tool_name: Any, arguments: Any = None
    ) -> dict[str, Any]:
        """Record an attempted tool invocation and deny it.

        Returns:
            A ``tool_error`` frame for the transport.
        """
        session = self._require(session_id)
        name = str(tool_name or "unknown")
        attack = DetectedAttack(
            type="tool_abuse",
            subtype="tool_call_attempt",
            pattern_matched=name[:200],
            confidence=0.9,
            severity=Severity.HIGH,
            category="tool_abuse",
        )
        self._registry.record_message(session_id, [attack])

        log.warning(
            "tool_call_attempted",
            session_id=session_id,
            identity=session.source_identity,
            tool_name=name,
        )
        self._pipeline.enqueue(
            tool_call_finding(
                name,
                arguments,
                source_identity=session.source_identity,
                session_id=session_id,
                instance_id=self._instance_id,
            )
        )

        if self._canary_reporter.enabled and arguments is not None:
            self._canary_reporter.scan(
                json.dumps(arguments, default=str),
                source_identity=session.source_identity,
                context="tool_call_arguments",
                session_id=session_id,
            )

        return {
            "type": "tool_error",
            "tool_name": name,
            "error": self._responder.deny_tool(),
            "code": "PERMISSION_DENIED",
        }

    def handle_system_message(self, session_id: str, content: Any) -> dict[str, Any]:
        """Record a client-sent system message as an injection and refuse it.

        Returns:
            An ``error`` frame for the transport.
        """
        session = self._require(session_id)
        text = content if isinstance(content, str) else ""
        attacks = [
            DetectedAttack(
                type="prompt_injection",
                subtype="system_message_injection",
                pattern_matched=text[:200],
                confidence=0.95,
                severity=Severity.CRITICAL,
                category="prompt_injection",
            ),
            *self._engine.detect(text),
        ]
        self._registry.record_message(session_id, attacks)
        self._report_attacks(session, attacks, text)
        return {
            "type": "error",
            "message": self._responder.refuse_system_message(),
            "code": "FORBIDDEN",
        }

    def check_credential(
        self,
        value: Any,
        *,
        identity: str,
        context: str,
        session_id: str | None = None,
    ) -> bool:
        """Report *value* if it is a canary presented as a credential."""
        if not self._canary_reporter.enabled:
            return False
        return self._canary_reporter.check_credential(
            value, source_identity=identity, context=context, session_id=session_id
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, session_id: str) -> Session:
        session = self._registry.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _report_attacks(self, session: Session, attacks: list[DetectedAttack], text: str) -> None:
        alert = any(a.severity.value in self._alert_on for a in attacks)
        (log.warning if alert else log.info)(
            "attack_detected",
            session_id=session.id,
            identity=session.source_identity,
            content_preview=text[:200],
            attacks=[f"{a.type}/{a.subtype}" for a in attacks],
        )
        self._pipeline.enqueue(
            attack_finding(
                attacks,
                source_identity=session.source_identity,
                session_id=session.id,
                content=text,
                instance_id=self._instance_id,
            )
        )

    def _classify(
        self, session: Session, text: str, response_time_ms: float | None
    ) -> AgentClassification:
        classification = self._classifier.classify(
            session.source_identity,
            user_agent=session.metadata.get("user_agent"),
            headers=session.metadata.get("headers"),
            content=text,
            response_time_ms=response_time_ms,
        )
        self._classifier.cleanup()

        if classification.is_ai_agent and self._registry.mark(session.id, _AGENT_REPORTED):
            log.warning(
                "ai_agent_detected",
                session_id=session.id,
                identity=session.source_identity,
                confidence=classification.confidence,
                signals=[s.indicator for s in classification.signals],
            )
            self._pipeline.enqueue(
                classification_finding(
                    classification,
                    source_identity=session.source_identity,
                    session_id=session.id,
                    instance_id=self._instance_id,
                )
            )
        return classification
