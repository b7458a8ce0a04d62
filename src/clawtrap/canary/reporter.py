"""Canary sighting reports.

Normalizes raw :class:`CanaryEvent` sightings into ``canary_triggered``
findings, attributes them to a minted token where possible and hands them to
the reporting pipeline. High-priority sighting types are enqueued as priority
findings so the pipeline flushes them out of band.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from clawtrap.canary.generator import CanaryGenerator
from clawtrap.canary.models import CanaryEvent, CanaryEventType
from clawtrap.logging import get_logger

if TYPE_CHECKING:
    from clawtrap.reporting.pipeline import ReportingPipeline

log = get_logger("clawtrap.canary.reporter")

DEFAULT_HIGH_PRIORITY_TYPES: tuple[str, ...] = (
    CanaryEventType.CREDENTIAL_USED,
    CanaryEventType.AWS_KEY_USAGE,
    CanaryEventType.API_KEY_EXTERNAL_USAGE,
)


class CanaryReporter:
    """Turn canary sightings into findings on the reporting pipeline."""

    def __init__(
        self,
        generator: CanaryGenerator,
        pipeline: ReportingPipeline,
        *,
        enabled: bool = True,
        high_priority_types: Iterable[str] = DEFAULT_HIGH_PRIORITY_TYPES,
    ) -> None:
        self._generator = generator
        self._pipeline = pipeline
        self._enabled = enabled
        self._high_priority = frozenset(str(t) for t in high_priority_types)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def is_high_priority(self, event_type: str) -> bool:
        return event_type in self._high_priority

    def build_report(self, event: CanaryEvent) -> dict[str, Any]:
        """Normalize *event* into the ``canary_triggered`` finding shape."""
        canary_id = self._generator.extract_id(event.token_value)
        if canary_id is None:
            for match in event.matches:
                canary_id = self._generator.extract_id(match)
                if canary_id:
                    break

        details: dict[str, Any] = {
            "token_type": event.token_type,
            "matches": list(event.matches),
        }
        token = self._generator.issued(canary_id) if canary_id else None
        if token is not None:
            details["token_type"] = details["token_type"] or token.type.value
            details["minted_at"] = token.created_at.isoformat()
            details["token_metadata"] = dict(token.metadata)
        details.update(event.metadata)

        timestamp = event.timestamp or datetime.now(UTC)
        return {
            "event_type": "canary_triggered",
            "timestamp": timestamp.isoformat(),
            "canary": {
                "id": canary_id,
                "type": event.type,
                "trigger_context": event.context,
            },
            "source": {
                "identity": event.source_identity,
                "session_id": event.session_id,
            },
            "details": details,
        }

    def report(self, event: CanaryEvent) -> dict[str, Any] | None:
        """Report a sighting.

        Returns:
            The finding that was enqueued, or None when reporting is disabled.
        """
        if not self._enabled:
            return None

        report = self.build_report(event)
        priority = self.is_high_priority(event.type)
        log.warning(
            "canary_triggered",
            canary_id=report["canary"]["id"],
            canary_type=event.type,
            source=event.source_identity,
            session_id=event.session_id,
            context=event.context,
            priority=priority,
        )
        self._pipeline.enqueue(report, priority=priority)
        return report

    def scan(
        self,
        text: Any,
        *,
        source_identity: str,
        context: str = "message",
        session_id: str | None = None,
        event_type: str = CanaryEventType.IN_MESSAGE,
    ) -> list[str]:
        """Look for canary values in *text* and report them as one sighting.

        Returns:
            The canary-bearing substrings found (empty when none).
        """
        matches = self._generator.find_markers(text)
        if matches:
            self.report(
                CanaryEvent(
                    type=event_type,
                    source_identity=source_identity,
                    context=context,
                    token_value=matches[0],
                    session_id=session_id,
                    matches=matches,
                )
            )
        return matches

    def check_credential(
        self,
        value: Any,
        *,
        source_identity: str,
        context: str,
        session_id: str | None = None,
    ) -> bool:
        """Report a presented credential that turns out to be a canary.

        Credentials presented for authentication are high-value evidence of
        theft, so they are reported as ``canary_credential_used``.
        """
        if not self._generator.is_canary(value):
            return False
        self.report(
            CanaryEvent(
                type=CanaryEventType.CREDENTIAL_USED,
                source_identity=source_identity,
                context=context,
                token_value=value,
                session_id=session_id,
                matches=self._generator.find_markers(value),
            )
        )
        return True
