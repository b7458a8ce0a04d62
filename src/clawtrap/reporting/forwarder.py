"""Forward structured log events into the reporting pipeline.

:class:`LogForwarder` is a structlog processor. It is installed by
:func:`clawtrap.logging.setup_logging` and becomes active once a pipeline
is attached, so logging can be configured before the pipeline exists.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import TYPE_CHECKING, Any

from clawtrap.reporting.models import FindingType, to_jsonable, utc_now

if TYPE_CHECKING:
    from clawtrap.reporting.pipeline import ReportingPipeline

_LEVELS = {"debug": 10, "info": 20, "warning": 30, "warn": 30, "error": 40, "critical": 50}
_PRIORITY_LEVEL = 40
_RESERVED_KEYS = frozenset({"event", "level", "logger", "timestamp", "exc_info", "stack_info"})

# The pipeline logs about itself and canary sightings are enqueued as findings
# already; forwarding either would feed back or duplicate
_SKIPPED_LOGGER_PREFIXES: tuple[str, ...] = ("clawtrap.reporting", "clawtrap.canary.reporter")


class LogForwarder:
    """structlog processor copying log events into a :class:`ReportingPipeline`."""

    def __init__(
        self,
        pipeline: ReportingPipeline | None = None,
        *,
        min_level: str = "info",
        instance_id: str | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._min_level = _LEVELS.get(min_level.lower(), 20)
        self._instance_id = instance_id

    @property
    def attached(self) -> bool:
        return self._pipeline is not None

    def attach(self, pipeline: ReportingPipeline) -> None:
        self._pipeline = pipeline

    def detach(self) -> None:
        self._pipeline = None

    def __call__(
        self, logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        pipeline = self._pipeline
        if pipeline is None:
            return event_dict

        logger_name = str(event_dict.get("logger") or getattr(logger, "name", "") or "")
        if logger_name.startswith(_SKIPPED_LOGGER_PREFIXES):
            return event_dict

        level = str(event_dict.get("level") or method_name).lower()
        level_no = _LEVELS.get(level, 20)
        if level_no < self._min_level:
            return event_dict

        finding = {
            "event_type": FindingType.LOG.value,
            "timestamp": event_dict.get("timestamp") or utc_now(),
            "instance_id": self._instance_id,
            "log_level": level,
            "source_logger": logger_name,
            "message": str(event_dict.get("event", "")),
            "context": {
                key: to_jsonable(value)
                for key, value in event_dict.items()
                if key not in _RESERVED_KEYS
            },
        }
        pipeline.enqueue(finding, priority=level_no >= _PRIORITY_LEVEL)
        return event_dict
