"""Event reporting: buffered delivery of findings to an external sink."""

from clawtrap.reporting.forwarder import LogForwarder
from clawtrap.reporting.models import FindingType, QueuedEvent
from clawtrap.reporting.pipeline import ReportingPipeline
from clawtrap.reporting.sinks import HttpCallbackSink, LogSink, ReportingSink

__all__ = [
    "FindingType",
    "HttpCallbackSink",
    "LogForwarder",
    "LogSink",
    "QueuedEvent",
    "ReportingPipeline",
    "ReportingSink",
]
