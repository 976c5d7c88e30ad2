"""Live reporter (websocket snapshot push)."""

from .client import ReportClient, backoff_delay
from .reporter import LiveReporter, ReportMode, ReportSession, build_event

__all__ = [
    "LiveReporter",
    "ReportClient",
    "ReportMode",
    "ReportSession",
    "backoff_delay",
    "build_event",
]
