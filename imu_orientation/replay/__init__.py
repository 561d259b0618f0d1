"""Sample sources for running the estimator without a live sensor backend."""

from .log import LogFormatError, read_event_log, write_event_log
from .mock import MockSensorSource, MockSourceError
from .runner import replay

__all__ = [
    "LogFormatError",
    "read_event_log",
    "write_event_log",
    "MockSensorSource",
    "MockSourceError",
    "replay",
]
