"""Shared constants for the framing layer.

Central location to avoid scattering magic strings and default numbers.
"""
from __future__ import annotations

# Root logger name; child loggers propagate to it
LOGGER_NAME = "record_stream"

# Prefix for every environment variable read by the package
ENV_PREFIX = "RECORD_STREAM_"

# Controller event names
EVENT_DATA = "data"
EVENT_COMPLETED = "completed"
EVENT_CANCELLED = "cancelled"
EVENT_ERROR = "error"

CONTROLLER_EVENTS = frozenset({EVENT_DATA, EVENT_COMPLETED, EVENT_CANCELLED, EVENT_ERROR})

# Terminal outcomes recorded on metrics
OUTCOME_COMPLETED = "completed"
OUTCOME_CANCELLED = "cancelled"

__all__ = [
    "LOGGER_NAME",
    "ENV_PREFIX",
    "EVENT_DATA",
    "EVENT_COMPLETED",
    "EVENT_CANCELLED",
    "EVENT_ERROR",
    "CONTROLLER_EVENTS",
    "OUTCOME_COMPLETED",
    "OUTCOME_CANCELLED",
]
