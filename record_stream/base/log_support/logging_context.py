"""Structured logging context object for stream controllers.

:class:`LogContext` carries the fields common to every event a controller logs
(stream id, remote command label, separator) plus an ``extra`` bag.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional


@dataclass
class LogContext:
    """Structured context for stream logging events."""

    stream_id: Optional[str] = None
    label: Optional[str] = None
    separator: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        extra = data.pop("extra", {}) or {}
        data.update({k: v for k, v in extra.items() if v is not None})
        return {k: v for k, v in data.items() if v is not None}


__all__ = ["LogContext"]
