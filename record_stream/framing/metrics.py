"""Per-controller framing metrics."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class StreamMetrics:
    """Counters collected by one :class:`StreamController`.

    Durations are milliseconds measured from controller construction.
    ``outcome`` is ``"completed"`` or ``"cancelled"`` once the stream ends.
    """

    bytes_received: int = 0
    chunks_received: int = 0
    records_emitted: int = 0
    bytes_emitted: int = 0
    drain_passes: int = 0
    trailing_bytes: int = 0
    time_to_first_record_ms: Optional[float] = None
    total_duration_ms: Optional[float] = None
    outcome: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = ["StreamMetrics"]
