"""Built-in defaults for stream framing options."""
from __future__ import annotations

DEFAULT_SEPARATOR = "\r\n"
DEFAULT_ENCODING = "utf-8"
# Polling period of the drain scheduler, milliseconds
DEFAULT_LOOP_INTERVAL_MS = 10.0
# Ceiling on buffered-but-unread bytes before the stream is aborted
DEFAULT_MAX_BUFFERED_BYTES = 16 * 1024 * 1024
DEFAULT_FLUSH_TRAILING = False
# Read size used by the StreamReader pump
DEFAULT_READ_CHUNK_SIZE = 64 * 1024

__all__ = [
    "DEFAULT_SEPARATOR",
    "DEFAULT_ENCODING",
    "DEFAULT_LOOP_INTERVAL_MS",
    "DEFAULT_MAX_BUFFERED_BYTES",
    "DEFAULT_FLUSH_TRAILING",
    "DEFAULT_READ_CHUNK_SIZE",
]
