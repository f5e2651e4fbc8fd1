"""Append-only byte accumulator consumed from the head.

Chunks are appended at the tail as the transport delivers them; drain passes
consume records from the head through a read cursor. Consumed bytes are never
re-exposed. The consumed prefix is compacted away once it dominates the
buffer so long-lived streams do not keep every byte they ever received.
"""
from __future__ import annotations

NOT_FOUND = -1

# Compact once at least this many consumed bytes sit ahead of the cursor
_COMPACT_MIN = 64 * 1024


class ByteAccumulator:
    """Buffered bytes plus a read cursor.

    ``unread_count`` always equals ``len(buffer) - cursor``.
    """

    def __init__(self, separator: bytes) -> None:
        if not separator:
            raise ValueError("separator cannot be empty")
        self._separator = bytes(separator)
        self._buffer = bytearray()
        self._cursor = 0
        # Offset (relative to the cursor) below which no separator can start
        self._scanned = 0

    @property
    def separator(self) -> bytes:
        return self._separator

    def append(self, chunk: bytes) -> None:
        if chunk:
            self._buffer += chunk

    def find_delimiter(self) -> int:
        """Return the separator offset within the unread region, or ``NOT_FOUND``.

        Scanning resumes just before where the previous unsuccessful scan
        stopped, so a separator split across two chunks is still found.
        """
        start = self._cursor + self._scanned
        index = self._buffer.find(self._separator, start)
        if index < 0:
            overlap = len(self._separator) - 1
            self._scanned = max(0, self.unread_count() - overlap)
            return NOT_FOUND
        return index - self._cursor

    def take_record(self, offset: int) -> bytes:
        """Return the ``offset`` unread bytes at the head and advance past them."""
        if offset < 0 or offset > self.unread_count():
            raise IndexError(f"offset {offset} outside unread region of {self.unread_count()} bytes")
        record = bytes(self._buffer[self._cursor:self._cursor + offset])
        self._advance(offset)
        return record

    def skip_delimiter(self, length: int | None = None) -> None:
        """Advance the cursor past the separator (``length`` defaults to its size)."""
        self.skip(len(self._separator) if length is None else length)

    def skip(self, length: int) -> None:
        if length < 0 or length > self.unread_count():
            raise IndexError(f"cannot skip {length} of {self.unread_count()} unread bytes")
        self._advance(length)

    def take_all(self) -> bytes:
        """Consume and return every unread byte."""
        return self.take_record(self.unread_count())

    def peek(self) -> bytes:
        return bytes(self._buffer[self._cursor:])

    def unread_count(self) -> int:
        return len(self._buffer) - self._cursor

    def clear(self) -> None:
        """Discard everything, read or not."""
        self._buffer.clear()
        self._cursor = 0
        self._scanned = 0

    def _advance(self, length: int) -> None:
        self._cursor += length
        self._scanned = max(0, self._scanned - length)
        if self._cursor >= _COMPACT_MIN and self._cursor * 2 >= len(self._buffer):
            del self._buffer[:self._cursor]
            self._cursor = 0

    def __len__(self) -> int:
        return self.unread_count()

    def __repr__(self) -> str:  # pragma: no cover - introspection aid
        return f"ByteAccumulator(unread={self.unread_count()}, separator={self._separator!r})"


__all__ = ["ByteAccumulator", "NOT_FOUND"]
