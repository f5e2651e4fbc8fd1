"""Typed construction options for :class:`StreamController`.

External dependencies
---------------------
- Pydantic v2 ``BaseModel`` for validation.

Failure modes
-------------
- :meth:`StreamOptions.build` converts pydantic ``ValidationError`` into a
  ``FramingError`` with ``ErrorCode.CONFIGURATION`` so callers handle a single
  error type. Constructing the model directly raises ``ValidationError``.
"""
from __future__ import annotations

import codecs
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..base.errors import ErrorCode, FramingError
from ..config import get_stream_defaults
from ..config.defaults import (
    DEFAULT_ENCODING,
    DEFAULT_FLUSH_TRAILING,
    DEFAULT_LOOP_INTERVAL_MS,
    DEFAULT_MAX_BUFFERED_BYTES,
    DEFAULT_SEPARATOR,
)


class StreamOptions(BaseModel):
    """Framing configuration for one controller.

    Attributes
    ----------
    separator:
        Non-empty record delimiter. ``str`` values are encoded with
        ``encoding`` before matching; ``bytes`` are matched as-is.
    encoding:
        Text encoding used for delimiter matching and for ``str`` chunks.
        A byte order mark the codec would prepend is not part of either.
    loop_interval:
        Drain polling period in milliseconds.
    max_buffered_bytes:
        Ceiling on bytes buffered without a separator. Complete records are
        drained first; a partial record still over the ceiling aborts the
        stream with an overflow error. ``None`` allows unbounded growth.
    flush_trailing:
        Emit bytes left after the last separator as a final record when the
        transport closes.
    """

    model_config = ConfigDict(frozen=True)

    separator: Union[str, bytes] = DEFAULT_SEPARATOR
    encoding: str = DEFAULT_ENCODING
    loop_interval: float = Field(default=DEFAULT_LOOP_INTERVAL_MS, gt=0)
    max_buffered_bytes: Optional[int] = Field(default=DEFAULT_MAX_BUFFERED_BYTES, gt=0)
    flush_trailing: bool = DEFAULT_FLUSH_TRAILING

    @field_validator("encoding")
    @classmethod
    def _known_encoding(cls, value: str) -> str:
        try:
            return codecs.lookup(value).name
        except LookupError as exc:
            raise ValueError(f"unknown encoding: {value!r}") from exc

    @model_validator(mode="after")
    def _non_empty_separator(self) -> "StreamOptions":
        if len(self.separator) == 0:
            raise ValueError("separator cannot be empty")
        if isinstance(self.separator, str):
            try:
                self.separator.encode(self.encoding)
            except UnicodeEncodeError as exc:
                raise ValueError(f"separator is not encodable as {self.encoding}") from exc
        return self

    @property
    def separator_bytes(self) -> bytes:
        if isinstance(self.separator, bytes):
            return self.separator
        return self.encode_text(self.separator)

    def encode_text(self, text: str) -> bytes:
        """Encode ``text`` without the byte order mark some codecs prepend.

        ``utf-16``, ``utf-32`` and ``utf-8-sig`` emit a BOM on every call;
        records are framed without it, in native byte order for the
        multi-byte forms.
        """
        data = text.encode(self.encoding)
        bom = "".encode(self.encoding)
        if bom and data.startswith(bom):
            return data[len(bom):]
        return data

    @property
    def interval_seconds(self) -> float:
        return self.loop_interval / 1000.0

    @classmethod
    def build(cls, **values: Any) -> "StreamOptions":
        """Validate ``values`` and return options or raise ``FramingError``."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise FramingError(
                code=ErrorCode.CONFIGURATION,
                message=_first_error(exc),
                raw=exc,
            ) from exc

    @classmethod
    def from_env(cls, **overrides: Any) -> "StreamOptions":
        """Build options from configured defaults (file + env) plus ``overrides``."""
        values = get_stream_defaults()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.build(**values)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    msg = first.get("msg", "invalid option")
    return f"{loc}: {msg}" if loc else msg


def resolve_options(options: "StreamOptions | dict | None" = None, **overrides: Any) -> StreamOptions:
    """Normalize the accepted option shapes into a validated ``StreamOptions``.

    ``None`` values inside a mapping mean "use the default", mirroring how
    unset fields behave.
    """
    if isinstance(options, StreamOptions):
        if not overrides:
            return options
        values = options.model_dump()
        values.update(overrides)
        return StreamOptions.build(**values)
    values = dict(options or {})
    values.update(overrides)
    return StreamOptions.build(**{k: v for k, v in values.items() if v is not None or k == "max_buffered_bytes"})


__all__ = ["StreamOptions", "resolve_options"]
