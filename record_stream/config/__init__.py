"""Configuration layer for stream framing options.

Merge order (later wins)
------------------------
1. Built-in defaults (``config.defaults``)
2. Optional external config file (JSON or YAML) pointed to by
   ``RECORD_STREAM_CONFIG_FILE``; only its ``stream`` section is read
3. Environment variables

Environment Variables
---------------------
RECORD_STREAM_SEPARATOR           record separator; accepts ``\\r``, ``\\n``, ``\\t``, ``\\0``
RECORD_STREAM_ENCODING            text encoding used for delimiter matching
RECORD_STREAM_LOOP_INTERVAL_MS    drain polling period in milliseconds
RECORD_STREAM_MAX_BUFFERED_BYTES  unread byte ceiling; ``none`` or ``0`` disables it
RECORD_STREAM_FLUSH_TRAILING      emit trailing partial record on close (1/true/yes/on)

External file example (YAML)::

    stream:
      separator: "\\n"
      loop_interval: 25
      max_buffered_bytes: 1048576

Values that fail to parse fall back to the previous layer; semantic validation
(empty separator, unknown encoding) is left to ``StreamOptions``.

Public API
----------
* get_stream_defaults() -> dict
* reset_cache() -> None
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional
import json
import os

import yaml

from ..base.constants import ENV_PREFIX
from ..base.logging import get_logger
from .defaults import (
    DEFAULT_ENCODING,
    DEFAULT_FLUSH_TRAILING,
    DEFAULT_LOOP_INTERVAL_MS,
    DEFAULT_MAX_BUFFERED_BYTES,
    DEFAULT_SEPARATOR,
)

DEFAULTS: Dict[str, Any] = {
    "separator": DEFAULT_SEPARATOR,
    "encoding": DEFAULT_ENCODING,
    "loop_interval": DEFAULT_LOOP_INTERVAL_MS,
    "max_buffered_bytes": DEFAULT_MAX_BUFFERED_BYTES,
    "flush_trailing": DEFAULT_FLUSH_TRAILING,
}

ENV_FIELD_MAP = {
    "separator": "SEPARATOR",
    "encoding": "ENCODING",
    "loop_interval": "LOOP_INTERVAL_MS",
    "max_buffered_bytes": "MAX_BUFFERED_BYTES",
    "flush_trailing": "FLUSH_TRAILING",
}

CONFIG_FILE_ENV = f"{ENV_PREFIX}CONFIG_FILE"

_ESCAPES = {"\\r": "\r", "\\n": "\n", "\\t": "\t", "\\0": "\0", "\\\\": "\\"}
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

_CACHED: Optional[Dict[str, Any]] = None
_ENV_GUARD: Optional[str] = None

logger = get_logger("config")


def unescape_separator(raw: str) -> str:
    """Translate the backslash escapes accepted in separator settings."""
    out = []
    i = 0
    while i < len(raw):
        pair = raw[i:i + 2]
        if pair in _ESCAPES:
            out.append(_ESCAPES[pair])
            i += 2
            continue
        out.append(raw[i])
        i += 1
    return "".join(out)


def _parse_float(raw: str, default: Any) -> Any:
    try:
        val = float(raw)
    except ValueError:
        logger.warning("ignoring non-numeric loop interval %r", raw)
        return default
    return val if val > 0 else default


def _parse_ceiling(raw: str, default: Any) -> Any:
    if raw.strip().lower() in ("", "none", "0"):
        return None
    try:
        val = int(raw)
    except ValueError:
        logger.warning("ignoring non-integer buffer ceiling %r", raw)
        return default
    return val if val > 0 else default


def _parse_bool(raw: str, default: Any) -> Any:
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    return default


def _load_external_config() -> Dict[str, Any]:
    path = os.getenv(CONFIG_FILE_ENV)
    if not path:
        return {}
    p = Path(path).expanduser()
    if not p.is_file():
        logger.warning("config file %s not found", p)
        return {}
    text = p.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except ValueError:
        data = yaml.safe_load(text) or {}
    section = data.get("stream") if isinstance(data, dict) else None
    return dict(section) if isinstance(section, dict) else {}


def _env_overrides(base: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    parsers = {
        "loop_interval": _parse_float,
        "max_buffered_bytes": _parse_ceiling,
        "flush_trailing": _parse_bool,
    }
    for field, suffix in ENV_FIELD_MAP.items():
        raw = os.getenv(f"{ENV_PREFIX}{suffix}")
        if raw is None:
            continue
        if field == "separator":
            out[field] = unescape_separator(raw)
        elif field in parsers:
            out[field] = parsers[field](raw, base.get(field))
        else:
            out[field] = raw.strip()
    return out


def _env_guard() -> str:
    names = [CONFIG_FILE_ENV] + [f"{ENV_PREFIX}{s}" for s in ENV_FIELD_MAP.values()]
    return "\x1f".join(os.getenv(n, "") for n in names)


def get_stream_defaults() -> Dict[str, Any]:
    """Return merged default option values (a fresh dict on every call).

    The merged result is cached and recomputed when any of the relevant
    environment variables change.
    """
    global _CACHED, _ENV_GUARD  # noqa: PLW0603 - documented module cache
    guard = _env_guard()
    if _CACHED is None or _ENV_GUARD != guard:
        cfg: Dict[str, Any] = dict(DEFAULTS)
        file_cfg = _load_external_config()
        if isinstance(file_cfg.get("separator"), str):
            file_cfg["separator"] = unescape_separator(file_cfg["separator"])
        cfg |= {k: v for k, v in file_cfg.items() if k in DEFAULTS}
        cfg |= _env_overrides(cfg)
        _CACHED = cfg
        _ENV_GUARD = guard
    return dict(_CACHED)


def reset_cache() -> None:
    """Drop the cached merge result (tests editing config files use this)."""
    global _CACHED, _ENV_GUARD  # noqa: PLW0603
    _CACHED = None
    _ENV_GUARD = None


__all__ = ["DEFAULTS", "get_stream_defaults", "reset_cache", "unescape_separator"]
