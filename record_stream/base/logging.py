"""Base structured logging utilities for the framing layer.

Rationale:
- Central place to configure consistent JSON (or plain) logging.
- Avoid ad-hoc logger setup inside the controller and transport adapters.

All loggers handed out by :func:`get_logger` are children of the shared
``record_stream`` logger, which owns the single stderr handler. The level is
taken from ``RECORD_STREAM_LOG_LEVEL`` when set.
"""
from __future__ import annotations

import logging
import json
import sys
import os
import contextlib
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from .constants import ENV_PREFIX, LOGGER_NAME
from .log_support import JsonFormatter, LogContext


_BASE_LOGGER_ATTR = "_record_stream_logger_initialized"
_CONSOLE_HANDLER_ATTR = "_record_stream_console_handler"
_FILE_HANDLER_ATTR = "_record_stream_file_handler"
_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _make_formatter(json_mode: bool) -> logging.Formatter:
    return JsonFormatter() if json_mode else logging.Formatter(_PLAIN_FORMAT)


def _parse_level(value: str | None, default: int = logging.INFO) -> int:
    """Parse a logging level string into an integer constant.

    Accepts common names (DEBUG, INFO, WARNING, ERROR, CRITICAL) case-insensitively.
    Falls back to ``default`` on unknown values.
    """
    if not value:
        return default
    mapping = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARN": logging.WARNING,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return mapping.get(value.strip().upper(), default)


class _StderrHandler(logging.StreamHandler):
    """Stream handler that always writes to the current ``sys.stderr``.

    Capture tools (pytest, IDE consoles) replace ``sys.stderr`` after module
    level loggers were created.
    """

    def __init__(self) -> None:
        super().__init__(sys.stderr)

    @property
    def stream(self):  # type: ignore[override]
        return sys.stderr

    @stream.setter
    def stream(self, value) -> None:
        pass


def _ensure_base_logger(json_mode: bool, level: Optional[int]) -> logging.Logger:
    """Initialize and return the shared ``record_stream`` logger.

    On later calls the level changes only when ``RECORD_STREAM_LOG_LEVEL`` is
    set; ``configure_logger`` owns runtime level changes.
    """

    logger = logging.getLogger(LOGGER_NAME)
    env_level = os.getenv(f"{ENV_PREFIX}LOG_LEVEL")
    if getattr(logger, _BASE_LOGGER_ATTR, False):
        if env_level:
            desired_level = _parse_level(env_level, default=logger.level)
            logger.setLevel(desired_level)
        for existing in list(logger.handlers):
            if not getattr(existing, _CONSOLE_HANDLER_ATTR, False):
                continue
            existing.setLevel(logger.level)
            if json_mode != isinstance(existing.formatter, JsonFormatter):
                existing.setFormatter(_make_formatter(json_mode))
        return logger

    desired_level = _parse_level(env_level, default=logging.INFO if level is None else level)
    logger.setLevel(desired_level)
    handler = _StderrHandler()
    handler.setLevel(desired_level)
    handler.setFormatter(_make_formatter(json_mode))
    setattr(handler, _CONSOLE_HANDLER_ATTR, True)
    logger.handlers[:] = [handler]
    logger.propagate = False
    setattr(logger, _BASE_LOGGER_ATTR, True)
    return logger


def get_logger(name: str = LOGGER_NAME, json_mode: bool = True, level: int = logging.INFO) -> logging.Logger:
    base_logger = _ensure_base_logger(json_mode=json_mode, level=level)
    if name == LOGGER_NAME:
        return base_logger
    if not name.startswith(f"{LOGGER_NAME}."):
        name = f"{LOGGER_NAME}.{name}"
    logger = logging.getLogger(name)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    return logger


def configure_logger(
    *,
    level: int | str | None = None,
    file_path: Optional[str] = None,
    json_mode: bool = True,
) -> logging.Logger:
    """Reconfigure the shared logger at runtime.

    Parameters
    ----------
    level: int | str | None
        Desired logging level. Accepts numeric levels or names (e.g., "DEBUG").
        When ``None``, the current level is preserved.
    file_path: Optional[str]
        When provided, a rotating file handler writing to ``file_path`` is
        attached (or reused). When ``None``, any previously attached managed
        file handler is removed.
    json_mode: bool
        Whether to use the JSON formatter or a plain text formatter.

    Returns
    -------
    logging.Logger
        The configured shared logger.
    """
    logger = _ensure_base_logger(json_mode=json_mode, level=None)

    if level is not None:
        if isinstance(level, str):
            logger.setLevel(_parse_level(level, default=logger.level))
        else:
            logger.setLevel(level)
        for h in logger.handlers:
            h.setLevel(logger.level)

    managed_handlers = [h for h in logger.handlers if getattr(h, _FILE_HANDLER_ATTR, False)]
    if file_path is None:
        for h in managed_handlers:
            logger.removeHandler(h)
            with contextlib.suppress(OSError):
                h.close()
        return logger

    abs_path = os.path.abspath(os.path.expanduser(file_path))
    os.makedirs(os.path.dirname(abs_path), exist_ok=True)

    existing: Optional[logging.FileHandler] = None
    for h in managed_handlers:
        if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == abs_path:
            existing = h
        else:
            logger.removeHandler(h)
            with contextlib.suppress(OSError):
                h.close()

    if existing is None:
        fh = RotatingFileHandler(abs_path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
        setattr(fh, _FILE_HANDLER_ATTR, True)
        fh.setLevel(logger.level)
        fh.setFormatter(_make_formatter(json_mode))
        logger.addHandler(fh)
    else:
        existing.setFormatter(_make_formatter(json_mode))
        existing.setLevel(logger.level)

    return logger


def log_event(
    logger: logging.Logger,
    event: str,
    ctx: LogContext | None = None,
    *,
    level: int = logging.INFO,
    keep_none: bool = False,
    **fields: Any,
) -> None:
    """Emit a structured log event as a single JSON line.

    Keys whose values are ``None`` are dropped unless ``keep_none`` is set.
    ``ctx`` fields are merged shallowly after the event name.
    """
    if not logger.isEnabledFor(level):
        return
    payload: Dict[str, Any] = {"event": event}
    if ctx:
        payload |= ctx.to_dict()
    if keep_none:
        payload.update(fields)
    else:
        payload.update({k: v for k, v in fields.items() if v is not None})
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))


REQUIRED_NORMALIZED_KEYS = ("phase", "error_code", "outcome")


def normalized_log_event(
    logger: logging.Logger,
    event: str,
    ctx: LogContext | None = None,
    *,
    phase: str,
    error_code: str | None = None,
    outcome: str | None = None,
    level: int = logging.INFO,
    **extra_fields: Any,
) -> None:
    """Emit a structured event that always carries ``phase`` and ``outcome``.

    ``error_code`` is omitted when ``None``. Extra fields never overwrite the
    normalized keys.
    """
    base_fields: Dict[str, Any] = {"phase": phase, "outcome": outcome}
    if error_code is not None:
        base_fields["error_code"] = error_code
    for k, v in extra_fields.items():
        if v is None or k in base_fields:
            continue
        base_fields[k] = v
    log_event(logger, event, ctx, level=level, keep_none=True, **base_fields)


__all__ = [
    "LogContext",
    "get_logger",
    "configure_logger",
    "log_event",
    "normalized_log_event",
    "REQUIRED_NORMALIZED_KEYS",
]
