"""
Logging helpers for the Hawkular data source.

Everything goes through :mod:`logging`. The formatter appends structured
``extra`` values as ``key=value`` pairs so request traces (method, URL, status,
tenant, ref id) stay greppable. Modules obtain loggers via :func:`get_logger`
rather than attaching their own handlers.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from copy import copy
from logging import Logger, LoggerAdapter
from typing import Any, Iterable, Mapping, MutableMapping, Optional, Sequence

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LEVEL = "INFO"
_ENV_LEVEL = "HAWKULAR_LOG_LEVEL"
_ENV_COLOR = "HAWKULAR_LOG_COLOR"
_EXTRA_FOCUS_ORDER: Sequence[str] = (
    "datasource",
    "ref_id",
    "phase",
    "status",
    "method",
    "url",
    "status_code",
    "metric_type",
    "query_by",
    "series",
    "points",
    "duration",
    "tags",
)

_LEVEL_STYLES = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[95m",
}
_RESET = "\033[0m"

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_configured = False


def _resolve_level(level: Optional[int | str]) -> int:
    if isinstance(level, int):
        return level
    candidate = (level or os.getenv(_ENV_LEVEL) or DEFAULT_LEVEL).upper()
    resolved = logging.getLevelName(candidate)
    return resolved if isinstance(resolved, int) else logging.INFO


def _coerce_bool(value: str) -> Optional[bool]:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return None


def _supports_color(stream: Any) -> bool:
    preference = os.getenv(_ENV_COLOR)
    if preference:
        resolved = _coerce_bool(preference)
        if resolved is not None:
            return resolved
    return hasattr(stream, "isatty") and bool(stream.isatty())


def _iter_extras(record: logging.LogRecord) -> Iterable[tuple[str, Any]]:
    payload = {key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS and not key.startswith("_") and value is not None}

    for key in _EXTRA_FOCUS_ORDER:
        if key in payload:
            yield key, payload.pop(key)

    for key in sorted(payload):
        yield key, payload[key]


def _format_extra_value(value: Any) -> str:
    if isinstance(value, (list, tuple, set, frozenset)):
        return "[" + ", ".join(_format_extra_value(item) for item in value) + "]"
    if isinstance(value, Mapping):
        try:
            return json.dumps(value, ensure_ascii=False, default=str)
        except TypeError:
            return repr(dict(value))
    if isinstance(value, float):
        return f"{value:.4g}"
    return str(value)


class StructuredLogFormatter(logging.Formatter):
    """Formatter that appends structured extras and supports optional colour output."""

    def __init__(self, *, use_color: bool = False) -> None:
        super().__init__(DEFAULT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        working = copy(record)
        if self.use_color:
            style = _LEVEL_STYLES.get(working.levelname.strip().upper())
            if style:
                working.levelname = f"{style}{working.levelname}{_RESET}"
        base = super().format(working)
        extras = " ".join(f"{key}={_format_extra_value(value)}" for key, value in _iter_extras(record))
        if extras:
            return f"{base} | {extras}"
        return base


def _build_handler(level: Optional[int | str]) -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(_resolve_level(level))
    handler.setFormatter(StructuredLogFormatter(use_color=_supports_color(handler.stream)))
    return handler


def configure_logging(level: Optional[int | str] = None, *, force: bool = False) -> None:
    """
    Install the structured stderr handler on the root logger.

    Parameters
    ----------
    level:
        Optional level override. Falls back to ``HAWKULAR_LOG_LEVEL`` or ``INFO``.
    force:
        Reapply the configuration even when it was already installed, e.g. after
        the CLI parsed ``--log-level``.
    """

    global _configured
    if _configured and not force:
        return
    logging.basicConfig(level=_resolve_level(level), handlers=[_build_handler(level)], force=force)
    _configured = True


def _merge_extra(
    *,
    tags: Optional[Sequence[str]],
    extra: Optional[Mapping[str, object]],
) -> MutableMapping[str, object]:
    payload: MutableMapping[str, object] = {}
    if tags:
        payload["tags"] = tuple(tags)
    if extra:
        # LogRecord refuses extras that shadow its own attributes.
        payload.update({key: value for key, value in extra.items() if value is not None and key not in _RESERVED_ATTRS})
    return payload


def get_logger(
    name: str,
    *,
    level: Optional[int | str] = None,
    tags: Optional[Sequence[str]] = None,
    extra: Optional[Mapping[str, object]] = None,
) -> LoggerAdapter:
    """
    Return a :class:`logging.LoggerAdapter` bound to ``extra`` and ``tags``.

    Parameters
    ----------
    name:
        Logger namespace, typically ``__name__`` or ``module.ClassName``.
    level:
        Optional per-logger level override.
    tags:
        Observability tags attached to every record.
    extra:
        Additional structured metadata recorded with each log entry.
    """

    configure_logging(level)
    base: Logger = logging.getLogger(name)
    if level is not None:
        base.setLevel(_resolve_level(level))
    return _ExtraMergingAdapter(base, _merge_extra(tags=tags, extra=extra))


class _ExtraMergingAdapter(LoggerAdapter):
    """Adapter that merges call-site ``extra`` with the bound context instead of replacing it."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        merged = dict(self.extra or {})
        call_extra = kwargs.get("extra")
        if call_extra:
            merged.update(call_extra)
        kwargs["extra"] = merged
        return msg, kwargs


def bind_tags(logger: LoggerAdapter, tags: Sequence[str]) -> LoggerAdapter:
    """Return a child adapter carrying ``tags`` in addition to the existing ones."""

    current = dict(logger.extra) if isinstance(logger.extra, Mapping) else {}
    merged_tags = tuple(dict.fromkeys((*current.get("tags", ()), *tags)))
    current["tags"] = merged_tags
    return _ExtraMergingAdapter(logger.logger, current)


def bind_extra(logger: LoggerAdapter, **extra: object) -> LoggerAdapter:
    """Return a child adapter with additional bound ``extra`` values."""

    current = dict(logger.extra) if isinstance(logger.extra, Mapping) else {}
    current.update({key: value for key, value in extra.items() if value is not None})
    return _ExtraMergingAdapter(logger.logger, current)


def log_progress(
    logger: LoggerAdapter | Logger,
    message: str,
    *,
    phase: Optional[str] = None,
    status: Optional[str] = None,
    level: int = logging.INFO,
    extra: Optional[Mapping[str, object]] = None,
) -> None:
    """Emit a progress line tagged with ``phase`` and ``status``."""

    payload: MutableMapping[str, object] = dict(extra or {})
    if phase:
        payload["phase"] = phase
    if status:
        payload["status"] = status
    logger.log(level, message, extra=payload)
