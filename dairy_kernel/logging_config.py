"""
Structured logging for the dairy system (``dairy_kernel.logging_config``).

Every record under the ``dairy`` logger is written as one JSON object per
line.  Collection work is always about some branch, and usually about one
farmer's delivery, so those identifiers are carried in a context that
services bind around their writes and the formatter merges into each
record:

    with LogContext.bind(branch_id="B1", entry_id=entry.id):
        logger.info("entry_recorded", extra={"amount": bill.amount})

Amounts, rates and measurements are Decimals and are written as strings so
no precision is lost.  Enum vocabularies (shift, milk type, rate method,
outcome) are written as their values.  A ``DairyError`` attached with
``exc_info`` is written as an ``error`` object holding its ``code`` and
structured attributes.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

CONTEXT_FIELDS = ("branch_id", "farmer_id", "entry_id")

_LOGGER_PREFIX = "dairy"

_context: ContextVar[Mapping[str, str]] = ContextVar("dairy_log_context", default={})


class LogContext:
    """Branch, farmer and entry identifiers of the work in progress."""

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: object) -> Iterator[None]:
        """
        Add identifiers for the duration of the block.

        None values are ignored; UUIDs and other ids are stored as text.
        Fields bound by an outer block stay visible unless overridden.

        Raises:
            TypeError: for a field outside ``CONTEXT_FIELDS``.
        """
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = _context.set(merged)
        try:
            yield
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# JSON rendering
# ---------------------------------------------------------------------------

_RESERVED = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _plain(value: Any) -> Any:
    """Reduce domain values to JSON-native ones."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(v) for v in value]
    return value


def _error_payload(exc: BaseException) -> dict[str, Any]:
    error: dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
    code = getattr(exc, "code", None)
    if code is not None:
        error["code"] = code
    for key, val in vars(exc).items():
        if not key.startswith("_"):
            error[key] = _plain(val)
    return error


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, bound context, then extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context.get())
        for key, val in vars(record).items():
            if key not in _RESERVED and key not in payload:
                payload[key] = _plain(val)

        if record.exc_info and record.exc_info[1] is not None:
            payload["error"] = _error_payload(record.exc_info[1])
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``dairy`` namespace, e.g. ``get_logger("engines.rate")``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_installed: logging.Handler | None = None
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install the JSON handler on the ``dairy`` logger.

    Only the first call has an effect; call ``reset_logging`` to reconfigure.
    """
    global _installed
    with _lock:
        if _installed is not None:
            return
        _installed = handler or logging.StreamHandler(stream or sys.stderr)
        _installed.setFormatter(StructuredFormatter())
        root = logging.getLogger(_LOGGER_PREFIX)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(_installed)


def reset_logging() -> None:
    """Remove every handler from the ``dairy`` logger.  Used by tests."""
    global _installed
    with _lock:
        _installed = None
        root = logging.getLogger(_LOGGER_PREFIX)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
        root.propagate = True
