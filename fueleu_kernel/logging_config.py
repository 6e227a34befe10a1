"""
Structured JSON logging for the compliance accounting engine.

Every record under the ``fueleu`` logger namespace is rendered as one JSON
line: a fixed envelope (ts, level, logger, message), the fields bound in
LogContext for the current ship operation, the ``extra`` values passed at
the call site, and for exceptions their ``code`` and limiting values.

    logger = get_logger("services.banking_ledger")
    with LogContext.bind(ship_id="IMO9000001", operation="deposit"):
        logger.info("ledger_deposit_completed", extra={"amount": amount})
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Iterator
from uuid import UUID

_LOGGER_PREFIX = "fueleu"


class LogContext:
    """
    Log fields scoped to the running thread or task.

    Only the names in ``FIELDS`` are accepted.  The fields live in a single
    ContextVar holding an immutable snapshot, so ``bind`` can restore the
    previous snapshot with its token.
    """

    FIELDS = ("correlation_id", "ship_id", "pool_id", "operation")

    _fields: ContextVar[dict[str, str]] = ContextVar("fueleu_log_fields", default={})

    @classmethod
    def _merged(cls, updates: dict[str, str | None]) -> dict[str, str]:
        unknown = set(updates) - set(cls.FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
        merged = dict(cls._fields.get())
        merged.update({k: v for k, v in updates.items() if v is not None})
        return merged

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set fields for the rest of the current context. None values are ignored."""
        cls._fields.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(cls._fields.get())

    @classmethod
    def clear(cls) -> None:
        cls._fields.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the ``with`` block and restore the previous ones after it."""
        token = cls._fields.set(cls._merged(fields))
        try:
            yield cls
        finally:
            cls._fields.reset(token)


# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger ``fueleu.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``fueleu`` logger.

    Only the first call has an effect until reset_logging() is called.
    Records do not propagate to the root logger.
    """
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

        handler = handler or logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())

        fueleu_logger = logging.getLogger(_LOGGER_PREFIX)
        fueleu_logger.setLevel(level)
        fueleu_logger.propagate = False
        fueleu_logger.addHandler(handler)


def reset_logging() -> None:
    """Remove the handlers configure_logging() attached. Used by tests."""
    global _configured
    with _configure_lock:
        _configured = False
        fueleu_logger = logging.getLogger(_LOGGER_PREFIX)
        fueleu_logger.handlers.clear()
        fueleu_logger.setLevel(logging.WARNING)
