"""Structured logging; no global state beyond logging tree."""

from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping


def setup_logging(
    level: str = "INFO",
    format_string: str | None = None,
    stream: Any = None,
) -> None:
    """
    Configure root logger once. Safe to call from main or tests.
    """
    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    stream = stream or sys.stderr
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=format_string,
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=stream,
        force=True,
    )
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class TraceAdapter(logging.LoggerAdapter):
    """Prefix messages with the invoice trace id and attach it as an extra key."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        trace_id = (self.extra or {}).get("trace_id", "")
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("trace_id", trace_id)
        kwargs["extra"] = extra
        return f"[{trace_id}] {msg}", kwargs


def trace_logger(logger: logging.Logger, trace_id: str) -> TraceAdapter:
    """Logger bound to one invoice's trace id."""
    return TraceAdapter(logger, {"trace_id": trace_id})


def log_structured(logger: logging.Logger | logging.LoggerAdapter, level: int, msg: str, **kwargs: Any) -> None:
    """Emit a log record with extra keys for structured aggregation."""
    logger.log(level, msg, extra=kwargs)
