"""Logging setup and structured records; no global state beyond the logging tree."""

from __future__ import annotations

import logging
import sys
from typing import Any

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(
    level: str = "INFO",
    format_string: str | None = None,
    stream: Any = None,
) -> None:
    """Configure root logger. Unknown level names fall back to INFO."""
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format=format_string or DEFAULT_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=stream or sys.stderr,
        force=True,
    )


def _format_fields(fields: dict[str, Any]) -> str:
    return " ".join(f"{k}={v}" for k, v in fields.items() if v is not None)


def log_structured(logger: logging.Logger, level: int, msg: str, **fields: Any) -> None:
    """
    Emit one record with key=value pairs appended to the message.
    The same pairs are attached under record.fields for handlers that ship JSON.
    """
    if not logger.isEnabledFor(level):
        return
    suffix = _format_fields(fields)
    logger.log(level, "%s %s" % (msg, suffix) if suffix else msg, extra={"fields": fields})
