"""Shared utilities: logger, retry, file and image helpers. Configuration lives in utils.config."""

from utils.logger import log_structured, setup_logging
from utils.retry import with_retry

__all__ = [
    "log_structured",
    "setup_logging",
    "with_retry",
]
