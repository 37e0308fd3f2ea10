"""
Abstract base for all extraction providers.
Pipeline depends only on IExtractionProvider; concrete adapters translate their own request/response shapes.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import requests

from core.exceptions import ProviderCallError
from core.interfaces import IExtractionProvider
from core.models import ExtractionResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 60


def read_file_ref(file_ref: Path | str | bytes, provider: str) -> bytes:
    """Bytes of a path or in-memory buffer."""
    if isinstance(file_ref, (bytes, bytearray)):
        return bytes(file_ref)
    path = Path(file_ref)
    try:
        return path.read_bytes()
    except OSError as e:
        raise ProviderCallError(f"Cannot read {path}: {e}", provider=provider) from e


class BaseExtractionProvider(IExtractionProvider, ABC):
    """Implement _extract(); extract() adds timing, logging and error normalization."""

    name: str = "base"

    def __init__(self, timeout_sec: int = DEFAULT_TIMEOUT_SEC) -> None:
        self._timeout = timeout_sec

    def timeout_for(self, options: dict[str, Any]) -> float:
        return float(options.get("timeout_sec") or self._timeout)

    @abstractmethod
    def _extract(self, data: bytes, options: dict[str, Any]) -> ExtractionResult:
        ...

    def extract(self, file_ref: Path | bytes, options: dict[str, Any]) -> ExtractionResult:
        data = read_file_ref(file_ref, self.name)
        start = time.perf_counter()
        try:
            result = self._extract(data, options)
        except ProviderCallError:
            raise
        except requests.Timeout as e:
            raise ProviderCallError(f"{self.name} timed out: {e}", provider=self.name) from e
        except requests.RequestException as e:
            raise ProviderCallError(f"{self.name} request failed: {e}", provider=self.name) from e
        except (ValueError, KeyError, IndexError, TypeError, AttributeError, OSError) as e:
            raise ProviderCallError(f"{self.name} returned unusable output: {e}", provider=self.name) from e
        result.provider = result.provider or self.name
        logger.debug(
            "%s extracted %s chars, %s fields in %.2fs",
            self.name,
            len(result.raw_text or ""),
            len(result.fields),
            time.perf_counter() - start,
        )
        return result
