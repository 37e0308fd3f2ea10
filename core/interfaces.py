"""
Abstract interfaces for the document intelligence pipeline.
Every external collaborator (OCR/vision providers, budget persistence) is behind an interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from core.models import BudgetState, ExtractionResult


class IExtractionProvider(ABC):
    """Uniform capability contract: file reference + options -> raw text, fields, confidence."""

    name: str = "base"

    @abstractmethod
    def extract(self, file_ref: Path | bytes, options: dict[str, Any]) -> ExtractionResult:
        """
        Extract text and structured fields from a document.
        options: document_type, timeout_sec, pages, file_name.
        Raises ProviderCallError on any failure.
        """
        ...


class IBudgetStore(ABC):
    """Persistence of running spend counters (external collaborator)."""

    @abstractmethod
    def get_budget(self) -> BudgetState:
        """Return current daily/monthly spend."""
        ...

    @abstractmethod
    def commit_spend(self, amount: float) -> BudgetState:
        """Add amount to daily and monthly counters; return the updated state."""
        ...
