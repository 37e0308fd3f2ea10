"""Custom exceptions for the document intelligence pipeline. No generic Exception usage."""

from __future__ import annotations

from typing import Any


class DocumentProcessingError(Exception):
    """Base exception for pipeline failures."""

    def __init__(self, message: str, trace_id: str | None = None) -> None:
        self.trace_id = trace_id or ""
        super().__init__(message)


class ConfigError(DocumentProcessingError):
    """Invalid or missing configuration."""

    pass


class UnsupportedDocumentError(DocumentProcessingError):
    """Unreadable file or format no provider supports. Terminal for the document."""

    pass


class BudgetExceededError(DocumentProcessingError):
    """Spend ceiling reached and no cheaper provider qualifies. Caller may queue for later."""

    def __init__(
        self,
        message: str,
        trace_id: str | None = None,
        estimated_cost: float = 0.0,
    ) -> None:
        self.estimated_cost = estimated_cost
        super().__init__(message, trace_id=trace_id)


class ProviderCallError(DocumentProcessingError):
    """A single provider call failed (network, timeout, 4xx/5xx, unparseable response)."""

    def __init__(self, message: str, provider: str = "", trace_id: str | None = None) -> None:
        self.provider = provider
        super().__init__(message, trace_id=trace_id)


class ProviderUnavailableError(DocumentProcessingError):
    """Every provider in the fallback chain failed or was skipped."""

    def __init__(
        self,
        message: str,
        trace_id: str | None = None,
        attempts: list[Any] | None = None,
    ) -> None:
        self.attempts = list(attempts or [])
        super().__init__(message, trace_id=trace_id)


class ProcessingCancelledError(DocumentProcessingError):
    """Cancellation was requested before a provider call started."""

    pass
