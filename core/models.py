"""
Data models for the document intelligence pipeline.
Uses dataclasses for DTOs; the pydantic field payload (ExtractedFields) lives in core.schema.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from core.exceptions import ConfigError

UNCLASSIFIED_INDICATOR = "Document not automatically classified"


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


@dataclass
class DocumentClassification:
    """Outcome of type detection for one document."""

    type: str
    confidence: float
    indicators: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.confidence = clamp(float(self.confidence))
        if self.confidence > 0 and not self.indicators:
            self.indicators = [f"{self.type} pattern detected"]


@dataclass(frozen=True)
class RateLimit:
    """Provider request ceilings."""

    per_minute: int = 60
    per_day: int = 10_000


@dataclass(frozen=True)
class ProviderConfig:
    """Capability, cost and quality profile of an extraction backend."""

    name: str
    enabled: bool = True
    priority: int = 100  # lower = preferred
    cost_per_request: float = 0.0
    max_file_size: int = 20 * 1024 * 1024
    supported_formats: frozenset[str] = field(default_factory=frozenset)
    rate_limit: RateLimit = field(default_factory=RateLimit)
    quality_score: float = 5.0  # 1..10

    def __post_init__(self) -> None:
        if not 1.0 <= self.quality_score <= 10.0:
            raise ConfigError(f"quality_score for {self.name} must be in [1, 10], got {self.quality_score}")
        if self.cost_per_request < 0:
            raise ConfigError(f"cost_per_request for {self.name} must be >= 0, got {self.cost_per_request}")

    @property
    def quality_ratio(self) -> float:
        return self.quality_score / 10.0

    def meets_quality(self, required: float) -> bool:
        return self.quality_ratio >= required

    def accepts(self, file_size: int, fmt: str | None = None) -> bool:
        """True if the file fits the size limit and (when known) the format is supported."""
        if file_size > self.max_file_size:
            return False
        if fmt and self.supported_formats and fmt not in self.supported_formats:
            return False
        return True


@dataclass(frozen=True)
class ProcessingStrategy:
    """Provider decision for one document."""

    document_type: str
    provider: str
    quality_requirement: float
    estimated_cost: float
    fallback_providers: tuple[str, ...] = ()
    pages: int = 1
    quality_guaranteed: bool = True
    budget_redirected: bool = False


@dataclass
class ValidationResult:
    """Outcome of one validator (or of several merged)."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    confidence_adjustment: float = 0.0

    @classmethod
    def build(
        cls,
        errors: list[str] | None = None,
        warnings: list[str] | None = None,
        adjustment: float = 0.0,
    ) -> ValidationResult:
        errors = list(errors or [])
        return cls(
            is_valid=not errors,
            errors=errors,
            warnings=list(warnings or []),
            confidence_adjustment=round(adjustment, 4),
        )

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(is_valid=True)

    @classmethod
    def merge(cls, *results: ValidationResult) -> ValidationResult:
        """Concatenate errors/warnings and sum adjustments; valid only if no errors anywhere."""
        errors: list[str] = []
        warnings: list[str] = []
        total = 0.0
        for r in results:
            errors.extend(r.errors)
            warnings.extend(r.warnings)
            total += r.confidence_adjustment
        return cls.build(errors, warnings, total)


@dataclass
class ExtractionResult:
    """Uniform provider output: raw text, extracted fields, provider-reported confidence."""

    raw_text: str
    fields: dict[str, Any]
    provider_confidence: float
    provider: str = ""
    cost: float | None = None  # actual spend when the provider reports it


@dataclass
class RawDocument:
    """Inbound request from the intake service."""

    file_name: str
    file_size: int
    file_path: str | None = None
    content: bytes | None = None
    content_sample: str | None = None
    page_count: int | None = None
    trace_id: str | None = None


@dataclass(frozen=True)
class BudgetState:
    """Snapshot of running spend counters."""

    daily_spent: float = 0.0
    monthly_spent: float = 0.0
    day: date | None = None
    month: tuple[int, int] | None = None


class Verdict(str, Enum):
    ACCEPTED = "accepted"
    NEEDS_REVIEW = "needs_review"
    REJECTED = "rejected"


@dataclass
class ProviderAttempt:
    """Diagnostic record for one fallback-chain entry."""

    provider: str
    success: bool
    error: str = ""
    duration_sec: float = 0.0
    skipped: bool = False


@dataclass
class AggregatedExtraction:
    """Final structured output for one document (single public output of the orchestrator)."""

    trace_id: str
    file_name: str
    fields: dict[str, Any]
    classification: DocumentClassification
    strategy_provider: str
    provider_used: str
    provider_confidence: float
    final_confidence: float
    verdict: Verdict
    validation_errors: list[str] = field(default_factory=list)
    validation_warnings: list[str] = field(default_factory=list)
    attempts: list[ProviderAttempt] = field(default_factory=list)
    estimated_cost: float = 0.0
    actual_cost: float = 0.0
    raw_text: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Export for logging/serialization."""
        d = asdict(self)
        d["verdict"] = self.verdict.value
        d["final_confidence"] = round(self.final_confidence, 4)
        return d


@dataclass
class BatchMetrics:
    """Metrics collected during batch processing."""

    total_processed: int = 0
    accepted_count: int = 0
    needs_review_count: int = 0
    rejected_count: int = 0
    failed_count: int = 0
    total_time_sec: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Export for logging/serialization."""
        return {
            "total_processed": self.total_processed,
            "accepted_count": self.accepted_count,
            "needs_review_count": self.needs_review_count,
            "rejected_count": self.rejected_count,
            "failed_count": self.failed_count,
            "total_time_sec": round(self.total_time_sec, 4),
        }
