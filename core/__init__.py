"""Core layer: interfaces, models, schema, exceptions."""

from core.interfaces import (
    IExtractionProvider,
    IBudgetStore,
)
from core.models import (
    DocumentClassification,
    ProviderConfig,
    RateLimit,
    ProcessingStrategy,
    ValidationResult,
    ExtractionResult,
    RawDocument,
    BudgetState,
    Verdict,
    ProviderAttempt,
    AggregatedExtraction,
    BatchMetrics,
)
from core.schema import ExtractedFields
from core.exceptions import (
    DocumentProcessingError,
    ConfigError,
    UnsupportedDocumentError,
    BudgetExceededError,
    ProviderCallError,
    ProviderUnavailableError,
    ProcessingCancelledError,
)

__all__ = [
    "IExtractionProvider",
    "IBudgetStore",
    "DocumentClassification",
    "ProviderConfig",
    "RateLimit",
    "ProcessingStrategy",
    "ValidationResult",
    "ExtractionResult",
    "RawDocument",
    "BudgetState",
    "Verdict",
    "ProviderAttempt",
    "AggregatedExtraction",
    "BatchMetrics",
    "ExtractedFields",
    "DocumentProcessingError",
    "ConfigError",
    "UnsupportedDocumentError",
    "BudgetExceededError",
    "ProviderCallError",
    "ProviderUnavailableError",
    "ProcessingCancelledError",
]
