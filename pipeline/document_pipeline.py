"""
Document extraction orchestrator: single public method process(doc) -> AggregatedExtraction.
Does not know which concrete provider runs; adapters, budget and catalog are injected.
Flow: input check -> classify -> strategy + budget gate -> fallback chain -> reclassify
-> validate -> aggregate confidence.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from pathlib import Path
from typing import Mapping

from classification.classifier import DocumentClassifier
from core.exceptions import BudgetExceededError, UnsupportedDocumentError
from core.interfaces import IExtractionProvider
from core.models import (
    AggregatedExtraction,
    DocumentClassification,
    ProcessingStrategy,
    RawDocument,
    ValidationResult,
)
from core.schema import ExtractedFields
from pipeline.aggregator import ConfidenceAggregator
from pipeline.fallback import FallbackChainRunner
from providers.catalog import ProviderCatalog
from providers.rate_limit import RateLimitTracker
from strategy.budget import BudgetManager
from strategy.selector import ProcessingStrategySelector, redirect_for_budget
from utils.config import OrchestratorConfig
from utils.files import CONTENT_SAMPLE_CHARS, content_sample, extract_text_from_pdf, file_format, pdf_page_count
from utils.images import is_readable_image
from utils.logger import log_structured
from validation.validators import DEFAULT_WEIGHTS, ValidationWeights, validate_extracted_document

logger = logging.getLogger(__name__)

QUALITY_WARNING = "Quality not guaranteed"


class ExtractionOrchestrator:
    """
    Production orchestrator. Safe to share across threads: per-document state lives on the
    stack, shared spend goes through BudgetManager, shared request counts through RateLimitTracker.
    """

    def __init__(
        self,
        catalog: ProviderCatalog,
        providers: Mapping[str, IExtractionProvider],
        budget: BudgetManager,
        *,
        classifier: DocumentClassifier | None = None,
        selector: ProcessingStrategySelector | None = None,
        aggregator: ConfidenceAggregator | None = None,
        config: OrchestratorConfig | None = None,
        rate_limiter: RateLimitTracker | None = None,
        validation_weights: ValidationWeights | None = None,
    ) -> None:
        self._config = config or OrchestratorConfig()
        self._catalog = catalog
        self._budget = budget
        self._classifier = classifier or DocumentClassifier()
        self._selector = selector or ProcessingStrategySelector(catalog, self._config.fallback_chain)
        self._aggregator = aggregator or ConfidenceAggregator(self._config.low_water_mark)
        self._weights = validation_weights or DEFAULT_WEIGHTS
        self._runner = FallbackChainRunner(
            catalog,
            providers,
            budget,
            rate_limiter=rate_limiter,
            timeout_sec=self._config.provider_timeout_sec,
            retries=self._config.retries_per_provider,
            retry_delay_sec=self._config.retry_delay_sec,
        )

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _check_input(self, doc: RawDocument, trace_id: str) -> tuple[str, Path | bytes]:
        """(format, file reference) or UnsupportedDocumentError."""
        name = (doc.file_name or "").strip()
        if not name:
            raise UnsupportedDocumentError("Document has no file name", trace_id=trace_id)
        if doc.file_size is None or doc.file_size <= 0:
            raise UnsupportedDocumentError(f"{name}: file size must be positive", trace_id=trace_id)
        fmt = file_format(name)
        if fmt not in self._catalog.supported_formats():
            raise UnsupportedDocumentError(
                f"{name}: format '{fmt or 'unknown'}' is not supported by any provider",
                trace_id=trace_id,
            )
        file_ref: Path | bytes
        if doc.content is not None:
            file_ref = bytes(doc.content)
        elif doc.file_path and Path(doc.file_path).is_file():
            file_ref = Path(doc.file_path)
        else:
            raise UnsupportedDocumentError(f"{name}: file not found and no content provided", trace_id=trace_id)
        if fmt == "pdf":
            readable = bool(pdf_page_count(file_ref))
        else:
            readable = is_readable_image(file_ref)
        if not readable:
            raise UnsupportedDocumentError(f"{name}: file is corrupted or unreadable as {fmt}", trace_id=trace_id)
        return fmt, file_ref

    @staticmethod
    def _sample(doc: RawDocument, fmt: str, file_ref: Path | bytes) -> str:
        if doc.content_sample:
            return doc.content_sample
        if isinstance(file_ref, bytes):
            return content_sample(file_ref, fmt)
        if fmt == "pdf":
            return extract_text_from_pdf(file_ref)[:CONTENT_SAMPLE_CHARS]
        return ""

    @staticmethod
    def _pages(doc: RawDocument, fmt: str, file_ref: Path | bytes) -> int:
        if doc.page_count and doc.page_count > 0:
            return int(doc.page_count)
        if fmt == "pdf":
            return pdf_page_count(file_ref) or 1
        return 1

    def _gate(self, strategy: ProcessingStrategy, file_size: int, trace_id: str) -> ProcessingStrategy:
        """Strategy that passes the budget gate, redirected to a cheaper provider when needed."""
        state = self._budget.snapshot()
        check = self._budget.check(strategy.estimated_cost)
        if check.allowed:
            return strategy
        logger.warning("[%s] Budget gate rejected %s: %s", trace_id, strategy.provider, check.reason)
        redirected = redirect_for_budget(
            strategy,
            self._catalog,
            self._budget.limits,
            state,
            self._config.redirect_min_quality,
            file_size=file_size,
        )
        if redirected is None:
            raise BudgetExceededError(
                f"Budget exceeded and no cheaper provider qualifies: {check.reason}",
                trace_id=trace_id,
                estimated_cost=strategy.estimated_cost,
            )
        return redirected

    def _reclassify(
        self,
        pre: DocumentClassification,
        raw_text: str,
        file_name: str,
    ) -> tuple[DocumentClassification, str]:
        """Higher-confidence classification of (pre, extracted text); ties keep pre."""
        if not (raw_text or "").strip():
            return pre, "content_sample"
        post = self._classifier.classify(raw_text, file_name)
        if post.confidence > pre.confidence:
            return post, "extracted_text"
        return pre, "content_sample"

    def _quality_warning(self, strategy: ProcessingStrategy, provider_used: str) -> str | None:
        used = self._catalog.get(provider_used)
        below = used is not None and not used.meets_quality(strategy.quality_requirement)
        if strategy.quality_guaranteed and not below:
            return None
        ratio = used.quality_ratio if used is not None else 0.0
        return (
            f"{QUALITY_WARNING}: {provider_used} quality {ratio:.2f} is below "
            f"the {strategy.quality_requirement:.2f} required for {strategy.document_type} documents"
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(self, doc: RawDocument, cancel_event: threading.Event | None = None) -> AggregatedExtraction:
        """
        Run the full flow for one document.
        Raises UnsupportedDocumentError, BudgetExceededError, ProviderUnavailableError or
        ProcessingCancelledError; classification and validation problems never raise.
        """
        trace_id = doc.trace_id or str(uuid.uuid4())
        start = time.perf_counter()
        fmt, file_ref = self._check_input(doc, trace_id)

        sample = self._sample(doc, fmt, file_ref)
        pages = self._pages(doc, fmt, file_ref)
        pre_class = self._classifier.classify(sample, doc.file_name)
        logger.info(
            "[%s] Classified %s as %s (%.2f)",
            trace_id,
            doc.file_name,
            pre_class.type,
            pre_class.confidence,
        )

        selected = self._selector.select_strategy(doc.file_name, doc.file_size, sample, pages)
        strategy = self._gate(selected, doc.file_size, trace_id)

        options = {"document_type": pre_class.type, "pages": pages, "file_name": doc.file_name}
        outcome = self._runner.run(
            strategy,
            file_ref,
            options,
            file_size=doc.file_size,
            fmt=fmt,
            trace_id=trace_id,
            cancel_event=cancel_event,
        )
        result = outcome.result

        classification, class_source = self._reclassify(pre_class, result.raw_text, doc.file_name)
        fields = ExtractedFields.from_raw(result.fields)
        validation: ValidationResult = validate_extracted_document(fields, self._weights)
        final, verdict = self._aggregator.aggregate(
            result.provider_confidence,
            validation,
            strategy.quality_requirement,
        )

        warnings = list(validation.warnings)
        quality_warning = self._quality_warning(strategy, outcome.provider)
        if quality_warning:
            logger.warning("[%s] %s", trace_id, quality_warning)
            warnings.append(quality_warning)

        elapsed = time.perf_counter() - start
        extraction = AggregatedExtraction(
            trace_id=trace_id,
            file_name=doc.file_name,
            fields=fields.model_dump(mode="json", exclude_none=True),
            classification=classification,
            strategy_provider=selected.provider,
            provider_used=outcome.provider,
            provider_confidence=result.provider_confidence,
            final_confidence=final,
            verdict=verdict,
            validation_errors=list(validation.errors),
            validation_warnings=warnings,
            attempts=outcome.attempts,
            estimated_cost=strategy.estimated_cost,
            actual_cost=outcome.cost,
            raw_text=result.raw_text,
            metadata={
                "bucket": strategy.document_type,
                "required_quality": strategy.quality_requirement,
                "pages": pages,
                "budget_redirected": strategy.budget_redirected,
                "quality_guaranteed": quality_warning is None,
                "classification_source": class_source,
                "confidence_adjustment": validation.confidence_adjustment,
                "processing_time_sec": round(elapsed, 4),
            },
        )
        log_structured(
            logger,
            logging.INFO,
            "Document processed",
            trace_id=trace_id,
            file_name=doc.file_name,
            document_type=classification.type,
            provider=outcome.provider,
            final_confidence=final,
            verdict=verdict.value,
            cost=outcome.cost,
        )
        return extraction
