"""
Unit tests for the extraction orchestrator, fallback chain and batch processor.
All providers are injected fakes; no network, no OCR binaries.
"""

from __future__ import annotations

import io
import threading
from pathlib import Path
from typing import Any, Callable

import pytest
from PIL import Image
from pypdf import PdfWriter

from core.exceptions import (
    BudgetExceededError,
    ProcessingCancelledError,
    ProviderCallError,
    ProviderUnavailableError,
    UnsupportedDocumentError,
)
from core.interfaces import IExtractionProvider
from core.models import ExtractionResult, ProcessingStrategy, RawDocument, Verdict
from pipeline.batch_processor import BatchProcessor
from pipeline.document_pipeline import ExtractionOrchestrator
from pipeline.fallback import FallbackChainRunner
from providers.catalog import GOOGLE_VISION, OPENAI_VISION, TESSERACT, ProviderCatalog, default_catalog, load_catalog
from providers.rate_limit import RateLimitTracker
from strategy.budget import BudgetLimits, BudgetManager, InMemoryBudgetStore
from utils.config import OrchestratorConfig

ACCESS_KEY = "35240511222333000181550010000001231000000010"
NFE_SAMPLE = f"DANFE\nChave de acesso\n{ACCESS_KEY}"
GOOD_FIELDS = {
    "tipo_documento": "NFe",
    "cnpj_emitente": "11.222.333/0001-81",
    "data_emissao": "2024-05-10",
    "valor_total": "R$ 1.234,56",
    "chave_acesso": ACCESS_KEY,
}


def _blank_pdf(pages: int = 1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=595, height=842)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


def _png() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (40, 20), "white").save(buf, format="PNG")
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Fake implementations (test doubles)
# ---------------------------------------------------------------------------


class FakeProvider(IExtractionProvider):
    """Returns a fixed ExtractionResult or raises ProviderCallError; records every call."""

    def __init__(
        self,
        name: str,
        *,
        fields: dict[str, Any] | None = None,
        confidence: float = 0.85,
        raw_text: str = "",
        fail: bool = False,
        on_call: Callable[[], None] | None = None,
        cost: float | None = None,
    ) -> None:
        self.name = name
        self.fields = dict(GOOD_FIELDS if fields is None else fields)
        self.confidence = confidence
        self.raw_text = raw_text
        self.fail = fail
        self.on_call = on_call
        self.cost = cost
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def extract(self, file_ref: Path | bytes, options: dict[str, Any]) -> ExtractionResult:
        with self._lock:
            self.calls.append(dict(options))
        if self.on_call is not None:
            self.on_call()
        if self.fail:
            raise ProviderCallError(f"{self.name} is down", provider=self.name)
        return ExtractionResult(
            raw_text=self.raw_text,
            fields=dict(self.fields),
            provider_confidence=self.confidence,
            provider=self.name,
            cost=self.cost,
        )


def _providers(**overrides: FakeProvider) -> dict[str, FakeProvider]:
    providers = {name: FakeProvider(name) for name in (OPENAI_VISION, GOOGLE_VISION, TESSERACT)}
    providers.update(overrides)
    return providers


def _budget(spent: float = 0.0, limits: BudgetLimits | None = None) -> BudgetManager:
    store = InMemoryBudgetStore()
    if spent:
        store.commit_spend(spent)
    return BudgetManager(store, limits or BudgetLimits())


def _orchestrator(
    providers: dict[str, FakeProvider] | None = None,
    *,
    budget: BudgetManager | None = None,
    catalog: ProviderCatalog | None = None,
    rate_limiter: RateLimitTracker | None = None,
    **config: Any,
) -> ExtractionOrchestrator:
    return ExtractionOrchestrator(
        catalog or default_catalog(),
        providers if providers is not None else _providers(),
        budget or _budget(),
        config=OrchestratorConfig(retry_delay_sec=0.0, **config),
        rate_limiter=rate_limiter,
    )


def _nfe_doc(**kwargs: Any) -> RawDocument:
    values: dict[str, Any] = {
        "file_name": "nfe_0001.pdf",
        "file_size": 120_000,
        "content": _blank_pdf(),
        "content_sample": NFE_SAMPLE,
        "page_count": 1,
        "trace_id": "trace-1",
    }
    values.update(kwargs)
    return RawDocument(**values)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


def test_happy_path_accepts_valid_nfe() -> None:
    providers = _providers()
    budget = _budget()
    result = _orchestrator(providers, budget=budget).process(_nfe_doc())

    assert result.trace_id == "trace-1"
    assert result.classification.type == "NFe"
    assert result.strategy_provider == OPENAI_VISION
    assert result.provider_used == OPENAI_VISION
    # 0.85 + 0.1 (CNPJ) + 0.2 (access key) clamps to 1.0
    assert result.final_confidence == pytest.approx(1.0)
    assert result.verdict is Verdict.ACCEPTED
    assert result.validation_errors == []
    assert result.fields["valor_total"] == pytest.approx(1234.56)
    assert result.actual_cost == pytest.approx(0.01)
    assert [a.provider for a in result.attempts] == [OPENAI_VISION]
    assert budget.snapshot().daily_spent == pytest.approx(0.01)
    assert providers[OPENAI_VISION].calls[0]["document_type"] == "NFe"
    assert providers[OPENAI_VISION].calls[0]["timeout_sec"] == 60
    assert result.to_dict()["verdict"] == "accepted"


def test_falls_back_after_retries() -> None:
    providers = _providers(**{OPENAI_VISION: FakeProvider(OPENAI_VISION, fail=True)})
    budget = _budget()
    result = _orchestrator(providers, budget=budget).process(_nfe_doc())

    assert len(providers[OPENAI_VISION].calls) == 2  # first try + one retry
    assert result.provider_used == GOOGLE_VISION
    assert [(a.provider, a.success) for a in result.attempts] == [(OPENAI_VISION, False), (GOOGLE_VISION, True)]
    assert "is down" in result.attempts[0].error
    # Failed provider's reservation released; only the successful call is spent
    assert budget.snapshot().daily_spent == pytest.approx(0.0015)


def test_retries_are_configurable() -> None:
    providers = _providers(**{OPENAI_VISION: FakeProvider(OPENAI_VISION, fail=True)})
    _orchestrator(providers, retries_per_provider=0).process(_nfe_doc())
    assert len(providers[OPENAI_VISION].calls) == 1


def test_all_providers_failing_raises_unavailable() -> None:
    providers = {name: FakeProvider(name, fail=True) for name in (OPENAI_VISION, GOOGLE_VISION, TESSERACT)}
    budget = _budget()
    with pytest.raises(ProviderUnavailableError) as exc_info:
        _orchestrator(providers, budget=budget).process(_nfe_doc())
    assert [a.provider for a in exc_info.value.attempts] == [OPENAI_VISION, GOOGLE_VISION, TESSERACT]
    assert exc_info.value.trace_id == "trace-1"
    assert budget.snapshot().daily_spent == 0.0


def test_provider_reported_cost_is_committed() -> None:
    providers = _providers(**{OPENAI_VISION: FakeProvider(OPENAI_VISION, cost=0.004)})
    budget = _budget()
    result = _orchestrator(providers, budget=budget).process(_nfe_doc())
    assert result.actual_cost == pytest.approx(0.004)
    assert result.estimated_cost == pytest.approx(0.01)
    assert budget.snapshot().daily_spent == pytest.approx(0.004)


def test_budget_redirect_to_cheaper_provider() -> None:
    providers = _providers(**{TESSERACT: FakeProvider(TESSERACT, confidence=0.7)})
    result = _orchestrator(providers, budget=_budget(spent=49.995)).process(_nfe_doc())

    assert result.provider_used == TESSERACT
    assert result.metadata["budget_redirected"] is True
    assert result.metadata["quality_guaranteed"] is False
    assert any(w.startswith("Quality not guaranteed") for w in result.validation_warnings)
    assert not providers[OPENAI_VISION].calls
    # CNPJ and access-key bonuses lift 0.7 to 1.0
    assert result.verdict is Verdict.ACCEPTED


def test_budget_exceeded_without_qualifying_redirect() -> None:
    orchestrator = _orchestrator(budget=_budget(spent=50.0), redirect_min_quality=0.8)
    with pytest.raises(BudgetExceededError) as exc_info:
        orchestrator.process(_nfe_doc())
    assert exc_info.value.estimated_cost == pytest.approx(0.01)


def test_per_document_ceiling_redirects() -> None:
    # Ten pages on openai_vision cost 0.10 (allowed); eleven cost 0.11 (rejected)
    result = _orchestrator().process(_nfe_doc(page_count=11))
    assert result.provider_used in (GOOGLE_VISION, TESSERACT)
    assert result.metadata["budget_redirected"] is True


def test_cancelled_before_start_calls_nothing() -> None:
    providers = _providers()
    budget = _budget()
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(ProcessingCancelledError):
        _orchestrator(providers, budget=budget).process(_nfe_doc(), cancel_event=cancel)
    assert all(not p.calls for p in providers.values())
    assert budget.snapshot().daily_spent == 0.0


def test_cancel_during_call_stops_before_next_call() -> None:
    cancel = threading.Event()
    failing = FakeProvider(OPENAI_VISION, fail=True, on_call=cancel.set)
    providers = _providers(**{OPENAI_VISION: failing})
    budget = _budget()
    with pytest.raises(ProcessingCancelledError):
        _orchestrator(providers, budget=budget).process(_nfe_doc(), cancel_event=cancel)
    # In-flight call completed; no retry and no fallback started
    assert len(failing.calls) == 1
    assert not providers[GOOGLE_VISION].calls
    assert budget.snapshot().daily_spent == 0.0


def test_rate_limited_provider_is_skipped() -> None:
    catalog = load_catalog({OPENAI_VISION: {"rate_limit": {"per_minute": 0}}})
    providers = _providers()
    result = _orchestrator(providers, catalog=catalog, rate_limiter=RateLimitTracker()).process(_nfe_doc())
    assert result.provider_used == GOOGLE_VISION
    assert result.attempts[0].skipped
    assert result.attempts[0].error == "rate limited"


def test_missing_adapter_is_skipped() -> None:
    providers = _providers()
    del providers[OPENAI_VISION]
    result = _orchestrator(providers).process(_nfe_doc())
    assert result.provider_used == GOOGLE_VISION
    assert result.attempts[0].skipped


@pytest.mark.parametrize(
    "kwargs",
    [
        {"file_name": ""},
        {"file_size": 0},
        {"file_name": "planilha.docx"},
        {"file_name": "semextensao"},
        {"content": None, "file_path": "/nonexistent/nfe.pdf"},
        {"file_name": "scan.pdf", "content": b"garbage not a pdf", "content_sample": None},
        {"file_name": "scan.png", "content": b"\x89PNG truncated"},
    ],
)
def test_unsupported_input(kwargs: dict[str, Any]) -> None:
    providers = _providers()
    with pytest.raises(UnsupportedDocumentError):
        _orchestrator(providers).process(_nfe_doc(**kwargs))
    assert all(not p.calls for p in providers.values())


def test_reads_file_from_disk(tmp_path: Path) -> None:
    path = tmp_path / "recibo_maio.png"
    path.write_bytes(_png())
    providers = _providers(**{GOOGLE_VISION: FakeProvider(GOOGLE_VISION, fields={"valor_total": 150.0})})
    doc = RawDocument(file_name=path.name, file_size=path.stat().st_size, file_path=str(path))
    result = _orchestrator(providers).process(doc)
    assert result.strategy_provider == GOOGLE_VISION  # receipt bucket prefers Google Vision
    assert result.classification.type == "Recibo"
    assert result.trace_id


def test_reclassifies_from_extracted_text() -> None:
    providers = _providers(**{OPENAI_VISION: FakeProvider(OPENAI_VISION, raw_text=NFE_SAMPLE, fields={})})
    doc = _nfe_doc(file_name="scan.png", content=_png(), content_sample=None)
    result = _orchestrator(providers).process(doc)
    assert result.classification.type == "NFe"
    assert result.metadata["classification_source"] == "extracted_text"


def test_keeps_pre_classification_when_text_is_weaker() -> None:
    providers = _providers(**{OPENAI_VISION: FakeProvider(OPENAI_VISION, raw_text="illegible", fields={})})
    result = _orchestrator(providers).process(_nfe_doc())
    assert result.classification.type == "NFe"
    assert result.metadata["classification_source"] == "content_sample"


def test_validation_problems_lower_verdict_without_raising() -> None:
    bad_fields = {"cnpj_emitente": "11.222.333/0001-82", "valor_total": "-10,00"}
    providers = _providers(**{OPENAI_VISION: FakeProvider(OPENAI_VISION, fields=bad_fields, confidence=0.9)})
    result = _orchestrator(providers).process(_nfe_doc())
    assert result.validation_errors == ["CNPJ check digits are invalid", "Total value cannot be negative"]
    # 0.9 - 0.3 - 0.3
    assert result.final_confidence == pytest.approx(0.3)
    assert result.verdict is Verdict.REJECTED


# ---------------------------------------------------------------------------
# Fallback chain runner
# ---------------------------------------------------------------------------


def test_chain_raises_budget_error_when_every_entry_is_over_budget() -> None:
    runner = FallbackChainRunner(
        default_catalog(),
        _providers(),
        _budget(limits=BudgetLimits(max_cost_per_document=0.001)),
        retry_delay_sec=0.0,
    )
    strategy = ProcessingStrategy("invoice", OPENAI_VISION, 0.9, 0.01, fallback_providers=(GOOGLE_VISION,))
    with pytest.raises(BudgetExceededError):
        runner.run(strategy, b"data", {}, file_size=100, fmt="pdf", trace_id="t")


def test_chain_skips_provider_that_cannot_take_the_file() -> None:
    providers = _providers()
    runner = FallbackChainRunner(default_catalog(), providers, _budget(), retry_delay_sec=0.0)
    strategy = ProcessingStrategy("invoice", OPENAI_VISION, 0.9, 0.01, fallback_providers=(TESSERACT,))
    outcome = runner.run(strategy, b"data", {}, file_size=30 * 1024 * 1024, fmt="pdf")
    assert outcome.provider == TESSERACT
    assert outcome.attempts[0].skipped
    assert not providers[OPENAI_VISION].calls


def test_budget_skip_does_not_count_against_rate_limit() -> None:
    tracker = RateLimitTracker()
    runner = FallbackChainRunner(
        default_catalog(),
        _providers(),
        _budget(limits=BudgetLimits(max_cost_per_document=0.005)),
        rate_limiter=tracker,
        retry_delay_sec=0.0,
    )
    strategy = ProcessingStrategy("invoice", OPENAI_VISION, 0.9, 0.01, fallback_providers=(GOOGLE_VISION,))
    outcome = runner.run(strategy, b"data", {}, file_size=100, fmt="pdf", trace_id="t")
    assert outcome.provider == GOOGLE_VISION
    assert outcome.attempts[0].error.startswith("budget")
    assert tracker.usage(OPENAI_VISION) == (0, 0)
    assert tracker.usage(GOOGLE_VISION) == (1, 1)


def test_rate_limited_provider_releases_its_reservation() -> None:
    catalog = load_catalog({OPENAI_VISION: {"rate_limit": {"per_day": 0}}})
    budget = _budget()
    result = _orchestrator(catalog=catalog, budget=budget, rate_limiter=RateLimitTracker()).process(_nfe_doc())
    assert result.attempts[0].error == "rate limited"
    assert budget.snapshot().daily_spent == pytest.approx(0.0015)


# ---------------------------------------------------------------------------
# Batch processor
# ---------------------------------------------------------------------------


def test_batch_processor_collects_metrics() -> None:
    weak = FakeProvider(OPENAI_VISION, fields={}, confidence=0.6)
    orchestrator = _orchestrator(_providers(**{OPENAI_VISION: weak}))
    docs = [
        _nfe_doc(trace_id="a"),
        _nfe_doc(trace_id="b", file_size=0),
        _nfe_doc(trace_id="c"),
    ]
    results, metrics = BatchProcessor(orchestrator).process_batch(docs)
    assert [r.trace_id for r in results] == ["a", "c"]
    assert metrics.total_processed == 2
    assert metrics.needs_review_count == 2
    assert metrics.failed_count == 1
    assert metrics.total_time_sec >= 0


def test_batch_processor_stop_on_first_error() -> None:
    batch = BatchProcessor(_orchestrator())
    with pytest.raises(UnsupportedDocumentError):
        batch.process_batch([_nfe_doc(file_size=0), _nfe_doc()], stop_on_first_error=True)


def test_parallel_batch_keeps_order_and_budget_consistent() -> None:
    budget = _budget()
    providers = _providers()
    orchestrator = _orchestrator(providers, budget=budget)
    docs = [_nfe_doc(trace_id=f"doc-{i}") for i in range(12)]
    results, metrics = BatchProcessor(orchestrator, max_workers=4).process_batch(docs)
    assert [r.trace_id for r in results] == [d.trace_id for d in docs]
    assert metrics.accepted_count == 12
    assert len(providers[OPENAI_VISION].calls) == 12
    assert budget.snapshot().daily_spent == pytest.approx(0.12)
