"""
Processing strategy selection: document bucket -> quality requirement -> provider + fallback chain.
Never fails: with no qualifying provider it degrades to the cheapest one and flags the strategy.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Sequence

from core.models import BudgetState, ProcessingStrategy, ProviderConfig
from providers.catalog import (
    GOOGLE_DOCUMENT_AI,
    GOOGLE_VISION,
    OPENAI_VISION,
    TESSERACT,
    ProviderCatalog,
)
from strategy.budget import BudgetLimits, check_budget
from utils.files import file_format

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_CHAIN: tuple[str, ...] = (OPENAI_VISION, GOOGLE_VISION, TESSERACT)


@dataclass(frozen=True)
class DocumentBucket:
    """Coarse document family with the quality it demands and the provider that handles it best."""

    name: str
    required_quality: float
    preferred_provider: str
    patterns: tuple[re.Pattern[str], ...] = ()


def _rx(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


GENERAL_BUCKET = DocumentBucket("general", 0.8, OPENAI_VISION)

DOCUMENT_BUCKETS: tuple[DocumentBucket, ...] = (
    DocumentBucket(
        "invoice",
        0.9,
        OPENAI_VISION,
        _rx(r"nf-?e", r"nota[\s_-]*fiscal", r"danfe", r"fatura", r"invoice", r"chave\s+de\s+acesso"),
    ),
    DocumentBucket(
        "receipt",
        0.8,
        GOOGLE_VISION,
        _rx(r"recibo", r"cupom", r"receipt", r"comprovante", r"recebi\s+de"),
    ),
    DocumentBucket(
        "contract",
        0.85,
        GOOGLE_DOCUMENT_AI,
        _rx(r"contrato", r"contract", r"cl[áa]usula", r"contratante"),
    ),
    DocumentBucket(
        "financial_statement",
        0.95,
        GOOGLE_DOCUMENT_AI,
        _rx(r"extrato", r"statement", r"balan[çc]o", r"saldo\s+(anterior|atual)", r"\bdre\b"),
    ),
)


def detect_bucket(
    file_name: str,
    content_sample: str | None = None,
    buckets: Sequence[DocumentBucket] = DOCUMENT_BUCKETS,
) -> DocumentBucket:
    """Bucket with the most matching patterns over name + sample; ties go to table order; none -> general."""
    haystack = f"{file_name or ''}\n{content_sample or ''}"
    best, best_hits = GENERAL_BUCKET, 0
    for bucket in buckets:
        hits = sum(1 for p in bucket.patterns if p.search(haystack))
        if hits > best_hits:
            best, best_hits = bucket, hits
    return best


class ProcessingStrategySelector:
    """Picks the optimal provider for a document from the catalog."""

    def __init__(
        self,
        catalog: ProviderCatalog,
        fallback_chain: Sequence[str] = DEFAULT_FALLBACK_CHAIN,
        buckets: Sequence[DocumentBucket] = DOCUMENT_BUCKETS,
    ) -> None:
        self._catalog = catalog
        self._fallback_chain = tuple(fallback_chain)
        self._buckets = tuple(buckets)

    def _fallbacks_for(self, chosen: str) -> tuple[str, ...]:
        out: list[str] = []
        for name in self._fallback_chain:
            cfg = self._catalog.get(name)
            if cfg is None or not cfg.enabled or name == chosen or name in out:
                continue
            out.append(name)
        return tuple(out)

    def _pick(self, bucket: DocumentBucket, file_size: int, fmt: str) -> tuple[ProviderConfig, bool]:
        preferred = self._catalog.get(bucket.preferred_provider)
        if (
            preferred is not None
            and preferred.enabled
            and preferred.accepts(file_size, fmt)
            and preferred.meets_quality(bucket.required_quality)
        ):
            return preferred, True
        eligible = self._catalog.eligible(file_size, bucket.required_quality, fmt or None)
        if eligible:
            return eligible[0], True
        fallback = self._catalog.cheapest()
        logger.warning(
            "No provider meets quality %.2f for %s bytes (%s); degrading to %s",
            bucket.required_quality,
            file_size,
            fmt or "unknown format",
            fallback.name,
        )
        return fallback, False

    def select_strategy(
        self,
        file_name: str,
        file_size: int,
        content_sample: str | None = None,
        pages: int = 1,
    ) -> ProcessingStrategy:
        bucket = detect_bucket(file_name, content_sample, self._buckets)
        fmt = file_format(file_name)
        provider, guaranteed = self._pick(bucket, file_size, fmt)
        pages = max(int(pages or 1), 1)
        strategy = ProcessingStrategy(
            document_type=bucket.name,
            provider=provider.name,
            quality_requirement=bucket.required_quality,
            estimated_cost=round(provider.cost_per_request * pages, 6),
            fallback_providers=self._fallbacks_for(provider.name),
            pages=pages,
            quality_guaranteed=guaranteed,
        )
        logger.info(
            "Strategy for %s: bucket=%s provider=%s cost=%.4f fallbacks=%s",
            file_name,
            strategy.document_type,
            strategy.provider,
            strategy.estimated_cost,
            list(strategy.fallback_providers),
        )
        return strategy


def redirect_for_budget(
    strategy: ProcessingStrategy,
    catalog: ProviderCatalog,
    limits: BudgetLimits,
    state: BudgetState,
    min_quality: float,
    file_size: int | None = None,
) -> ProcessingStrategy | None:
    """
    Cheapest fallback-chain entry that passes the budget gate and meets min_quality.
    Returns a new strategy with the remaining chain as fallbacks, or None.
    """
    candidates: list[ProviderConfig] = []
    for name in strategy.fallback_providers:
        cfg = catalog.get(name)
        if cfg is None or not cfg.enabled or not cfg.meets_quality(min_quality):
            continue
        if file_size is not None and file_size > cfg.max_file_size:
            continue
        cost = round(cfg.cost_per_request * strategy.pages, 6)
        if check_budget(cost, limits, state).allowed:
            candidates.append(cfg)
    if not candidates:
        return None
    chosen = min(candidates, key=lambda p: (p.cost_per_request, p.priority))
    remaining = tuple(n for n in strategy.fallback_providers if n != chosen.name)
    logger.warning("Budget redirect: %s -> %s", strategy.provider, chosen.name)
    return replace(
        strategy,
        provider=chosen.name,
        estimated_cost=round(chosen.cost_per_request * strategy.pages, 6),
        fallback_providers=remaining,
        quality_guaranteed=strategy.quality_guaranteed and chosen.meets_quality(strategy.quality_requirement),
        budget_redirected=True,
    )
