"""Wire an orchestrator (and batch processor) from AppConfig. All collaborators can be injected."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from classification.classifier import DocumentClassifier
from core.interfaces import IBudgetStore, IExtractionProvider
from pipeline.aggregator import ConfidenceAggregator
from pipeline.batch_processor import BatchProcessor
from pipeline.document_pipeline import ExtractionOrchestrator
from providers.catalog import ProviderCatalog
from providers.factory import build_providers
from providers.rate_limit import RateLimitTracker
from strategy.budget import BudgetManager, InMemoryBudgetStore
from strategy.selector import ProcessingStrategySelector
from utils.config import AppConfig, load_config
from utils.logger import setup_logging

logger = logging.getLogger(__name__)


def build_orchestrator(
    config: AppConfig,
    *,
    catalog: ProviderCatalog | None = None,
    providers: Mapping[str, IExtractionProvider] | None = None,
    budget_store: IBudgetStore | None = None,
) -> ExtractionOrchestrator:
    """Catalog, adapters and budget from config unless given. The budget store defaults to in-memory."""
    catalog = catalog or config.build_catalog()
    if providers is None:
        providers = build_providers(catalog, config.providers)
    budget = BudgetManager(budget_store or InMemoryBudgetStore(), config.budget.to_limits())
    logger.info(
        "Orchestrator: providers=%s chain=%s limits=%s",
        sorted(providers),
        list(config.orchestrator.fallback_chain),
        config.budget,
    )
    return ExtractionOrchestrator(
        catalog,
        providers,
        budget,
        classifier=DocumentClassifier(config.classifier),
        selector=ProcessingStrategySelector(catalog, config.orchestrator.fallback_chain),
        aggregator=ConfidenceAggregator(config.orchestrator.low_water_mark),
        config=config.orchestrator,
        rate_limiter=RateLimitTracker(),
        validation_weights=config.validation,
    )


def build_batch_processor(config: AppConfig, **kwargs) -> BatchProcessor:
    """BatchProcessor over build_orchestrator(config, **kwargs) using the configured worker count."""
    return BatchProcessor(build_orchestrator(config, **kwargs), max_workers=config.orchestrator.max_workers)


def batch_processor_from_file(
    config_path: str | Path | None = None,
    *,
    dotenv_path: str | Path | None = None,
    **kwargs,
) -> BatchProcessor:
    """Load config (.env, YAML, env), configure logging at the configured level and build a BatchProcessor."""
    config = load_config(config_path, dotenv_path=dotenv_path)
    setup_logging(config.log_level)
    return build_batch_processor(config, **kwargs)
