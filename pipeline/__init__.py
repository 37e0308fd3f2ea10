"""Pipeline: confidence aggregation, fallback chain, single-document and batch processing."""

from pipeline.aggregator import ConfidenceAggregator
from pipeline.fallback import ChainOutcome, FallbackChainRunner
from pipeline.document_pipeline import ExtractionOrchestrator, OrchestratorConfig
from pipeline.batch_processor import BatchProcessor
from pipeline.factory import batch_processor_from_file, build_batch_processor, build_orchestrator

__all__ = [
    "ConfidenceAggregator",
    "ChainOutcome",
    "FallbackChainRunner",
    "ExtractionOrchestrator",
    "OrchestratorConfig",
    "BatchProcessor",
    "batch_processor_from_file",
    "build_batch_processor",
    "build_orchestrator",
]
