"""
Batch processor: list of documents -> run the orchestrator per document, collect metrics.
Does not duplicate pipeline logic; uses ExtractionOrchestrator.process().
Supports parallel execution via max_workers (ThreadPoolExecutor).
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from core.exceptions import DocumentProcessingError
from core.models import AggregatedExtraction, BatchMetrics, RawDocument, Verdict
from pipeline.document_pipeline import ExtractionOrchestrator

logger = logging.getLogger(__name__)


def _update_metrics(metrics: BatchMetrics, result: AggregatedExtraction) -> None:
    """Update counts from a single result."""
    metrics.total_processed += 1
    if result.verdict is Verdict.ACCEPTED:
        metrics.accepted_count += 1
    elif result.verdict is Verdict.NEEDS_REVIEW:
        metrics.needs_review_count += 1
    else:
        metrics.rejected_count += 1


class BatchProcessor:
    """
    Process multiple documents in parallel (or sequentially when max_workers=1). Collects metrics.
    Results keep input order; failed documents are counted and left out of the results.
    """

    def __init__(self, orchestrator: ExtractionOrchestrator, max_workers: int = 1) -> None:
        self._orchestrator = orchestrator
        self._max_workers = max(1, int(max_workers))

    def _process_one(
        self,
        doc: RawDocument,
        cancel_event: threading.Event | None,
    ) -> tuple[AggregatedExtraction | None, DocumentProcessingError | None]:
        logger.info("Processing file=%s", doc.file_name)
        try:
            return self._orchestrator.process(doc, cancel_event=cancel_event), None
        except DocumentProcessingError as e:
            logger.error("Batch item failed file=%s (%s): %s", doc.file_name, type(e).__name__, e)
            return None, e

    def process_batch(
        self,
        docs: list[RawDocument],
        *,
        stop_on_first_error: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> tuple[list[AggregatedExtraction], BatchMetrics]:
        """
        Run orchestrator.process() for each document. Returns (results, metrics).
        Pipeline errors are logged and counted in failed_count; with stop_on_first_error the
        first one is re-raised and remaining documents are cancelled. Any other exception propagates.
        """
        metrics = BatchMetrics()
        start = time.perf_counter()
        outcomes: list[tuple[AggregatedExtraction | None, DocumentProcessingError | None]] = []

        if self._max_workers > 1 and len(docs) > 1:
            stop = cancel_event or threading.Event()
            with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
                futures = [executor.submit(self._process_one, doc, stop) for doc in docs]
                try:
                    for future in futures:
                        result, err = future.result()
                        if err is not None and stop_on_first_error:
                            stop.set()
                            raise err
                        outcomes.append((result, err))
                except BaseException:
                    for f in futures:
                        f.cancel()
                    raise
        else:
            for doc in docs:
                result, err = self._process_one(doc, cancel_event)
                if err is not None and stop_on_first_error:
                    raise err
                outcomes.append((result, err))

        results: list[AggregatedExtraction] = []
        for result, err in outcomes:
            if err is not None or result is None:
                metrics.failed_count += 1
                continue
            results.append(result)
            _update_metrics(metrics, result)
        metrics.total_time_sec = time.perf_counter() - start
        logger.info("Batch done: %s", metrics.to_dict())
        return results, metrics
