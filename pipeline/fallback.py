"""
Fallback chain: try the strategy's provider, then each fallback in order, until one succeeds.
Every chain entry leaves a ProviderAttempt; budget is reserved before a call and committed or
released after it. Cancellation is honoured before each call starts, never mid-flight.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

from core.exceptions import (
    BudgetExceededError,
    ProcessingCancelledError,
    ProviderCallError,
    ProviderUnavailableError,
)
from core.interfaces import IExtractionProvider
from core.models import ExtractionResult, ProcessingStrategy, ProviderAttempt
from providers.catalog import ProviderCatalog
from providers.rate_limit import RateLimitTracker
from strategy.budget import BudgetManager
from utils.retry import with_retry

logger = logging.getLogger(__name__)

SKIP_NO_ADAPTER = "no adapter configured"
SKIP_UNFIT = "file size or format not accepted"
SKIP_RATE_LIMITED = "rate limited"
SKIP_BUDGET = "budget"


@dataclass
class ChainOutcome:
    """Successful chain run: the result, who produced it and what it cost."""

    result: ExtractionResult
    provider: str
    cost: float
    attempts: list[ProviderAttempt] = field(default_factory=list)


class FallbackChainRunner:
    """Runs [strategy.provider] + strategy.fallback_providers against injected adapters."""

    def __init__(
        self,
        catalog: ProviderCatalog,
        providers: Mapping[str, IExtractionProvider],
        budget: BudgetManager,
        *,
        rate_limiter: RateLimitTracker | None = None,
        timeout_sec: int = 60,
        retries: int = 1,
        retry_delay_sec: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._catalog = catalog
        self._providers = dict(providers)
        self._budget = budget
        self._rate_limiter = rate_limiter
        self._timeout_sec = timeout_sec
        self._retries = max(0, int(retries))
        self._retry_delay_sec = retry_delay_sec
        self._sleep = sleep

    @staticmethod
    def _check_cancelled(cancel_event: threading.Event | None, trace_id: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ProcessingCancelledError("Processing cancelled before provider call", trace_id=trace_id)

    def run(
        self,
        strategy: ProcessingStrategy,
        file_ref: Path | bytes,
        options: dict[str, Any],
        *,
        file_size: int,
        fmt: str = "",
        trace_id: str = "",
        cancel_event: threading.Event | None = None,
    ) -> ChainOutcome:
        """
        Return the first successful extraction.
        Raises ProcessingCancelledError, ProviderUnavailableError, or BudgetExceededError when
        every chain entry was skipped for budget reasons.
        """
        chain = [strategy.provider] + [p for p in strategy.fallback_providers if p != strategy.provider]
        attempts: list[ProviderAttempt] = []
        budget_skips = 0
        last_budget_error: BudgetExceededError | None = None

        for name in chain:
            self._check_cancelled(cancel_event, trace_id)
            config = self._catalog.get(name)
            adapter = self._providers.get(name)
            if config is None or adapter is None or not config.enabled:
                attempts.append(ProviderAttempt(name, success=False, error=SKIP_NO_ADAPTER, skipped=True))
                continue
            if not config.accepts(file_size, fmt or None):
                attempts.append(ProviderAttempt(name, success=False, error=SKIP_UNFIT, skipped=True))
                continue

            estimate = round(config.cost_per_request * max(strategy.pages, 1), 6)
            try:
                reservation = self._budget.reserve(name, estimate, trace_id=trace_id)
            except BudgetExceededError as e:
                logger.warning("[%s] %s skipped: %s", trace_id, name, e)
                attempts.append(ProviderAttempt(name, success=False, error=f"{SKIP_BUDGET}: {e}", skipped=True))
                budget_skips += 1
                last_budget_error = e
                continue
            # Quota is only counted for calls that actually go out
            if self._rate_limiter is not None and not self._rate_limiter.try_acquire(config):
                self._budget.release(reservation)
                logger.warning("[%s] %s rate limited; skipping", trace_id, name)
                attempts.append(ProviderAttempt(name, success=False, error=SKIP_RATE_LIMITED, skipped=True))
                continue

            call_options = dict(options, timeout_sec=self._timeout_sec)
            start = time.perf_counter()
            try:
                result = with_retry(
                    lambda: adapter.extract(file_ref, call_options),
                    max_attempts=1 + self._retries,
                    delay_sec=self._retry_delay_sec,
                    retry_exceptions=(ProviderCallError,),
                    before_attempt=lambda _i: self._check_cancelled(cancel_event, trace_id),
                    sleep=self._sleep,
                )
            except ProviderCallError as e:
                self._budget.release(reservation)
                duration = time.perf_counter() - start
                logger.warning("[%s] Provider %s failed after %.2fs: %s", trace_id, name, duration, e)
                attempts.append(ProviderAttempt(name, success=False, error=str(e), duration_sec=duration))
                continue
            except Exception:
                # Cancellation or an adapter bug: nothing was spent
                self._budget.release(reservation)
                raise

            cost = estimate if result.cost is None else max(0.0, float(result.cost))
            self._budget.commit(reservation, actual_cost=cost)
            duration = time.perf_counter() - start
            attempts.append(ProviderAttempt(name, success=True, duration_sec=duration))
            logger.info("[%s] Provider %s succeeded in %.2fs (cost %.4f)", trace_id, name, duration, cost)
            return ChainOutcome(result=result, provider=name, cost=cost, attempts=attempts)

        if attempts and budget_skips == len(attempts) and last_budget_error is not None:
            raise BudgetExceededError(
                f"Every provider in the chain exceeded the budget ({', '.join(chain)})",
                trace_id=trace_id,
                estimated_cost=last_budget_error.estimated_cost,
            )
        raise ProviderUnavailableError(
            f"All providers failed or were skipped: {', '.join(chain)}",
            trace_id=trace_id,
            attempts=attempts,
        )
