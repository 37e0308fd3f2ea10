"""Strategy: provider selection per document and budget control."""

from strategy.budget import (
    BudgetLimits,
    BudgetCheck,
    BudgetManager,
    BudgetReservation,
    InMemoryBudgetStore,
    check_budget,
    check_strategy_budget,
)
from strategy.selector import (
    DEFAULT_FALLBACK_CHAIN,
    DOCUMENT_BUCKETS,
    DocumentBucket,
    ProcessingStrategySelector,
    detect_bucket,
    redirect_for_budget,
)

__all__ = [
    "BudgetLimits",
    "BudgetCheck",
    "BudgetManager",
    "BudgetReservation",
    "InMemoryBudgetStore",
    "check_budget",
    "check_strategy_budget",
    "DEFAULT_FALLBACK_CHAIN",
    "DOCUMENT_BUCKETS",
    "DocumentBucket",
    "ProcessingStrategySelector",
    "detect_bucket",
    "redirect_for_budget",
]
