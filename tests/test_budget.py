"""
Unit tests for the budget gate, the in-memory store and reservation accounting under concurrency.
"""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from core.exceptions import BudgetExceededError
from core.models import BudgetState, ProcessingStrategy
from strategy.budget import (
    BudgetLimits,
    BudgetManager,
    InMemoryBudgetStore,
    check_budget,
    check_strategy_budget,
)

LIMITS = BudgetLimits(max_cost_per_document=0.10, daily_budget_limit=50.0, monthly_budget_limit=1000.0)


# ---------------------------------------------------------------------------
# Pure gate
# ---------------------------------------------------------------------------


def test_gate_allows_within_limits() -> None:
    assert check_budget(0.01, LIMITS, BudgetState(daily_spent=10.0, monthly_spent=100.0)).allowed


def test_gate_rejects_per_document_ceiling() -> None:
    result = check_budget(0.12, LIMITS, BudgetState())
    assert not result.allowed
    assert "per-document" in result.reason


def test_gate_rejects_daily_overshoot() -> None:
    result = check_budget(0.02, LIMITS, BudgetState(daily_spent=49.99, monthly_spent=200.0))
    assert not result.allowed
    assert "daily" in result.reason


def test_gate_allows_exactly_reaching_the_limit() -> None:
    assert check_budget(0.01, LIMITS, BudgetState(daily_spent=49.99)).allowed


def test_gate_rejects_monthly_overshoot() -> None:
    result = check_budget(0.05, LIMITS, BudgetState(daily_spent=1.0, monthly_spent=999.99))
    assert not result.allowed
    assert "monthly" in result.reason


def test_strategy_gate_uses_estimated_cost() -> None:
    strategy = ProcessingStrategy("invoice", "openai_vision", 0.9, estimated_cost=0.2)
    assert not check_strategy_budget(strategy, LIMITS, BudgetState()).allowed


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


def test_store_accumulates_and_rolls_over() -> None:
    today = [date(2024, 5, 31)]
    store = InMemoryBudgetStore(clock=lambda: today[0])
    store.commit_spend(1.5)
    store.commit_spend(0.5)
    state = store.get_budget()
    assert state.daily_spent == pytest.approx(2.0)
    assert state.monthly_spent == pytest.approx(2.0)

    today[0] = date(2024, 6, 1)
    state = store.get_budget()
    assert state.daily_spent == 0.0
    assert state.monthly_spent == 0.0
    assert state.month == (2024, 6)


def test_store_day_rollover_keeps_month() -> None:
    today = [date(2024, 5, 10)]
    store = InMemoryBudgetStore(clock=lambda: today[0])
    store.commit_spend(3.0)
    today[0] = date(2024, 5, 11)
    state = store.get_budget()
    assert state.daily_spent == 0.0
    assert state.monthly_spent == pytest.approx(3.0)


def test_store_rejects_negative_spend() -> None:
    with pytest.raises(ValueError):
        InMemoryBudgetStore().commit_spend(-1.0)


def test_store_manual_resets() -> None:
    store = InMemoryBudgetStore()
    store.commit_spend(2.0)
    store.reset_daily()
    assert store.get_budget().daily_spent == 0.0
    assert store.get_budget().monthly_spent == pytest.approx(2.0)
    store.reset_monthly()
    assert store.get_budget().monthly_spent == 0.0


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


def test_reservation_counts_until_committed() -> None:
    manager = BudgetManager(InMemoryBudgetStore(), LIMITS)
    reservation = manager.reserve("openai_vision", 0.05)
    assert manager.snapshot().daily_spent == pytest.approx(0.05)
    manager.commit(reservation, actual_cost=0.03)
    assert manager.snapshot().daily_spent == pytest.approx(0.03)
    # Second commit is a no-op
    assert manager.commit(reservation) is None
    assert manager.snapshot().daily_spent == pytest.approx(0.03)


def test_release_returns_reserved_amount() -> None:
    manager = BudgetManager(InMemoryBudgetStore(), LIMITS)
    reservation = manager.reserve("google_vision", 0.05)
    manager.release(reservation)
    assert manager.snapshot().daily_spent == 0.0


def test_reserve_raises_when_gate_rejects() -> None:
    manager = BudgetManager(InMemoryBudgetStore(), BudgetLimits(daily_budget_limit=0.05))
    manager.reserve("a", 0.04)
    with pytest.raises(BudgetExceededError) as exc_info:
        manager.reserve("b", 0.02, trace_id="t-1")
    assert exc_info.value.estimated_cost == pytest.approx(0.02)
    assert exc_info.value.trace_id == "t-1"


def test_concurrent_reservations_never_overshoot() -> None:
    """100 threads race for a daily limit that fits exactly 10 reservations."""
    manager = BudgetManager(InMemoryBudgetStore(), BudgetLimits(max_cost_per_document=1.0, daily_budget_limit=1.0))
    barrier = threading.Barrier(20)

    def attempt(_: int) -> bool:
        barrier.wait()
        try:
            reservation = manager.reserve("p", 0.1)
        except BudgetExceededError:
            return False
        manager.commit(reservation)
        return True

    with ThreadPoolExecutor(max_workers=20) as pool:
        outcomes = list(pool.map(attempt, range(100)))

    assert sum(outcomes) == 10
    assert manager.snapshot().daily_spent == pytest.approx(1.0)
