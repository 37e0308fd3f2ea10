"""
Budget ceilings and spend tracking.

check_budget is the pure gate. BudgetManager is the single serialization point for
check-then-reserve so concurrent documents cannot jointly overshoot a ceiling.
InMemoryBudgetStore is the default IBudgetStore; production deployments inject their own.
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Callable

from core.exceptions import BudgetExceededError
from core.interfaces import IBudgetStore
from core.models import BudgetState, ProcessingStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BudgetLimits:
    """Spend ceilings in the provider's billing currency."""

    max_cost_per_document: float = 0.10
    daily_budget_limit: float = 50.0
    monthly_budget_limit: float = 1000.0


@dataclass(frozen=True)
class BudgetCheck:
    allowed: bool
    reason: str = ""


def check_budget(estimated_cost: float, limits: BudgetLimits, state: BudgetState) -> BudgetCheck:
    """Reject when the cost exceeds the per-document ceiling or would overshoot daily/monthly limits."""
    if estimated_cost > limits.max_cost_per_document:
        return BudgetCheck(
            False,
            f"estimated cost {estimated_cost:.4f} exceeds per-document limit {limits.max_cost_per_document:.4f}",
        )
    if round(state.daily_spent + estimated_cost, 9) > limits.daily_budget_limit:
        return BudgetCheck(
            False,
            f"daily budget exceeded ({state.daily_spent:.4f} + {estimated_cost:.4f} > {limits.daily_budget_limit:.4f})",
        )
    if round(state.monthly_spent + estimated_cost, 9) > limits.monthly_budget_limit:
        return BudgetCheck(
            False,
            f"monthly budget exceeded ({state.monthly_spent:.4f} + {estimated_cost:.4f} > {limits.monthly_budget_limit:.4f})",
        )
    return BudgetCheck(True)


def check_strategy_budget(strategy: ProcessingStrategy, limits: BudgetLimits, state: BudgetState) -> BudgetCheck:
    return check_budget(strategy.estimated_cost, limits, state)


class InMemoryBudgetStore(IBudgetStore):
    """Process-local spend counters with automatic day/month rollover."""

    def __init__(self, clock: Callable[[], date] = date.today) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        today = clock()
        self._day = today
        self._month = (today.year, today.month)
        self._daily = 0.0
        self._monthly = 0.0

    def _rollover(self) -> None:
        today = self._clock()
        if (today.year, today.month) != self._month:
            logger.info("Budget month rollover: %s -> %s", self._month, (today.year, today.month))
            self._month = (today.year, today.month)
            self._monthly = 0.0
        if today != self._day:
            self._day = today
            self._daily = 0.0

    def _state(self) -> BudgetState:
        return BudgetState(
            daily_spent=round(self._daily, 6),
            monthly_spent=round(self._monthly, 6),
            day=self._day,
            month=self._month,
        )

    def get_budget(self) -> BudgetState:
        with self._lock:
            self._rollover()
            return self._state()

    def commit_spend(self, amount: float) -> BudgetState:
        if amount < 0:
            raise ValueError(f"spend amount must be >= 0, got {amount}")
        with self._lock:
            self._rollover()
            self._daily += amount
            self._monthly += amount
            return self._state()

    def reset_daily(self) -> None:
        with self._lock:
            self._daily = 0.0

    def reset_monthly(self) -> None:
        with self._lock:
            self._monthly = 0.0


@dataclass(frozen=True)
class BudgetReservation:
    reservation_id: str
    provider: str
    amount: float


class BudgetManager:
    """
    Reserve -> commit/release around each provider call.
    Reserved amounts count against the ceilings until committed or released.
    """

    def __init__(self, store: IBudgetStore, limits: BudgetLimits | None = None) -> None:
        self._store = store
        self._limits = limits or BudgetLimits()
        self._lock = threading.Lock()
        self._reserved: dict[str, BudgetReservation] = {}

    @property
    def limits(self) -> BudgetLimits:
        return self._limits

    def _reserved_total(self) -> float:
        return sum(r.amount for r in self._reserved.values())

    def snapshot(self) -> BudgetState:
        """Committed spend plus outstanding reservations."""
        with self._lock:
            state = self._store.get_budget()
            pending = self._reserved_total()
        return BudgetState(
            daily_spent=state.daily_spent + pending,
            monthly_spent=state.monthly_spent + pending,
            day=state.day,
            month=state.month,
        )

    def check(self, estimated_cost: float) -> BudgetCheck:
        return check_budget(estimated_cost, self._limits, self.snapshot())

    def reserve(self, provider: str, amount: float, trace_id: str | None = None) -> BudgetReservation:
        """Atomically gate and hold amount. Raises BudgetExceededError when the gate rejects."""
        with self._lock:
            state = self._store.get_budget()
            pending = self._reserved_total()
            effective = BudgetState(
                daily_spent=state.daily_spent + pending,
                monthly_spent=state.monthly_spent + pending,
            )
            result = check_budget(amount, self._limits, effective)
            if not result.allowed:
                raise BudgetExceededError(
                    f"Budget gate rejected {provider}: {result.reason}",
                    trace_id=trace_id,
                    estimated_cost=amount,
                )
            reservation = BudgetReservation(str(uuid.uuid4()), provider, amount)
            self._reserved[reservation.reservation_id] = reservation
            return reservation

    def commit(self, reservation: BudgetReservation, actual_cost: float | None = None) -> BudgetState | None:
        """Record actual (or reserved) spend. No-op if already committed or released."""
        cost = reservation.amount if actual_cost is None else max(0.0, actual_cost)
        with self._lock:
            if self._reserved.pop(reservation.reservation_id, None) is None:
                return None
            state = self._store.commit_spend(cost)
        if actual_cost is not None and abs(cost - reservation.amount) > 1e-9:
            logger.debug(
                "Spend adjusted for %s: reserved %.4f, actual %.4f",
                reservation.provider,
                reservation.amount,
                cost,
            )
        return state

    def release(self, reservation: BudgetReservation) -> None:
        with self._lock:
            self._reserved.pop(reservation.reservation_id, None)
