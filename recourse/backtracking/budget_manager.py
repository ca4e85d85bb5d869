"""
Budget Manager - Bounded Exploration Allowance

Limits how much backtracking a single controller run may perform.
The budget counts exploration steps, not wall-clock time.

Features:
- Clamped consumption (never goes negative)
- Per-level slices of the remaining budget for tree exploration
- Priority reserve released on demand for critical decision points
- Best-effort candidate selection once everything is spent

Budgets are immutable pydantic models; every operation returns a new one.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Hashable, Iterable

import structlog

from recourse.inspection import extract_confidence
from recourse.models import Budget, ErrorKind, Result

logger = structlog.get_logger(__name__)


DEFAULT_TOTAL_BUDGET = 10
DEFAULT_PRIORITY_RESERVE_FRACTION = 0.2
DEFAULT_LEVEL_ALLOCATION = 0.4


class BudgetManager:
    """
    Operations over ``Budget`` values.

    Stateless: the manager only carries defaults, so it may be shared by
    concurrent runs.
    """

    def __init__(
        self,
        priority_reserve_fraction: float = DEFAULT_PRIORITY_RESERVE_FRACTION,
        level_allocation_factor: float = DEFAULT_LEVEL_ALLOCATION,
    ):
        self.priority_reserve_fraction = priority_reserve_fraction
        self.level_allocation_factor = level_allocation_factor

    def init(
        self,
        total: int = DEFAULT_TOTAL_BUDGET,
        priority_reserve_fraction: float | None = None,
    ) -> Budget:
        """
        Create a fresh budget.

        Args:
            total: Total exploration steps available.
            priority_reserve_fraction: Fraction of ``total`` held back for
                priority requests (default from the manager, 0.2).

        Returns:
            Budget with ``remaining == total`` and nothing used.
        """
        if total < 0:
            raise ValueError(f"Budget total must be non-negative, got {total}")

        fraction = (
            self.priority_reserve_fraction
            if priority_reserve_fraction is None
            else priority_reserve_fraction
        )

        return Budget(
            total=total,
            remaining=total,
            used=0,
            priority_reserve=math.floor(total * fraction),
        )

    @staticmethod
    def has_budget(budget: Budget) -> bool:
        return budget.remaining > 0

    @staticmethod
    def consume(budget: Budget, amount: int = 1) -> Budget:
        """Spend up to ``amount``; clamps at zero remaining."""
        if amount < 0:
            raise ValueError(f"Cannot consume a negative amount: {amount}")

        consumed = min(amount, budget.remaining)

        logger.debug(
            "budget_consumed",
            consumed=consumed,
            remaining_before=budget.remaining,
            remaining_after=budget.remaining - consumed,
        )

        return budget.model_copy(
            update={
                "remaining": budget.remaining - consumed,
                "used": budget.used + consumed,
            }
        )

    def allocate_for_level(
        self,
        budget: Budget,
        level: Hashable,
        factor: float | None = None,
    ) -> Result[tuple[int, Budget]]:
        """
        Reserve a slice of the remaining budget for a tree level.

        The slice is ``floor(remaining * factor)``. Allocation is
        bookkeeping only; it does not consume.

        Returns:
            Result holding ``(slice, updated_budget)``, or
            ``ErrorKind.INSUFFICIENT_BUDGET`` when nothing remains.
        """
        if budget.remaining == 0:
            return Result.failure(ErrorKind.INSUFFICIENT_BUDGET)

        factor = self.level_allocation_factor if factor is None else factor
        level_budget = math.floor(budget.remaining * factor)

        allocations = dict(budget.level_allocations)
        allocations[level] = level_budget

        logger.debug("level_budget_allocated", level=level, amount=level_budget)

        return Result.success(
            (level_budget, budget.model_copy(update={"level_allocations": allocations}))
        )

    @staticmethod
    def get_level_budget(budget: Budget, level: Hashable) -> int:
        return budget.level_allocations.get(level, 0)

    @staticmethod
    def allocate_priority(budget: Budget, amount: int) -> Result[Budget]:
        """
        Release ``amount`` from the priority reserve into ``remaining``.

        Returns:
            Updated budget, or ``ErrorKind.INSUFFICIENT_PRIORITY_RESERVE``.
        """
        if amount < 0:
            raise ValueError(f"Cannot allocate a negative amount: {amount}")

        if budget.priority_reserve < amount:
            return Result.failure(ErrorKind.INSUFFICIENT_PRIORITY_RESERVE)

        logger.info(
            "priority_budget_allocated",
            amount=amount,
            reserve_left=budget.priority_reserve - amount,
        )

        return Result.success(
            budget.model_copy(
                update={
                    "priority_reserve": budget.priority_reserve - amount,
                    "remaining": budget.remaining + amount,
                }
            )
        )

    @staticmethod
    def utilization(budget: Budget) -> float:
        if budget.total == 0:
            return 0.0
        return budget.used / budget.total

    @staticmethod
    def exhausted(budget: Budget) -> bool:
        return budget.remaining == 0 and budget.priority_reserve == 0

    @staticmethod
    def handle_exhaustion(
        budget: Budget,
        candidates: Iterable[Any],
        score: Callable[[Any], float] = extract_confidence,
    ) -> Any | None:
        """
        Pick the best candidate once the budget is spent.

        Args:
            budget: The exhausted budget (for logging).
            candidates: Finite collection of candidate results.
            score: Scoring function; defaults to the result's confidence.

        Returns:
            Highest-scored candidate (earliest wins ties), or None.
        """
        logger.warning(
            "budget_exhausted",
            used=budget.used,
            total=budget.total,
        )

        best = None
        best_score = -math.inf
        for candidate in candidates:
            candidate_score = score(candidate)
            if candidate_score > best_score:
                best, best_score = candidate, candidate_score

        return best

    # -------------------------------------------------------------------------
    # Tuning
    # -------------------------------------------------------------------------

    def reallocate_unused(self, budget: Budget, completed_levels: Iterable[Hashable]) -> Budget:
        """
        Release the slices of completed levels for other levels.

        Slices are bookkeeping over ``remaining`` and were never taken out
        of it, so ``remaining`` is unchanged.
        """
        completed = list(completed_levels)
        unused = sum(self.get_level_budget(budget, level) for level in completed)

        if unused <= 0:
            return budget

        allocations = {
            level: amount
            for level, amount in budget.level_allocations.items()
            if level not in completed
        }

        logger.debug("budget_reallocated", released=unused)

        return budget.model_copy(update={"level_allocations": allocations})

    @staticmethod
    def estimate_required(depth: int = 3, branching_factor: int = 2) -> int:
        """Exponential estimate of exploration steps: ``branching_factor ** depth``."""
        return int(branching_factor**depth)

    def report(self, budget: Budget) -> dict[str, Any]:
        return {
            "total": budget.total,
            "remaining": budget.remaining,
            "used": budget.used,
            "utilization": self.utilization(budget),
            "priority_reserve": budget.priority_reserve,
            "level_allocations": dict(budget.level_allocations),
            "exhausted": self.exhausted(budget),
        }

    @staticmethod
    def adjust_by_success_rate(budget: Budget, success_rate: float) -> Budget:
        """
        Shrink exploration when things go well, widen it when they don't.

        A success rate above 0.7 moves 20% of ``remaining`` into the
        priority reserve, keeping at least 1 unit spendable (an empty budget
        stays empty); below 0.3 up to 2 units move back out of the reserve.
        """
        if success_rate > 0.7:
            reduction = min(math.floor(budget.remaining * 0.2), max(0, budget.remaining - 1))
            if reduction == 0:
                return budget
            return budget.model_copy(
                update={
                    "remaining": budget.remaining - reduction,
                    "priority_reserve": budget.priority_reserve + reduction,
                }
            )

        if success_rate < 0.3 and budget.priority_reserve > 0:
            boost = min(2, budget.priority_reserve)
            return budget.model_copy(
                update={
                    "remaining": budget.remaining + boost,
                    "priority_reserve": budget.priority_reserve - boost,
                }
            )

        return budget
