"""
Recourse Data Models

Pydantic models for the records that flow between the engine components:
snapshots and stacks, budgets, iteration history and dead-end verdicts.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from recourse import exceptions

T = TypeVar("T")


# =============================================================================
# Enumerations
# =============================================================================


class DivergenceLevel(str, Enum):
    """How far an actual outcome diverges from the expected one."""

    MATCH = "match"
    MINOR = "minor"
    MODERATE = "moderate"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """0 for match up to 3 for critical."""
        return _DIVERGENCE_RANK[self]

    def is_worse_than(self, other: DivergenceLevel) -> bool:
        return self.rank > other.rank


_DIVERGENCE_RANK = {
    DivergenceLevel.MATCH: 0,
    DivergenceLevel.MINOR: 1,
    DivergenceLevel.MODERATE: 2,
    DivergenceLevel.CRITICAL: 3,
}


class CorrectionStrategy(str, Enum):
    """Correction approach selected after a failed or weak attempt."""

    RETRY_ADJUSTED = "retry_adjusted"
    BACKTRACK_ALTERNATIVE = "backtrack_alternative"
    CLARIFY_REQUIREMENTS = "clarify_requirements"
    ACCEPT_PARTIAL = "accept_partial"


class Criticality(str, Enum):
    """Task criticality used to adapt quality thresholds."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DeadEndReason(str, Enum):
    """Heuristics that can flag a reasoning path as a dead end."""

    REPEATED_FAILURES = "repeated_failures"
    CIRCULAR_REASONING = "circular_reasoning"
    LOW_CONFIDENCE = "low_confidence"
    STALLED_PROGRESS = "stalled_progress"
    CONSTRAINT_VIOLATION = "constraint_violation"
    CUSTOM_PREDICATE = "custom_predicate"


class ErrorKind(str, Enum):
    """Recoverable and terminal error conditions reported as values."""

    EMPTY_STACK = "empty_stack"
    NOT_FOUND = "not_found"
    PERSISTENCE_FAILED = "persistence_failed"
    INSUFFICIENT_BUDGET = "insufficient_budget"
    INSUFFICIENT_PRIORITY_RESERVE = "insufficient_priority_reserve"
    BUDGET_EXHAUSTED = "budget_exhausted"
    NO_ALTERNATIVES = "no_alternatives"
    NO_SOLUTION = "no_solution"
    MAX_DEPTH_EXCEEDED = "max_depth_exceeded"
    MAX_BACKTRACKS_EXCEEDED = "max_backtracks_exceeded"
    MAX_ITERATIONS_EXCEEDED = "max_iterations_exceeded"
    CLARIFICATION_REQUIRED = "clarification_required"


ERROR_EXCEPTIONS: dict[ErrorKind, type[exceptions.RecourseError]] = {
    ErrorKind.EMPTY_STACK: exceptions.EmptyStackError,
    ErrorKind.NOT_FOUND: exceptions.SnapshotNotFoundError,
    ErrorKind.PERSISTENCE_FAILED: exceptions.PersistenceError,
    ErrorKind.INSUFFICIENT_BUDGET: exceptions.InsufficientBudgetError,
    ErrorKind.INSUFFICIENT_PRIORITY_RESERVE: exceptions.InsufficientPriorityReserveError,
    ErrorKind.BUDGET_EXHAUSTED: exceptions.BudgetExhaustedError,
    ErrorKind.NO_ALTERNATIVES: exceptions.NoAlternativesError,
    ErrorKind.NO_SOLUTION: exceptions.NoSolutionError,
    ErrorKind.MAX_DEPTH_EXCEEDED: exceptions.MaxDepthExceededError,
    ErrorKind.MAX_BACKTRACKS_EXCEEDED: exceptions.MaxBacktracksExceededError,
    ErrorKind.MAX_ITERATIONS_EXCEEDED: exceptions.MaxIterationsExceededError,
    ErrorKind.CLARIFICATION_REQUIRED: exceptions.ClarificationRequiredError,
}


def error_for(kind: ErrorKind, message: str | None = None) -> exceptions.RecourseError:
    """Build the exception instance matching an error kind."""
    return ERROR_EXCEPTIONS[kind](message or kind.value)


# =============================================================================
# Result Values
# =============================================================================


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of an operation that may fail in an expected way.

    Either ``value`` is set and ``error`` is None, or ``error`` names
    what went wrong. ``unwrap()`` converts the error into the matching
    exception for callers that prefer raising.
    """

    value: T | None = None
    error: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind) -> Result[T]:
        return cls(error=error)

    def unwrap(self) -> T:
        if self.error is not None:
            raise error_for(self.error)
        return self.value  # type: ignore[return-value]


@dataclass(frozen=True)
class Accepted:
    """Validator verdict: the result is acceptable (possibly transformed)."""

    value: Any


@dataclass(frozen=True)
class Rejected:
    """Validator verdict: the result failed, with an optional divergence."""

    reason: Any = "validation_failed"
    divergence: DivergenceLevel | None = None


# =============================================================================
# State Models
# =============================================================================


def _snapshot_id() -> str:
    return "snap_" + secrets.token_hex(8)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Snapshot(BaseModel):
    """An immutable capture of reasoning state at a point in time."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_snapshot_id)
    timestamp: datetime = Field(default_factory=_utcnow)
    data: Any = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SnapshotStack(BaseModel):
    """LIFO sequence of snapshots; the last element is the top."""

    model_config = ConfigDict(frozen=True)

    snapshots: tuple[Snapshot, ...] = ()

    def __len__(self) -> int:
        return len(self.snapshots)

    @property
    def is_empty(self) -> bool:
        return not self.snapshots


class FieldChange(BaseModel):
    """Old and new value of a field that differs between snapshots."""

    old: Any = None
    new: Any = None


class SnapshotDiff(BaseModel):
    """Shallow structural diff between two snapshots."""

    added: list[Any] = Field(default_factory=list)
    removed: list[Any] = Field(default_factory=list)
    changed: dict[Any, FieldChange] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


# =============================================================================
# Budget Model
# =============================================================================


class Budget(BaseModel):
    """Consumable exploration allowance for one controller run."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(ge=0)
    remaining: int = Field(ge=0)
    used: int = Field(default=0, ge=0)
    priority_reserve: int = Field(default=0, ge=0)
    level_allocations: dict[Any, int] = Field(default_factory=dict)


# =============================================================================
# Iteration Models
# =============================================================================


class HistoryEntry(BaseModel):
    """One iteration of the controller loop. Append-only."""

    model_config = ConfigDict(frozen=True)

    iteration: int
    result: Any = None
    reason: Any = None
    divergence: DivergenceLevel | None = None
    quality: float | None = None
    strategy: CorrectionStrategy | None = None


class DeadEndVerdict(BaseModel):
    """Whether the current path should be abandoned, and why."""

    is_dead_end: bool = False
    reasons: list[DeadEndReason] = Field(default_factory=list)
    confidence: float = 0.0
