"""
Recourse Iterative Controller

Drives an opaque attempt function until a result is accepted, the budget
runs out, or the iteration ceiling is reached:

    attempting -> validating -> accepted
                             -> retrying      -> attempting
                             -> backtracking  -> attempting (alternative)
                             -> exhausted     (partial result)
                             -> failed

After each rejected or weak attempt the controller classifies divergence,
selects a correction strategy and checks for dead ends:

- retry_adjusted: same path, next iteration, no snapshot
- backtrack_alternative (or a dead end): snapshot the current state,
  mark it failed, spend one budget unit and continue at a structurally
  different alternative
- accept_partial: stop and keep the current result as a partial success
- clarify_requirements: stop; the failures point at the problem itself

Each run owns its budget, snapshot stack, failed-path set and history.
The controller object only holds configuration, so separate runs share
no mutable state.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import structlog

from recourse.backtracking.budget_manager import BudgetManager
from recourse.backtracking.dead_end_detector import detect_with_reasons
from recourse.backtracking.path_explorer import generate_alternative, mark_path_failed
from recourse.backtracking.state_manager import StateManager
from recourse.config import ControllerConfig
from recourse.correction.self_correction import (
    QUALITY_BELOW_THRESHOLD,
    classify_divergence,
    quality_score,
    quality_threshold_met,
    select_strategy,
)
from recourse.exceptions import ValidatorRequiredError
from recourse.inspection import extract_answer, is_empty_result
from recourse.models import (
    Accepted,
    Budget,
    CorrectionStrategy,
    DivergenceLevel,
    ErrorKind,
    HistoryEntry,
    Rejected,
    SnapshotStack,
    error_for,
)
from recourse.registry import ExtensionRegistry

logger = structlog.get_logger(__name__)


DEFAULT_EXPLORATION_STATE = {
    "strategy": "analytical",
    "reasoning_params": {"temperature": 0.7},
}

AttemptFn = Callable[..., Any]
ValidatorFn = Callable[[Any], Any]
CorrectionCallback = Callable[[int, CorrectionStrategy], None]


# =============================================================================
# Data Models
# =============================================================================


class ControllerPhase(str, Enum):
    """States of the controller loop."""

    ATTEMPTING = "attempting"
    VALIDATING = "validating"
    ACCEPTED = "accepted"
    RETRYING = "retrying"
    BACKTRACKING = "backtracking"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


class RunStatus(str, Enum):
    """What the host gets back."""

    ACCEPTED = "accepted"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class RunOutcome:
    """Result of one controller run."""

    status: RunStatus
    value: Any = None
    reason: ErrorKind | None = None

    iterations: int = 0
    backtracks: int = 0
    history: list[HistoryEntry] = field(default_factory=list)

    # Exploration trail, usable with StateManager.persist and run(resume_from=...)
    state: Any = None
    stack: SnapshotStack = field(default_factory=SnapshotStack)
    budget: dict[str, Any] = field(default_factory=dict)

    duration_ms: float = 0.0

    @property
    def accepted(self) -> bool:
        return self.status is RunStatus.ACCEPTED

    @property
    def is_partial(self) -> bool:
        return self.status is RunStatus.PARTIAL

    @property
    def failed(self) -> bool:
        return self.status is RunStatus.FAILED

    def unwrap(self) -> Any:
        """The value for accepted or partial runs; raises for failures."""
        if self.failed:
            raise error_for(self.reason or ErrorKind.MAX_ITERATIONS_EXCEEDED)
        return self.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "value": self.value,
            "reason": self.reason.value if self.reason else None,
            "iterations": self.iterations,
            "backtracks": self.backtracks,
            "history": [entry.model_dump() for entry in self.history],
            "stack_size": len(self.stack),
            "budget": self.budget,
            "duration_ms": self.duration_ms,
        }


@dataclass
class _RunContext:
    """Mutable bookkeeping for a single run."""

    state: Any
    budget: Budget
    stack: SnapshotStack
    failed: frozenset[str] = frozenset()
    iteration: int = 1
    backtracks: int = 0
    phase: ControllerPhase = ControllerPhase.ATTEMPTING
    history: list[HistoryEntry] = field(default_factory=list)
    candidates: list[tuple[float, Any]] = field(default_factory=list)
    started: float = field(default_factory=time.time)


def _normalize_verdict(verdict: Any, result: Any) -> Accepted | Rejected:
    """Accept Accepted/Rejected values and plain booleans from validators."""
    if isinstance(verdict, (Accepted, Rejected)):
        return verdict
    if verdict is True:
        return Accepted(result)
    if verdict is False:
        return Rejected("validation_failed")
    return Rejected(f"invalid_validator_result: {verdict!r}")


# =============================================================================
# Controller
# =============================================================================


class IterativeController:
    """
    Orchestrates attempt -> validate -> correct cycles.

    Attributes:
        config: Loop limits and thresholds.
        registry: Optional registry for resolving named validators.
        state_manager: Snapshot operations (and persistence for hosts).
        budget_manager: Budget operations.
    """

    def __init__(
        self,
        config: ControllerConfig | None = None,
        registry: ExtensionRegistry | None = None,
        state_manager: StateManager | None = None,
    ):
        self.config = config or ControllerConfig()
        self.registry = registry
        self.state_manager = state_manager or StateManager()
        self.budget_manager = BudgetManager(
            priority_reserve_fraction=self.config.priority_reserve_fraction,
        )

    @classmethod
    def from_profile(cls, name: str, registry: ExtensionRegistry) -> IterativeController:
        """Controller configured from a named registry profile."""
        return cls(config=registry.get_profile(name), registry=registry)

    def run(
        self,
        attempt_fn: AttemptFn,
        validator: ValidatorFn | str | None = None,
        *,
        initial_state: Any = None,
        resume_from: SnapshotStack | None = None,
        on_correction: CorrectionCallback | None = None,
    ) -> RunOutcome:
        """
        Run the attempt/validate loop to a terminal state.

        Args:
            attempt_fn: Produces one result. Called without arguments, or
                with a copy of the current exploration state when
                ``initial_state`` or ``resume_from`` is given.
            validator: Callable returning Accepted/Rejected (or a bool),
                or the name of a validator in the registry.
            initial_state: Exploration state to start from.
            resume_from: Stack from an earlier run. Its snapshots count as
                failed paths; without ``initial_state`` the run restarts
                at the top snapshot.
            on_correction: Observer called as ``(iteration, strategy)`` once
                per retry or backtrack. Cannot affect control flow.

        Returns:
            RunOutcome with status accepted, partial or failed.

        Raises:
            ValidatorRequiredError: If no validator is supplied or found.
        """
        validator_fn = self._resolve_validator(validator)
        config = self.config

        stack = resume_from if resume_from is not None else self.state_manager.init_stack()
        failed: frozenset[str] = frozenset()
        for snapshot in stack.snapshots:
            failed = mark_path_failed(snapshot.data, failed)

        if initial_state is None and resume_from is not None and not resume_from.is_empty:
            initial_state = self.state_manager.restore(resume_from.snapshots[-1])
        pass_state = initial_state is not None

        ctx = _RunContext(
            state=copy.deepcopy(initial_state if pass_state else DEFAULT_EXPLORATION_STATE),
            budget=self.budget_manager.init(
                config.backtrack_budget,
                config.priority_reserve_fraction,
            ),
            stack=stack,
            failed=failed,
        )

        threshold = config.effective_quality_threshold

        logger.info(
            "controller_run_started",
            max_iterations=config.max_iterations,
            max_backtracks=config.max_backtracks,
            budget=config.backtrack_budget,
            quality_threshold=threshold,
        )

        while True:
            self._transition(ctx, ControllerPhase.ATTEMPTING)
            result = attempt_fn(copy.deepcopy(ctx.state)) if pass_state else attempt_fn()

            self._transition(ctx, ControllerPhase.VALIDATING)
            verdict = _normalize_verdict(validator_fn(result), result)

            if isinstance(verdict, Accepted):
                observed = verdict.value
                score = quality_score(observed, config.expected)

                if quality_threshold_met(score, threshold):
                    logger.info(
                        "controller_result_accepted",
                        iteration=ctx.iteration,
                        quality=score,
                    )
                    return self._finish(ctx, ControllerPhase.ACCEPTED, observed)

                logger.warning(
                    "quality_threshold_not_met",
                    iteration=ctx.iteration,
                    quality=score,
                    threshold=threshold,
                )
                if not is_empty_result(observed):
                    ctx.candidates.append((score, observed))
                divergence = DivergenceLevel.MINOR
                classified = self._classify(observed)
                if classified is not None and classified.is_worse_than(divergence):
                    divergence = classified
                reason: Any = QUALITY_BELOW_THRESHOLD
            else:
                observed = result
                score = quality_score(observed, config.expected)
                divergence = (
                    verdict.divergence or self._classify(observed) or DivergenceLevel.CRITICAL
                )
                reason = verdict.reason

                logger.warning(
                    "validation_failed",
                    iteration=ctx.iteration,
                    reason=str(reason),
                    divergence=divergence.value,
                )

            strategy = select_strategy(divergence, ctx.iteration, ctx.history)

            if config.detect_dead_ends and strategy is not CorrectionStrategy.CLARIFY_REQUIREMENTS:
                dead_end = detect_with_reasons(observed, ctx.history, config.detection)
                if dead_end.is_dead_end:
                    logger.info(
                        "dead_end_detected",
                        iteration=ctx.iteration,
                        reasons=[r.value for r in dead_end.reasons],
                        confidence=dead_end.confidence,
                    )
                    strategy = CorrectionStrategy.BACKTRACK_ALTERNATIVE

            ctx.history.append(
                HistoryEntry(
                    iteration=ctx.iteration,
                    result=observed,
                    reason=reason,
                    divergence=divergence,
                    quality=score,
                    strategy=strategy,
                )
            )

            if strategy is CorrectionStrategy.CLARIFY_REQUIREMENTS:
                return self._finish(
                    ctx,
                    ControllerPhase.FAILED,
                    reason=ErrorKind.CLARIFICATION_REQUIRED,
                )

            if strategy is CorrectionStrategy.ACCEPT_PARTIAL:
                return self._exhaust(
                    ctx,
                    ErrorKind.MAX_ITERATIONS_EXCEEDED,
                    preferred=observed,
                )

            if ctx.iteration >= config.max_iterations:
                return self._exhaust(ctx, ErrorKind.MAX_ITERATIONS_EXCEEDED)

            if strategy is CorrectionStrategy.RETRY_ADJUSTED:
                self._transition(ctx, ControllerPhase.RETRYING)
            else:
                outcome = self._backtrack(ctx, reason)
                if outcome is not None:
                    return outcome

            _notify(on_correction, ctx.iteration, strategy)
            ctx.iteration += 1

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _resolve_validator(self, validator: ValidatorFn | str | None) -> ValidatorFn:
        if validator is None:
            raise ValidatorRequiredError("A validator function is required")
        if isinstance(validator, str):
            if self.registry is None:
                raise ValidatorRequiredError(
                    f"Validator {validator!r} named but no registry configured"
                )
            return self.registry.get_validator(validator)
        return validator

    def _classify(self, observed: Any) -> DivergenceLevel | None:
        """Divergence of a result's answer from ``config.expected``, if set."""
        if self.config.expected is None:
            return None
        return classify_divergence(self.config.expected, extract_answer(observed))

    @staticmethod
    def _transition(ctx: _RunContext, phase: ControllerPhase) -> None:
        ctx.phase = phase
        logger.debug(
            "controller_transition",
            phase=phase.value,
            iteration=ctx.iteration,
            backtracks=ctx.backtracks,
        )

    def _backtrack(self, ctx: _RunContext, reason: Any) -> RunOutcome | None:
        """Move to an alternative path. Returns an outcome only when stopping."""
        config = self.config

        if ctx.backtracks >= config.max_backtracks:
            return self._exhaust(ctx, ErrorKind.MAX_BACKTRACKS_EXCEEDED)

        if not self.budget_manager.has_budget(ctx.budget):
            released = self.budget_manager.allocate_priority(ctx.budget, 1)
            if not released.ok:
                best = self.budget_manager.handle_exhaustion(
                    ctx.budget,
                    [value for _, value in ctx.candidates],
                    score=lambda value: quality_score(value, config.expected),
                )
                return self._exhaust(ctx, ErrorKind.BUDGET_EXHAUSTED, preferred=best)
            ctx.budget = released.value

        self._transition(ctx, ControllerPhase.BACKTRACKING)

        snapshot = self.state_manager.capture(
            ctx.state,
            metadata={"iteration": ctx.iteration, "reason": str(reason)},
        )
        ctx.stack = self.state_manager.push(ctx.stack, snapshot)
        ctx.failed = mark_path_failed(ctx.state, ctx.failed)

        explored = [self.state_manager.restore(s) for s in ctx.stack.snapshots]
        alternative = generate_alternative(ctx.state, explored, ctx.failed, config.exploration)

        if not alternative.ok:
            return self._finish(ctx, ControllerPhase.FAILED, reason=ErrorKind.NO_ALTERNATIVES)

        ctx.state = alternative.value
        ctx.budget = self.budget_manager.consume(ctx.budget, 1)
        ctx.backtracks += 1

        logger.info(
            "controller_backtracked",
            iteration=ctx.iteration,
            backtracks=ctx.backtracks,
            budget_remaining=ctx.budget.remaining,
        )
        return None

    def _exhaust(
        self,
        ctx: _RunContext,
        reason: ErrorKind,
        preferred: Any = None,
    ) -> RunOutcome:
        """Partial success with the best usable result, or failure without one."""
        value = preferred
        if is_empty_result(value) and ctx.candidates:
            # Highest quality; earliest wins ties
            value = max(ctx.candidates, key=lambda candidate: candidate[0])[1]

        if is_empty_result(value):
            return self._finish(ctx, ControllerPhase.FAILED, reason=reason)
        return self._finish(ctx, ControllerPhase.EXHAUSTED, value, reason=reason)

    def _finish(
        self,
        ctx: _RunContext,
        phase: ControllerPhase,
        value: Any = None,
        reason: ErrorKind | None = None,
    ) -> RunOutcome:
        self._transition(ctx, phase)

        status = {
            ControllerPhase.ACCEPTED: RunStatus.ACCEPTED,
            ControllerPhase.EXHAUSTED: RunStatus.PARTIAL,
        }.get(phase, RunStatus.FAILED)

        outcome = RunOutcome(
            status=status,
            value=value,
            reason=reason,
            iterations=ctx.iteration,
            backtracks=ctx.backtracks,
            history=list(ctx.history),
            state=ctx.state,
            stack=ctx.stack,
            budget=self.budget_manager.report(ctx.budget),
            duration_ms=(time.time() - ctx.started) * 1000,
        )

        log = logger.warning if outcome.failed else logger.info
        log(
            "controller_run_finished",
            status=status.value,
            reason=reason.value if reason else None,
            iterations=outcome.iterations,
            backtracks=outcome.backtracks,
            duration_ms=outcome.duration_ms,
        )
        return outcome


def _notify(callback: CorrectionCallback | None, iteration: int, strategy: CorrectionStrategy) -> None:
    if callback is None:
        return
    try:
        callback(iteration, strategy)
    except Exception as e:
        logger.warning("correction_callback_failed", iteration=iteration, error=str(e))


# =============================================================================
# Convenience Functions
# =============================================================================


def iterative_execute(
    attempt_fn: AttemptFn,
    validator: ValidatorFn | None,
    *,
    initial_state: Any = None,
    on_correction: CorrectionCallback | None = None,
    **options: Any,
) -> RunOutcome:
    """
    Run self-correction with a one-off controller.

    Args:
        attempt_fn: Produces one result per call.
        validator: Returns Accepted/Rejected or a bool.
        initial_state: Optional exploration state passed to ``attempt_fn``.
        on_correction: Observer for retries and backtracks.
        **options: ControllerConfig fields (max_iterations, quality_threshold, ...).

    Returns:
        RunOutcome.
    """
    config = ControllerConfig.from_dict(options)
    return IterativeController(config).run(
        attempt_fn,
        validator,
        initial_state=initial_state,
        on_correction=on_correction,
    )


def execute_with_backtracking(
    attempt_fn: AttemptFn,
    validator: ValidatorFn | None,
    *,
    initial_state: Any = None,
    on_backtrack: CorrectionCallback | None = None,
    **options: Any,
) -> RunOutcome:
    """
    Same loop as ``iterative_execute``, named for backtracking callers.

    ``on_backtrack`` receives ``(iteration, strategy)`` for every retry
    and backtrack transition.
    """
    return iterative_execute(
        attempt_fn,
        validator,
        initial_state=initial_state,
        on_correction=on_backtrack,
        **options,
    )
