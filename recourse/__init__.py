"""
Recourse - Iterative Refinement & Backtracking Engine

Wraps an opaque attempt function (an LLM call, a search step, a solver)
in an attempt -> validate -> correct loop:

- Divergence classification (match / minor / moderate / critical)
- Correction strategy selection (retry, backtrack, clarify, accept partial)
- Dead-end detection (repetition, cycles, low confidence, stalls)
- Immutable state snapshots on a persistable stack
- Bounded exploration budget with a priority reserve
- Structurally diverse alternative paths

Usage:
    from recourse import Accepted, Rejected, iterative_execute

    def validate(result):
        if result["answer"] == 42:
            return Accepted(result)
        return Rejected("wrong_answer")

    outcome = iterative_execute(attempt, validate, max_iterations=5)
    if outcome.accepted:
        print(outcome.value)

    # Exploration-aware attempts receive the current state
    outcome = execute_with_backtracking(
        lambda state: solve(question, **state),
        validate,
        initial_state={"strategy": "analytical", "reasoning_params": {"temperature": 0.7}},
        on_backtrack=lambda iteration, strategy: print(iteration, strategy),
    )
"""

__version__ = "0.1.0"

from recourse.backtracking import (
    BudgetManager,
    DetectionOptions,
    ExplorerOptions,
    SelectionStrategy,
    StateManager,
    beam_search,
    detect,
    detect_with_reasons,
    diversity_score,
    ensure_diversity,
    generate_alternative,
    generate_alternatives,
)
from recourse.config import ControllerConfig
from recourse.controller import (
    ControllerPhase,
    IterativeController,
    RunOutcome,
    RunStatus,
    execute_with_backtracking,
    iterative_execute,
)
from recourse.correction import (
    DivergenceThresholds,
    classify_divergence,
    quality_score,
    select_strategy,
    similarity,
)
from recourse.exceptions import (
    ConfigurationError,
    RecourseError,
    ValidatorRequiredError,
)
from recourse.models import (
    Accepted,
    Budget,
    CorrectionStrategy,
    Criticality,
    DeadEndReason,
    DeadEndVerdict,
    DivergenceLevel,
    ErrorKind,
    HistoryEntry,
    Rejected,
    Result,
    Snapshot,
    SnapshotDiff,
    SnapshotStack,
)
from recourse.registry import ExtensionRegistry
from recourse.storage import InMemoryKVStore, KVStore, SQLiteKVStore

__all__ = [
    # Version
    "__version__",
    # Controller (Simplest API)
    "iterative_execute",
    "execute_with_backtracking",
    "IterativeController",
    "ControllerConfig",
    "ControllerPhase",
    "RunOutcome",
    "RunStatus",
    "ExtensionRegistry",
    # Validation
    "Accepted",
    "Rejected",
    "Result",
    "ErrorKind",
    # Correction
    "DivergenceLevel",
    "DivergenceThresholds",
    "CorrectionStrategy",
    "Criticality",
    "similarity",
    "classify_divergence",
    "select_strategy",
    "quality_score",
    # State
    "StateManager",
    "Snapshot",
    "SnapshotStack",
    "SnapshotDiff",
    "HistoryEntry",
    # Budget
    "BudgetManager",
    "Budget",
    # Dead Ends
    "DetectionOptions",
    "DeadEndReason",
    "DeadEndVerdict",
    "detect",
    "detect_with_reasons",
    # Exploration
    "ExplorerOptions",
    "SelectionStrategy",
    "generate_alternative",
    "generate_alternatives",
    "diversity_score",
    "ensure_diversity",
    "beam_search",
    # Storage
    "KVStore",
    "SQLiteKVStore",
    "InMemoryKVStore",
    # Errors
    "RecourseError",
    "ConfigurationError",
    "ValidatorRequiredError",
]
