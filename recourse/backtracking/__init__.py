"""
Backtracking Module - State, Budget, Dead-End and Path Exploration

Building blocks the iterative controller uses when local correction is
not enough:

1. StateManager - snapshots, snapshot stacks, diffs, persistence
2. BudgetManager - bounded exploration allowance with a priority reserve
3. Dead-end detection - heuristics for abandoning a path
4. Path exploration - structurally different alternatives, failed-path
   tracking, diversity filtering and beam search
"""

from recourse.backtracking.budget_manager import BudgetManager
from recourse.backtracking.dead_end_detector import (
    DetectionOptions,
    circular_reasoning,
    detect,
    detect_with_reasons,
    low_confidence,
    repeated_failures,
    stalled_progress,
)
from recourse.backtracking.path_explorer import (
    ExplorerOptions,
    SelectionStrategy,
    beam_search,
    diversity_score,
    ensure_diversity,
    generate_alternative,
    generate_alternatives,
    mark_path_failed,
    path_attempted,
)
from recourse.backtracking.state_manager import StateManager

__all__ = [
    # State
    "StateManager",
    # Budget
    "BudgetManager",
    # Dead ends
    "DetectionOptions",
    "detect",
    "detect_with_reasons",
    "repeated_failures",
    "circular_reasoning",
    "low_confidence",
    "stalled_progress",
    # Exploration
    "ExplorerOptions",
    "SelectionStrategy",
    "generate_alternative",
    "generate_alternatives",
    "mark_path_failed",
    "path_attempted",
    "diversity_score",
    "ensure_diversity",
    "beam_search",
]
