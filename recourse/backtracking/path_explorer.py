"""
Path Explorer - Alternative Reasoning Paths

When the controller backtracks it needs a state that is structurally
different from the abandoned one and has not failed before. Alternatives
come from three kinds of variation:

1. Parameter adjustment (raise sampling temperature)
2. Strategy change (analytical -> creative -> systematic -> intuitive)
3. Reverting toward an earlier decision point from history

Candidate generation is bounded by ``beam_width``. Failed paths are
remembered by structural signature only, so memory stays small.
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, Sequence

import structlog

from recourse.exceptions import ConfigurationError
from recourse.inspection import signature
from recourse.models import ErrorKind, Result

logger = structlog.get_logger(__name__)


DEFAULT_BEAM_WIDTH = 3
DEFAULT_MIN_DIVERSITY = 0.3
DEFAULT_MAX_DEPTH = 10

REASONING_STRATEGIES = ("analytical", "creative", "systematic", "intuitive")
DEFAULT_TEMPERATURE = 0.7
TEMPERATURE_STEP = 1.2
MAX_TEMPERATURE = 2.0

# How many recent history states feed best-first scoring
SCORING_WINDOW = 3


class SelectionStrategy(str, Enum):
    """How to pick one alternative among valid candidates."""

    BEST_FIRST = "best_first"
    BREADTH_FIRST = "breadth_first"
    DEPTH_FIRST = "depth_first"
    RANDOM = "random"


@dataclass
class ExplorerOptions:
    """Options for alternative generation."""

    beam_width: int = DEFAULT_BEAM_WIDTH
    min_diversity: float = DEFAULT_MIN_DIVERSITY
    selection: SelectionStrategy = SelectionStrategy.BEST_FIRST
    seed: int | None = None  # Only used by RANDOM selection

    def __post_init__(self):
        if self.beam_width < 1:
            raise ConfigurationError(f"beam_width must be >= 1, got {self.beam_width}")
        if not 0.0 <= self.min_diversity <= 1.0:
            raise ConfigurationError(
                f"min_diversity must be within [0, 1], got {self.min_diversity}"
            )
        self.selection = SelectionStrategy(self.selection)


# =============================================================================
# Failed Path Tracking
# =============================================================================


def mark_path_failed(state: Any, failed: frozenset[str]) -> frozenset[str]:
    """Record the signature of a failed state; returns a new set."""
    return failed | {signature(state)}


def path_attempted(state: Any, failed: frozenset[str]) -> bool:
    return signature(state) in failed


# =============================================================================
# Diversity
# =============================================================================


def diversity_score(state_a: Any, state_b: Any) -> float:
    """
    Structural distance between two states.

    For mappings this is the share of top-level fields (over the union of
    both key sets) that are missing on one side or hold different values.
    0.0 means identical, 1.0 completely different. Symmetric.
    """
    if not isinstance(state_a, Mapping) or not isinstance(state_b, Mapping):
        return 0.0 if state_a == state_b else 1.0

    keys = set(state_a) | set(state_b)
    if not keys:
        return 0.0

    differing = sum(
        1
        for key in keys
        if key not in state_a or key not in state_b or state_a[key] != state_b[key]
    )
    return differing / len(keys)


def ensure_diversity(
    candidates: Sequence[Any],
    history: Sequence[Any],
    min_distance: float = DEFAULT_MIN_DIVERSITY,
) -> list[Any]:
    """
    Keep candidates at least ``min_distance`` away from every history state.

    Only mapping entries of ``history`` take part. With no such entries
    the candidates come back unchanged.
    """
    references = [entry for entry in history if isinstance(entry, Mapping)]
    if not references:
        return list(candidates)

    return [
        candidate
        for candidate in candidates
        if all(diversity_score(candidate, ref) >= min_distance for ref in references)
    ]


# =============================================================================
# Variations
# =============================================================================


def _adjust_parameters(state: Mapping) -> dict:
    alt = dict(state)
    params = dict(alt.get("reasoning_params") or {})
    temperature = params.get("temperature", DEFAULT_TEMPERATURE)
    params["temperature"] = round(min(MAX_TEMPERATURE, temperature * TEMPERATURE_STEP), 4)
    alt["reasoning_params"] = params
    return alt


def _change_strategy(state: Mapping) -> Iterator[dict]:
    current = state.get("strategy", REASONING_STRATEGIES[0])
    start = REASONING_STRATEGIES.index(current) + 1 if current in REASONING_STRATEGIES else 0
    for offset in range(len(REASONING_STRATEGIES)):
        strategy = REASONING_STRATEGIES[(start + offset) % len(REASONING_STRATEGIES)]
        if strategy != current:
            yield {**state, "strategy": strategy}


def _revert_to_history(state: Mapping, history: Sequence[Any]) -> dict | None:
    earlier = [entry for entry in history if isinstance(entry, Mapping)]
    if not earlier:
        return None
    # Third most recent decision point, or the oldest available
    decision_point = earlier[-min(SCORING_WINDOW, len(earlier))]
    return {**state, **decision_point}


def _variations(state: Any, history: Sequence[Any]) -> Iterator[Any]:
    if not isinstance(state, Mapping):
        return
    yield _adjust_parameters(state)
    yield from _change_strategy(state)
    reverted = _revert_to_history(state, history)
    if reverted is not None:
        yield reverted


def generate_alternatives(
    state: Any,
    history: Sequence[Any] = (),
    beam_width: int = DEFAULT_BEAM_WIDTH,
) -> list[Any]:
    """Raw candidate variations of ``state``, at most ``beam_width`` of them."""
    candidates = []
    for candidate in _variations(state, history):
        if len(candidates) >= beam_width:
            break
        candidates.append(candidate)
    return candidates


# =============================================================================
# Selection
# =============================================================================


def _potential(candidate: Any, history: Sequence[Any]) -> float:
    recent = [entry for entry in history if isinstance(entry, Mapping)][-SCORING_WINDOW:]
    if not recent:
        return 0.5
    return sum(diversity_score(candidate, ref) for ref in recent) / len(recent)


def _select(candidates: list[Any], history: Sequence[Any], options: ExplorerOptions) -> Any:
    if options.selection is SelectionStrategy.BREADTH_FIRST:
        return candidates[0]
    if options.selection is SelectionStrategy.DEPTH_FIRST:
        return candidates[-1]
    if options.selection is SelectionStrategy.RANDOM:
        return random.Random(options.seed).choice(candidates)
    # max() keeps the earliest candidate on ties
    return max(candidates, key=lambda c: _potential(c, history))


def generate_alternative(
    state: Any,
    history: Sequence[Any] = (),
    failed: frozenset[str] = frozenset(),
    options: ExplorerOptions | None = None,
) -> Result[Any]:
    """
    Propose a state structurally distinct from ``state``.

    Args:
        state: The state being abandoned.
        history: Earlier explored states, oldest first.
        failed: Signatures of paths that already failed.
        options: Beam width, diversity floor and selection strategy.

    Returns:
        The chosen alternative, or ``ErrorKind.NO_ALTERNATIVES`` when every
        generated candidate was identical, already failed, or too close to
        history.
    """
    options = options or ExplorerOptions()

    candidates = [
        candidate
        for candidate in generate_alternatives(state, history, options.beam_width)
        if candidate != state and not path_attempted(candidate, failed)
    ]
    # Distance is measured against earlier branches; every variation is
    # a one-field step away from the state being abandoned.
    earlier = [entry for entry in history if entry != state]
    candidates = ensure_diversity(candidates, earlier, options.min_diversity)

    if not candidates:
        logger.info("no_alternatives_found", beam_width=options.beam_width)
        return Result.failure(ErrorKind.NO_ALTERNATIVES)

    alternative = _select(candidates, history, options)

    logger.debug(
        "alternative_generated",
        candidates=len(candidates),
        selection=options.selection.value,
        diversity=diversity_score(state, alternative),
    )

    return Result.success(alternative)


# =============================================================================
# Beam Search
# =============================================================================


def beam_search(
    initial_state: Any,
    validator: Callable[[Any], bool],
    beam_width: int = DEFAULT_BEAM_WIDTH,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Result[Any]:
    """
    Breadth-limited search over state variations.

    Each level keeps at most ``beam_width`` unvisited states.

    Returns:
        The first state accepted by ``validator``, or
        ``ErrorKind.NO_SOLUTION`` when the beam empties, or
        ``ErrorKind.MAX_DEPTH_EXCEEDED`` when ``max_depth`` levels pass.
    """
    beam = [initial_state]
    visited = {signature(initial_state)}

    for depth in range(max_depth):
        for state in beam:
            if validator(state):
                logger.debug("beam_search_solved", depth=depth)
                return Result.success(state)

        next_level = []
        seen = set()
        for state in beam:
            for candidate in generate_alternatives(state, (), beam_width):
                key = signature(candidate)
                if key in visited or key in seen:
                    continue
                seen.add(key)
                next_level.append(candidate)
        beam = next_level[:beam_width]
        visited.update(signature(state) for state in beam)

        if not beam:
            return Result.failure(ErrorKind.NO_SOLUTION)

    return Result.failure(ErrorKind.MAX_DEPTH_EXCEEDED)
