"""
Controller Configuration

Plain dataclasses validated on construction. Invalid values raise
ConfigurationError immediately, before any attempt runs.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from recourse.backtracking.dead_end_detector import DetectionOptions
from recourse.backtracking.path_explorer import ExplorerOptions
from recourse.correction.self_correction import adapt_threshold
from recourse.exceptions import ConfigurationError
from recourse.models import Criticality


@dataclass
class ControllerConfig:
    """Configuration for one IterativeController."""

    # Loop limits
    max_iterations: int = 3  # Attempts per run, including the first
    max_backtracks: int = 3  # Alternative paths per run
    backtrack_budget: int = 10  # Exploration steps per run
    priority_reserve_fraction: float = 0.2  # Share of budget held back

    # Acceptance
    quality_threshold: float = 0.7  # Minimum quality to accept
    criticality: Criticality = Criticality.MEDIUM  # Shifts quality_threshold
    expected: Any = None  # Expected answer blended into quality scores

    # Backtracking behaviour
    detect_dead_ends: bool = True  # Force backtracking on dead ends
    detection: DetectionOptions = field(default_factory=DetectionOptions)
    exploration: ExplorerOptions = field(default_factory=ExplorerOptions)

    def __post_init__(self):
        if isinstance(self.detection, dict):
            self.detection = DetectionOptions(**self.detection)
        if isinstance(self.exploration, dict):
            self.exploration = ExplorerOptions(**self.exploration)

        for name in ("max_iterations", "max_backtracks"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")

        if not isinstance(self.backtrack_budget, int) or self.backtrack_budget < 0:
            raise ConfigurationError(
                f"backtrack_budget must be a non-negative integer, got {self.backtrack_budget!r}"
            )

        if not 0.0 < self.quality_threshold <= 1.0:
            raise ConfigurationError(
                f"quality_threshold must be within (0, 1], got {self.quality_threshold}"
            )

        if not 0.0 <= self.priority_reserve_fraction <= 1.0:
            raise ConfigurationError(
                "priority_reserve_fraction must be within [0, 1], "
                f"got {self.priority_reserve_fraction}"
            )

        try:
            self.criticality = Criticality(self.criticality)
        except ValueError as e:
            raise ConfigurationError(f"Unknown criticality: {self.criticality!r}") from e

    @property
    def effective_quality_threshold(self) -> float:
        """Quality threshold after adjusting for criticality."""
        return adapt_threshold(self.quality_threshold, self.criticality)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ControllerConfig:
        """Build a config from a plain dict, rejecting unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration options: {sorted(unknown)}")
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(str(e)) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (callables in nested options are kept as-is)."""
        return {
            "max_iterations": self.max_iterations,
            "max_backtracks": self.max_backtracks,
            "backtrack_budget": self.backtrack_budget,
            "priority_reserve_fraction": self.priority_reserve_fraction,
            "quality_threshold": self.quality_threshold,
            "criticality": self.criticality.value,
            "expected": self.expected,
            "detect_dead_ends": self.detect_dead_ends,
            "detection": dataclasses.asdict(self.detection),
            "exploration": {
                **dataclasses.asdict(self.exploration),
                "selection": self.exploration.selection.value,
            },
        }

    def with_overrides(self, **overrides: Any) -> ControllerConfig:
        """Copy with some options replaced; the copy is validated again."""
        return self.from_dict({**self.to_dict(), **overrides})
