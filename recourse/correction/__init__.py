"""
Correction Module - Divergence, Quality and Strategy Selection
"""

from recourse.correction.self_correction import (
    AMBIGUITY_MARKERS,
    DEFAULT_QUALITY_THRESHOLD,
    DEFAULT_THRESHOLDS,
    QUALITY_BELOW_THRESHOLD,
    DivergenceThresholds,
    adapt_threshold,
    ambiguous_requirements,
    classify_divergence,
    quality_score,
    quality_threshold_met,
    repeated_failure,
    select_strategy,
)
from recourse.correction.similarity import ValueKind, similarity, value_kind

__all__ = [
    # Similarity
    "ValueKind",
    "value_kind",
    "similarity",
    # Divergence
    "DivergenceThresholds",
    "DEFAULT_THRESHOLDS",
    "classify_divergence",
    # Strategy
    "select_strategy",
    "repeated_failure",
    "ambiguous_requirements",
    "AMBIGUITY_MARKERS",
    # Quality
    "DEFAULT_QUALITY_THRESHOLD",
    "QUALITY_BELOW_THRESHOLD",
    "quality_score",
    "quality_threshold_met",
    "adapt_threshold",
]
