"""
Result Inspection Helpers

Attempt results are opaque to the engine. These helpers read the few
conventional fields the engine cares about (``confidence``, ``answer``,
``reasoning``, ``progress``, ``constraint_violated``) from mappings or
attribute-bearing objects, and compute stable structural signatures used
for failed-path tracking and repetition checks.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel

DEFAULT_CONFIDENCE = 0.7

_MISSING = object()


def extract_field(result: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a mapping key or an attribute."""
    if isinstance(result, Mapping):
        return result.get(name, default)
    if isinstance(result, (str, bytes, int, float, list, tuple)):
        return default
    return getattr(result, name, default)


def extract_confidence(result: Any, default: float = DEFAULT_CONFIDENCE) -> float:
    """Confidence carried by a result, or ``default`` when absent."""
    value = extract_field(result, "confidence", None)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def extract_answer(result: Any) -> Any:
    """The ``answer`` field of a result, or the result itself."""
    value = extract_field(result, "answer", _MISSING)
    return result if value is _MISSING else value


def constraint_violated(result: Any) -> bool:
    return bool(extract_field(result, "constraint_violated", False))


def is_empty_result(result: Any) -> bool:
    """None and empty containers/strings carry no usable content."""
    if result is None:
        return True
    if isinstance(result, (str, bytes, Mapping, list, tuple, set, frozenset)):
        return len(result) == 0
    return False


# =============================================================================
# Signatures
# =============================================================================


def _canonical(value: Any) -> Any:
    """Convert a value into a JSON-stable structure."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return _canonical(value.value)
    if isinstance(value, BaseModel):
        return _canonical(value.model_dump())
    if isinstance(value, Mapping):
        items = [(_text(k), _canonical(v)) for k, v in value.items()]
        return {"__map__": sorted(items, key=lambda item: item[0])}
    if isinstance(value, (set, frozenset)):
        return {"__set__": sorted(_text(v) for v in value)}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    if isinstance(value, bytes):
        return {"__bytes__": value.hex()}
    return {"__repr__": repr(value)}


def _text(value: Any) -> str:
    return json.dumps(_canonical(value), sort_keys=True)


def signature(value: Any) -> str:
    """
    Stable 16-hex-char structural signature of a value.

    Equal structures produce equal signatures regardless of mapping
    insertion order or set iteration order.
    """
    return hashlib.sha256(_text(value).encode()).hexdigest()[:16]
