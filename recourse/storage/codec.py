"""
Codec - Type-Preserving JSON Encoding for Persisted State

Plain JSON loses Python types that reasoning states commonly carry:
integer mapping keys become strings, tuples and sets become lists.
States are encoded into a JSON-safe structure where those values are
wrapped in single-key tagged objects, and decoded back to the same types.

Tags:
    {"__tuple__": [...]}        tuple
    {"__set__": [...]}          set
    {"__frozenset__": [...]}    frozenset
    {"__map__": [[k, v], ...]}  mapping with non-string keys
    {"__bytes__": "hex"}        bytes

String-keyed mappings stay plain JSON objects, so persisted payloads
remain readable. Values with no lossless encoding raise ``TypeError``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

TUPLE_TAG = "__tuple__"
SET_TAG = "__set__"
FROZENSET_TAG = "__frozenset__"
MAP_TAG = "__map__"
BYTES_TAG = "__bytes__"

TAGS = frozenset({TUPLE_TAG, SET_TAG, FROZENSET_TAG, MAP_TAG, BYTES_TAG})


def _is_tagged(value: Mapping) -> bool:
    return len(value) == 1 and next(iter(value)) in TAGS


def encode_value(value: Any) -> Any:
    """
    Encode a value into a JSON-safe structure that ``decode_value`` reverses.

    Raises:
        TypeError: For values with no lossless JSON form (arbitrary
            objects, non-finite floats).
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise TypeError(f"Non-finite float cannot be persisted: {value!r}")
        return value
    if isinstance(value, list):
        return [encode_value(v) for v in value]
    if isinstance(value, tuple):
        return {TUPLE_TAG: [encode_value(v) for v in value]}
    if isinstance(value, frozenset):
        return {FROZENSET_TAG: [encode_value(v) for v in value]}
    if isinstance(value, set):
        return {SET_TAG: [encode_value(v) for v in value]}
    if isinstance(value, bytes):
        return {BYTES_TAG: value.hex()}
    if isinstance(value, Mapping):
        if all(isinstance(k, str) for k in value) and not _is_tagged(value):
            return {k: encode_value(v) for k, v in value.items()}
        return {MAP_TAG: [[encode_value(k), encode_value(v)] for k, v in value.items()]}
    raise TypeError(f"Cannot persist value of type {type(value).__name__}")


def decode_value(value: Any) -> Any:
    """Reverse ``encode_value``."""
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    if not isinstance(value, Mapping):
        return value

    if not _is_tagged(value):
        return {k: decode_value(v) for k, v in value.items()}

    tag, payload = next(iter(value.items()))
    if tag == TUPLE_TAG:
        return tuple(decode_value(v) for v in payload)
    if tag == SET_TAG:
        return {decode_value(v) for v in payload}
    if tag == FROZENSET_TAG:
        return frozenset(decode_value(v) for v in payload)
    if tag == BYTES_TAG:
        return bytes.fromhex(payload)
    return {decode_value(k): decode_value(v) for k, v in payload}
