"""
State Manager - Snapshots and Snapshot Stacks for Backtracking

Captures reasoning state at decision points so the controller can return
to them later:

- Snapshots wrap a deep copy of the state; restoring yields another copy,
  so earlier branches can never be mutated through a live alias
- Stacks are immutable; push/pop return new stacks
- Pop/peek on an empty stack report ``ErrorKind.EMPTY_STACK``
- Stacks round-trip through any keyed store (see ``recourse.storage``)

Usage:
    manager = StateManager(store=SQLiteKVStore("runs.db"))

    snap = manager.capture({"strategy": "analytical"}, metadata={"priority": "high"})
    stack = manager.push(manager.init_stack(), snap)

    manager.persist(stack, "run_42")
    stack = manager.load("run_42").unwrap()
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable

import structlog
from pydantic import ValidationError

from recourse.exceptions import StorageError
from recourse.models import (
    ErrorKind,
    FieldChange,
    Result,
    Snapshot,
    SnapshotDiff,
    SnapshotStack,
)
from recourse.storage.codec import decode_value, encode_value
from recourse.storage.kv_store import InMemoryKVStore, KVStore

logger = structlog.get_logger(__name__)


STACK_KEY_PREFIX = "stack:"


def _transcode(stack: SnapshotStack, convert: Callable[[Any], Any]) -> SnapshotStack:
    """Apply ``convert`` to every snapshot's data and metadata."""
    return SnapshotStack(
        snapshots=tuple(
            snapshot.model_copy(
                update={
                    "data": convert(snapshot.data),
                    "metadata": convert(snapshot.metadata),
                }
            )
            for snapshot in stack.snapshots
        )
    )


def _fields(data: Any) -> dict[Any, Any]:
    """Top-level fields of a state; non-mappings are a single ``value`` field."""
    if isinstance(data, Mapping):
        return dict(data)
    return {"value": data}


class StateManager:
    """
    Snapshot capture, stack operations, diffs and persistence.

    Holds no per-run state apart from the store reference, so one
    manager can serve any number of independent runs.

    Attributes:
        store: Keyed store used by persist/load/delete.
    """

    def __init__(self, store: KVStore | None = None):
        self.store = store if store is not None else InMemoryKVStore()

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def capture(self, state: Any, metadata: dict[str, Any] | None = None) -> Snapshot:
        """
        Capture state as a snapshot.

        Args:
            state: Any state value. Deep-copied.
            metadata: Optional free-form metadata (e.g. priority tag).

        Returns:
            New Snapshot with a fresh id and current timestamp.
        """
        snapshot = Snapshot(
            data=copy.deepcopy(state),
            metadata=dict(metadata or {}),
        )
        logger.debug("snapshot_captured", snapshot_id=snapshot.id)
        return snapshot

    def restore(self, snapshot: Snapshot) -> Any:
        """Return a copy of the state wrapped by a snapshot."""
        logger.debug("snapshot_restored", snapshot_id=snapshot.id)
        return copy.deepcopy(snapshot.data)

    # -------------------------------------------------------------------------
    # Stack
    # -------------------------------------------------------------------------

    @staticmethod
    def init_stack() -> SnapshotStack:
        return SnapshotStack()

    @staticmethod
    def push(stack: SnapshotStack, snapshot: Snapshot) -> SnapshotStack:
        return SnapshotStack(snapshots=stack.snapshots + (snapshot,))

    @staticmethod
    def pop(stack: SnapshotStack) -> Result[tuple[Snapshot, SnapshotStack]]:
        """
        Remove the top snapshot.

        Returns:
            Result holding ``(snapshot, remaining_stack)``, or
            ``ErrorKind.EMPTY_STACK``.
        """
        if stack.is_empty:
            return Result.failure(ErrorKind.EMPTY_STACK)
        return Result.success(
            (stack.snapshots[-1], SnapshotStack(snapshots=stack.snapshots[:-1]))
        )

    @staticmethod
    def peek(stack: SnapshotStack) -> Result[Snapshot]:
        if stack.is_empty:
            return Result.failure(ErrorKind.EMPTY_STACK)
        return Result.success(stack.snapshots[-1])

    @staticmethod
    def size(stack: SnapshotStack) -> int:
        return len(stack)

    # -------------------------------------------------------------------------
    # Diffs
    # -------------------------------------------------------------------------

    @staticmethod
    def compare(snapshot_a: Snapshot, snapshot_b: Snapshot) -> SnapshotDiff:
        """
        Shallow structural diff of two snapshots' top-level fields.

        Used for diagnostics only.

        Returns:
            SnapshotDiff where ``added`` holds keys only in ``snapshot_b``,
            ``removed`` keys only in ``snapshot_a``, and ``changed`` maps
            shared keys with different values to their old/new values.
        """
        fields_a = _fields(snapshot_a.data)
        fields_b = _fields(snapshot_b.data)

        added = [key for key in fields_b if key not in fields_a]
        removed = [key for key in fields_a if key not in fields_b]
        changed = {
            key: FieldChange(old=fields_a[key], new=fields_b[key])
            for key in fields_a
            if key in fields_b and fields_a[key] != fields_b[key]
        }

        return SnapshotDiff(added=added, removed=removed, changed=changed)

    def compare_with_snapshot(self, state: Any, snapshot: Snapshot) -> SnapshotDiff:
        """Diff a live state (as ``a``) against a recorded snapshot."""
        return self.compare(self.capture(state), snapshot)

    def create_diff(self, current_state: Any, previous_state: Any) -> SnapshotDiff:
        """Diff describing how ``previous_state`` became ``current_state``."""
        return self.compare(self.capture(previous_state), self.capture(current_state))

    @staticmethod
    def apply_diff(state: Mapping, diff: SnapshotDiff) -> dict[Any, Any]:
        """
        Apply a diff to a mapping state.

        Added keys are set to None (diffs carry no values for them),
        removed keys are dropped and changed keys take their new value.
        """
        result = dict(state)
        for key in diff.added:
            result[key] = None
        for key in diff.removed:
            result.pop(key, None)
        for key, change in diff.changed.items():
            result[key] = copy.deepcopy(change.new)
        return result

    @staticmethod
    def merge(snapshot_a: Snapshot, snapshot_b: Snapshot) -> Snapshot:
        """Merge two mapping snapshots; ``snapshot_b`` wins on conflicts."""
        merged = {**_fields(snapshot_a.data), **_fields(snapshot_b.data)}
        return snapshot_a.model_copy(
            update={
                "data": copy.deepcopy(merged),
                "timestamp": datetime.now(timezone.utc),
            }
        )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def persist(self, stack: SnapshotStack, key: str) -> Result[None]:
        """
        Write a stack to the store under ``key``.

        State types survive the trip (tuples, sets, non-string keys), see
        ``recourse.storage.codec``.

        Returns:
            Empty success, or ``ErrorKind.PERSISTENCE_FAILED`` when the
            state has no lossless encoding or the store fails.
        """
        try:
            payload = _transcode(stack, encode_value).model_dump_json()
            self.store.put(STACK_KEY_PREFIX + key, payload)
        except (TypeError, ValueError, StorageError) as e:
            logger.warning("stack_persist_failed", key=key, error=str(e))
            return Result.failure(ErrorKind.PERSISTENCE_FAILED)

        logger.debug("stack_persisted", key=key, size=len(stack))
        return Result.success()

    def load(self, key: str) -> Result[SnapshotStack]:
        """
        Reload a stack written by ``persist``.

        Returns:
            The stack, or ``ErrorKind.NOT_FOUND`` for keys never written
            or already deleted.
        """
        try:
            payload = self.store.get(STACK_KEY_PREFIX + key)
        except StorageError as e:
            logger.warning("stack_load_failed", key=key, error=str(e))
            return Result.failure(ErrorKind.PERSISTENCE_FAILED)

        if payload is None:
            logger.debug("stack_not_found", key=key)
            return Result.failure(ErrorKind.NOT_FOUND)

        try:
            stack = _transcode(SnapshotStack.model_validate_json(payload), decode_value)
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning("stack_payload_invalid", key=key, error=str(e))
            return Result.failure(ErrorKind.PERSISTENCE_FAILED)

        logger.debug("stack_loaded", key=key, size=len(stack))
        return Result.success(stack)

    def delete(self, key: str) -> Result[None]:
        """Remove a persisted stack. Deleting a missing key is not an error."""
        try:
            deleted = self.store.delete(STACK_KEY_PREFIX + key)
        except StorageError as e:
            logger.warning("stack_delete_failed", key=key, error=str(e))
            return Result.failure(ErrorKind.PERSISTENCE_FAILED)

        logger.debug("stack_deleted", key=key, existed=deleted)
        return Result.success()

    def list_stacks(self) -> Result[list[str]]:
        """Keys of all persisted stacks, sorted."""
        try:
            keys = self.store.keys(STACK_KEY_PREFIX)
        except StorageError as e:
            logger.warning("stack_list_failed", error=str(e))
            return Result.failure(ErrorKind.PERSISTENCE_FAILED)
        return Result.success([key[len(STACK_KEY_PREFIX):] for key in keys])
