"""Pytest configuration and shared fixtures."""

import tempfile
from pathlib import Path

import pytest


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def state_manager():
    """State manager backed by an in-memory store."""
    from recourse.backtracking import StateManager
    from recourse.storage import InMemoryKVStore

    return StateManager(InMemoryKVStore())


@pytest.fixture
def sqlite_state_manager(temp_dir):
    """State manager backed by a SQLite file in a temp dir."""
    from recourse.backtracking import StateManager
    from recourse.storage import SQLiteKVStore

    return StateManager(SQLiteKVStore(temp_dir / "stacks.db"))


@pytest.fixture
def budget_manager():
    from recourse.backtracking import BudgetManager

    return BudgetManager()


@pytest.fixture
def exploration_state():
    """Default exploration state used by the controller."""
    return {"strategy": "analytical", "reasoning_params": {"temperature": 0.7}}


@pytest.fixture
def scripted_attempt():
    """
    Build an attempt function that returns results in order.

    The last result repeats once the script runs out. ``calls`` records
    the argument tuple of every invocation.
    """

    def factory(*results):
        script = list(results)
        calls = []

        def attempt(*args):
            calls.append(args)
            return script[min(len(calls), len(script)) - 1]

        attempt.calls = calls
        return attempt

    return factory
