"""
Recourse CLI - Command Line Interface

Usage:
    python -m recourse demo --target 42
    python -m recourse stack --db runs.db --key question-17
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import structlog

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.dev.ConsoleRenderer(),
    ]
)

logger = structlog.get_logger(__name__)


# Scripted answers per reasoning strategy: (answer, confidence)
DEMO_SCRIPT = {
    "analytical": [(35, 0.6), (17, 0.4), (17, 0.4)],
    "creative": [(42, 0.9)],
    "systematic": [(42, 0.85)],
    "intuitive": [(40, 0.5)],
}


def cmd_demo(args):
    """Run a scripted self-correcting attempt sequence."""
    from recourse import (
        Accepted,
        Rejected,
        StateManager,
        classify_divergence,
        execute_with_backtracking,
    )
    from recourse.storage import SQLiteKVStore

    calls: dict[str, int] = {}

    def attempt(state):
        strategy = state.get("strategy", "analytical")
        script = DEMO_SCRIPT.get(strategy, [(0, 0.1)])
        index = min(calls.get(strategy, 0), len(script) - 1)
        calls[strategy] = calls.get(strategy, 0) + 1
        answer, confidence = script[index]
        return {"answer": answer, "confidence": confidence, "strategy": strategy}

    def validate(result):
        if result["answer"] == args.target:
            return Accepted(result)
        return Rejected("wrong_answer", classify_divergence(args.target, result["answer"]))

    def on_backtrack(iteration, strategy):
        print(f"  iteration {iteration}: {strategy.value}")

    print(f"Target: {args.target}")
    print("-" * 40)

    outcome = execute_with_backtracking(
        attempt,
        validate,
        initial_state={"strategy": "analytical", "reasoning_params": {"temperature": 0.7}},
        on_backtrack=on_backtrack,
        max_iterations=args.max_iter,
        backtrack_budget=args.budget,
    )

    print(f"\nStatus: {outcome.status.value}")
    if outcome.reason:
        print(f"Reason: {outcome.reason.value}")
    print(f"Value: {json.dumps(outcome.value, default=str)}")
    print(f"Iterations: {outcome.iterations}")
    print(f"Backtracks: {outcome.backtracks}")
    print(f"Budget remaining: {outcome.budget['remaining']}/{outcome.budget['total']}")

    if args.db:
        manager = StateManager(SQLiteKVStore(args.db))
        saved = manager.persist(outcome.stack, args.key)
        if not saved.ok:
            print(f"Error: could not persist stack ({saved.error.value})")
            sys.exit(1)
        print(f"\nStack saved to: {args.db} (key {args.key!r})")

    return outcome


def cmd_stack(args):
    """List snapshots persisted under a key."""
    from recourse import StateManager
    from recourse.storage import SQLiteKVStore, encode_value

    db_path = Path(args.db)
    if not db_path.exists():
        print(f"Error: Database not found: {db_path}")
        sys.exit(1)

    manager = StateManager(SQLiteKVStore(db_path))
    loaded = manager.load(args.key)
    if not loaded.ok:
        print(f"Error: {loaded.error.value} for key {args.key!r}")
        available = manager.list_stacks()
        if available.ok and available.value:
            print(f"Saved stacks: {', '.join(available.value)}")
        sys.exit(1)

    stack = loaded.value
    print(f"Stack {args.key!r}: {len(stack)} snapshot(s), newest first")
    for snapshot in reversed(stack.snapshots):
        print(f"\n[{snapshot.id}] {snapshot.timestamp.isoformat()}")
        print(f"  data: {json.dumps(encode_value(snapshot.data))}")
        if snapshot.metadata:
            print(f"  metadata: {json.dumps(encode_value(snapshot.metadata))}")

    return stack


def main():
    parser = argparse.ArgumentParser(
        description="Recourse - Iterative Refinement & Backtracking Engine"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run a scripted correction loop")
    demo_parser.add_argument("--target", type=int, default=42, help="Answer to accept")
    demo_parser.add_argument("--max-iter", type=int, default=5, help="Max iterations")
    demo_parser.add_argument("--budget", type=int, default=10, help="Backtrack budget")
    demo_parser.add_argument("--db", help="SQLite database to save the snapshot stack to")
    demo_parser.add_argument("--key", default="demo", help="Key for the saved stack")

    # Stack command
    stack_parser = subparsers.add_parser("stack", help="Show a persisted snapshot stack")
    stack_parser.add_argument("--db", required=True, help="SQLite database path")
    stack_parser.add_argument("--key", required=True, help="Stack key")

    args = parser.parse_args()

    if args.command == "demo":
        cmd_demo(args)
    elif args.command == "stack":
        cmd_stack(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
