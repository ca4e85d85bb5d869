"""Tests for the command line interface."""

import sys

import pytest

from recourse.__main__ import main


def run_cli(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["recourse", *args])
    main()


class TestDemoCommand:
    """Tests for `python -m recourse demo`."""

    def test_demo_is_accepted(self, monkeypatch, capsys):
        run_cli(monkeypatch, "demo")

        out = capsys.readouterr().out
        assert "Status: accepted" in out
        assert "retry_adjusted" in out
        assert "backtrack_alternative" in out

    def test_demo_unreachable_target(self, monkeypatch, capsys):
        run_cli(monkeypatch, "demo", "--target", "7", "--max-iter", "2")

        out = capsys.readouterr().out
        assert "Status: failed" in out


class TestStackCommand:
    """Tests for `python -m recourse stack`."""

    def test_saved_stack_is_listed(self, monkeypatch, capsys, temp_dir):
        db = str(temp_dir / "runs.db")

        run_cli(monkeypatch, "demo", "--db", db, "--key", "q1")
        capsys.readouterr()
        run_cli(monkeypatch, "stack", "--db", db, "--key", "q1")

        out = capsys.readouterr().out
        assert "Stack 'q1': 2 snapshot(s)" in out
        assert '"strategy": "analytical"' in out

    def test_missing_database(self, monkeypatch, temp_dir):
        with pytest.raises(SystemExit):
            run_cli(monkeypatch, "stack", "--db", str(temp_dir / "none.db"), "--key", "q1")

    def test_missing_key(self, monkeypatch, capsys, temp_dir):
        db = str(temp_dir / "runs.db")
        run_cli(monkeypatch, "demo", "--db", db)
        capsys.readouterr()

        with pytest.raises(SystemExit):
            run_cli(monkeypatch, "stack", "--db", db, "--key", "other")

        assert "Saved stacks: demo" in capsys.readouterr().out
