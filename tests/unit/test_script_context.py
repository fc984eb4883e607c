"""
Tests for script entry points and the script context.
"""

import pytest

from post_deploy_scripts import PostDeployScript, ScriptContext
from post_deploy_scripts.backends import MemoryBackend
from post_deploy_scripts.errors import IrreversibleCommandError, RunError
from post_deploy_scripts.models import Direction
from post_deploy_scripts.script import Mode, ScriptUnit, is_script


class UpOnly(PostDeployScript):
    def up(self, ctx: ScriptContext) -> None:
        ctx.execute("up")


class Reversible(PostDeployScript):
    disable_transaction = True

    def change(self, ctx: ScriptContext) -> None:
        ctx.execute("CREATE TABLE a", reverse="DROP TABLE a")
        ctx.execute(("INSERT INTO a VALUES (:v)", {"v": 1}), reverse="DELETE FROM a")


class Empty(PostDeployScript):
    pass


# =============================================================================
# Entry Points
# =============================================================================


class TestScriptUnit:
    """Tests for entry point selection."""

    def test_up_prefers_up(self) -> None:
        """Test up is selected when defined."""
        entry = ScriptUnit.from_script(UpOnly).entry_point(Direction.UP)

        assert entry.operation == "up"
        assert entry.mode is Mode.FORWARD

    def test_change_forward_on_up(self) -> None:
        """Test change runs forward when up is missing."""
        entry = ScriptUnit.from_script(Reversible).entry_point(Direction.UP)

        assert entry.operation == "change"
        assert entry.mode is Mode.FORWARD

    def test_change_backward_on_down(self) -> None:
        """Test change runs backward when down is missing."""
        entry = ScriptUnit.from_script(Reversible).entry_point(Direction.DOWN)

        assert entry.operation == "change"
        assert entry.mode is Mode.BACKWARD

    def test_missing_down(self) -> None:
        """Test a script without down or change cannot be reverted."""
        with pytest.raises(RunError, match="does not implement a `down` or `change` method"):
            ScriptUnit.from_script(UpOnly).entry_point(Direction.DOWN)

    def test_missing_up(self) -> None:
        """Test a script without up or change cannot be applied."""
        with pytest.raises(RunError, match="does not implement an `up` or `change` method"):
            ScriptUnit.from_script(Empty).entry_point(Direction.UP)

    def test_disable_transaction_flag(self) -> None:
        """Test the transaction opt-out is read from the script."""
        assert ScriptUnit.from_script(Reversible).disable_transaction is True
        assert ScriptUnit.from_script(UpOnly).disable_transaction is False

    def test_is_script(self) -> None:
        """Test script detection."""
        assert is_script(UpOnly)
        assert is_script(UpOnly())
        assert not is_script(PostDeployScript)
        assert not is_script(object)


# =============================================================================
# Context
# =============================================================================


class TestScriptContext:
    """Tests for ScriptContext."""

    def test_forward_runs_immediately(self) -> None:
        """Test commands run as they are issued in forward mode."""
        backend = MemoryBackend()
        backend.results["SELECT 1"] = [{"one": 1}]
        ctx = ScriptContext(backend, Direction.UP)

        assert ctx.execute("SELECT 1") == [{"one": 1}]
        assert backend.statements == ["SELECT 1"]
        assert ctx.reverting is False

    def test_forward_command_kinds(self) -> None:
        """Test statements, parameterised statements and callables."""
        backend = MemoryBackend()
        ctx = ScriptContext(backend, Direction.UP)

        ctx.execute("A")
        ctx.execute(("B", {"x": 1}))
        result = ctx.execute(lambda b: b.execute("C") or "done")

        assert backend.executed == [("A", {}), ("B", {"x": 1}), ("C", {})]
        assert result == "done"

    def test_backward_runs_reverses_in_reverse_order(self) -> None:
        """Test reverse commands are queued and flushed last first."""
        backend = MemoryBackend()
        ctx = ScriptContext(backend, Direction.DOWN, Mode.BACKWARD)

        Reversible().change(ctx)
        assert backend.executed == []
        assert ctx.reverting is True

        ctx.flush()

        assert backend.statements == ["DELETE FROM a", "DROP TABLE a"]

    def test_backward_without_reverse(self) -> None:
        """Test an irreversible command fails the revert."""
        ctx = ScriptContext(MemoryBackend(), Direction.DOWN, Mode.BACKWARD, script="s")

        with pytest.raises(IrreversibleCommandError, match="s cannot be reverted"):
            ctx.execute("UPDATE users SET x = 1")

    def test_flush_is_noop_forward(self) -> None:
        """Test flushing a forward context does nothing."""
        backend = MemoryBackend()
        ctx = ScriptContext(backend, Direction.UP)
        ctx.execute("A")
        ctx.flush()

        assert backend.statements == ["A"]
