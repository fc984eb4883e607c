"""
Tests for the script executor.
"""

from collections.abc import Callable

import pytest
import structlog.testing

from post_deploy_scripts import PostDeployScript, ScriptContext
from post_deploy_scripts.backends import MemoryBackend
from post_deploy_scripts.errors import LedgerConflictError, RunError
from post_deploy_scripts.executor import Executor
from post_deploy_scripts.ledger import Ledger
from post_deploy_scripts.models import (
    Direction,
    ExecutionOutcome,
    InlineRef,
    ScriptDescriptor,
    script_name,
)


class Failing(PostDeployScript):
    def up(self, ctx: ScriptContext) -> None:
        ctx.execute("partial")
        raise RuntimeError("boom")


class NoTransaction(PostDeployScript):
    disable_transaction = True

    def up(self, ctx: ScriptContext) -> None:
        ctx.execute("long backfill")


class UpOnly(PostDeployScript):
    def up(self, ctx: ScriptContext) -> None:
        ctx.execute("up")


def descriptor(version: int, script: object) -> ScriptDescriptor:
    return ScriptDescriptor(version=version, name=script_name(script), locator=InlineRef(script))


@pytest.fixture
def executor(backend: MemoryBackend, ledger: Ledger) -> Executor:
    """Provide a quiet executor with the ledger table created."""
    ledger.ensure_table()
    return Executor(backend, ledger, log=False)


# =============================================================================
# Apply / Revert
# =============================================================================


class TestApply:
    """Tests for Executor.apply."""

    def test_apply_records_version(
        self,
        executor: Executor,
        backend: MemoryBackend,
        ledger: Ledger,
        script_factory: Callable[[str], type[PostDeployScript]],
    ) -> None:
        """Test a successful up runs the script and records it."""
        outcome = executor.apply(descriptor(1, script_factory("a")), Direction.UP)

        assert outcome is ExecutionOutcome.APPLIED
        assert backend.statements == ["up a"]
        assert ledger.list_versions() == {1}

    def test_revert_forgets_version(
        self,
        executor: Executor,
        backend: MemoryBackend,
        ledger: Ledger,
        script_factory: Callable[[str], type[PostDeployScript]],
    ) -> None:
        """Test a successful down runs the script and forgets it."""
        ledger.record_applied(1)

        outcome = executor.apply(descriptor(1, script_factory("a")), Direction.DOWN)

        assert outcome is ExecutionOutcome.REVERTED
        assert backend.statements == ["down a"]
        assert ledger.list_versions() == set()

    def test_already_applied_is_skipped(
        self,
        executor: Executor,
        backend: MemoryBackend,
        ledger: Ledger,
        script_factory: Callable[[str], type[PostDeployScript]],
    ) -> None:
        """Test up re-checks the ledger and does not run twice."""
        ledger.record_applied(1)

        outcome = executor.apply(descriptor(1, script_factory("a")), Direction.UP)

        assert outcome is ExecutionOutcome.ALREADY_APPLIED
        assert backend.executed == []

    def test_already_reverted_is_skipped(
        self,
        executor: Executor,
        backend: MemoryBackend,
        script_factory: Callable[[str], type[PostDeployScript]],
    ) -> None:
        """Test down re-checks the ledger and does not run for unapplied versions."""
        outcome = executor.apply(descriptor(1, script_factory("a")), Direction.DOWN)

        assert outcome is ExecutionOutcome.ALREADY_REVERTED
        assert backend.executed == []

    def test_missing_entry_point(self, executor: Executor, ledger: Ledger) -> None:
        """Test RunError is raised before anything runs."""
        ledger.record_applied(1)

        with pytest.raises(RunError):
            executor.apply(descriptor(1, UpOnly), Direction.DOWN)

        assert ledger.list_versions() == {1}

    def test_execute_bypasses_guard(
        self,
        executor: Executor,
        ledger: Ledger,
        script_factory: Callable[[str], type[PostDeployScript]],
    ) -> None:
        """Test execute() writes to the ledger without checking it first."""
        ledger.record_applied(1)

        with pytest.raises(LedgerConflictError):
            executor.execute(descriptor(1, script_factory("a")), Direction.UP)


# =============================================================================
# Transactions
# =============================================================================


class TestTransactions:
    """Tests for transactional wrapping."""

    def test_failure_rolls_back_script_and_ledger(
        self, executor: Executor, backend: MemoryBackend, ledger: Ledger
    ) -> None:
        """Test a failing script leaves no effects and no ledger row."""
        with pytest.raises(RuntimeError, match="boom"):
            executor.apply(descriptor(1, Failing), Direction.UP)

        assert backend.transactions_opened == 1
        assert backend.executed == []
        assert ledger.list_versions() == set()

    def test_disable_transaction(self, executor: Executor, backend: MemoryBackend) -> None:
        """Test scripts can opt out of the transaction."""
        executor.apply(descriptor(1, NoTransaction), Direction.UP)

        assert backend.transactions_opened == 0
        assert backend.statements == ["long backfill"]

    def test_non_transactional_backend(self) -> None:
        """Test backends without transactional DDL run scripts unwrapped."""
        backend = MemoryBackend(supports_ddl_transaction=False)
        ledger = Ledger(backend)
        ledger.ensure_table()
        executor = Executor(backend, ledger, log=False)

        with pytest.raises(RuntimeError):
            executor.apply(descriptor(1, Failing), Direction.UP)

        assert backend.transactions_opened == 0
        assert backend.statements == ["partial"]
        assert ledger.list_versions() == set()

    def test_transactional_override(self, backend: MemoryBackend, ledger: Ledger) -> None:
        """Test the capability flag can be overridden."""
        ledger.ensure_table()
        executor = Executor(backend, ledger, transactional=False, log=False)

        executor.apply(descriptor(1, UpOnly), Direction.UP)

        assert backend.transactions_opened == 0


# =============================================================================
# Logging
# =============================================================================


class TestLogging:
    """Tests for progress logging."""

    def test_invalid_log_level(self, backend: MemoryBackend, ledger: Ledger) -> None:
        """Test an unknown log level is rejected up front."""
        with pytest.raises(ValueError, match="unknown log level"):
            Executor(backend, ledger, log="loud")

    def test_logs_progress(
        self,
        backend: MemoryBackend,
        ledger: Ledger,
        script_factory: Callable[[str], type[PostDeployScript]],
    ) -> None:
        """Test running and executed events are logged."""
        ledger.ensure_table()
        executor = Executor(backend, ledger, log="info")

        with structlog.testing.capture_logs() as logs:
            executor.apply(descriptor(1, script_factory("a")), Direction.UP)

        events = [entry["event"] for entry in logs]
        assert events == ["Running script", "Executed script"]
        assert logs[0]["operation"] == "up"
        assert "seconds" in logs[1]

    def test_quiet(
        self,
        backend: MemoryBackend,
        ledger: Ledger,
        script_factory: Callable[[str], type[PostDeployScript]],
    ) -> None:
        """Test log=False silences progress logs."""
        ledger.ensure_table()
        executor = Executor(backend, ledger, log=False)

        with structlog.testing.capture_logs() as logs:
            executor.apply(descriptor(1, script_factory("a")), Direction.UP)

        assert logs == []
