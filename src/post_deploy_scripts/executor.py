"""
Script Executor.

Runs a single script in one direction:
- Re-checks the ledger so an already applied/reverted script is skipped
- Wraps the script in a backend transaction when allowed
- Records the outcome in the ledger inside the same scope

Backends without transactional DDL commit the script's effects and the
ledger write separately. A crash between the two leaves the effects in
place with no ledger row, and the script runs again on the next
invocation.
"""

import time
from contextlib import AbstractContextManager, nullcontext

import structlog

from post_deploy_scripts.backends.base import Backend
from post_deploy_scripts.ledger import Ledger
from post_deploy_scripts.models import Direction, ExecutionOutcome, ScriptDescriptor
from post_deploy_scripts.observability.logging import resolve_level
from post_deploy_scripts.script import EntryPoint, ScriptContext, ScriptUnit
from post_deploy_scripts.sources import load_script

logger = structlog.get_logger(__name__)


class Executor:
    """
    Applies or reverts one script at a time.

    Args:
        backend: Backend the scripts run against
        ledger: Ledger recording outcomes
        transactional: Whether scripts may be wrapped in a transaction;
            defaults to the backend's transactional DDL capability
        log: Level for progress logs, or False to stay quiet
    """

    def __init__(
        self,
        backend: Backend,
        ledger: Ledger,
        transactional: bool | None = None,
        log: str | bool = "info",
    ) -> None:
        self.backend = backend
        self.ledger = ledger
        self.transactional = (
            backend.supports_ddl_transaction if transactional is None else transactional
        )
        self._level = resolve_level(log)

    def apply(self, descriptor: ScriptDescriptor, direction: Direction) -> ExecutionOutcome:
        """
        Run a script unless the ledger says it already ran in ``direction``.

        Returns:
            APPLIED / REVERTED, or ALREADY_APPLIED / ALREADY_REVERTED when skipped

        Raises:
            NotAScriptError: If the locator does not resolve to a script
            RunError: If the script has no entry point for ``direction``
        """
        applied = self.ledger.list_versions()

        if direction is Direction.UP and descriptor.version in applied:
            return ExecutionOutcome.ALREADY_APPLIED
        if direction is Direction.DOWN and descriptor.version not in applied:
            return ExecutionOutcome.ALREADY_REVERTED

        return self.execute(descriptor, direction)

    def execute(self, descriptor: ScriptDescriptor, direction: Direction) -> ExecutionOutcome:
        """Run a script and record the outcome, without consulting the ledger first."""
        unit = load_script(descriptor.locator)
        entry = unit.entry_point(direction)

        with self._scope(unit):
            self._run(unit, entry, direction)
            if direction is Direction.UP:
                self.ledger.record_applied(descriptor.version)
            else:
                self.ledger.record_reverted(descriptor.version)

        if direction is Direction.UP:
            return ExecutionOutcome.APPLIED
        return ExecutionOutcome.REVERTED

    def _scope(self, unit: ScriptUnit) -> AbstractContextManager[None]:
        if unit.disable_transaction or not self.transactional:
            return nullcontext()
        return self.backend.transaction()

    def _run(self, unit: ScriptUnit, entry: EntryPoint, direction: Direction) -> None:
        ctx = ScriptContext(self.backend, direction, entry.mode, unit.name)

        self._log(
            "Running script",
            script=unit.name,
            operation=entry.operation,
            mode=entry.mode.value,
        )
        started = time.perf_counter()
        entry.function(ctx)
        ctx.flush()
        elapsed = time.perf_counter() - started
        self._log("Executed script", script=unit.name, seconds=round(elapsed, 1))

    def _log(self, event: str, **kwargs: object) -> None:
        if self._level is not None:
            logger.log(self._level, event, **kwargs)
