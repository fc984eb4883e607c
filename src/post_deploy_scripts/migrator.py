"""
Post Deploy Script Migrator.

Public API for running, reverting and reporting on post deploy scripts.
Composes the ledger, script sources, planner and executor. Every
operation works on the backend handed to the Migrator; there is no
process-wide state.
"""

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import bound_contextvars

from post_deploy_scripts.backends.base import Backend
from post_deploy_scripts.config.settings import Settings, get_settings
from post_deploy_scripts.errors import ArgumentError
from post_deploy_scripts.executor import Executor
from post_deploy_scripts.ledger import DEFAULT_SOURCE, Ledger
from post_deploy_scripts.models import (
    FILE_NOT_FOUND,
    Direction,
    ExecutionOutcome,
    InlineRef,
    RunResult,
    RunStrategy,
    ScriptDescriptor,
    StatusEntry,
    script_name,
)
from post_deploy_scripts.observability.logging import resolve_level
from post_deploy_scripts.planner import pending_in_direction, plan
from post_deploy_scripts.sources import ScriptSource, as_source

logger = structlog.get_logger(__name__)

SourceLike = ScriptSource | str | Path | Iterable[tuple[int, Any]]


class Migrator:
    """
    Runs post deploy scripts against one backend.

    Usage:
        ```python
        migrator = Migrator(SqlBackend("postgresql://localhost/app"))

        # Apply everything pending
        migrator.run("priv/post_deploy_scripts", Direction.UP, All())

        # Revert the most recent script
        migrator.run("priv/post_deploy_scripts", Direction.DOWN, Step(1))

        # Report
        for entry in migrator.status("priv/post_deploy_scripts"):
            print(entry.state.value, entry.version, entry.name)
        ```

    Args:
        backend: Backend the scripts and the ledger live in
        ledger_source: Ledger table name
        prefix: Schema or database holding the ledger
        log: Level for progress logs, or False to stay quiet
        transactional: Override the backend's transactional DDL capability
        log_sql: Also log the statements scripts execute, at the level of log
        file_extension: Extension of script files when a directory path is given
    """

    def __init__(
        self,
        backend: Backend,
        ledger_source: str = DEFAULT_SOURCE,
        prefix: str | None = None,
        log: str | bool = "info",
        transactional: bool | None = None,
        log_sql: bool = False,
        file_extension: str = ".py",
    ) -> None:
        self.backend = backend
        self.prefix = prefix
        self.file_extension = file_extension
        self.ledger = Ledger(backend, ledger_source, prefix)
        self.executor = Executor(backend, self.ledger, transactional=transactional, log=log)
        self._level = resolve_level(log)
        if log_sql:
            backend.log_statements(log)

    @classmethod
    def from_settings(
        cls,
        backend: Backend,
        settings: Settings | None = None,
        **kwargs: Any,
    ) -> "Migrator":
        """Build a Migrator using the ledger options from settings."""
        settings = settings or get_settings()
        kwargs.setdefault("ledger_source", settings.scripts.ledger_source)
        kwargs.setdefault("prefix", settings.scripts.prefix)
        kwargs.setdefault("file_extension", settings.scripts.file_extension)
        return cls(backend, **kwargs)

    def previously_run_versions(self) -> list[int]:
        """
        Get all previously run versions.

        Creates the ledger table first if it does not exist yet.
        """
        return sorted(self.ledger.list_versions())

    # =========================================================================
    # Single scripts
    # =========================================================================

    def up(self, version: int, script: Any) -> ExecutionOutcome:
        """Apply one in-process script unless it is already applied."""
        return self.executor.apply(self._descriptor(version, script), Direction.UP)

    def down(self, version: int, script: Any) -> ExecutionOutcome:
        """Revert one in-process script unless it is not applied."""
        return self.executor.apply(self._descriptor(version, script), Direction.DOWN)

    @staticmethod
    def _descriptor(version: int, script: Any) -> ScriptDescriptor:
        return ScriptDescriptor(version=version, name=script_name(script), locator=InlineRef(script))

    # =========================================================================
    # Runs
    # =========================================================================

    def run(
        self,
        source: SourceLike,
        direction: Direction,
        strategy: RunStrategy | None,
    ) -> list[int]:
        """
        Apply or revert scripts with a strategy.

        Scripts run one after another; each one is recorded in the ledger
        before the next starts. The first failure stops the run, leaving
        earlier scripts applied.

        Args:
            source: Script source, directory path, or ``(version, script)`` pairs
            direction: Up or down
            strategy: All(), Step(n) or To(version)

        Returns:
            Versions applied or reverted, in execution order

        Raises:
            ArgumentError: If no strategy is given
            BackendUnavailable: If the ledger cannot be reached
            DuplicateScriptError: If the plan has duplicated versions or names
            NotAScriptError: If a planned entry is not a script
            RunError: If a script has no entry point for ``direction``
        """
        if strategy is None:
            raise ArgumentError("expected one of all, to, or step strategies")

        source = as_source(source, self.file_extension)
        direction = Direction(direction)

        with bound_contextvars(direction=direction.value, prefix=self.prefix):
            applied = self.ledger.list_versions()
            planned = plan(applied, source.catalog(), direction, strategy)

            if not planned:
                self._log(f"Already {direction.value}")
                return []

            versions = []
            for descriptor in planned:
                outcome = self.executor.apply(descriptor, direction)
                if outcome in (ExecutionOutcome.ALREADY_APPLIED, ExecutionOutcome.ALREADY_REVERTED):
                    self._log(
                        "Script skipped",
                        version=descriptor.version,
                        name=descriptor.name,
                        outcome=outcome.value,
                    )
                    continue
                versions.append(descriptor.version)

        return versions

    def execute(
        self,
        source: SourceLike,
        direction: Direction,
        strategy: RunStrategy | None,
    ) -> RunResult:
        """
        Same as run(), with the outcome folded into a RunResult.

        Returns:
            OK with the affected versions, NOOP when nothing was pending,
            or FAILED with the error kind
        """
        direction = Direction(direction)
        try:
            versions = self.run(source, direction, strategy)
        except Exception as e:
            logger.error("Post deploy scripts failed", direction=direction.value, error=str(e))
            return RunResult.failed(direction, e)

        if not versions:
            return RunResult.noop(direction)
        return RunResult.ok(direction, versions)

    # =========================================================================
    # Status
    # =========================================================================

    def status(self, source: SourceLike) -> list[StatusEntry]:
        """
        Report every known script without running anything.

        Applied scripts are ``up``; applied versions with no matching
        script are reported with the name ``** FILE NOT FOUND **``;
        scripts not applied are ``down``.

        Returns:
            Entries sorted ascending by version
        """
        applied = self.ledger.list_versions()
        catalog = as_source(source, self.file_extension).catalog()

        ups_with_file = [
            StatusEntry(Direction.UP, d.version, d.name)
            for d in pending_in_direction(applied, catalog, Direction.DOWN)
        ]

        known = {d.version for d in catalog}
        ups_without_file = [
            StatusEntry(Direction.UP, version, FILE_NOT_FOUND)
            for version in sorted(applied - known)
        ]

        downs = [
            StatusEntry(Direction.DOWN, d.version, d.name)
            for d in pending_in_direction(applied, catalog, Direction.UP)
        ]

        return sorted(ups_with_file + ups_without_file + downs, key=lambda e: e.version)

    def _log(self, event: str, **kwargs: Any) -> None:
        if self._level is not None:
            logger.log(self._level, event, **kwargs)
