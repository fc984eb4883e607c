"""
In-Memory Backend.

Keeps the ledger and the statements executed by scripts in process memory.
Transactions snapshot that state and restore it on error. Useful for tests
and for embedding the engine where no real store is involved.
"""

import copy
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from post_deploy_scripts.backends.base import Backend
from post_deploy_scripts.errors import LedgerConflictError


class MemoryBackend(Backend):
    """
    Backend storing everything in dictionaries.

    Args:
        supports_ddl_transaction: Capability reported to the executor
        available: When False every ledger call fails as if the store were missing
    """

    name = "memory"

    def __init__(
        self,
        supports_ddl_transaction: bool = True,
        available: bool = True,
    ) -> None:
        self.supports_ddl_transaction = supports_ddl_transaction
        self.available = available
        self.ledgers: dict[tuple[str | None, str], dict[int, datetime]] = {}
        self.executed: list[tuple[str, dict[str, Any]]] = []
        self.results: dict[str, list[dict[str, Any]]] = {}
        self.transactions_opened = 0
        self.closed = False

    @contextmanager
    def transaction(self) -> Iterator[None]:
        self.transactions_opened += 1
        snapshot = (copy.deepcopy(self.ledgers), list(self.executed))
        try:
            yield
        except BaseException:
            self.ledgers, self.executed = snapshot
            raise

    def execute(
        self,
        statement: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        self.executed.append((statement, parameters or {}))
        rows = list(self.results.get(statement, []))
        self._log_statement(statement, parameters, len(rows))
        return rows

    @property
    def statements(self) -> list[str]:
        """Statements executed so far, without parameters."""
        return [statement for statement, _ in self.executed]

    # =========================================================================
    # Ledger
    # =========================================================================

    def _ledger(self, source: str, prefix: str | None) -> dict[int, datetime]:
        if not self.available:
            raise ConnectionError(f"memory store for {source!r} is unavailable")
        try:
            return self.ledgers[(prefix, source)]
        except KeyError:
            raise LookupError(f"ledger table {source!r} does not exist") from None

    def create_ledger_table(self, source: str, prefix: str | None = None) -> None:
        if not self.available:
            raise ConnectionError(f"memory store for {source!r} is unavailable")
        self.ledgers.setdefault((prefix, source), {})

    def ledger_versions(self, source: str, prefix: str | None = None) -> list[int]:
        return sorted(self._ledger(source, prefix))

    def insert_ledger_version(
        self,
        source: str,
        version: int,
        prefix: str | None = None,
    ) -> None:
        ledger = self._ledger(source, prefix)
        if version in ledger:
            raise LedgerConflictError(f"version {version} is already recorded in {source}")
        ledger[version] = datetime.now(timezone.utc)

    def delete_ledger_version(
        self,
        source: str,
        version: int,
        prefix: str | None = None,
    ) -> None:
        self._ledger(source, prefix).pop(version, None)

    def close(self) -> None:
        self.closed = True
