"""
Backend Interface.

Defines the narrow contract the engine needs from a storage backend:
- Capability flag for transactional schema changes
- Transaction scope for running a script
- Statement execution for scripts
- Ledger table primitives (create-if-not-exists, select, insert, delete)
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any

import structlog

from post_deploy_scripts.observability.logging import resolve_level

logger = structlog.get_logger(__name__)


class Backend(ABC):
    """
    Abstract base class for script backends.

    Ledger primitives must never emit per-statement logs. Inserting a
    version that is already recorded must raise LedgerConflictError.

    Example:
        ```python
        with SqlBackend("postgresql://localhost/app") as backend:
            migrator = Migrator(backend)
            migrator.run(DirectorySource("priv/post_deploy_scripts"), Direction.UP, All())
        ```
    """

    name: str = "backend"

    # Whether structural changes can be rolled back together with data changes
    supports_ddl_transaction: bool = False

    # Level for logging script statements, None when statements are not logged
    statement_level: int | None = None

    def log_statements(self, log: str | bool) -> None:
        """
        Log every statement scripts execute.

        Ledger primitives stay quiet regardless.

        Args:
            log: Level name, True for info, or False to stop logging
        """
        self.statement_level = resolve_level(log)

    def _log_statement(
        self,
        statement: str,
        parameters: dict[str, Any] | None,
        result_count: int,
    ) -> None:
        if self.statement_level is None:
            return
        logger.log(
            self.statement_level,
            "Statement executed",
            backend=self.name,
            statement=statement,
            param_count=len(parameters) if parameters else 0,
            result_count=result_count,
        )

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Open a transaction scope; commit on exit, roll back on error."""

    @abstractmethod
    def execute(
        self,
        statement: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Execute a statement on behalf of a script.

        Outside transaction() the statement commits on its own.

        Args:
            statement: Statement in the backend's query language
            parameters: Bound parameters

        Returns:
            Result rows as dictionaries
        """

    @abstractmethod
    def create_ledger_table(self, source: str, prefix: str | None = None) -> None:
        """Create the ledger table if it does not exist."""

    @abstractmethod
    def ledger_versions(self, source: str, prefix: str | None = None) -> list[int]:
        """Return every version recorded in the ledger."""

    @abstractmethod
    def insert_ledger_version(
        self,
        source: str,
        version: int,
        prefix: str | None = None,
    ) -> None:
        """Record a version in the ledger."""

    @abstractmethod
    def delete_ledger_version(
        self,
        source: str,
        version: int,
        prefix: str | None = None,
    ) -> None:
        """Remove a version from the ledger. Absent versions are ignored."""

    def close(self) -> None:
        """Release connections held by the backend."""

    def __enter__(self) -> "Backend":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"
