"""
Neo4j Backend.

Runs post deploy scripts against a Neo4j graph:
- Ledger stored as nodes labelled with the ledger source
- Uniqueness constraint on the version property
- The prefix selects the Neo4j database holding the ledger
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from neo4j import Driver, GraphDatabase, Query, Session, Transaction
from neo4j.exceptions import ConstraintError

from post_deploy_scripts.backends.base import Backend
from post_deploy_scripts.config.settings import Neo4jSettings, get_settings
from post_deploy_scripts.errors import LedgerConflictError

logger = structlog.get_logger(__name__)


def _escape(identifier: str) -> str:
    """Quote a label or constraint name for Cypher."""
    return "`" + identifier.replace("`", "``") + "`"


class Neo4jBackend(Backend):
    """
    Backend for Neo4j.

    Neo4j cannot mix schema changes and data writes in one transaction,
    so scripts are never wrapped in a transaction by the executor.

    Args:
        settings: Connection settings (defaults to the application settings)
        timeout_seconds: Timeout for ledger queries, None for unbounded
    """

    name = "neo4j"
    supports_ddl_transaction = False

    def __init__(
        self,
        settings: Neo4jSettings | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._settings = settings or get_settings().neo4j
        self._timeout = timeout_seconds
        self._driver: Driver | None = None
        self._tx: Transaction | None = None

    def connect(self) -> None:
        """Establish connection to Neo4j database."""
        if self._driver is not None:
            return

        self._driver = GraphDatabase.driver(
            self._settings.uri,
            auth=(self._settings.username, self._settings.password.get_secret_value()),
            max_connection_pool_size=self._settings.max_connection_pool_size,
        )
        self._driver.verify_connectivity()
        logger.info("Connected to Neo4j", uri=self._settings.uri)

    def close(self) -> None:
        """Close the database connection."""
        if self._driver is not None:
            self._driver.close()
            self._driver = None
            logger.info("Disconnected from Neo4j")

    @contextmanager
    def session(self, database: str | None = None) -> Iterator[Session]:
        """Get a database session."""
        if self._driver is None:
            self.connect()

        assert self._driver is not None  # Type guard for mypy
        with self._driver.session(database=database or self._settings.database) as session:
            yield session

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._tx is not None:
            yield
            return

        with self.session() as session:
            tx = session.begin_transaction()
            self._tx = tx
            try:
                yield
                tx.commit()
            except BaseException:
                tx.rollback()
                raise
            finally:
                self._tx = None

    def _run(
        self,
        query: str | Query,
        parameters: dict[str, Any] | None = None,
        database: str | None = None,
    ) -> list[dict[str, Any]]:
        if self._tx is not None and database in (None, self._settings.database):
            # Transactions carry their own timeout; run() only takes plain text
            text = query.text if isinstance(query, Query) else query
            return self._tx.run(text, parameters or {}).data()

        with self.session(database) as session:
            return session.run(query, parameters or {}).data()

    def execute(
        self,
        statement: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        records = self._run(statement, parameters)

        self._log_statement(statement, parameters, len(records))
        return records

    # =========================================================================
    # Ledger
    # =========================================================================

    def _ledger_query(self, cypher: str) -> Query:
        return Query(cypher, timeout=self._timeout)

    def create_ledger_table(self, source: str, prefix: str | None = None) -> None:
        query = self._ledger_query(
            f"CREATE CONSTRAINT {_escape(source + '_version')} IF NOT EXISTS "
            f"FOR (s:{_escape(source)}) REQUIRE s.version IS UNIQUE"
        )
        # Schema changes need their own auto-commit session
        with self.session(prefix) as session:
            session.run(query).consume()

    def ledger_versions(self, source: str, prefix: str | None = None) -> list[int]:
        query = self._ledger_query(
            f"MATCH (s:{_escape(source)}) RETURN s.version AS version ORDER BY version"
        )
        return [int(record["version"]) for record in self._run(query, database=prefix)]

    def insert_ledger_version(
        self,
        source: str,
        version: int,
        prefix: str | None = None,
    ) -> None:
        query = self._ledger_query(
            f"CREATE (s:{_escape(source)} {{version: $version, inserted_at: localdatetime()}})"
        )
        try:
            self._run(query, {"version": version}, database=prefix)
        except ConstraintError as e:
            raise LedgerConflictError(
                f"version {version} is already recorded in {source}"
            ) from e

    def delete_ledger_version(
        self,
        source: str,
        version: int,
        prefix: str | None = None,
    ) -> None:
        query = self._ledger_query(
            f"MATCH (s:{_escape(source)} {{version: $version}}) DELETE s"
        )
        self._run(query, {"version": version}, database=prefix)
