"""
SQL Backend.

SQLAlchemy Core backend for relational stores:
- Engine creation with SQLite transactional DDL enabled
- Per-script transactions on a shared connection
- Ledger table managed through a Core Table definition
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    MetaData,
    Table,
    create_engine,
    delete,
    event,
    insert,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from post_deploy_scripts.backends.base import Backend
from post_deploy_scripts.errors import LedgerConflictError

# Dialects able to roll back CREATE/ALTER together with data changes
TRANSACTIONAL_DDL_DIALECTS = frozenset({"postgresql", "sqlite", "mssql"})

# Connection option that keeps the SQLite begin hook from opening a transaction
AUTOCOMMIT_OPTION = "post_deploy_scripts_autocommit"


def create_sql_engine(
    url: str,
    *,
    echo: bool = False,
    pool_size: int | None = None,
    **kwargs: Any,
) -> Engine:
    """
    Create a SQLAlchemy engine.

    For SQLite the driver's implicit transaction handling is disabled and
    BEGIN is emitted explicitly, so DDL takes part in transactions.
    Connections carrying AUTOCOMMIT_OPTION skip the BEGIN.

    Args:
        url: Database URL (``sqlite:///...``, ``postgresql://...``)
        echo: Log all SQL
        pool_size: Connection pool size (ignored for SQLite)
    """
    if url.startswith("sqlite"):
        engine = create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _disable_implicit_begin(dbapi_connection: Any, _rec: Any) -> None:
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(connection: Connection) -> None:
            if connection.get_execution_options().get(AUTOCOMMIT_OPTION):
                return
            connection.exec_driver_sql("BEGIN")

        return engine

    if pool_size is not None:
        kwargs["pool_size"] = pool_size
    return create_engine(url, echo=echo, **kwargs)


class SqlBackend(Backend):
    """
    Backend for SQL databases.

    The prefix selects the schema holding the ledger table.

    Args:
        url_or_engine: Database URL or an existing Engine
        echo: Log all SQL (only used when a URL is given)
        pool_size: Connection pool size (only used when a URL is given)
    """

    name = "sql"

    def __init__(
        self,
        url_or_engine: str | Engine,
        *,
        echo: bool = False,
        pool_size: int | None = None,
    ) -> None:
        if isinstance(url_or_engine, Engine):
            self._engine = url_or_engine
            self._owns_engine = False
        else:
            self._engine = create_sql_engine(url_or_engine, echo=echo, pool_size=pool_size)
            self._owns_engine = True

        self.supports_ddl_transaction = (
            self._engine.dialect.name in TRANSACTIONAL_DDL_DIALECTS
        )
        self._connection: Connection | None = None
        self._tables: dict[tuple[str | None, str], Table] = {}

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._connection is not None:
            # Join the enclosing transaction
            yield
            return

        with self._engine.begin() as connection:
            self._connection = connection
            try:
                yield
            finally:
                self._connection = None

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        if self._connection is not None:
            yield self._connection
            return

        # Outside transaction() every statement commits on its own
        with self._engine.connect() as connection:
            self._autocommit(connection)
            yield connection
            connection.commit()

    def _autocommit(self, connection: Connection) -> None:
        if self._engine.dialect.name == "sqlite":
            connection.execution_options(**{AUTOCOMMIT_OPTION: True})
        else:
            connection.execution_options(isolation_level="AUTOCOMMIT")

    def execute(
        self,
        statement: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        with self._connect() as connection:
            result = connection.execute(text(statement), parameters or {})
            rows = [dict(row._mapping) for row in result] if result.returns_rows else []

        self._log_statement(statement, parameters, len(rows))
        return rows

    # =========================================================================
    # Ledger
    # =========================================================================

    def _ledger_table(self, source: str, prefix: str | None) -> Table:
        key = (prefix, source)
        if key not in self._tables:
            self._tables[key] = Table(
                source,
                MetaData(schema=prefix),
                Column("version", BigInteger, primary_key=True, autoincrement=False),
                Column("inserted_at", DateTime),
            )
        return self._tables[key]

    def create_ledger_table(self, source: str, prefix: str | None = None) -> None:
        table = self._ledger_table(source, prefix)
        with self._connect() as connection:
            table.create(connection, checkfirst=True)

    def ledger_versions(self, source: str, prefix: str | None = None) -> list[int]:
        table = self._ledger_table(source, prefix)
        with self._connect() as connection:
            result = connection.execute(select(table.c.version))
            return [int(version) for version in result.scalars()]

    def insert_ledger_version(
        self,
        source: str,
        version: int,
        prefix: str | None = None,
    ) -> None:
        table = self._ledger_table(source, prefix)
        inserted_at = datetime.now(timezone.utc).replace(tzinfo=None)
        try:
            with self._connect() as connection:
                connection.execute(
                    insert(table).values(version=version, inserted_at=inserted_at)
                )
        except IntegrityError as e:
            raise LedgerConflictError(
                f"version {version} is already recorded in {source}"
            ) from e

    def delete_ledger_version(
        self,
        source: str,
        version: int,
        prefix: str | None = None,
    ) -> None:
        table = self._ledger_table(source, prefix)
        with self._connect() as connection:
            connection.execute(delete(table).where(table.c.version == version))

    def close(self) -> None:
        if self._owns_engine:
            self._engine.dispose()
