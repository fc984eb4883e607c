"""
Script Backends.

Storage backends the engine runs scripts against:
- SqlBackend: relational databases through SQLAlchemy
- Neo4jBackend: Neo4j graphs
- MemoryBackend: in-process, for tests and embedding
"""

from post_deploy_scripts.backends.base import Backend
from post_deploy_scripts.backends.memory import MemoryBackend
from post_deploy_scripts.backends.neo4j_backend import Neo4jBackend
from post_deploy_scripts.backends.sql import SqlBackend, create_sql_engine
from post_deploy_scripts.config.settings import Settings, get_settings


def create_backend(settings: Settings | None = None, pool_size: int | None = None) -> Backend:
    """
    Create the backend selected in settings.

    Args:
        settings: Application settings
        pool_size: Override the configured connection pool size
    """
    settings = settings or get_settings()

    if settings.backend == "neo4j":
        neo4j = settings.neo4j
        if pool_size is not None:
            neo4j = neo4j.model_copy(update={"max_connection_pool_size": pool_size})
        return Neo4jBackend(
            neo4j,
            timeout_seconds=settings.scripts.ledger_timeout_seconds,
        )

    return SqlBackend(
        settings.database.url,
        echo=settings.database.echo,
        pool_size=settings.database.pool_size if pool_size is None else pool_size,
    )


__all__ = [
    "Backend",
    "MemoryBackend",
    "Neo4jBackend",
    "SqlBackend",
    "create_backend",
    "create_sql_engine",
]
