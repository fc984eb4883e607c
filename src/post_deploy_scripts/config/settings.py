"""
Application Settings - Pydantic Settings for configuration management.

Supports environment variables and .env file loading.
"""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import BeforeValidator, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


def normalize_to_lowercase(v: str) -> str:
    """Normalize string to lowercase."""
    if isinstance(v, str):
        return v.lower()
    return v


class ScriptSettings(BaseSettings):
    """Post deploy script discovery and ledger settings."""

    model_config = SettingsConfigDict(env_prefix="PDS_")

    path: str = Field(
        default="priv/post_deploy_scripts", description="Directory holding post deploy scripts"
    )
    ledger_source: str = Field(
        default="previously_run_scripts", description="Name of the ledger table"
    )
    prefix: str | None = Field(
        default=None, description="Schema (SQL) or database (Neo4j) holding the ledger"
    )
    file_extension: str = Field(default=".py", description="Extension of script files")
    ledger_timeout_seconds: float | None = Field(
        default=None, description="Timeout for ledger queries (unset = unbounded)"
    )


class DatabaseSettings(BaseSettings):
    """SQL database connection settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    url: str = Field(
        default="sqlite:///post_deploy_scripts.db", description="SQLAlchemy database URL"
    )
    echo: bool = Field(default=False, description="Log all SQL statements")
    pool_size: int | None = Field(default=None, description="Connection pool size")


class Neo4jSettings(BaseSettings):
    """Neo4j database connection settings."""

    model_config = SettingsConfigDict(env_prefix="NEO4J_")

    uri: str = Field(default="bolt://localhost:7687", description="Neo4j connection URI")
    username: str = Field(default="neo4j", description="Neo4j username")
    password: SecretStr = Field(default=SecretStr("password"), description="Neo4j password")
    database: str = Field(default="neo4j", description="Neo4j database name")
    max_connection_pool_size: int = Field(default=1, description="Connection pool size")


class ObservabilitySettings(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="OBSERVABILITY_")

    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format (json for production, console for development)"
    )


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: Annotated[
        Literal["sql", "neo4j"],
        BeforeValidator(normalize_to_lowercase),
    ] = Field(default="sql", description="Backend the scripts run against")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )

    # Sub-settings
    scripts: ScriptSettings = Field(default_factory=ScriptSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    neo4j: Neo4jSettings = Field(default_factory=Neo4jSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
