"""
Pytest Configuration and Shared Fixtures.

This module provides shared fixtures for testing the post deploy script engine.
"""

from collections.abc import Callable, Generator
from pathlib import Path
from unittest.mock import patch

import pytest

from post_deploy_scripts import Migrator, PostDeployScript, ScriptContext
from post_deploy_scripts.backends import MemoryBackend
from post_deploy_scripts.config.settings import Settings, get_settings
from post_deploy_scripts.ledger import Ledger


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def test_settings(tmp_path: Path) -> Generator[Settings, None, None]:
    """Provide test settings pointing at a temporary directory."""
    with patch.dict(
        "os.environ",
        {
            "BACKEND": "sql",
            "DATABASE_URL": f"sqlite:///{tmp_path / 'test.db'}",
            "PDS_PATH": str(tmp_path / "scripts"),
            "NEO4J_URI": "bolt://localhost:7687",
            "NEO4J_USERNAME": "neo4j",
            "NEO4J_PASSWORD": "password123",
        },
    ):
        # Clear cache and get fresh settings
        get_settings.cache_clear()
        yield get_settings()

    get_settings.cache_clear()


# =============================================================================
# Backend Fixtures
# =============================================================================


@pytest.fixture
def backend() -> MemoryBackend:
    """Provide an in-memory backend with transactional DDL."""
    return MemoryBackend()


@pytest.fixture
def ledger(backend: MemoryBackend) -> Ledger:
    """Provide a ledger on the in-memory backend."""
    return Ledger(backend)


@pytest.fixture
def migrator(backend: MemoryBackend) -> Migrator:
    """Provide a quiet migrator on the in-memory backend."""
    return Migrator(backend, log=False)


# =============================================================================
# Script Fixtures
# =============================================================================


def make_up_down_script(tag: str) -> type[PostDeployScript]:
    """Build a script class recording ``up <tag>`` / ``down <tag>`` statements."""

    class UpDownScript(PostDeployScript):
        def up(self, ctx: ScriptContext) -> None:
            ctx.execute(f"up {tag}")

        def down(self, ctx: ScriptContext) -> None:
            ctx.execute(f"down {tag}")

    UpDownScript.__qualname__ = f"UpDownScript_{tag}"
    return UpDownScript


@pytest.fixture
def script_factory() -> Callable[[str], type[PostDeployScript]]:
    """Provide a factory for up/down script classes."""
    return make_up_down_script


@pytest.fixture
def scripts_dir(tmp_path: Path) -> Path:
    """Provide an empty scripts directory."""
    path = tmp_path / "scripts"
    path.mkdir()
    return path


UP_DOWN_SOURCE = '''\
from post_deploy_scripts import PostDeployScript, ScriptContext


class {class_name}(PostDeployScript):
    def up(self, ctx: ScriptContext) -> None:
        ctx.execute("up {tag}")

    def down(self, ctx: ScriptContext) -> None:
        ctx.execute("down {tag}")
'''


@pytest.fixture
def write_script(scripts_dir: Path) -> Callable[..., Path]:
    """Provide a helper writing script files into the scripts directory."""

    def _write(filename: str, source: str | None = None, tag: str | None = None) -> Path:
        path = scripts_dir / filename
        if source is None:
            stem = path.stem
            source = UP_DOWN_SOURCE.format(
                class_name="Script" + "".join(p.title() for p in stem.split("_")),
                tag=tag or stem,
            )
        path.write_text(source, encoding="utf-8")
        return path

    return _write
