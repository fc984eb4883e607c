"""
Tests for the script generator.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from post_deploy_scripts import Direction, Migrator, Step
from post_deploy_scripts.backends import MemoryBackend
from post_deploy_scripts.errors import ArgumentError, ScriptExistsError
from post_deploy_scripts.generator import camelize, generate_script, render, timestamp, underscore

NOW = datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class TestNames:
    """Tests for name helpers."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("sync_users", "sync_users"),
            ("SyncUsers", "sync_users"),
            ("sync-users", "sync_users"),
            ("HTTPCache warm", "http_cache_warm"),
        ],
    )
    def test_underscore(self, name: str, expected: str) -> None:
        """Test names are normalised to snake case."""
        assert underscore(name) == expected

    def test_camelize(self) -> None:
        """Test snake case names become class names."""
        assert camelize("sync_users") == "SyncUsers"

    def test_timestamp(self) -> None:
        """Test versions are UTC timestamps."""
        assert timestamp(NOW) == "20200102030405"


class TestRender:
    """Tests for template rendering."""

    def test_up_down_template(self) -> None:
        """Test the default template has up and down stubs."""
        source = render("sync_users")

        assert "class SyncUsers(PostDeployScript):" in source
        assert "def up(self, ctx: ScriptContext)" in source
        assert "def down(self, ctx: ScriptContext)" in source

    def test_change_template(self) -> None:
        """Test the change template indents the given body."""
        source = render("add_index", change='ctx.execute("A", reverse="B")')

        assert "def change(self, ctx: ScriptContext)" in source
        assert '        ctx.execute("A", reverse="B")' in source
        assert "def up" not in source

    def test_leading_digit(self) -> None:
        """Test class names never start with a digit."""
        assert "class Script2fa(PostDeployScript):" in render("2fa")


class TestGenerateScript:
    """Tests for generate_script."""

    def test_creates_file(self, tmp_path: Path) -> None:
        """Test a versioned file is written, creating the directory."""
        directory = tmp_path / "priv" / "post_deploy_scripts"

        path = generate_script("SyncUsers", directory, now=NOW)

        assert path == directory / "20200102030405_sync_users.py"
        assert path.read_text(encoding="utf-8") == render("sync_users")

    def test_existing_name(self, tmp_path: Path) -> None:
        """Test names must be unique across versions."""
        generate_script("sync_users", tmp_path, now=NOW)

        with pytest.raises(ScriptExistsError, match="already a post deploy script file"):
            generate_script("sync_users", tmp_path)

    def test_empty_name(self, tmp_path: Path) -> None:
        """Test empty names are rejected."""
        with pytest.raises(ArgumentError):
            generate_script("  ", tmp_path)

    def test_generated_script_runs(self, tmp_path: Path) -> None:
        """Test a generated change script can be applied and reverted."""
        generate_script(
            "add_index",
            tmp_path,
            change='ctx.execute("CREATE INDEX i", reverse="DROP INDEX i")',
            now=NOW,
        )
        backend = MemoryBackend()
        migrator = Migrator(backend, log=False)

        assert migrator.run(tmp_path, Direction.UP, Step(1)) == [20200102030405]
        assert migrator.run(tmp_path, Direction.DOWN, Step(1)) == [20200102030405]
        assert backend.statements == ["CREATE INDEX i", "DROP INDEX i"]
