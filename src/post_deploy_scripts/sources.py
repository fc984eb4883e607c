"""
Script Sources.

Builds the catalog of available scripts:
- DirectorySource scans a directory for ``<version>_<name><extension>`` files
- StaticSource wraps scripts already loaded in-process

Catalogs are rebuilt on every call so on-disk changes are always seen.
"""

import importlib.machinery
import importlib.util
import os
import re
import sys
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from post_deploy_scripts.config.settings import Settings, get_settings
from post_deploy_scripts.errors import NotAScriptError, ScriptsPathMissing
from post_deploy_scripts.models import FileRef, InlineRef, ScriptDescriptor, script_name
from post_deploy_scripts.script import ScriptUnit, is_script

logger = structlog.get_logger(__name__)

SCRIPT_FILE_PATTERN = re.compile(r"^(\d+)_(.+)$")


class ScriptSource(ABC):
    """Produces the ordered catalog of runnable scripts."""

    @abstractmethod
    def catalog(self) -> list[ScriptDescriptor]:
        """Return descriptors sorted ascending by version."""


class DirectorySource(ScriptSource):
    """
    Scripts stored as files in one directory.

    Only direct children named ``<integer>_<name><extension>`` are picked
    up; anything else in the directory is ignored.
    """

    def __init__(self, path: str | Path, extension: str = ".py") -> None:
        self.path = Path(path)
        self.extension = extension

    def catalog(self) -> list[ScriptDescriptor]:
        if not self.path.is_dir():
            return []

        descriptors = []
        for entry in self.path.iterdir():
            descriptor = self._parse(entry)
            if descriptor is not None:
                descriptors.append(descriptor)

        return sorted(descriptors, key=lambda d: d.version)

    def _parse(self, entry: Path) -> ScriptDescriptor | None:
        if not entry.is_file() or entry.suffix != self.extension:
            return None

        match = SCRIPT_FILE_PATTERN.match(entry.stem)
        if match is None:
            return None

        version, name = match.groups()
        return ScriptDescriptor(version=int(version), name=name, locator=FileRef(entry))

    def __repr__(self) -> str:
        return f"DirectorySource({str(self.path)!r})"


class StaticSource(ScriptSource):
    """
    Scripts already loaded in-process.

    Args:
        scripts: ``(version, script)`` pairs, where script is a
            PostDeployScript subclass or instance
    """

    def __init__(self, scripts: Iterable[tuple[int, Any]]) -> None:
        self.scripts = list(scripts)

    def catalog(self) -> list[ScriptDescriptor]:
        descriptors = [
            ScriptDescriptor(version=version, name=script_name(script), locator=InlineRef(script))
            for version, script in self.scripts
        ]
        return sorted(descriptors, key=lambda d: d.version)

    def __repr__(self) -> str:
        return f"StaticSource({len(self.scripts)} scripts)"


def as_source(
    source: ScriptSource | str | Path | Iterable[tuple[int, Any]],
    extension: str = ".py",
) -> ScriptSource:
    """
    Accept a source, a directory path, or a list of ``(version, script)`` pairs.

    Directory paths are scanned for files ending in ``extension``.
    """
    if isinstance(source, ScriptSource):
        return source
    if isinstance(source, (str, Path)):
        return DirectorySource(source, extension)
    return StaticSource(source)


# =============================================================================
# Loading
# =============================================================================


def load_script(locator: FileRef | InlineRef) -> ScriptUnit:
    """
    Resolve a locator into a ScriptUnit.

    Raises:
        NotAScriptError: If the file or object does not define a script
    """
    if isinstance(locator, InlineRef):
        if not is_script(locator.script):
            raise NotAScriptError(f"{locator.script!r} is not a post deploy script")
        return ScriptUnit.from_script(locator.script)

    return ScriptUnit.from_script(_load_script_class(locator.path))


def _load_script_class(path: Path) -> type:
    module_name = f"post_deploy_scripts.loaded.{path.stem}"
    # Explicit loader so files with any extension load as Python source
    loader = importlib.machinery.SourceFileLoader(module_name, str(path))
    spec = importlib.util.spec_from_file_location(module_name, path, loader=loader)
    if spec is None or spec.loader is None:
        raise NotAScriptError(f"file {_relative(path)} cannot be loaded")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise

    for obj in vars(module).values():
        if isinstance(obj, type) and obj.__module__ == module_name and is_script(obj):
            logger.debug("Script loaded", file=str(path), script=obj.__qualname__)
            return obj

    raise NotAScriptError(f"file {_relative(path)} is not a post deploy script")


def _relative(path: Path) -> str:
    try:
        return os.path.relpath(path)
    except ValueError:
        return str(path)


# =============================================================================
# Scripts path
# =============================================================================


def scripts_path(settings: Settings | None = None) -> Path:
    """Get the post deploy scripts path from settings."""
    settings = settings or get_settings()
    return Path(settings.scripts.path)


def ensure_scripts_path(path: str | Path) -> Path:
    """
    Ensure the post deploy scripts directory exists.

    Raises:
        ScriptsPathMissing: If the directory does not exist
    """
    path = Path(path)
    if not path.is_dir():
        raise ScriptsPathMissing(
            f"Could not find post deploy scripts directory {_relative(path)!r}.\n\n"
            "This may be because you are in a new project and the post deploy\n"
            "scripts directory has not been created yet. Creating an empty\n"
            "directory at the path above will fix this error.\n\n"
            "If you expected existing scripts to be found, please make sure\n"
            "PDS_PATH points at the right directory."
        )
    return path
