"""
Script Generator.

Creates new script files named ``<UTC timestamp>_<snake_name>.py`` from
a template.
"""

import re
from datetime import datetime, timezone
from pathlib import Path

import structlog

from post_deploy_scripts.errors import ArgumentError, ScriptExistsError

logger = structlog.get_logger(__name__)

UP_DOWN_TEMPLATE = '''\
from post_deploy_scripts import PostDeployScript, ScriptContext


class {class_name}(PostDeployScript):
    def up(self, ctx: ScriptContext) -> None:
        pass

    def down(self, ctx: ScriptContext) -> None:
        pass
'''

CHANGE_TEMPLATE = '''\
from post_deploy_scripts import PostDeployScript, ScriptContext


class {class_name}(PostDeployScript):
    def change(self, ctx: ScriptContext) -> None:
{body}
'''


def underscore(name: str) -> str:
    """``SyncUsers`` / ``sync-users`` -> ``sync_users``."""
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
    return re.sub(r"[^0-9a-zA-Z]+", "_", name).strip("_").lower()


def camelize(name: str) -> str:
    """``sync_users`` -> ``SyncUsers``."""
    return "".join(part[:1].upper() + part[1:] for part in underscore(name).split("_") if part)


def timestamp(now: datetime | None = None) -> str:
    """UTC timestamp used as the script version, ``YYYYMMDDHHMMSS``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")


def render(name: str, change: str | None = None) -> str:
    """Render the source of a new script."""
    class_name = camelize(name)
    if class_name[:1].isdigit():
        class_name = f"Script{class_name}"

    if change is None:
        return UP_DOWN_TEMPLATE.format(class_name=class_name)

    body = "\n".join(
        f"        {line}" if line.strip() else "" for line in change.splitlines()
    ) or "        pass"
    return CHANGE_TEMPLATE.format(class_name=class_name, body=body)


def generate_script(
    name: str,
    directory: str | Path,
    change: str | None = None,
    now: datetime | None = None,
) -> Path:
    """
    Write a new script file.

    Args:
        name: Script name (any case; stored in snake case)
        directory: Scripts directory, created if missing
        change: Body of a change() method; up/down stubs when omitted
        now: Time used for the version (defaults to the current UTC time)

    Returns:
        Path of the created file

    Raises:
        ArgumentError: If the name is empty
        ScriptExistsError: If a script with the same name already exists
    """
    base_name = underscore(name)
    if not base_name:
        raise ArgumentError(f"invalid script name: {name!r}")

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    if any(directory.glob(f"*_{base_name}.py")):
        raise ScriptExistsError(
            f"script can't be created, there is already a post deploy script file with name {name}."
        )

    path = directory / f"{timestamp(now)}_{base_name}.py"
    path.write_text(render(base_name, change), encoding="utf-8")

    logger.info("Script created", file=str(path))
    return path
