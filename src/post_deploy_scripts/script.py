"""
Post Deploy Script Base Class.

Defines the interface for post deploy scripts and the context they run in:
- PostDeployScript: base class script authors subclass
- ScriptContext: explicit handle passed to every entry point
- ScriptUnit: entry points of a loaded script, resolved once
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from post_deploy_scripts.backends.base import Backend
from post_deploy_scripts.errors import IrreversibleCommandError, RunError
from post_deploy_scripts.models import Direction, script_name

# A command is a statement, a (statement, parameters) pair, or a callable
# receiving the backend.
Command = str | tuple[str, dict[str, Any]] | Callable[[Backend], Any]


class Mode(str, Enum):
    """How an entry point is run."""

    FORWARD = "forward"
    BACKWARD = "backward"


class PostDeployScript:
    """
    Base class for post deploy scripts.

    A script defines ``up`` and ``down``, or a single ``change`` that is
    run forward on the way up and backward on the way down. Each entry
    point receives a ScriptContext.

    Set ``disable_transaction = True`` for scripts that must not run
    inside a backend transaction, such as long backfills or VACUUM. Each of
    their statements commits on its own.

    Example:
        ```python
        class BackfillDisplayNames(PostDeployScript):
            def up(self, ctx: ScriptContext) -> None:
                ctx.execute(
                    "UPDATE users SET display_name = name WHERE display_name IS NULL"
                )

            def down(self, ctx: ScriptContext) -> None:
                ctx.execute("UPDATE users SET display_name = NULL")
        ```

    With ``change``, every command states its reverse:

        ```python
        class AddUsersIndex(PostDeployScript):
            def change(self, ctx: ScriptContext) -> None:
                ctx.execute(
                    "CREATE INDEX users_email ON users (email)",
                    reverse="DROP INDEX users_email",
                )
        ```
    """

    disable_transaction: bool = False

    def __repr__(self) -> str:
        return f"PostDeployScript({script_name(self)})"


def is_script(obj: Any) -> bool:
    """Whether ``obj`` is a PostDeployScript subclass or instance."""
    if isinstance(obj, type):
        return issubclass(obj, PostDeployScript) and obj is not PostDeployScript
    return isinstance(obj, PostDeployScript)


# =============================================================================
# Context
# =============================================================================


class ScriptContext:
    """
    Handle passed to a script entry point.

    In forward mode commands run immediately. In backward mode the reverse
    of each command is queued and run, last first, when the context is
    flushed.
    """

    def __init__(
        self,
        backend: Backend,
        direction: Direction,
        mode: Mode = Mode.FORWARD,
        script: str = "",
    ) -> None:
        self.backend = backend
        self.direction = direction
        self.mode = mode
        self.script = script
        self.log = structlog.get_logger("post_deploy_scripts.script").bind(
            script=script, direction=direction.value
        )
        self._pending: list[Command] = []

    @property
    def reverting(self) -> bool:
        """True when a change() is being run backward."""
        return self.mode is Mode.BACKWARD

    def execute(self, command: Command, reverse: Command | None = None) -> Any:
        """
        Run a command, or queue its reverse when running backward.

        Args:
            command: Command for the forward direction
            reverse: Command undoing ``command``

        Returns:
            Result of the command in forward mode, None when queued

        Raises:
            IrreversibleCommandError: Running backward without a reverse
        """
        if self.mode is Mode.FORWARD:
            return self._run(command)

        if reverse is None:
            raise IrreversibleCommandError(
                f"{self.script} cannot be reverted, command has no reverse: "
                f"{_describe(command)}"
            )
        self._pending.append(reverse)
        return None

    def flush(self) -> None:
        """Run queued reverse commands in reverse order."""
        pending, self._pending = self._pending, []
        for command in reversed(pending):
            self._run(command)

    def _run(self, command: Command) -> Any:
        if callable(command):
            return command(self.backend)
        if isinstance(command, tuple):
            statement, parameters = command
            return self.backend.execute(statement, parameters)
        return self.backend.execute(command)


def _describe(command: Command) -> str:
    if isinstance(command, str):
        return command[:80]
    if isinstance(command, tuple):
        return command[0][:80]
    return getattr(command, "__qualname__", repr(command))


# =============================================================================
# Entry points
# =============================================================================


@dataclass(frozen=True)
class EntryPoint:
    """Callable selected to run a script in one direction."""

    operation: str
    mode: Mode
    function: Callable[[ScriptContext], Any]


@dataclass(frozen=True)
class ScriptUnit:
    """Entry points of a loaded script."""

    name: str
    up: Callable[[ScriptContext], Any] | None = None
    down: Callable[[ScriptContext], Any] | None = None
    change: Callable[[ScriptContext], Any] | None = None
    disable_transaction: bool = False

    @classmethod
    def from_script(cls, script: type[PostDeployScript] | PostDeployScript) -> "ScriptUnit":
        """Resolve the entry points of a script class or instance."""
        instance = script() if isinstance(script, type) else script

        def entry(operation: str) -> Callable[[ScriptContext], Any] | None:
            function = getattr(instance, operation, None)
            return function if callable(function) else None

        return cls(
            name=script_name(script),
            up=entry("up"),
            down=entry("down"),
            change=entry("change"),
            disable_transaction=bool(getattr(instance, "disable_transaction", False)),
        )

    def entry_point(self, direction: Direction) -> EntryPoint:
        """
        Select the entry point for a direction.

        Up prefers ``up`` and falls back to ``change`` run forward. Down
        prefers ``down`` and falls back to ``change`` run backward.

        Raises:
            RunError: If neither entry point exists
        """
        if direction is Direction.UP:
            if self.up is not None:
                return EntryPoint("up", Mode.FORWARD, self.up)
            if self.change is not None:
                return EntryPoint("change", Mode.FORWARD, self.change)
            raise RunError(f"{self.name} does not implement an `up` or `change` method")

        if self.down is not None:
            return EntryPoint("down", Mode.FORWARD, self.down)
        if self.change is not None:
            return EntryPoint("change", Mode.BACKWARD, self.change)
        raise RunError(f"{self.name} does not implement a `down` or `change` method")
