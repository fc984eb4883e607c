"""
Post Deploy Script Models.

Value types shared by the planner, executor and migrator:
- Direction and per-script execution outcomes
- Script descriptors and their locators
- Run strategies (all / step / to)
- Status report entries and run results
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from post_deploy_scripts.errors import ArgumentError

FILE_NOT_FOUND = "** FILE NOT FOUND **"


class Direction(str, Enum):
    """Direction a script is run in."""

    UP = "up"
    DOWN = "down"


class ExecutionOutcome(str, Enum):
    """Outcome of running a single script."""

    APPLIED = "applied"
    REVERTED = "reverted"
    ALREADY_APPLIED = "already_applied"
    ALREADY_REVERTED = "already_reverted"


# =============================================================================
# Descriptors
# =============================================================================


@dataclass(frozen=True)
class FileRef:
    """Script defined in a file on disk."""

    path: Path

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class InlineRef:
    """Script already loaded in-process (class or instance)."""

    script: Any

    def __str__(self) -> str:
        return script_name(self.script)


@dataclass(frozen=True)
class ScriptDescriptor:
    """One runnable entry of a catalog."""

    version: int
    name: str
    locator: FileRef | InlineRef


def script_name(script: Any) -> str:
    """Qualified name of an in-process script object."""
    target = script if isinstance(script, type) else type(script)
    return f"{target.__module__}.{target.__qualname__}"


# =============================================================================
# Strategies
# =============================================================================


@dataclass(frozen=True)
class All:
    """Run every pending script."""


@dataclass(frozen=True)
class Step:
    """Run at most ``count`` pending scripts."""

    count: int

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ArgumentError(f"step must be a positive integer, got: {self.count}")


@dataclass(frozen=True)
class To:
    """Run pending scripts up to (or down to) and including ``target``."""

    target: int


RunStrategy = All | Step | To


def strategy_from_options(
    run_all: bool = False,
    to: int | None = None,
    step: int | None = None,
) -> RunStrategy:
    """
    Pick the run strategy from loose options.

    When several options are given the first present wins, in the order
    all, to, step.

    Raises:
        ArgumentError: If no strategy was selected
    """
    if run_all:
        return All()
    if to is not None:
        return To(to)
    if step is not None:
        return Step(step)
    raise ArgumentError("expected one of all, to, or step strategies")


# =============================================================================
# Reports
# =============================================================================


@dataclass(frozen=True)
class StatusEntry:
    """One row of the status report."""

    state: Direction
    version: int
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.state.value, "version": self.version, "name": self.name}


class RunStatus(str, Enum):
    """Overall result of a run."""

    OK = "ok"
    NOOP = "noop"
    FAILED = "failed"


@dataclass
class RunResult:
    """Result of a run folded into a value."""

    status: RunStatus
    direction: Direction
    versions: list[int] = field(default_factory=list)
    reason: str | None = None
    error_kind: str | None = None

    @classmethod
    def ok(cls, direction: Direction, versions: list[int]) -> "RunResult":
        return cls(status=RunStatus.OK, direction=direction, versions=versions)

    @classmethod
    def noop(cls, direction: Direction) -> "RunResult":
        return cls(
            status=RunStatus.NOOP,
            direction=direction,
            reason=f"Already {direction.value}",
        )

    @classmethod
    def failed(cls, direction: Direction, error: Exception) -> "RunResult":
        return cls(
            status=RunStatus.FAILED,
            direction=direction,
            reason=str(error),
            error_kind=getattr(error, "kind", type(error).__name__),
        )

    @property
    def success(self) -> bool:
        return self.status != RunStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "direction": self.direction.value,
            "versions": self.versions,
            "reason": self.reason,
            "error_kind": self.error_kind,
        }
