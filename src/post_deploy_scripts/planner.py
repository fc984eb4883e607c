"""
Run Planner.

Selects the exact, ordered scripts to run:
1. Pending in direction (up: not applied, ascending; down: applied, descending)
2. Strategy (all, first n, or up to / down to a target version)
3. Duplicate check on versions and names
"""

from collections.abc import Collection, Iterable
from itertools import islice, takewhile

from post_deploy_scripts.errors import DuplicateScriptError
from post_deploy_scripts.models import (
    All,
    Direction,
    RunStrategy,
    ScriptDescriptor,
    Step,
    To,
)


def pending_in_direction(
    applied: Collection[int],
    catalog: Iterable[ScriptDescriptor],
    direction: Direction,
) -> list[ScriptDescriptor]:
    """
    Catalog entries still to run in ``direction``.

    Up yields unapplied entries in ascending version order; down yields
    applied entries with the most recent first.
    """
    ordered = sorted(catalog, key=lambda d: d.version)
    if direction is Direction.UP:
        return [d for d in ordered if d.version not in applied]
    return [d for d in reversed(ordered) if d.version in applied]


def within_target(descriptor: ScriptDescriptor, target: int, direction: Direction) -> bool:
    """Whether a descriptor lies on this side of ``target`` (inclusive)."""
    if direction is Direction.UP:
        return descriptor.version <= target
    return descriptor.version >= target


def apply_strategy(
    pending: list[ScriptDescriptor],
    direction: Direction,
    strategy: RunStrategy,
) -> list[ScriptDescriptor]:
    """Cut the pending list down to what the strategy selects."""
    if isinstance(strategy, All):
        return list(pending)
    if isinstance(strategy, Step):
        return list(islice(pending, strategy.count))
    if isinstance(strategy, To):
        return list(takewhile(lambda d: within_target(d, strategy.target, direction), pending))
    raise TypeError(f"unknown run strategy: {strategy!r}")


def ensure_no_duplication(planned: list[ScriptDescriptor]) -> None:
    """
    Reject plans where two scripts share a version or a name.

    Raises:
        DuplicateScriptError: Naming the first duplicated version or name
    """
    versions: set[int] = set()
    names: set[str] = set()
    for descriptor in planned:
        if descriptor.version in versions:
            raise DuplicateScriptError(
                f"scripts can't be executed, version {descriptor.version} is duplicated"
            )
        if descriptor.name in names:
            raise DuplicateScriptError(
                f"scripts can't be executed, name {descriptor.name} is duplicated"
            )
        versions.add(descriptor.version)
        names.add(descriptor.name)


def plan(
    applied: Collection[int],
    catalog: Iterable[ScriptDescriptor],
    direction: Direction,
    strategy: RunStrategy,
) -> list[ScriptDescriptor]:
    """
    Compute the ordered list of scripts to run.

    Args:
        applied: Versions recorded in the ledger
        catalog: Available scripts
        direction: Up or down
        strategy: All, Step or To

    Returns:
        Scripts to run, in execution order (empty when nothing is pending)

    Raises:
        DuplicateScriptError: If the plan contains a duplicated version or name
    """
    pending = pending_in_direction(applied, catalog, direction)
    planned = apply_strategy(pending, direction, strategy)
    ensure_no_duplication(planned)
    return planned
