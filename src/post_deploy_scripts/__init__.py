"""
Post Deploy Scripts.

Run-once operational scripts (backfills, cache warms, one-time fixes)
applied in version order, with a durable ledger of what already ran:
- Versioned script files discovered from a directory or an explicit list
- Up/down or reversible change() scripts
- Run all, n steps, or up to a version, in either direction
- Per-script transactions where the backend supports them

Usage:
    ```python
    from post_deploy_scripts import All, Direction, Migrator
    from post_deploy_scripts.backends import SqlBackend

    with SqlBackend("postgresql://localhost/app") as backend:
        migrator = Migrator(backend)
        migrator.run("priv/post_deploy_scripts", Direction.UP, All())
    ```
"""

from post_deploy_scripts.errors import (
    ArgumentError,
    BackendUnavailable,
    DuplicateScriptError,
    IrreversibleCommandError,
    LedgerConflictError,
    NotAScriptError,
    PostDeployScriptError,
    RunError,
    ScriptExistsError,
    ScriptsPathMissing,
)
from post_deploy_scripts.migrator import Migrator
from post_deploy_scripts.models import (
    All,
    Direction,
    ExecutionOutcome,
    RunResult,
    RunStatus,
    ScriptDescriptor,
    StatusEntry,
    Step,
    To,
    strategy_from_options,
)
from post_deploy_scripts.script import PostDeployScript, ScriptContext
from post_deploy_scripts.sources import DirectorySource, StaticSource

__all__ = [
    # Engine
    "Migrator",
    "DirectorySource",
    "StaticSource",
    # Scripts
    "PostDeployScript",
    "ScriptContext",
    # Models
    "All",
    "Direction",
    "ExecutionOutcome",
    "RunResult",
    "RunStatus",
    "ScriptDescriptor",
    "StatusEntry",
    "Step",
    "To",
    "strategy_from_options",
    # Errors
    "ArgumentError",
    "BackendUnavailable",
    "DuplicateScriptError",
    "IrreversibleCommandError",
    "LedgerConflictError",
    "NotAScriptError",
    "PostDeployScriptError",
    "RunError",
    "ScriptExistsError",
    "ScriptsPathMissing",
]
