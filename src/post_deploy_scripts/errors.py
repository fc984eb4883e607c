"""
Post Deploy Script Errors.

Every failure raised by the engine derives from PostDeployScriptError.
None of them are retried: the caller decides how to report them.
"""


class PostDeployScriptError(Exception):
    """Base class for all post deploy script failures."""

    kind: str = "error"


class BackendUnavailable(PostDeployScriptError):
    """The ledger table could not be created or read."""

    kind = "backend_unavailable"


class DuplicateScriptError(PostDeployScriptError):
    """Two planned scripts share a version or a name."""

    kind = "duplicate_script"


class NotAScriptError(PostDeployScriptError):
    """A locator did not resolve to a post deploy script."""

    kind = "not_a_script"


class RunError(PostDeployScriptError):
    """A script has no entry point for the requested direction."""

    kind = "run_error"


class IrreversibleCommandError(RunError):
    """A command issued from change() has no reverse counterpart."""

    kind = "irreversible_command"


class ArgumentError(PostDeployScriptError, ValueError):
    """Invalid or missing run options."""

    kind = "argument_error"


class LedgerConflictError(PostDeployScriptError):
    """A version was inserted into the ledger twice."""

    kind = "ledger_conflict"


class ScriptsPathMissing(PostDeployScriptError):
    """The configured scripts directory does not exist."""

    kind = "scripts_path_missing"


class ScriptExistsError(PostDeployScriptError):
    """A script with the same name already exists."""

    kind = "script_exists"
