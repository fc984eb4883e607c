"""
Script Ledger.

Durable record of which script versions have been applied to a backend.
One row per applied version in a single table, created lazily.
"""

import structlog

from post_deploy_scripts.backends.base import Backend
from post_deploy_scripts.errors import BackendUnavailable

logger = structlog.get_logger(__name__)

DEFAULT_SOURCE = "previously_run_scripts"

PROVISION_HINT = """\
Could not {reason}. This error usually happens due to the following:

  * The database does not exist
  * The "{source}" table, which is used for tracking post deploy
    script versions, was defined by another library

To fix the first issue, create the database.

To address the second, drop and re-create the database, or configure a
different ledger table with PDS_LEDGER_SOURCE.
"""


class Ledger:
    """
    Tracks applied script versions for one backend and prefix.

    Ledger calls do not log per statement; only failures to reach the
    table are reported, together with a provisioning hint.

    Args:
        backend: Backend holding the ledger table
        source: Ledger table name
        prefix: Schema or database holding the table
    """

    def __init__(
        self,
        backend: Backend,
        source: str = DEFAULT_SOURCE,
        prefix: str | None = None,
    ) -> None:
        self.backend = backend
        self.source = source
        self.prefix = prefix

    def ensure_table(self) -> None:
        """
        Create the ledger table if it does not exist.

        Raises:
            BackendUnavailable: If the table cannot be created
        """
        try:
            self.backend.create_ledger_table(self.source, self.prefix)
        except Exception as e:
            raise self._unavailable("create the post deploy scripts table", e) from e

    def list_versions(self) -> set[int]:
        """
        Return every applied version, creating the table first if needed.

        Raises:
            BackendUnavailable: If the table cannot be created or read
        """
        self.ensure_table()
        try:
            return set(self.backend.ledger_versions(self.source, self.prefix))
        except Exception as e:
            raise self._unavailable("read previously run versions", e) from e

    def record_applied(self, version: int) -> None:
        """
        Record a version as applied.

        Raises:
            LedgerConflictError: If the version is already recorded
        """
        self.backend.insert_ledger_version(self.source, version, self.prefix)

    def record_reverted(self, version: int) -> None:
        """Forget a version. Versions that are not recorded are ignored."""
        self.backend.delete_ledger_version(self.source, version, self.prefix)

    def _unavailable(self, reason: str, error: Exception) -> BackendUnavailable:
        logger.error(
            PROVISION_HINT.format(reason=reason, source=self.source),
            backend=self.backend.name,
            prefix=self.prefix,
            error=str(error),
        )
        return BackendUnavailable(f"could not {reason} on {self.backend.name}: {error}")
