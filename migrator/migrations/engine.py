"""
Migration engine for computing and executing pending migrations.
"""

import time
from typing import Any, Optional

from migrator.core.config import Settings
from migrator.core.exceptions import (
    MigrationError,
    MigrationFailed,
    RollbackFailed,
    UnresolvableMigration,
)
from migrator.log.logging import logger
from migrator.migrations.ledger import LedgerStore, SqlLedgerStore
from migrator.migrations.models import MigrationStatus
from migrator.migrations.scripts import FileScriptStore, ScriptStore


class MigrationEngine:
    """
    Orchestrates a ledger store and a script store.

    Features:
    - Pending set is the script store's identifiers minus the ledger's,
      in script store order
    - A ledger entry is written only after a migration reports success
    - Runs stop at the first failure and resume from it on the next run
    - Rollback removes the ledger entry only after the revert succeeds

    The engine keeps no persistent state of its own and assumes it is the
    only writer to the ledger. Callers that may race should wrap runs in
    ``ledger_lock``.

    The ledger must exist before anything reads it; call ``initialize()``
    first. Reading a missing ledger raises LedgerReadError.
    """

    def __init__(self, ledger: LedgerStore, scripts: ScriptStore):
        """
        Initialize the migration engine.

        Args:
            ledger: Store recording applied migrations.
            scripts: Store providing migration identifiers and scripts.
        """
        self._ledger = ledger
        self._scripts = scripts
        self.last_error: Optional[MigrationError] = None

    @classmethod
    def from_settings(cls, settings: Settings, db: Any) -> "MigrationEngine":
        """
        Build an engine with the SQL ledger and file script store.

        Args:
            settings: Table name and migrations directory come from here.
            db: SQLAlchemy engine shared by the ledger and the scripts.
        """
        ledger = SqlLedgerStore(db, table=settings.migrations_table)
        scripts = FileScriptStore(settings.migrations_dir, db=db)
        return cls(ledger, scripts)

    @property
    def ledger(self) -> LedgerStore:
        return self._ledger

    @property
    def scripts(self) -> ScriptStore:
        return self._scripts

    def initialize(self) -> bool:
        """
        Create the ledger if it does not exist yet.

        Returns:
            True if the ledger was created, False if it already existed.
        """
        if self._ledger.exists():
            return False
        self._ledger.initialize()
        return True

    def list_applied(self) -> list[str]:
        """Applied identifiers in application order."""
        return self._ledger.list_applied()

    def latest_applied(self) -> Optional[str]:
        """The most recently applied identifier, if any."""
        applied = self._ledger.list_applied()
        return applied[-1] if applied else None

    def script_exists(self, identifier: str) -> bool:
        return self._scripts.exists(identifier)

    def compute_pending(self) -> list[str]:
        """
        Identifiers known to the script store but absent from the ledger.

        Returns:
            Pending identifiers in script store order.
        """
        applied = set(self._ledger.list_applied())
        return [i for i in self._scripts.list_all() if i not in applied]

    def resolve_script(self, identifier: str) -> Any:
        """
        Build the script object for ``identifier``.

        Raises:
            UnresolvableMigration: If the script store cannot build it, or the
                object does not provide callable ``up`` and ``down``.
        """
        script = self._scripts.load(identifier)

        for operation in ("up", "down"):
            if not callable(getattr(script, operation, None)):
                raise UnresolvableMigration(
                    f"Migration {identifier} must provide callable up() and down()",
                    identifier,
                )

        return script

    def apply(self, identifier: str) -> None:
        """
        Run a migration's ``up`` and record it in the ledger.

        Raises:
            MigrationFailed: If the migration is already applied, in which
                case ``up`` is not called, or if ``up`` returns False or
                raises. Nothing is written to the ledger.
            UnresolvableMigration: If the script cannot be resolved.
            LedgerWriteError: If ``up`` succeeded but the ledger write failed.
        """
        if identifier in self._ledger.list_applied():
            raise MigrationFailed(f"Migration {identifier} is already applied", identifier)

        script = self.resolve_script(identifier)

        logger.info(
            f"Applying migration {identifier}",
            event_type="migration_applying",
            migration=identifier,
        )

        start_time = time.time()
        try:
            result = script.up()
        except Exception as e:
            logger.error(
                f"Migration {identifier} raised an error",
                event_type="migration_failed",
                migration=identifier,
                error=str(e),
            )
            raise MigrationFailed(f"Migration {identifier} failed: {e}", identifier) from e

        if result is False:
            logger.error(
                f"Migration {identifier} reported failure",
                event_type="migration_failed",
                migration=identifier,
            )
            raise MigrationFailed(f"Migration up from {identifier}.py returned False", identifier)

        execution_time_ms = int((time.time() - start_time) * 1000)

        try:
            self._ledger.record_applied(identifier)
        except MigrationError:
            # up() has already run; recovery is manual
            logger.error(
                f"Migration {identifier} was applied but could not be logged",
                event_type="migration_unlogged",
                migration=identifier,
            )
            raise

        logger.info(
            f"Migration {identifier} applied successfully",
            event_type="migration_applied",
            migration=identifier,
            execution_time_ms=execution_time_ms,
        )

    def run_pending(self) -> list[str]:
        """
        Apply every pending migration in order, stopping at the first failure.

        A failed or unresolvable migration ends the run without raising; the
        error is kept on ``last_error`` and the next call resumes from it.
        Ledger write errors propagate.

        Returns:
            Identifiers applied during this call.
        """
        self.last_error = None
        ran: list[str] = []

        pending = self.compute_pending()
        if not pending:
            logger.info("No pending migrations", event_type="migration_none")
            return ran

        for identifier in pending:
            try:
                self.apply(identifier)
            except (MigrationFailed, UnresolvableMigration) as e:
                self.last_error = e
                logger.warning(
                    f"Stopped after {len(ran)} of {len(pending)} pending migrations",
                    event_type="migration_run_stopped",
                    migration=identifier,
                    applied_count=len(ran),
                )
                break
            ran.append(identifier)

        return ran

    def rollback(self, identifier: str) -> None:
        """
        Run a migration's ``down`` and remove it from the ledger.

        Any applied migration may be targeted; restricting rollback to the
        latest one is left to the caller.

        Raises:
            RollbackFailed: If the migration is not applied, in which case
                ``down`` is not called, or if ``down`` returns False or
                raises. The ledger entry is kept.
            UnresolvableMigration: If the script cannot be resolved.
            LedgerWriteError: If the entry could not be removed.
        """
        if identifier not in self._ledger.list_applied():
            raise RollbackFailed(f"Migration {identifier} is not applied", identifier)

        script = self.resolve_script(identifier)

        logger.info(
            f"Rolling back migration {identifier}",
            event_type="migration_rolling_back",
            migration=identifier,
        )

        start_time = time.time()
        try:
            result = script.down()
        except Exception as e:
            logger.error(
                f"Rollback of migration {identifier} raised an error",
                event_type="migration_rollback_failed",
                migration=identifier,
                error=str(e),
            )
            raise RollbackFailed(f"Rollback of migration {identifier} failed: {e}", identifier) from e

        if result is False:
            logger.error(
                f"Rollback of migration {identifier} reported failure",
                event_type="migration_rollback_failed",
                migration=identifier,
            )
            raise RollbackFailed(f"Can't rollback migration: {identifier}.py", identifier)

        execution_time_ms = int((time.time() - start_time) * 1000)

        self._ledger.remove_applied(identifier)

        logger.info(
            f"Migration {identifier} rolled back successfully",
            event_type="migration_rolled_back",
            migration=identifier,
            execution_time_ms=execution_time_ms,
        )

    def get_status(self) -> dict[str, Any]:
        """
        Get current migration status.

        Returns:
            Dictionary with migration status information.
        """
        all_migrations = self._scripts.list_all()
        applied = self._ledger.list_applied()
        known = set(all_migrations)
        applied_set = set(applied)

        return {
            "total_migrations": len(all_migrations),
            "applied_count": len(applied),
            "pending_count": len([i for i in all_migrations if i not in applied_set]),
            "latest_applied": applied[-1] if applied else None,
            "migrations": [
                {
                    "migration": identifier,
                    "status": (
                        MigrationStatus.APPLIED if identifier in applied_set else MigrationStatus.PENDING
                    ).value,
                }
                for identifier in all_migrations
            ],
            "applied": applied,
            "pending": [i for i in all_migrations if i not in applied_set],
            "orphaned": [i for i in applied if i not in known],
        }
