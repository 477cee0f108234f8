"""
Ledger of applied migrations.

The ledger is one table with an autoincrementing ``id`` and a unique
``migration`` column. Rows ordered by ``id`` give the order in which
migrations were applied.
"""

import os
import socket
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    delete,
    insert,
    inspect,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from migrator.core.exceptions import LedgerReadError, LedgerWriteError, MigrationLockError
from migrator.log.logging import logger
from migrator.migrations.models import LedgerEntry, MigrationLock


class LedgerStore(ABC):
    """Persistent record of which migrations have run, in application order."""

    @abstractmethod
    def exists(self) -> bool:
        """Whether the ledger medium has been created."""

    @abstractmethod
    def initialize(self) -> None:
        """Create the ledger medium."""

    @abstractmethod
    def list_applied(self) -> list[str]:
        """Applied identifiers, oldest first. Raises LedgerReadError on medium failure."""

    @abstractmethod
    def record_applied(self, identifier: str) -> None:
        """Append ``identifier``. Raises LedgerWriteError on medium failure."""

    @abstractmethod
    def remove_applied(self, identifier: str) -> None:
        """Delete ``identifier``'s entry. Absent identifiers are ignored."""


class SqlLedgerStore(LedgerStore):
    """
    Ledger kept in a SQL table through SQLAlchemy Core.

    Features:
    - One transaction per write, so each entry is recorded all-or-nothing
    - Unique index on the identifier column
    - Advisory lock row in a companion ``<table>_lock`` table
    """

    DEFAULT_TABLE = "migrations"
    DEFAULT_LOCK_TIMEOUT = 300  # 5 minutes

    def __init__(self, db: Engine, table: str = DEFAULT_TABLE):
        """
        Initialize the ledger store.

        Args:
            db: SQLAlchemy engine for the ledger database.
            table: Name of the ledger table.
        """
        self._db = db
        self._table_name = table
        self._metadata = MetaData()
        self._table = Table(
            table,
            self._metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("migration", String(255), nullable=False, index=True, unique=True),
        )
        self._lock_table = Table(
            f"{table}_lock",
            self._metadata,
            Column("id", String(64), primary_key=True),
            Column("locked_by", String(255), nullable=False),
            Column("locked_at", DateTime, nullable=False),
            Column("expires_at", DateTime, nullable=False),
        )

    @property
    def table_name(self) -> str:
        return self._table_name

    def exists(self) -> bool:
        return inspect(self._db).has_table(self._table_name)

    def initialize(self) -> None:
        try:
            self._metadata.create_all(self._db)
        except SQLAlchemyError as e:
            raise LedgerWriteError(f"Unable to create ledger table {self._table_name}: {e}") from e

        logger.info(
            "Migration ledger initialized",
            event_type="ledger_initialized",
            table=self._table_name,
        )

    def entries(self) -> list[LedgerEntry]:
        """All ledger rows ordered by application."""
        query = select(self._table.c.id, self._table.c.migration).order_by(self._table.c.id)
        try:
            with self._db.connect() as conn:
                return [LedgerEntry.from_row(row) for row in conn.execute(query)]
        except SQLAlchemyError as e:
            raise LedgerReadError(f"Unable to read ledger table {self._table_name}: {e}") from e

    def list_applied(self) -> list[str]:
        return [entry.migration for entry in self.entries()]

    def record_applied(self, identifier: str) -> None:
        try:
            with self._db.begin() as conn:
                conn.execute(insert(self._table).values(migration=identifier))
        except SQLAlchemyError as e:
            raise LedgerWriteError(
                f"Unable to record migration {identifier} in ledger: {e}", identifier
            ) from e

    def remove_applied(self, identifier: str) -> None:
        try:
            with self._db.begin() as conn:
                removed = conn.execute(
                    delete(self._table).where(self._table.c.migration == identifier)
                ).rowcount
        except SQLAlchemyError as e:
            raise LedgerWriteError(
                f"Unable to remove migration {identifier} from ledger: {e}", identifier
            ) from e

        if removed == 0:
            logger.debug(
                "Ledger had no entry to remove",
                event_type="ledger_remove_noop",
                migration=identifier,
            )

    def acquire_lock(self, owner: str, timeout: int = DEFAULT_LOCK_TIMEOUT) -> bool:
        """
        Acquire the advisory migration lock.

        Args:
            owner: Identifier of the process taking the lock.
            timeout: Seconds after which the lock may be taken over.

        Returns:
            True if lock acquired, False otherwise.
        """
        # Ledgers created by older installs may lack the lock table
        self._lock_table.create(self._db, checkfirst=True)

        now = datetime.utcnow()
        lock = MigrationLock(
            locked_at=now,
            locked_by=owner,
            expires_at=now + timedelta(seconds=timeout),
        )

        try:
            with self._db.begin() as conn:
                conn.execute(insert(self._lock_table).values(**lock.to_dict()))
            logger.info(
                "Migration lock acquired",
                event_type="migration_lock_acquired",
                locked_by=owner,
            )
            return True
        except IntegrityError:
            pass

        # Take over the lock only if the current holder let it expire
        with self._db.begin() as conn:
            replaced = conn.execute(
                update(self._lock_table)
                .where(
                    self._lock_table.c.id == MigrationLock.LOCK_ID,
                    self._lock_table.c.expires_at < now,
                )
                .values(**lock.to_dict())
            ).rowcount
        if replaced > 0:
            logger.info(
                "Migration lock acquired (replaced expired)",
                event_type="migration_lock_acquired",
                locked_by=owner,
            )
            return True
        return False

    def release_lock(self, owner: str) -> None:
        """Release the lock if ``owner`` holds it."""
        with self._db.begin() as conn:
            conn.execute(
                delete(self._lock_table).where(
                    self._lock_table.c.id == MigrationLock.LOCK_ID,
                    self._lock_table.c.locked_by == owner,
                )
            )
        logger.info(
            "Migration lock released",
            event_type="migration_lock_released",
            locked_by=owner,
        )

    def lock_holder(self) -> Optional[str]:
        """Owner of the current lock row, expired or not."""
        query = select(self._lock_table.c.locked_by).where(
            self._lock_table.c.id == MigrationLock.LOCK_ID
        )
        with self._db.connect() as conn:
            return conn.execute(query).scalar_one_or_none()


def default_lock_owner() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


@contextmanager
def ledger_lock(
    ledger: SqlLedgerStore,
    timeout: int = SqlLedgerStore.DEFAULT_LOCK_TIMEOUT,
    owner: Optional[str] = None,
) -> Iterator[str]:
    """
    Hold the advisory migration lock for the duration of the block.

    Raises:
        MigrationLockError: If another runner holds an unexpired lock.
    """
    owner = owner or default_lock_owner()
    if not ledger.acquire_lock(owner, timeout):
        raise MigrationLockError(
            f"Unable to acquire migration lock (held by {ledger.lock_holder()})"
        )
    try:
        yield owner
    finally:
        ledger.release_lock(owner)
