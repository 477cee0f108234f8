"""
Migration data models and status tracking.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class MigrationStatus(str, Enum):
    """Status of a migration."""

    PENDING = "pending"
    APPLIED = "applied"


class MigrationScript(ABC):
    """
    Base class for migration scripts.

    A script file defines exactly one subclass whose name is derived from the
    file's identifier (see ``naming.class_name_for``). ``up`` and ``down``
    signal failure by returning ``False``; any other return value, including
    ``None``, counts as success.

    Attributes:
        db: Database handle injected by the script store (a SQLAlchemy Engine
            for the file-backed store), or None when the script needs none.
    """

    def __init__(self, db: Any = None):
        self.db = db

    @abstractmethod
    def up(self) -> Optional[bool]:
        """Apply the migration."""

    @abstractmethod
    def down(self) -> Optional[bool]:
        """Revert the migration."""


@dataclass
class LedgerEntry:
    """
    Row of the ledger table.

    Attributes:
        id: Autoincrementing identity, ascending in application order.
        migration: The migration identifier.
    """

    id: int
    migration: str

    @classmethod
    def from_row(cls, row: Any) -> "LedgerEntry":
        """Create from a SQLAlchemy result row."""
        return cls(id=row.id, migration=row.migration)


@dataclass
class MigrationLock:
    """
    Advisory lock preventing concurrent migration runs.

    Attributes:
        locked_at: When the lock was acquired.
        locked_by: Identifier of the process holding the lock.
        expires_at: When the lock expires.
    """

    locked_at: datetime
    locked_by: str
    expires_at: datetime

    LOCK_ID = "migration_lock"

    def to_dict(self) -> dict:
        """Convert to a row mapping for the lock table."""
        return {
            "id": self.LOCK_ID,
            "locked_at": self.locked_at,
            "locked_by": self.locked_by,
            "expires_at": self.expires_at,
        }
