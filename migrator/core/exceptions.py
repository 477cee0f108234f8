"""
Exception classes raised by the migration engine and its stores.

This module provides:
- Error codes for programmatic error handling
- A single base class so callers can catch every migration error at once
- Specific exception classes for each failure category
"""

from typing import Optional


class ErrorCode:
    """Error codes for programmatic error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"

    # Script resolution errors (2xxx)
    UNRESOLVABLE_MIGRATION = "ERR_2001"
    TEMPLATE_NOT_FOUND = "ERR_2002"

    # Execution errors (3xxx)
    MIGRATION_FAILED = "ERR_3001"
    ROLLBACK_FAILED = "ERR_3002"

    # Ledger errors (5xxx)
    LEDGER_WRITE_ERROR = "ERR_5001"
    LEDGER_LOCKED = "ERR_5002"
    LEDGER_READ_ERROR = "ERR_5003"


class MigrationError(Exception):
    """Base exception for migration errors."""

    error_code: str = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, identifier: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.identifier = identifier


class UnresolvableMigration(MigrationError):
    """
    Raised when no script can be built for an identifier.

    Covers a missing file, a file that fails to import, a missing class and
    an object without callable up/down. Authoring errors are never retried.
    """

    error_code = ErrorCode.UNRESOLVABLE_MIGRATION


class MigrationFailed(MigrationError):
    """Raised when a migration's up() reports failure. The ledger is untouched."""

    error_code = ErrorCode.MIGRATION_FAILED


class RollbackFailed(MigrationError):
    """Raised when a migration's down() reports failure. The ledger entry stays."""

    error_code = ErrorCode.ROLLBACK_FAILED


class LedgerWriteError(MigrationError):
    """Raised when the ledger medium fails to record or remove an entry."""

    error_code = ErrorCode.LEDGER_WRITE_ERROR


class LedgerReadError(MigrationError):
    """Raised when the ledger cannot be read, e.g. before it is initialized."""

    error_code = ErrorCode.LEDGER_READ_ERROR


class MigrationLockError(MigrationError):
    """Raised when unable to acquire migration lock."""

    error_code = ErrorCode.LEDGER_LOCKED


class TemplateNotFound(MigrationError):
    """Raised when a scaffolding template name matches no registered template."""

    error_code = ErrorCode.TEMPLATE_NOT_FOUND

    def __init__(self, name: str):
        super().__init__(f"Template not found: {name}")
        self.template_name = name
