"""
Migration system.

This package computes which migrations are pending, runs them in order,
records each success in a ledger table and supports rolling back an applied
migration.
"""

from migrator.migrations.engine import MigrationEngine
from migrator.migrations.ledger import LedgerStore, SqlLedgerStore, ledger_lock
from migrator.migrations.models import LedgerEntry, MigrationScript, MigrationStatus
from migrator.migrations.scripts import (
    FileScriptStore,
    RegistryScriptStore,
    ScriptRegistry,
    ScriptStore,
)

__all__ = [
    "MigrationEngine",
    "LedgerStore",
    "SqlLedgerStore",
    "ledger_lock",
    "LedgerEntry",
    "MigrationScript",
    "MigrationStatus",
    "FileScriptStore",
    "RegistryScriptStore",
    "ScriptRegistry",
    "ScriptStore",
]
