import pytest
from sqlalchemy import create_engine

from migrator.core.config import reset_settings
from migrator.migrations.ledger import SqlLedgerStore
from migrator.migrations.models import MigrationScript
from migrator.migrations.scripts import RegistryScriptStore, ScriptRegistry

# Constants for testing
MIGRATION_A = "2024_01_01_090000_000001_create_users"
MIGRATION_B = "2024_01_01_090000_000002_add_email_to_users"
MIGRATION_C = "2024_01_02_101500_000000_create_orders"


class RecordingScript(MigrationScript):
    """
    Migration script whose outcome is driven by a shared ``outcomes`` dict.

    An outcome may be a return value (``False`` signals failure) or an
    exception instance to raise. Every call is appended to ``calls`` as
    ``(operation, identifier)``.
    """

    def __init__(self, identifier, calls, outcomes):
        super().__init__()
        self.identifier = identifier
        self.calls = calls
        self.outcomes = outcomes

    def _run(self, operation):
        self.calls.append((operation, self.identifier))
        outcome = self.outcomes.get((operation, self.identifier))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def up(self):
        return self._run("up")

    def down(self):
        return self._run("down")


@pytest.fixture(autouse=True)
def clean_settings():
    """Make every test read settings from its own environment."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def db(tmp_path):
    """SQLite database engine backed by a temporary file."""
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def ledger(db):
    """Initialized SQL ledger store."""
    store = SqlLedgerStore(db)
    store.initialize()
    return store


@pytest.fixture
def calls():
    return []


@pytest.fixture
def outcomes():
    return {}


@pytest.fixture
def registry(calls, outcomes):
    """Registry holding three recording scripts A, B and C."""
    registry = ScriptRegistry()
    for identifier in (MIGRATION_A, MIGRATION_B, MIGRATION_C):
        registry.register(
            identifier,
            lambda identifier=identifier: RecordingScript(identifier, calls, outcomes),
        )
    return registry


@pytest.fixture
def scripts(registry):
    return RegistryScriptStore(registry)


@pytest.fixture
def migrations_dir(tmp_path):
    """Empty directory for migration files."""
    path = tmp_path / "migrations"
    path.mkdir()
    return path
