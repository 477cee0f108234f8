"""Tests for the SQL ledger store and migration lock."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import inspect, text, update

from conftest import MIGRATION_A, MIGRATION_B, MIGRATION_C
from migrator.core.exceptions import LedgerReadError, LedgerWriteError, MigrationLockError
from migrator.migrations.ledger import SqlLedgerStore, default_lock_owner, ledger_lock


class TestSqlLedgerStore:
    """Tests for SqlLedgerStore."""

    def test_exists_and_initialize(self, db):
        """The table exists only after initialize()."""
        store = SqlLedgerStore(db)

        assert store.exists() is False
        store.initialize()
        assert store.exists() is True

    def test_table_layout(self, db):
        """The ledger has an id column and an indexed migration column."""
        store = SqlLedgerStore(db, table="schema_migrations")
        store.initialize()

        inspector = inspect(db)
        columns = {c["name"] for c in inspector.get_columns("schema_migrations")}
        indexed = {col for ix in inspector.get_indexes("schema_migrations") for col in ix["column_names"]}

        assert columns == {"id", "migration"}
        assert "migration" in indexed

    def test_list_applied_in_application_order(self, ledger):
        """Entries come back in insertion order, not name order."""
        ledger.record_applied(MIGRATION_C)
        ledger.record_applied(MIGRATION_A)
        ledger.record_applied(MIGRATION_B)

        assert ledger.list_applied() == [MIGRATION_C, MIGRATION_A, MIGRATION_B]

    def test_entries_have_increasing_ids(self, ledger):
        ledger.record_applied(MIGRATION_A)
        ledger.record_applied(MIGRATION_B)

        entries = ledger.entries()

        assert [e.migration for e in entries] == [MIGRATION_A, MIGRATION_B]
        assert entries[0].id < entries[1].id

    def test_state_survives_new_store(self, db, ledger):
        """A fresh store over the same database sees earlier writes."""
        ledger.record_applied(MIGRATION_A)

        assert SqlLedgerStore(db).list_applied() == [MIGRATION_A]

    def test_duplicate_record_is_write_error(self, ledger):
        """An identifier can appear at most once."""
        ledger.record_applied(MIGRATION_A)

        with pytest.raises(LedgerWriteError) as exc_info:
            ledger.record_applied(MIGRATION_A)

        assert exc_info.value.identifier == MIGRATION_A
        assert ledger.list_applied() == [MIGRATION_A]

    def test_record_without_table_is_write_error(self, db):
        """Medium failures are reported as LedgerWriteError."""
        store = SqlLedgerStore(db)

        with pytest.raises(LedgerWriteError):
            store.record_applied(MIGRATION_A)

    def test_list_without_table_is_read_error(self, db):
        """Reading a ledger that was never created raises LedgerReadError."""
        store = SqlLedgerStore(db)

        with pytest.raises(LedgerReadError):
            store.list_applied()

    def test_remove_applied(self, ledger):
        ledger.record_applied(MIGRATION_A)
        ledger.record_applied(MIGRATION_B)

        ledger.remove_applied(MIGRATION_A)

        assert ledger.list_applied() == [MIGRATION_B]

    def test_remove_absent_is_noop(self, ledger):
        """Removing an identifier that isn't there does not fail."""
        ledger.record_applied(MIGRATION_A)

        ledger.remove_applied(MIGRATION_B)

        assert ledger.list_applied() == [MIGRATION_A]

    def test_reapply_after_remove(self, ledger):
        """A removed identifier can be recorded again and goes to the end."""
        ledger.record_applied(MIGRATION_A)
        ledger.record_applied(MIGRATION_B)
        ledger.remove_applied(MIGRATION_A)

        ledger.record_applied(MIGRATION_A)

        assert ledger.list_applied() == [MIGRATION_B, MIGRATION_A]


class TestMigrationLock:
    """Tests for the advisory lock."""

    def test_acquire_and_release(self, ledger):
        assert ledger.acquire_lock("runner-1") is True
        assert ledger.lock_holder() == "runner-1"

        ledger.release_lock("runner-1")

        assert ledger.lock_holder() is None

    def test_second_runner_is_refused(self, ledger):
        """An unexpired lock cannot be taken by someone else."""
        assert ledger.acquire_lock("runner-1") is True

        assert ledger.acquire_lock("runner-2") is False
        assert ledger.lock_holder() == "runner-1"

    def test_expired_lock_is_taken_over(self, db, ledger):
        """A lock past its expiry can be replaced."""
        ledger.acquire_lock("runner-1")
        with db.begin() as conn:
            conn.execute(
                update(ledger._lock_table).values(expires_at=datetime.utcnow() - timedelta(seconds=5))
            )

        assert ledger.acquire_lock("runner-2") is True
        assert ledger.lock_holder() == "runner-2"

    def test_release_by_non_owner_keeps_lock(self, ledger):
        ledger.acquire_lock("runner-1")

        ledger.release_lock("runner-2")

        assert ledger.lock_holder() == "runner-1"

    def test_ledger_lock_context(self, ledger):
        """The context manager holds the lock only inside the block."""
        with ledger_lock(ledger, owner="runner-1") as owner:
            assert owner == "runner-1"
            assert ledger.lock_holder() == "runner-1"

        assert ledger.lock_holder() is None

    def test_ledger_lock_held_elsewhere(self, ledger):
        ledger.acquire_lock("runner-1")

        with pytest.raises(MigrationLockError):
            with ledger_lock(ledger, owner="runner-2"):
                pass

        assert ledger.lock_holder() == "runner-1"

    def test_ledger_lock_released_on_error(self, ledger):
        with pytest.raises(RuntimeError):
            with ledger_lock(ledger, owner="runner-1"):
                raise RuntimeError("boom")

        assert ledger.lock_holder() is None

    def test_default_lock_owner(self):
        assert "-" in default_lock_owner()

    def test_lock_table_created(self, db, ledger):
        with db.connect() as conn:
            count = conn.execute(text("SELECT COUNT(*) FROM migrations_lock")).scalar()

        assert count == 0
