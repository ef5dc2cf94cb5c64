"""
Tests for the PostgreSQL repositories and connection wrapper.

psycopg2 is mocked: these tests check SQL shape, parameters, rounding and
error mapping, not a live database.
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from db.connection import Database
from db.init_db import SCHEMA_SQL, create_tables
from repositories.dedup_repo import ProcessedMessageRepository
from repositories.ledger_repo import LedgerRepository
from utils.errors import StoreError


def make_db(row=None, error=None):
    """A Database double whose connection yields a cursor returning ``row``."""
    cursor = MagicMock()
    cursor.fetchone.return_value = row
    if error is not None:
        cursor.execute.side_effect = error
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    db = MagicMock()
    db.connection.return_value.__enter__.return_value = conn
    return db, cursor


class TestLedgerRepository:

    def test_get_rounds_stored_value(self):
        db, cursor = make_db(row=(Decimal("12.5"),))
        assert str(LedgerRepository(db).get("chat")) == "12.50"
        sql, params = cursor.execute.call_args[0]
        assert "FROM ledger" in sql
        assert params == ("chat",)

    def test_get_unset(self):
        db, _ = make_db(row=None)
        assert LedgerRepository(db).get("chat") is None

    def test_add_is_single_atomic_upsert(self):
        db, cursor = make_db(row=(Decimal("15.00"),))
        assert LedgerRepository(db).add("chat", Decimal("4.999")) == Decimal("15.00")
        assert cursor.execute.call_count == 1
        sql, params = cursor.execute.call_args[0]
        assert "ON CONFLICT (chat_id)" in sql
        assert "ledger.total + EXCLUDED.total" in sql
        assert "RETURNING total" in sql
        assert params == ("chat", Decimal("5.00"), 2, 2)

    def test_set_rounds_before_storing(self):
        db, cursor = make_db(row=(Decimal("42.50"),))
        assert LedgerRepository(db).set("chat", Decimal("42.5")) == Decimal("42.50")
        _, params = cursor.execute.call_args[0]
        assert params == ("chat", Decimal("42.50"))

    def test_reset_writes_zero(self):
        db, cursor = make_db(row=(Decimal("0"),))
        assert str(LedgerRepository(db).reset("chat")) == "0.00"
        _, params = cursor.execute.call_args[0]
        assert params == ("chat", Decimal("0.00"))

    def test_custom_precision(self):
        db, cursor = make_db(row=(Decimal("1.235"),))
        assert LedgerRepository(db, precision=3).add("chat", Decimal("1.2345")) == Decimal("1.235")
        _, params = cursor.execute.call_args[0]
        assert params == ("chat", Decimal("1.235"), 3, 3)

    def test_database_error_becomes_store_error(self):
        db, _ = make_db(error=psycopg2.OperationalError("server closed the connection"))
        repo = LedgerRepository(db)
        with pytest.raises(StoreError):
            repo.get("chat")
        with pytest.raises(StoreError):
            repo.add("chat", Decimal("1"))


class TestProcessedMessageRepository:

    def test_has_processed(self):
        db, cursor = make_db(row=(1,))
        assert ProcessedMessageRepository(db).has_processed("chat", "m1") is True
        assert cursor.execute.call_args[0][1] == ("chat", "m1")

    def test_has_not_processed(self):
        db, _ = make_db(row=None)
        assert ProcessedMessageRepository(db).has_processed("chat", "m1") is False

    def test_mark_is_idempotent_insert(self):
        db, cursor = make_db()
        ProcessedMessageRepository(db).mark_processed("chat", "m1")
        sql, params = cursor.execute.call_args[0]
        assert "INSERT INTO processed_message" in sql
        assert "ON CONFLICT DO NOTHING" in sql
        assert params == ("chat", "m1")

    def test_durable(self):
        assert ProcessedMessageRepository.durable is True

    def test_database_error_becomes_store_error(self):
        db, _ = make_db(error=psycopg2.InterfaceError("connection already closed"))
        with pytest.raises(StoreError):
            ProcessedMessageRepository(db).mark_processed("chat", "m1")


class TestDatabase:

    @patch("db.connection.pool.ThreadedConnectionPool")
    def test_open_passes_timeouts(self, pool_cls):
        db = Database("postgresql://u:p@h/db", statement_timeout_ms=2500, sslmode="require")
        db.open()
        args, kwargs = pool_cls.call_args
        assert args == (1, 5, "postgresql://u:p@h/db")
        assert kwargs["options"] == "-c statement_timeout=2500"
        assert kwargs["sslmode"] == "require"
        assert db.is_open

    @patch("db.connection.pool.ThreadedConnectionPool")
    def test_connection_commits_and_returns(self, pool_cls):
        conn = pool_cls.return_value.getconn.return_value
        db = Database("dsn")
        db.open()
        with db.connection() as c:
            assert c is conn
        conn.commit.assert_called_once()
        pool_cls.return_value.putconn.assert_called_once_with(conn)

    @patch("db.connection.pool.ThreadedConnectionPool")
    def test_connection_rolls_back_on_error(self, pool_cls):
        conn = pool_cls.return_value.getconn.return_value
        db = Database("dsn")
        db.open()
        with pytest.raises(ValueError):
            with db.connection():
                raise ValueError("bad")
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        pool_cls.return_value.putconn.assert_called_once_with(conn)

    def test_connection_before_open(self):
        with pytest.raises(RuntimeError):
            with Database("dsn").connection():
                pass

    @patch("db.connection.pool.ThreadedConnectionPool")
    def test_close(self, pool_cls):
        db = Database("dsn")
        db.open()
        db.close()
        pool_cls.return_value.closeall.assert_called_once()
        assert not db.is_open


class TestSchema:

    def test_tables(self):
        assert "CREATE TABLE IF NOT EXISTS ledger" in SCHEMA_SQL
        assert "PRIMARY KEY (chat_id, msg_id)" in SCHEMA_SQL

    def test_create_tables_executes_schema(self):
        db, cursor = make_db()
        create_tables(db)
        cursor.execute.assert_called_once_with(SCHEMA_SQL)
