"""
db/connection.py
----------------
Manages the PostgreSQL connection pool.
Uses psycopg2's ThreadedConnectionPool because store calls run in worker
threads (see services/orchestrator.py).

The pool is owned by an explicitly constructed ``Database`` object that is
opened at startup, passed to the repositories, and closed at shutdown.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from psycopg2 import pool

from utils.logger import get_logger

logger = get_logger(__name__)


class Database:
    """
    Owner of a psycopg2 connection pool.

    Args:
        dsn: PostgreSQL connection URL.
        min_conn: Minimum number of connections to keep open.
        max_conn: Maximum number of connections allowed.
        connect_timeout: Seconds to wait for a new connection.
        statement_timeout_ms: Server-side limit for a single statement.
        sslmode: Optional libpq sslmode (e.g. ``require`` for hosted databases).
    """

    def __init__(
        self,
        dsn: str,
        min_conn: int = 1,
        max_conn: int = 5,
        connect_timeout: int = 5,
        statement_timeout_ms: int = 4000,
        sslmode: str = "",
    ):
        self.dsn = dsn
        self.min_conn = min_conn
        self.max_conn = max_conn
        self.connect_kwargs = {
            "connect_timeout": connect_timeout,
            "options": f"-c statement_timeout={statement_timeout_ms}",
        }
        if sslmode:
            self.connect_kwargs["sslmode"] = sslmode
        self._pool: Optional[pool.ThreadedConnectionPool] = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def open(self) -> None:
        """
        Initialize the connection pool.

        Raises:
            psycopg2.OperationalError: If the database is unreachable.
        """
        if self._pool is not None:
            return
        try:
            self._pool = pool.ThreadedConnectionPool(
                self.min_conn, self.max_conn, self.dsn, **self.connect_kwargs
            )
            logger.info("Database connection pool initialized successfully.")
        except psycopg2.OperationalError as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise

    def close(self) -> None:
        """Close all connections in the pool."""
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
            logger.info("Database connection pool closed.")

    @contextmanager
    def connection(self) -> Iterator:
        """
        Borrow a connection for one unit of work.

        Commits when the block exits normally, rolls back on any exception,
        and always returns the connection to the pool.

        Raises:
            RuntimeError: If the pool has not been opened.
        """
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call open() first.")
        conn = self._pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)
