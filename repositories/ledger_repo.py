"""
repositories/ledger_repo.py
---------------------------
Data access layer for running totals.
All SQL queries related to the `ledger` table live here.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import psycopg2

from db.connection import Database
from utils.errors import StoreError
from utils.logger import get_logger

logger = get_logger(__name__)


class LedgerRepository:
    """
    One running total per chat, persisted in PostgreSQL.

    Every write rounds to ``precision`` places (half away from zero) before
    it is stored, so repeated additions never accumulate drift. ``add`` is a
    single upsert statement, which makes it atomic with respect to other
    ``add``/``set`` calls on the same chat.
    """

    def __init__(self, db: Database, precision: int = 2):
        self.db = db
        self.precision = precision
        self._quantum = Decimal(1).scaleb(-precision)

    def _round(self, value) -> Decimal:
        return Decimal(value).quantize(self._quantum, rounding=ROUND_HALF_UP)

    def get(self, chat_id: str) -> Optional[Decimal]:
        """
        Fetch the running total.

        Returns:
            The total, or None if the chat has never been written to.
        """
        sql = "SELECT total FROM ledger WHERE chat_id = %s;"
        try:
            with self.db.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, (chat_id,))
                    row = cur.fetchone()
        except psycopg2.Error as e:
            logger.error(f"Failed to read total for chat {chat_id}: {e}")
            raise StoreError(str(e)) from e
        return self._round(row[0]) if row else None

    def set(self, chat_id: str, value: Decimal) -> Decimal:
        """Replace the total unconditionally and return the stored value."""
        sql = """
            INSERT INTO ledger (chat_id, total)
            VALUES (%s, %s)
            ON CONFLICT (chat_id)
            DO UPDATE SET total = EXCLUDED.total, updated_at = NOW()
            RETURNING total;
        """
        return self._write(sql, (chat_id, self._round(value)), chat_id, "set")

    def add(self, chat_id: str, delta: Decimal) -> Decimal:
        """
        Atomically add ``delta`` to the total (starting from 0 if unset).

        Returns:
            The new total.
        """
        sql = """
            INSERT INTO ledger (chat_id, total)
            VALUES (%s, ROUND(%s::numeric, %s))
            ON CONFLICT (chat_id)
            DO UPDATE SET total = ROUND(ledger.total + EXCLUDED.total, %s), updated_at = NOW()
            RETURNING total;
        """
        params = (chat_id, self._round(delta), self.precision, self.precision)
        return self._write(sql, params, chat_id, "add")

    def reset(self, chat_id: str) -> Decimal:
        """Return the total to its baseline of 0 (the row is kept)."""
        return self.set(chat_id, Decimal(0))

    def _write(self, sql: str, params: tuple, chat_id: str, action: str) -> Decimal:
        try:
            with self.db.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    row = cur.fetchone()
        except psycopg2.Error as e:
            logger.error(f"Failed to {action} total for chat {chat_id}: {e}")
            raise StoreError(str(e)) from e
        total = self._round(row[0])
        logger.debug(f"Ledger {action} for chat {chat_id}: {total}")
        return total
