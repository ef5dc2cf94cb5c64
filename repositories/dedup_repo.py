"""
repositories/dedup_repo.py
--------------------------
Data access layer for processed-message markers.
All SQL queries related to the `processed_message` table live here.

Rows are never updated or deleted, so the at-most-once guarantee holds
across restarts and reconnections.
"""

import psycopg2

from db.connection import Database
from utils.errors import StoreError
from utils.logger import get_logger

logger = get_logger(__name__)


class ProcessedMessageRepository:
    """Durable record of which (chat_id, msg_id) pairs reached a terminal outcome."""

    durable = True

    def __init__(self, db: Database):
        self.db = db

    def has_processed(self, chat_id: str, msg_id: str) -> bool:
        sql = "SELECT 1 FROM processed_message WHERE chat_id = %s AND msg_id = %s;"
        try:
            with self.db.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, (chat_id, msg_id))
                    return cur.fetchone() is not None
        except psycopg2.Error as e:
            logger.error(f"Failed to check message {chat_id}/{msg_id}: {e}")
            raise StoreError(str(e)) from e

    def mark_processed(self, chat_id: str, msg_id: str) -> None:
        """Record the message as handled. Marking twice is a no-op."""
        sql = """
            INSERT INTO processed_message (chat_id, msg_id)
            VALUES (%s, %s)
            ON CONFLICT DO NOTHING;
        """
        try:
            with self.db.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, (chat_id, msg_id))
        except psycopg2.Error as e:
            logger.error(f"Failed to mark message {chat_id}/{msg_id}: {e}")
            raise StoreError(str(e)) from e
