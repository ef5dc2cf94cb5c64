"""
db/init_db.py
-------------
Creates the database schema (tables) if they do not already exist.
Run this module directly to initialize a fresh database:
    python -m db.init_db
"""

from db.connection import Database
from utils.logger import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
-- Running total per conversation
CREATE TABLE IF NOT EXISTS ledger (
    chat_id         TEXT PRIMARY KEY,
    total           NUMERIC NOT NULL DEFAULT 0,
    updated_at      TIMESTAMPTZ DEFAULT NOW()
);

-- Write-once idempotency markers: one row per handled message
CREATE TABLE IF NOT EXISTS processed_message (
    chat_id         TEXT NOT NULL,
    msg_id          TEXT NOT NULL,
    processed_at    TIMESTAMPTZ DEFAULT NOW(),
    PRIMARY KEY (chat_id, msg_id)
);
"""


def create_tables(db: Database) -> None:
    """
    Execute the schema SQL to create all tables.
    Safe to call multiple times (uses IF NOT EXISTS).
    """
    try:
        with db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
        logger.info("Database schema initialized successfully.")
    except Exception as e:
        logger.error(f"Failed to initialize schema: {e}")
        raise


if __name__ == "__main__":
    from config import DATABASE_URL, DB_SSLMODE

    database = Database(DATABASE_URL, sslmode=DB_SSLMODE)
    database.open()
    try:
        create_tables(database)
    finally:
        database.close()
    print("✅ Database schema created successfully.")
