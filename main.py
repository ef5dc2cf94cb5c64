"""
main.py
-------
Entry point for the BotTally Telegram bot.

Responsibilities:
    - Validate configuration and refuse to start on fatal problems.
    - Open the storage backend and create the schema.
    - Wire the ledger core (resolver, formatter, orchestrator, dispatcher).
    - Configure and start the Telegram bot; drain work and close the
      database on shutdown.
"""

import sys

import psycopg2
from telegram import BotCommand
from telegram.ext import (
    Application,
    CommandHandler,
    MessageHandler,
    filters,
)

import config
from db.connection import Database
from db.init_db import create_tables
from handlers.message_handler import DISPATCHER_KEY, TelegramReplySender, handle_text_message
from handlers.start_handler import help_command, start_command
from repositories.dedup_repo import ProcessedMessageRepository
from repositories.ledger_repo import LedgerRepository
from repositories.memory import InMemoryDedupStore, InMemoryLedgerStore
from services.command_parser import CommandParser
from services.dispatcher import ChatDispatcher
from services.expression_resolver import ExpressionResolver
from services.formatter import AmountFormatter
from services.orchestrator import ConversationOrchestrator
from utils.errors import ConfigError
from utils.logger import get_logger

logger = get_logger(__name__)

DATABASE_KEY = "database"


def database_timeouts(store_timeout: float) -> tuple[int, int]:
    """
    Split the per-call store timeout between connecting and running a statement.

    libpq takes whole seconds for ``connect_timeout`` and never waits less
    than 2, so the statement gets what is left minus a margin. From a 3s
    store timeout up, a fresh connection plus one statement stays under it.

    Returns:
        (connect_timeout in seconds, statement_timeout in milliseconds)
    """
    budget_ms = int(store_timeout * 1000)
    connect_timeout = max(2, int(store_timeout / 2))
    statement_timeout_ms = max(100, budget_ms - connect_timeout * 1000 - 250)
    return connect_timeout, statement_timeout_ms


def build_stores():
    """
    Create the ledger and dedup stores for the configured backend.

    Returns:
        (database or None, ledger store, dedup store)

    Raises:
        ConfigError: If the database cannot be reached or initialized.
    """
    if config.STORE_BACKEND == "memory":
        logger.warning("STORE_BACKEND=memory: totals and dedup markers are lost on restart.")
        ttl = config.DEDUP_TTL_SECONDS or None
        return None, InMemoryLedgerStore(config.DECIMALS), InMemoryDedupStore(ttl)

    connect_timeout, statement_timeout_ms = database_timeouts(config.STORE_TIMEOUT_SECONDS)
    database = Database(
        config.DATABASE_URL,
        connect_timeout=connect_timeout,
        statement_timeout_ms=statement_timeout_ms,
        sslmode=config.DB_SSLMODE,
    )
    try:
        database.open()
        create_tables(database)
    except psycopg2.Error as e:
        database.close()
        raise ConfigError(f"Database unavailable at startup: {e}") from e
    return database, LedgerRepository(database, config.DECIMALS), ProcessedMessageRepository(database)


def build_orchestrator(ledger, dedup, sender) -> ConversationOrchestrator:
    """Assemble the ledger core from configuration."""
    formatter = AmountFormatter(
        precision=config.DECIMALS,
        grouping=config.GROUPING,
        negative_sign=config.NEGATIVE_SIGN,
        show_labels=config.SHOW_SIGN_LABELS,
        positive_label=config.POSITIVE_LABEL,
        negative_label=config.NEGATIVE_LABEL,
    )
    return ConversationOrchestrator(
        ledger=ledger,
        dedup=dedup,
        sender=sender,
        resolver=ExpressionResolver(formatter, max_length=config.MAX_EXPRESSION_LENGTH),
        formatter=formatter,
        commands=CommandParser(config.TOTAL_COMMAND, config.RESET_COMMAND, config.SET_COMMAND),
        invalid_reply=config.INVALID_INPUT == "reply",
        store_timeout=config.STORE_TIMEOUT_SECONDS,
    )


async def set_bot_commands(application: Application) -> None:
    """Register bot commands menu in Telegram on startup."""
    commands = [
        BotCommand("start", "🚀 Start the bot"),
        BotCommand("help", "📖 How to use the running total"),
    ]
    await application.bot.set_my_commands(commands)
    logger.info("Bot commands menu registered successfully.")


async def drain_dispatcher(application: Application) -> None:
    """Finish queued messages while the bot can still send replies (post_stop)."""
    dispatcher = application.bot_data.get(DISPATCHER_KEY)
    if dispatcher is not None:
        await dispatcher.close()


async def close_database(application: Application) -> None:
    """Release the database once the bot is shut down (post_shutdown)."""
    database = application.bot_data.get(DATABASE_KEY)
    if database is not None:
        database.close()


def build_application(ledger, dedup, database) -> Application:
    """Create the Telegram application and wire the ledger core into it."""
    app = (
        Application.builder()
        .token(config.TELEGRAM_BOT_TOKEN)
        .post_init(set_bot_commands)
        .post_stop(drain_dispatcher)
        .post_shutdown(close_database)
        .build()
    )

    orchestrator = build_orchestrator(ledger, dedup, TelegramReplySender(app.bot))
    app.bot_data[DISPATCHER_KEY] = ChatDispatcher(orchestrator.handle)
    app.bot_data[DATABASE_KEY] = database

    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    # no ~filters.COMMAND: "/2" is a division continuation, not a bot command
    app.add_handler(MessageHandler(filters.TEXT | filters.CAPTION, handle_text_message))
    return app


def main() -> None:
    """Initialize and run the bot."""

    # ── 1. Configuration ──────────────────────────────────
    problems = config.validate()
    if problems:
        for problem in problems:
            logger.error(f"❌ {problem}")
        sys.exit(1)

    # ── 2. Storage ────────────────────────────────────────
    logger.info(f"Initializing {config.STORE_BACKEND} storage...")
    try:
        database, ledger, dedup = build_stores()
    except ConfigError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)

    # ── 3. Telegram application and ledger core ──────────
    logger.info("Starting Telegram bot...")
    app = build_application(ledger, dedup, database)

    # ── 4. Start polling ──────────────────────────────────
    logger.info("🚀 BotTally is running! Press Ctrl+C to stop.")
    app.run_polling(allowed_updates=["message"])
    logger.info("BotTally stopped.")


if __name__ == "__main__":
    main()
