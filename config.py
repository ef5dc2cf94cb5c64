"""
config.py
---------
Central configuration module. Loads all environment variables
from the .env file and exposes them as typed constants.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ── Telegram ──────────────────────────────────────────────
TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
SESSION_LABEL: str = os.getenv("SESSION_LABEL", "bottally")

# ── Storage ───────────────────────────────────────────────
# "postgres" is the durable backend. "memory" keeps totals and the dedup
# record only for the lifetime of the process.
STORE_BACKEND: str = os.getenv("STORE_BACKEND", "postgres").strip().lower()
STORE_TIMEOUT_SECONDS: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))
DEDUP_TTL_SECONDS: int = int(os.getenv("DEDUP_TTL_SECONDS", "0"))

# ── PostgreSQL ────────────────────────────────────────────
DB_HOST: str = os.getenv("DB_HOST", "")
DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
DB_NAME: str = os.getenv("DB_NAME", "bot_tally")
DB_USER: str = os.getenv("DB_USER", "bottally_user")
DB_PASS: str = os.getenv("DB_PASS", "")
DB_SSLMODE: str = os.getenv("DB_SSLMODE", "")

DATABASE_URL: str = os.getenv("DATABASE_URL", "") or (
    f"postgresql://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    if DB_HOST
    else ""
)

# ── Number formatting ─────────────────────────────────────
DECIMALS: int = int(os.getenv("DECIMALS", "2"))
GROUPING: str = os.getenv("GROUPING", "south_asian").strip().lower()
NEGATIVE_SIGN: str = os.getenv("NEGATIVE_SIGN", "−")
SHOW_SIGN_LABELS: bool = _flag("SHOW_SIGN_LABELS")
POSITIVE_LABEL: str = os.getenv("POSITIVE_LABEL", "dues")
NEGATIVE_LABEL: str = os.getenv("NEGATIVE_LABEL", "advance")

# ── Commands & input handling ─────────────────────────────
TOTAL_COMMAND: str = os.getenv("TOTAL_COMMAND", "total").strip().lower()
RESET_COMMAND: str = os.getenv("RESET_COMMAND", "reset").strip().lower()
SET_COMMAND: str = os.getenv("SET_COMMAND", "set").strip().lower()
# "silent" drops invalid input without a reply, "reply" answers with an apology.
INVALID_INPUT: str = os.getenv("INVALID_INPUT", "silent").strip().lower()
MAX_EXPRESSION_LENGTH: int = int(os.getenv("MAX_EXPRESSION_LENGTH", "200"))

# ── Logging ───────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

GROUPING_SCHEMES = ("south_asian", "thousands")
STORE_BACKENDS = ("postgres", "memory")
INVALID_INPUT_MODES = ("silent", "reply")


def validate() -> list[str]:
    """
    Check the loaded configuration for problems that must stop startup.

    Returns:
        A list of human-readable problems. Empty means the config is usable.
    """
    problems = []
    if not TELEGRAM_BOT_TOKEN:
        problems.append("TELEGRAM_BOT_TOKEN is not set.")
    if STORE_BACKEND not in STORE_BACKENDS:
        problems.append(f"STORE_BACKEND must be one of {STORE_BACKENDS}, got '{STORE_BACKEND}'.")
    if STORE_BACKEND == "postgres" and not DATABASE_URL:
        problems.append("DATABASE_URL (or DB_HOST) is not set for the postgres backend.")
    if GROUPING not in GROUPING_SCHEMES:
        problems.append(f"GROUPING must be one of {GROUPING_SCHEMES}, got '{GROUPING}'.")
    if INVALID_INPUT not in INVALID_INPUT_MODES:
        problems.append(f"INVALID_INPUT must be one of {INVALID_INPUT_MODES}, got '{INVALID_INPUT}'.")
    if DECIMALS < 0:
        problems.append("DECIMALS must not be negative.")
    if STORE_TIMEOUT_SECONDS <= 0:
        problems.append("STORE_TIMEOUT_SECONDS must be positive.")
    if not (TOTAL_COMMAND and RESET_COMMAND and SET_COMMAND):
        problems.append("Command tokens must not be empty.")
    return problems
