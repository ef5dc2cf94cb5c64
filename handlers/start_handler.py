"""
handlers/start_handler.py
--------------------------
Handles /start and /help commands.
Shows how to use the running total.
"""

from telegram import Update
from telegram.ext import ContextTypes

from config import RESET_COMMAND, SET_COMMAND, TOTAL_COMMAND
from utils.logger import get_logger

logger = get_logger(__name__)

HELP_TEXT = f"""
🧮 *BotTally* keeps a running total for this chat.

*Add to the total* by sending arithmetic:
• `250 + 120` adds 370
• `12 * 3.5` adds 42

*Continue from the total* by starting with an operator:
• `+ 50`, `- 20`, `* 2`, `/ 4`

*Commands* (plain text, no slash):
• `{TOTAL_COMMAND}` show the current total
• `{RESET_COMMAND}` set the total back to 0
• `{SET_COMMAND} 1500` set the total to a number
"""


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command - show welcome message."""
    user = update.effective_user
    logger.info(f"Chat {update.effective_chat.id} started the bot.")
    name = user.first_name if user else "there"
    await update.message.reply_text(
        f"Hi {name}! 👋\n"
        f"Send me arithmetic and I'll keep a running total.\n\n"
        f"Type /help to see how.",
    )


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command - show usage."""
    await update.message.reply_text(HELP_TEXT, parse_mode="Markdown")
