"""
handlers/message_handler.py
---------------------------
Bridges python-telegram-bot and the ledger core.

    Update  ->  InboundMessage  ->  ChatDispatcher.submit()
    ConversationOrchestrator  ->  TelegramReplySender.send_reply()  ->  Bot
"""

from typing import Optional

from telegram import Bot, ReplyParameters, Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from models.message import InboundMessage
from utils.errors import TransportError
from utils.logger import get_logger

logger = get_logger(__name__)

DISPATCHER_KEY = "dispatcher"


class TelegramReplySender:
    """Sends orchestrator replies through the Telegram Bot API."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send_reply(self, chat_id: str, text: str, quoted_msg_id: Optional[str] = None) -> None:
        """
        Send ``text`` to the chat, quoting the triggering message.

        Raises:
            TransportError: If Telegram rejects or times out the request.
        """
        try:
            await self.bot.send_message(
                chat_id=int(chat_id),
                text=text,
                reply_parameters=_quote(quoted_msg_id),
            )
        except TelegramError as e:
            raise TransportError(f"send_message to {chat_id} failed: {e}") from e
        except RuntimeError as e:
            # PTB raises this once the HTTP client has been shut down
            raise TransportError(f"send_message to {chat_id} failed, bot is not running: {e}") from e


def _quote(msg_id: Optional[str]) -> Optional[ReplyParameters]:
    if not msg_id:
        return None
    return ReplyParameters(message_id=int(msg_id), allow_sending_without_reply=True)


def to_inbound(update: Update, bot_id: Optional[int] = None) -> Optional[InboundMessage]:
    """
    Normalize a Telegram update.

    Text comes from the message body, or from the caption for media messages.

    Returns:
        The InboundMessage, or None if the update carries no message.
    """
    message = update.effective_message
    chat = update.effective_chat
    if message is None or chat is None:
        return None
    user = update.effective_user
    from_me = bool(user and bot_id is not None and user.id == bot_id)
    return InboundMessage(
        chat_id=str(chat.id),
        msg_id=str(message.message_id),
        from_me=from_me,
        text=message.text or message.caption or "",
        timestamp=message.date,
    )


async def handle_text_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle any plain text message (not a slash command).
    Queues it for its chat; the reply is sent by the orchestrator.
    """
    inbound = to_inbound(update, context.bot.id)
    if inbound is None:
        return
    dispatcher = context.bot_data[DISPATCHER_KEY]
    dispatcher.submit(inbound)
    logger.debug(f"Queued message {inbound.chat_id}/{inbound.msg_id}")
