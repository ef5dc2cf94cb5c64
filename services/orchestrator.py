"""
services/orchestrator.py
------------------------
Per-message state machine for the running-total bot.

    RECEIVED -> SKIPPED | DUPLICATE | COMMAND | ARITHMETIC | INVALID

Every branch except SKIPPED and DUPLICATE ends by marking the message as
processed, and marking always happens *after* the reply went out. A
transient store or transport failure leaves the message unmarked so that a
redelivered copy is retried.

A ledger write that outlives the store timeout is never abandoned: its
thread keeps running and the message stays "in doubt" until it finishes.
Only a write known to have failed is retried; one that committed is
finished off with its reply instead of being applied again.

The orchestrator does not serialize messages of the same chat by itself:
a continuation reads the total and then adds to it, so callers must feed
one chat's messages in order (see services/dispatcher.py).
"""

import asyncio
from collections import OrderedDict
from decimal import Decimal
from typing import Callable, Optional

from models.message import InboundMessage, Outcome
from services.command_parser import Command, CommandParser
from services.expression_resolver import ExpressionResolver
from services.formatter import AmountFormatter
from utils.errors import ExpressionError, StoreError, TransportError
from utils.logger import get_logger

logger = get_logger(__name__)

GENERIC_INVALID_REPLY = "Sorry, I couldn't evaluate that."
INVALID_NUMBER_REPLY = "Could not understand that number."

Compose = Callable[[Decimal], tuple[str, Outcome]]


class ConversationOrchestrator:
    """
    Drives one inbound message to its terminal outcome.

    Args:
        ledger: Ledger store (get / set / add / reset). Synchronous.
        dedup: Dedup store (has_processed / mark_processed). Synchronous.
        sender: Object with ``async send_reply(chat_id, text, quoted_msg_id)``
            that raises ``TransportError`` on failure.
        resolver: Expression resolver.
        formatter: Amount formatter used for every number in a reply.
        commands: Command parser (defaults to total / reset / set).
        invalid_reply: Reply with an apology to invalid input instead of
            dropping it silently.
        store_timeout: Upper bound in seconds for any single store call.
        pending_limit: How many undelivered replies to remember.
    """

    def __init__(
        self,
        ledger,
        dedup,
        sender,
        resolver: ExpressionResolver,
        formatter: AmountFormatter,
        commands: Optional[CommandParser] = None,
        invalid_reply: bool = False,
        store_timeout: float = 5.0,
        pending_limit: int = 1000,
    ):
        self.ledger = ledger
        self.dedup = dedup
        self.sender = sender
        self.resolver = resolver
        self.formatter = formatter
        self.commands = commands or CommandParser()
        self.invalid_reply = invalid_reply
        self.store_timeout = store_timeout
        self.pending_limit = pending_limit
        # (chat_id, msg_id) -> (reply still to send or None, outcome)
        self._pending: OrderedDict[tuple[str, str], tuple[Optional[str], Outcome]] = OrderedDict()
        # (chat_id, msg_id) -> (timed-out ledger write, builds the reply from its total)
        self._in_doubt: OrderedDict[tuple[str, str], tuple[asyncio.Future, Compose]] = OrderedDict()

        if not getattr(dedup, "durable", True):
            logger.warning(
                "Using in-memory dedup store: duplicates are only detected "
                "within this process lifetime."
            )

    # ── Entry point ───────────────────────────────────────

    async def handle(self, message: InboundMessage) -> Outcome:
        """
        Process one inbound message.

        Returns:
            The terminal outcome. ``Outcome.FAILED`` means a transient
            failure; the message was not marked and may be redelivered.
        """
        if not self._is_actionable(message):
            return Outcome.SKIPPED

        try:
            await self._settle_in_doubt(message.chat_id)
            if message.key in self._in_doubt:
                return await self._settle(message)
            if message.key in self._pending:
                return await self._resume(message)
            if await self._store(self.dedup.has_processed, message.chat_id, message.msg_id):
                logger.debug(f"Duplicate message {message.chat_id}/{message.msg_id} dropped")
                return Outcome.DUPLICATE
            return await self._dispatch(message)
        except StoreError as e:
            logger.warning(f"Store unavailable for {message.chat_id}/{message.msg_id}, left for retry: {e}")
        except TransportError as e:
            logger.warning(f"Reply to {message.chat_id}/{message.msg_id} failed, left for retry: {e}")
        return Outcome.FAILED

    @staticmethod
    def _is_actionable(message: InboundMessage) -> bool:
        if message.from_me:
            return False
        if not message.chat_id or not message.msg_id:
            logger.debug("Skipping message without chat or message id")
            return False
        return bool((message.text or "").strip())

    async def _dispatch(self, message: InboundMessage) -> Outcome:
        text = message.text.strip()

        command = self.commands.parse(text)
        if command is not None:
            return await self._run_command(message, command)

        try:
            expression = self.resolver.validate(text)
            current = None
            if self.resolver.is_continuation(expression):
                current = await self._store(self.ledger.get, message.chat_id)
            resolved = self.resolver.resolve(expression, current)
        except ExpressionError as e:
            return await self._reject(message, str(e))

        def compose(total: Decimal) -> tuple[str, Outcome]:
            logger.info(f"Chat {message.chat_id}: {resolved.expression} = {resolved.value}, total {total}")
            reply = (
                f"{resolved.expression} = {self.formatter.format(resolved.value)}\n"
                f"Running total: {self.formatter.format(total)}"
            )
            return reply, Outcome.ARITHMETIC

        return await self._apply(message, compose, self.ledger.add, message.chat_id, resolved.value)

    # ── Commands ──────────────────────────────────────────

    async def _run_command(self, message: InboundMessage, command: Command) -> Outcome:
        chat_id = message.chat_id

        if command.name == "total":
            total = await self._store(self.ledger.get, chat_id)
            logger.info(f"Chat {chat_id}: command 'total' handled")
            reply = f"Total: {self.formatter.format(total if total is not None else Decimal(0))}"
            return await self._finish(message, reply, Outcome.COMMAND)
        if command.name == "reset":
            return await self._apply(
                message, self._confirm(chat_id, "reset", "Total reset to"), self.ledger.reset, chat_id
            )
        if command.value is None:
            return await self._reject(message, f"bad number {command.argument!r}", INVALID_NUMBER_REPLY)
        return await self._apply(
            message, self._confirm(chat_id, "set", "Total set to"), self.ledger.set, chat_id, command.value
        )

    def _confirm(self, chat_id: str, name: str, prefix: str) -> Compose:
        def compose(total: Decimal) -> tuple[str, Outcome]:
            logger.info(f"Chat {chat_id}: command '{name}' handled")
            return f"{prefix} {self.formatter.format(total)}", Outcome.COMMAND
        return compose

    async def _reject(self, message: InboundMessage, reason: str, reply: str = GENERIC_INVALID_REPLY) -> Outcome:
        logger.info(f"Rejected {message.chat_id}/{message.msg_id}: {reason}")
        return await self._finish(message, reply if self.invalid_reply else None, Outcome.INVALID)

    # ── Terminal step ─────────────────────────────────────

    async def _finish(self, message: InboundMessage, reply: Optional[str], outcome: Outcome) -> Outcome:
        """
        Send the reply (if any), then mark the message processed.

        Until the mark is written the reply is remembered, so a redelivery
        after a failed send or mark repeats only what is missing and never
        mutates the ledger a second time.
        """
        self._remember(message.key, reply, outcome)
        if reply is not None:
            await self.sender.send_reply(message.chat_id, reply, message.msg_id)
            self._pending[message.key] = (None, outcome)
        await self._store(self.dedup.mark_processed, message.chat_id, message.msg_id)
        self._pending.pop(message.key, None)
        return outcome

    async def _resume(self, message: InboundMessage) -> Outcome:
        reply, outcome = self._pending[message.key]
        logger.info(f"Resuming unfinished message {message.chat_id}/{message.msg_id}")
        return await self._finish(message, reply, outcome)

    def _remember(self, key: tuple[str, str], reply: Optional[str], outcome: Outcome) -> None:
        self._pending[key] = (reply, outcome)
        self._pending.move_to_end(key)
        while len(self._pending) > self.pending_limit:
            dropped, _ = self._pending.popitem(last=False)
            logger.warning(f"Forgetting unfinished message {dropped[0]}/{dropped[1]}")

    async def _store(self, fn, *args):
        """Run a synchronous read or mark off the event loop with a bounded timeout."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), self.store_timeout)
        except asyncio.TimeoutError:
            raise StoreError(f"{getattr(fn, '__name__', fn)} timed out after {self.store_timeout}s") from None

    # ── Ledger writes ─────────────────────────────────────

    async def _apply(self, message: InboundMessage, compose: Compose, fn, *args) -> Outcome:
        """
        Run a ledger write, then finish the message with the reply built from its total.

        On timeout the write keeps running (it is shielded, never cancelled)
        and the message is parked in ``_in_doubt`` until the write is over.
        """
        future = asyncio.get_running_loop().run_in_executor(None, fn, *args)
        try:
            total = await asyncio.wait_for(asyncio.shield(future), self.store_timeout)
        except asyncio.TimeoutError:
            self._in_doubt[message.key] = (future, compose)
            while len(self._in_doubt) > self.pending_limit:
                dropped, _ = self._in_doubt.popitem(last=False)
                logger.warning(f"Forgetting in-doubt message {dropped[0]}/{dropped[1]}")
            raise StoreError(f"{getattr(fn, '__name__', fn)} timed out after {self.store_timeout}s") from None
        return await self._finish(message, *compose(total))

    async def _settle_in_doubt(self, chat_id: str) -> None:
        """
        Wait for this chat's timed-out writes before touching its ledger again.

        Raises:
            StoreError: If one of them is still running after the store timeout.
        """
        running = [
            future for (chat, _), (future, _) in self._in_doubt.items()
            if chat == chat_id and not future.done()
        ]
        if not running:
            return
        _, still_running = await asyncio.wait(running, timeout=self.store_timeout)
        if still_running:
            raise StoreError(f"an earlier ledger write for chat {chat_id} is still running")

    async def _settle(self, message: InboundMessage) -> Outcome:
        """Finish a redelivered message whose ledger write has completed after a timeout."""
        future, compose = self._in_doubt.pop(message.key)
        if future.cancelled() or future.exception() is not None:
            # the write raised, so its transaction was rolled back
            logger.info(f"Earlier write for {message.chat_id}/{message.msg_id} failed, retrying")
            return await self._dispatch(message)
        logger.info(f"Earlier write for {message.chat_id}/{message.msg_id} committed late, replying")
        return await self._finish(message, *compose(future.result()))
