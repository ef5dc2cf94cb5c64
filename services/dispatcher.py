"""
services/dispatcher.py
----------------------
Per-chat work queues in front of the orchestrator.

Messages of one chat are handled strictly one after another, in arrival
order, by a single worker task. Different chats get different workers and
run concurrently. A worker exits as soon as its queue is empty; the next
message for that chat starts a fresh one.
"""

import asyncio
from typing import Awaitable, Callable

from models.message import InboundMessage
from utils.logger import get_logger

logger = get_logger(__name__)

Handler = Callable[[InboundMessage], Awaitable[object]]


class ChatDispatcher:
    """
    Routes inbound messages to one worker per chat_id.

    Args:
        handler: Coroutine function called once per message, usually
            ``ConversationOrchestrator.handle``.
    """

    def __init__(self, handler: Handler):
        self.handler = handler
        self._queues: dict[str, asyncio.Queue] = {}
        self._workers: dict[str, asyncio.Task] = {}
        self._closed = False

    @property
    def active_chats(self) -> int:
        return len(self._workers)

    def submit(self, message: InboundMessage) -> None:
        """
        Enqueue a message for its chat. Must be called from the event loop.

        Raises:
            RuntimeError: If the dispatcher has been closed.
        """
        if self._closed:
            raise RuntimeError("Dispatcher is closed.")
        chat_id = message.chat_id
        queue = self._queues.get(chat_id)
        if queue is None:
            queue = self._queues[chat_id] = asyncio.Queue()
        queue.put_nowait(message)
        if chat_id not in self._workers:
            self._workers[chat_id] = asyncio.create_task(
                self._work(chat_id, queue), name=f"chat-{chat_id}"
            )

    async def _work(self, chat_id: str, queue: asyncio.Queue) -> None:
        try:
            while not queue.empty():
                message = queue.get_nowait()
                try:
                    await self.handler(message)
                except Exception:
                    logger.exception(f"Unhandled error for message {chat_id}/{message.msg_id}")
                finally:
                    queue.task_done()
        finally:
            # no await between the empty check and the cleanup, so submit()
            # can never enqueue onto a queue whose worker already left
            self._workers.pop(chat_id, None)
            if queue.empty():
                self._queues.pop(chat_id, None)

    async def drain(self) -> None:
        """Wait until every queued message has been handled."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)

    async def close(self, timeout: float = 10.0) -> None:
        """Stop accepting messages, finish in-flight work, cancel what is left after ``timeout``."""
        self._closed = True
        try:
            await asyncio.wait_for(self.drain(), timeout)
        except asyncio.TimeoutError:
            pending = list(self._workers.values())
            logger.warning(f"Cancelling {len(pending)} chat workers still busy at shutdown")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
