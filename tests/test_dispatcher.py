"""Tests for per-chat work queues."""

import asyncio
from decimal import Decimal

import pytest

from models.message import InboundMessage, Outcome
from services.dispatcher import ChatDispatcher


def _msg(chat_id, msg_id, text="1+1"):
    return InboundMessage(chat_id=chat_id, msg_id=str(msg_id), text=text)


class TestChatDispatcher:

    def test_preserves_order_within_a_chat(self):
        seen = []

        async def handler(message):
            await asyncio.sleep(0)
            seen.append((message.chat_id, message.msg_id))

        async def scenario():
            dispatcher = ChatDispatcher(handler)
            for i in range(10):
                dispatcher.submit(_msg("a", i))
                dispatcher.submit(_msg("b", i))
            await dispatcher.drain()
            return dispatcher

        dispatcher = asyncio.run(scenario())
        assert [m for c, m in seen if c == "a"] == [str(i) for i in range(10)]
        assert [m for c, m in seen if c == "b"] == [str(i) for i in range(10)]
        assert dispatcher.active_chats == 0

    def test_one_message_at_a_time_per_chat(self):
        running = {"a": 0}
        peak = {"a": 0}

        async def handler(message):
            running["a"] += 1
            peak["a"] = max(peak["a"], running["a"])
            await asyncio.sleep(0.001)
            running["a"] -= 1

        async def scenario():
            dispatcher = ChatDispatcher(handler)
            for i in range(20):
                dispatcher.submit(_msg("a", i))
            await dispatcher.drain()

        asyncio.run(scenario())
        assert peak["a"] == 1

    def test_different_chats_run_in_parallel(self):
        async def scenario():
            b_started = asyncio.Event()

            async def handler(message):
                if message.chat_id == "a":
                    # only finishes if chat b is processed concurrently
                    await asyncio.wait_for(b_started.wait(), timeout=1)
                else:
                    b_started.set()

            dispatcher = ChatDispatcher(handler)
            dispatcher.submit(_msg("a", 1))
            dispatcher.submit(_msg("b", 1))
            await dispatcher.drain()

        asyncio.run(scenario())

    def test_handler_error_does_not_stop_the_chat(self):
        handled = []

        async def handler(message):
            if message.msg_id == "1":
                raise RuntimeError("boom")
            handled.append(message.msg_id)

        async def scenario():
            dispatcher = ChatDispatcher(handler)
            for i in range(3):
                dispatcher.submit(_msg("a", i))
            await dispatcher.drain()

        asyncio.run(scenario())
        assert handled == ["0", "2"]

    def test_closed_dispatcher_rejects_messages(self):
        async def handler(message):
            return None

        async def scenario():
            dispatcher = ChatDispatcher(handler)
            await dispatcher.close()
            with pytest.raises(RuntimeError):
                dispatcher.submit(_msg("a", 1))

        asyncio.run(scenario())

    def test_close_cancels_stuck_workers(self):
        async def handler(message):
            await asyncio.sleep(10)

        async def scenario():
            dispatcher = ChatDispatcher(handler)
            dispatcher.submit(_msg("a", 1))
            await dispatcher.close(timeout=0.05)
            return dispatcher

        assert asyncio.run(scenario()).active_chats == 0

    def test_continuations_through_orchestrator_are_serialized(self, make_orchestrator, ledger):
        """Back-to-back continuations each see the total left by the previous one."""
        orchestrator = make_orchestrator()
        ledger.set("chat-1", Decimal("1"))
        outcomes = []

        async def handler(message):
            outcomes.append(await orchestrator.handle(message))

        async def scenario():
            dispatcher = ChatDispatcher(handler)
            for i in range(5):
                dispatcher.submit(_msg("chat-1", i, text="+0"))
            await dispatcher.drain()

        asyncio.run(scenario())
        # each "+0" evaluates to T and doubles the total: 1 -> 2 -> 4 -> 8 -> 16 -> 32
        assert ledger.get("chat-1") == Decimal("32.00")
        assert outcomes == [Outcome.ARITHMETIC] * 5

    def test_many_chats_many_messages(self, make_orchestrator, ledger):
        orchestrator = make_orchestrator()

        async def scenario():
            dispatcher = ChatDispatcher(orchestrator.handle)
            for chat in ("x", "y", "z"):
                for i in range(10):
                    dispatcher.submit(_msg(chat, i, text="2 * 1.5"))
            await dispatcher.drain()

        asyncio.run(scenario())
        for chat in ("x", "y", "z"):
            assert ledger.get(chat) == Decimal("30.00")
