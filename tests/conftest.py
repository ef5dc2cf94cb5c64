"""
Shared fixtures for BotTally tests.

No database or Telegram connection is needed: the orchestrator runs on the
in-memory stores and a recording reply sender.
"""

import pytest

from models.message import InboundMessage
from repositories.memory import InMemoryDedupStore, InMemoryLedgerStore
from services.expression_resolver import ExpressionResolver
from services.formatter import AmountFormatter
from services.orchestrator import ConversationOrchestrator
from utils.errors import TransportError


class RecordingSender:
    """Reply sender that records replies and can be told to fail."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []
        self.failures = 0

    async def send_reply(self, chat_id, text, quoted_msg_id=None):
        if self.failures:
            self.failures -= 1
            raise TransportError("transport down")
        self.sent.append((chat_id, text, quoted_msg_id))

    @property
    def texts(self) -> list[str]:
        return [text for _, text, _ in self.sent]


@pytest.fixture
def formatter():
    return AmountFormatter()


@pytest.fixture
def resolver(formatter):
    return ExpressionResolver(formatter)


@pytest.fixture
def ledger():
    return InMemoryLedgerStore()


@pytest.fixture
def dedup():
    return InMemoryDedupStore()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def make_orchestrator(ledger, dedup, sender, resolver, formatter):
    """Factory so tests can override single collaborators or options."""
    def _make(**overrides):
        kwargs = dict(
            ledger=ledger,
            dedup=dedup,
            sender=sender,
            resolver=resolver,
            formatter=formatter,
        )
        kwargs.update(overrides)
        return ConversationOrchestrator(**kwargs)
    return _make


@pytest.fixture
def message():
    """Factory for inbound messages on chat-1."""
    counter = iter(range(1, 10_000))

    def _message(text, msg_id=None, chat_id="chat-1", from_me=False):
        return InboundMessage(
            chat_id=chat_id,
            msg_id=msg_id or str(next(counter)),
            from_me=from_me,
            text=text,
        )
    return _message
