"""
models/message.py
-----------------
Normalized inbound chat message and the terminal outcome of handling it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


@dataclass(frozen=True)
class InboundMessage:
    """
    A transport-independent view of one inbound chat message.

    Attributes:
        chat_id: Opaque conversation identifier. Owns one ledger total.
        msg_id: Transport message identifier, unique within the chat.
        from_me: True when the bot itself sent the message.
        text: Extracted text (empty when the message carries none).
        timestamp: When the transport says the message was sent.
    """
    chat_id: str
    msg_id: str
    from_me: bool = False
    text: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> tuple[str, str]:
        """Identity used for deduplication."""
        return self.chat_id, self.msg_id


class Outcome(str, Enum):
    """Where a message ended up after passing through the orchestrator."""
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"
    COMMAND = "command"
    ARITHMETIC = "arithmetic"
    INVALID = "invalid"
    FAILED = "failed"  # transient failure, left unmarked for redelivery
