"""
services/command_parser.py
--------------------------
Recognizes the plain-text ledger commands: ``total``, ``reset`` and
``set <number>``. Tokens are configurable and matched case-insensitively.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from services.evaluator import MAX_MAGNITUDE


@dataclass(frozen=True)
class Command:
    """
    A parsed command.

    Attributes:
        name: ``"total"``, ``"reset"`` or ``"set"``.
        argument: Raw argument text for ``set`` (may be unparseable).
        value: Parsed number for ``set``, None when the argument is not a
            finite number.
    """
    name: str
    argument: str = ""
    value: Optional[Decimal] = None


class CommandParser:
    """Matches trimmed message text against the configured command tokens."""

    def __init__(self, total_token: str = "total", reset_token: str = "reset", set_token: str = "set"):
        self.total_token = total_token.lower()
        self.reset_token = reset_token.lower()
        self.set_token = set_token.lower()

    def parse(self, text: str) -> Optional[Command]:
        lower = (text or "").strip().lower()
        if lower == self.total_token:
            return Command("total")
        if lower == self.reset_token:
            return Command("reset")

        parts = lower.split(None, 1)
        if len(parts) == 2 and parts[0] == self.set_token:
            argument = parts[1].strip()
            return Command("set", argument=argument, value=parse_number(argument))
        return None


def parse_number(text: str) -> Optional[Decimal]:
    """Parse a finite decimal number such as ``"42.5"`` or ``"-1,200"``."""
    try:
        value = Decimal(text.replace(",", "").replace("−", "-"))
    except InvalidOperation:
        return None
    if not value.is_finite() or abs(value) >= MAX_MAGNITUDE:
        return None
    return value
