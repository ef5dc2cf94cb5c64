"""
models/expression.py
--------------------
Result of resolving a user's arithmetic text.
"""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ResolvedExpression:
    """
    Attributes:
        expression: The exact string that was evaluated (echoed in the reply).
        value: The evaluated result, added to the running total.
        continuation: True when the running total was prepended.
    """
    expression: str
    value: Decimal
    continuation: bool = False
