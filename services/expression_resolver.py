"""
services/expression_resolver.py
-------------------------------
Turns raw chat text into an evaluated arithmetic expression.

Rules, applied to the trimmed text:
    1. A single line only.
    2. At least one of ``+ - * /``.
    3. Only digits, ``.``, spaces or tabs, parentheses and ``+ - * /``.
    4. A leading operator makes it a continuation of the running total,
       which is prepended before evaluation.
    5. Anything else is evaluated on its own.
"""

import re
from decimal import Decimal
from typing import Optional

from models.expression import ResolvedExpression
from services.evaluator import evaluate
from services.formatter import AmountFormatter
from utils.errors import ValidationError

_OPERATOR_RE = re.compile(r"[-+*/]")
_ALLOWED_RE = re.compile(r"^[0-9. \t()+\-*/]+$")


class ExpressionResolver:
    """Validates, resolves and evaluates continuation arithmetic."""

    def __init__(self, formatter: AmountFormatter, max_length: int = 200):
        self.formatter = formatter
        self.max_length = max_length

    def validate(self, text: str) -> str:
        """
        Check raw text against the arithmetic rules.

        Returns:
            The trimmed expression text.

        Raises:
            ValidationError: With a short reason when a rule fails.
        """
        trimmed = (text or "").strip()
        if not trimmed:
            raise ValidationError("empty expression")
        if len(trimmed.splitlines()) > 1:
            raise ValidationError("multi-line input")
        if len(trimmed) > self.max_length:
            raise ValidationError("expression too long")
        if not _OPERATOR_RE.search(trimmed):
            raise ValidationError("no arithmetic operator")
        if not _ALLOWED_RE.match(trimmed):
            raise ValidationError("disallowed characters")
        return trimmed

    def is_arithmetic(self, text: str) -> bool:
        """True if ``text`` passes validation (it may still fail to evaluate)."""
        try:
            self.validate(text)
        except ValidationError:
            return False
        return True

    @staticmethod
    def is_continuation(expression: str) -> bool:
        """A validated expression that starts with an operator."""
        return bool(expression) and expression[0] in "+-*/"

    def build(self, expression: str, current_total: Optional[Decimal]) -> str:
        """
        Produce the full expression to evaluate.

        Raises:
            ValidationError: Continuation with no running total yet.
        """
        if not self.is_continuation(expression):
            return expression
        if current_total is None:
            raise ValidationError("no previous total")
        return f"{self.formatter.plain(current_total)}{expression}"

    def resolve(self, text: str, current_total: Optional[Decimal] = None) -> ResolvedExpression:
        """
        Validate, expand and evaluate ``text``.

        Args:
            text: Raw message text, e.g. ``"+ 250"`` or ``"12 * 3"``.
            current_total: The conversation's running total, or None if unset.
                Only consulted for continuations.

        Raises:
            ValidationError: Text is not acceptable arithmetic.
            EvaluationError: Text could not be evaluated.
        """
        expression = self.validate(text)
        full = self.build(expression, current_total)
        return ResolvedExpression(
            expression=full,
            value=evaluate(full),
            continuation=self.is_continuation(expression),
        )
