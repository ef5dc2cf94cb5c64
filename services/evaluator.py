"""
services/evaluator.py
---------------------
Grammar-restricted arithmetic evaluator.

Only numeric literals, unary/binary ``+ - * /`` and parentheses are
understood. Anything else is a parse error; nothing is ever executed.

Grammar (standard precedence, left-associative):
    expr    := term (('+' | '-') term)*
    term    := unary (('*' | '/') unary)*
    unary   := ('+' | '-')* primary
    primary := NUMBER | '(' expr ')'

All arithmetic is done with ``decimal.Decimal`` in a bounded context, so
``0.1 + 0.2`` is exactly ``0.3`` and huge intermediate values raise instead
of silently turning into infinity.
"""

import re
from decimal import Context, Decimal, DecimalException, DivisionByZero, InvalidOperation, Overflow

from utils.errors import EvaluationError

MAX_DEPTH = 50
MAX_MAGNITUDE = Decimal("1e15")

_TOKEN_RE = re.compile(r"\s*(?:(?P<number>\d+(?:\.\d*)?|\.\d+)|(?P<op>[-+*/()]))")
_CONTEXT = Context(prec=34, Emax=999, Emin=-999, traps=[DivisionByZero, InvalidOperation, Overflow])


def tokenize(text: str) -> list[str]:
    """
    Split an expression into number and operator tokens.

    Raises:
        EvaluationError: On any character outside the grammar.
    """
    tokens = []
    pos = 0
    end = len(text.rstrip())
    while pos < end:
        match = _TOKEN_RE.match(text, pos)
        if not match:
            raise EvaluationError(f"Unexpected character {text[pos:].lstrip()[:1]!r}")
        tokens.append(match.group("number") or match.group("op"))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser that evaluates while it parses."""

    def __init__(self, tokens: list[str]):
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    def peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> str:
        token = self.peek()
        if token is None:
            raise EvaluationError("Unexpected end of expression")
        self.pos += 1
        return token

    def parse(self) -> Decimal:
        if not self.tokens:
            raise EvaluationError("Empty expression")
        value = self.expr()
        if self.peek() is not None:
            raise EvaluationError(f"Unexpected token {self.peek()!r}")
        return value

    def expr(self) -> Decimal:
        value = self.term()
        while self.peek() in ("+", "-"):
            if self.take() == "+":
                value = _CONTEXT.add(value, self.term())
            else:
                value = _CONTEXT.subtract(value, self.term())
        return value

    def term(self) -> Decimal:
        value = self.unary()
        while self.peek() in ("*", "/"):
            if self.take() == "*":
                value = _CONTEXT.multiply(value, self.unary())
            else:
                value = _CONTEXT.divide(value, self.unary())
        return value

    def unary(self) -> Decimal:
        negative = False
        while self.peek() in ("+", "-"):
            if self.take() == "-":
                negative = not negative
        value = self.primary()
        return _CONTEXT.minus(value) if negative else value

    def primary(self) -> Decimal:
        token = self.take()
        if token == "(":
            self.depth += 1
            if self.depth > MAX_DEPTH:
                raise EvaluationError("Too many nested parentheses")
            value = self.expr()
            if self.take() != ")":
                raise EvaluationError("Missing closing parenthesis")
            self.depth -= 1
            return value
        if token in ("+", "-", "*", "/", ")"):
            raise EvaluationError(f"Unexpected operator {token!r}")
        return Decimal(token)


def evaluate(expression: str) -> Decimal:
    """
    Evaluate an arithmetic expression.

    Args:
        expression: e.g. ``"12.5 * (3 - 1) / 4"``.

    Returns:
        The exact Decimal result (not yet rounded to display precision).

    Raises:
        EvaluationError: Parse errors, division by zero, overflow or a
            result whose magnitude is out of range.
    """
    try:
        result = _Parser(tokenize(expression)).parse()
    except ZeroDivisionError:
        raise EvaluationError("Division by zero") from None
    except Overflow:
        raise EvaluationError("Result out of range") from None
    except (InvalidOperation, DecimalException) as e:
        raise EvaluationError(f"Invalid arithmetic: {e!r}") from None

    if not result.is_finite() or abs(result) >= MAX_MAGNITUDE:
        raise EvaluationError("Result out of range")
    # -0 is just 0
    return result + 0 if result.is_zero() else result
