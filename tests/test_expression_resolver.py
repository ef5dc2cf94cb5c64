"""Tests for expression validation and continuation resolution."""

from decimal import Decimal

import pytest

from services.expression_resolver import ExpressionResolver
from utils.errors import EvaluationError, ValidationError


class TestValidate:

    def test_returns_trimmed_text(self, resolver):
        assert resolver.validate("  12 + 3  ") == "12 + 3"

    @pytest.mark.parametrize("text, reason", [
        ("", "empty"),
        ("   ", "empty"),
        ("1+1\n2+2", "multi-line"),
        ("1\r+2", "multi-line"),
        ("1\u2028+2", "multi-line"),
        ("1\x0b+2", "multi-line"),
        ("1\x85+2", "multi-line"),
        ("1\xa0+ 2", "disallowed characters"),
        ("hello", "no arithmetic operator"),
        ("42", "no arithmetic operator"),
        ("1 + a", "disallowed characters"),
        ("2 + 3^2", "disallowed characters"),
        ("5 + 5 =", "disallowed characters"),
    ])
    def test_rejections(self, resolver, text, reason):
        with pytest.raises(ValidationError, match=reason):
            resolver.validate(text)

    def test_length_limit(self, formatter):
        resolver = ExpressionResolver(formatter, max_length=10)
        assert resolver.is_arithmetic("1+2+3+4+5")
        with pytest.raises(ValidationError, match="too long"):
            resolver.validate("1+2+3+4+5+6")

    def test_tabs_and_spaces_are_allowed(self, resolver):
        assert resolver.validate("1\t+  2") == "1\t+  2"

    def test_is_arithmetic(self, resolver):
        assert resolver.is_arithmetic("1 + 1")
        assert not resolver.is_arithmetic("total")


class TestContinuation:

    @pytest.mark.parametrize("expression, expected", [
        ("+5", True), ("- 20", True), ("*2", True), ("/4", True),
        ("5+", False), ("(1+2)", False), ("12 * 3", False),
    ])
    def test_is_continuation(self, resolver, expression, expected):
        assert resolver.is_continuation(expression) is expected

    def test_leading_whitespace_is_ignored(self, resolver):
        resolved = resolver.resolve("   + 5", Decimal("10"))
        assert resolved.continuation
        assert resolved.expression == "10.00+ 5"

    def test_prepends_running_total(self, resolver):
        resolved = resolver.resolve("+ 50", Decimal("100"))
        assert resolved.expression == "100.00+ 50"
        assert resolved.value == Decimal("150")
        assert resolved.continuation is True

    def test_negative_running_total(self, resolver):
        resolved = resolver.resolve("-5", Decimal("-10"))
        assert resolved.expression == "-10.00-5"
        assert resolved.value == Decimal("-15")

    def test_no_previous_total(self, resolver):
        with pytest.raises(ValidationError, match="no previous total"):
            resolver.resolve("*2", None)

    def test_standalone_ignores_total(self, resolver):
        resolved = resolver.resolve("12 * 3", Decimal("100"))
        assert resolved.expression == "12 * 3"
        assert resolved.value == Decimal("36")
        assert resolved.continuation is False

    def test_unterminated_expression_fails_evaluation(self, resolver):
        with pytest.raises(EvaluationError):
            resolver.resolve("1 + ")
