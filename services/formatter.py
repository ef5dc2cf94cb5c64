"""
services/formatter.py
---------------------
Renders ledger amounts for chat replies.

South-Asian grouping puts the first three digits from the right in one
group and every further group to the left has two digits:
    1234567.5  ->  12,34,567.50
The ``thousands`` scheme groups by three throughout (1,234,567.50).
"""

from decimal import Decimal, ROUND_HALF_UP

SOUTH_ASIAN = "south_asian"
THOUSANDS = "thousands"


def group_digits(digits: str, scheme: str = SOUTH_ASIAN, separator: str = ",") -> str:
    """
    Insert group separators into a string of integer digits.

    Args:
        digits: Unsigned integer part, e.g. ``"1234567"``.
        scheme: ``"south_asian"`` or ``"thousands"``.
        separator: Character placed between groups.
    """
    if len(digits) <= 3:
        return digits
    head, groups = digits[:-3], [digits[-3:]]
    size = 2 if scheme == SOUTH_ASIAN else 3
    while head:
        groups.insert(0, head[-size:])
        head = head[:-size]
    return separator.join(groups)


class AmountFormatter:
    """
    Fixed-precision, grouped number formatting with an optional sign label.

    Rounding is half-away-from-zero (``ROUND_HALF_UP`` in decimal terms)
    at the configured number of places.
    """

    def __init__(
        self,
        precision: int = 2,
        grouping: str = SOUTH_ASIAN,
        negative_sign: str = "−",
        show_labels: bool = False,
        positive_label: str = "dues",
        negative_label: str = "advance",
    ):
        if grouping not in (SOUTH_ASIAN, THOUSANDS):
            raise ValueError(f"Unknown grouping scheme: {grouping}")
        self.precision = precision
        self.grouping = grouping
        self.negative_sign = negative_sign
        self.show_labels = show_labels
        self.positive_label = positive_label
        self.negative_label = negative_label
        self._quantum = Decimal(1).scaleb(-precision)

    def quantize(self, value) -> Decimal:
        """Round to the configured precision, normalizing -0 to 0."""
        rounded = Decimal(value).quantize(self._quantum, rounding=ROUND_HALF_UP)
        return abs(rounded) if rounded.is_zero() else rounded

    def plain(self, value) -> str:
        """ASCII form without grouping, safe to splice into an expression."""
        return f"{self.quantize(value):f}"

    def label(self, value) -> str | None:
        """Semantic label keyed purely off the sign of the rounded value."""
        rounded = self.quantize(value)
        if rounded < 0:
            return self.negative_label
        if rounded > 0:
            return self.positive_label
        return None

    def format(self, value) -> str:
        """
        Format a value for display.

        Examples (precision 2, South-Asian grouping):
            1234567.5 -> "12,34,567.50"
            -5        -> "−5.00"  (or "−5.00 (advance)" with labels on)
        """
        rounded = self.quantize(value)
        int_part, _, dec_part = f"{abs(rounded):f}".partition(".")
        text = group_digits(int_part, self.grouping)
        if self.precision > 0:
            text += "." + dec_part
        if rounded < 0:
            text = self.negative_sign + text
        if self.show_labels:
            label = self.label(rounded)
            if label:
                text += f" ({label})"
        return text
