"""Number parsing and formatting for Lox values."""

from __future__ import annotations

import math
import re
from decimal import Decimal

_NUMBER_RE = re.compile(
    r"[+-]?(?:inf|infinity|nan|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)",
    re.IGNORECASE,
)


def parse_number(text: str) -> float:
    """Parse a numeric literal, raising ValueError when it is malformed."""
    if not _NUMBER_RE.fullmatch(text):
        raise ValueError(f"invalid number literal: {text!r}")
    return float(text)


def format_plain(value: float) -> str:
    """Format a float as the shortest round-tripping decimal, never in exponent form."""
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_number(value: float) -> str:
    """Format a float like format_plain, adding ".0" to integral values."""
    value = float(value)
    text = format_plain(value)
    if value.is_integer():
        return text + ".0"
    return text