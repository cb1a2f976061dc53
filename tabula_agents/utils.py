"""
Utility functions for tabula-agents.
"""

import math
import re
from typing import Any, Optional, Union

Number = Union[int, float]

_DECIMAL_RE = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$')
_COLUMN_LETTERS_RE = re.compile(r'^[A-Z]+$')


def is_missing(value: Any) -> bool:
    """True for None and blank strings."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ''


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a cell value as a decimal number.

    Numbers pass through, strings must parse *fully* ("12.5", "-3", "1e3"
    but not "12abc" or "nan"). Booleans and missing values are never numeric.

    Returns:
        The float value, or None if the value is not numeric.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if _DECIMAL_RE.match(text):
            return float(text)
    return None


def to_number_or_zero(value: Any) -> float:
    """Numeric coercion used for sorting: anything non-numeric counts as 0."""
    parsed = parse_number(value)
    return parsed if parsed is not None else 0.0


def tidy_number(value: float) -> Number:
    """Return an int for integral floats so 3.0 displays as 3."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def format_fixed(value: float, decimals: int = 2) -> str:
    """Fixed-point string, e.g. format_fixed(2.5) -> '2.50'."""
    return f"{value:.{decimals}f}"


def column_letter_to_index(letters: str) -> int:
    """
    Convert spreadsheet column letters to a 0-based index.

    Base-26 with no zero digit: A -> 0, Z -> 25, AA -> 26, AZ -> 51, BA -> 52.
    """
    letters = letters.upper()
    if not _COLUMN_LETTERS_RE.match(letters):
        raise ValueError(f"Invalid column letters: {letters!r}")
    result = 0
    for ch in letters:
        result = result * 26 + (ord(ch) - ord('A') + 1)
    return result - 1


def column_index_to_letter(index: int) -> str:
    """Inverse of column_letter_to_index: 0 -> 'A', 26 -> 'AA'."""
    if index < 0:
        raise ValueError(f"Column index must be >= 0, got {index}")
    letters = ''
    n = index + 1
    while n > 0:
        n, remainder = divmod(n - 1, 26)
        letters = chr(ord('A') + remainder) + letters
    return letters
