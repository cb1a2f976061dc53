"""
FieldResolver - maps free-text fragments of a prompt to concrete column names.
"""

import re
from typing import Iterable, List, Optional, Sequence

from .table import InvalidInput

# Keyword dictionaries for domain concepts
NUMERIC_KEYWORDS = ['price', 'cost', 'amount', 'value', 'revenue', 'sales', 'quantity', 'score', 'rating']
FINANCIAL_KEYWORDS = ['revenue', 'sales', 'income', 'price', 'amount', 'cost', 'expense', 'cogs',
                      'spending', 'quantity', 'score']
GROUPING_KEYWORDS = ['category', 'type', 'status', 'region', 'country', 'department', 'group']

_BY_RE = re.compile(r'\bby\s+(\w+)', re.IGNORECASE)
_TOKEN_RE = re.compile(r'[a-z0-9_]+')


class NoColumnsAvailable(InvalidInput):
    """Field resolution was asked to pick from an empty schema."""


def _mentions(prompt_lower: str, name: str) -> bool:
    name = name.strip().lower()
    return bool(name) and name in prompt_lower


def find_mentioned_field(prompt: str, columns: Sequence[str]) -> Optional[str]:
    """First column (schema order) whose name appears anywhere in the prompt."""
    prompt_lower = prompt.lower()
    for column in columns:
        if _mentions(prompt_lower, column):
            return column
    return None


def find_closest_field(term: str, columns: Sequence[str]) -> Optional[str]:
    """
    Column with the longest case-insensitive containment overlap with `term`.

    Containment may go either way ("rev" in "revenue" or "sales" in
    "salesperson"); the score is the length of the shorter string. An
    identical name wins outright; ties go to the first column.
    """
    term = term.lower()
    best, best_score = None, 0
    for column in columns:
        name = column.lower()
        if name == term:
            return column
        if name and (term in name or name in term):
            score = min(len(name), len(term))
            if score > best_score:
                best, best_score = column, score
    return best


def find_by_field(prompt: str, columns: Sequence[str]) -> Optional[str]:
    """Resolve the word after 'by' ("sales by region") to a column."""
    match = _BY_RE.search(prompt)
    if not match:
        return None
    return find_closest_field(match.group(1), columns)


def find_keyword_field(prompt: str, columns: Sequence[str], keywords: Iterable[str]) -> Optional[str]:
    """
    Match prompt tokens against a keyword list, then find a column containing
    the matched keyword. Keywords are tried in list order.
    """
    tokens = _TOKEN_RE.findall(prompt.lower())
    for keyword in keywords:
        keyword = keyword.lower()
        if not any(keyword in token for token in tokens):
            continue
        for column in columns:
            if keyword in column.lower():
                return column
    return None


def match_field(prompt: str, columns: Sequence[str],
                hint_keywords: Optional[Iterable[str]] = None) -> Optional[str]:
    """
    Resolve a prompt to a column without falling back.

    Priority: column named in the prompt, then 'by <word>', then hint keywords.

    Returns:
        The column name, or None if nothing in the prompt points at a column.
    """
    prompt = prompt or ''
    return (
        find_mentioned_field(prompt, columns)
        or find_by_field(prompt, columns)
        or (find_keyword_field(prompt, columns, hint_keywords) if hint_keywords else None)
    )


def resolve_field(prompt: str, columns: Sequence[str],
                  hint_keywords: Optional[Iterable[str]] = None) -> str:
    """
    Resolve a prompt to a column, falling back to the first column.

    Args:
        prompt: Natural language prompt
        columns: Available column names, in schema order
        hint_keywords: Optional domain keyword list (e.g. FINANCIAL_KEYWORDS)

    Returns:
        A column name from `columns`

    Raises:
        NoColumnsAvailable: if `columns` is empty
    """
    columns: List[str] = list(columns)
    if not columns:
        raise NoColumnsAvailable("No columns available to resolve a field against",
                                 hint="Make sure the data has a header row.")
    return match_field(prompt, columns, hint_keywords) or columns[0]


def find_columns_like(columns: Sequence[str], keywords: Iterable[str]) -> List[str]:
    """Columns whose names contain any of the keywords, in schema order."""
    keywords = [k.lower() for k in keywords]
    return [c for c in columns if any(k in c.lower() for k in keywords)]
