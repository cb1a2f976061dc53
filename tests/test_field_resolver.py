import pytest

# Temporarily add the parent directory to the path to allow imports
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tabula_agents.field_resolver import (
    FINANCIAL_KEYWORDS,
    NoColumnsAvailable,
    find_closest_field,
    match_field,
    resolve_field,
)
from tabula_agents.table import InvalidInput


def test_exact_mention_is_case_insensitive():
    assert resolve_field("Summarize sales by REGION", ["name", "Region"]) == "Region"


def test_mention_matches_inside_words():
    """
    A column name counts as mentioned wherever it appears in the prompt.
    """
    assert resolve_field("show total amounts", ["id", "amount"]) == "amount"
    assert match_field("show the middle rows", ["id", "value"]) == "id"


def test_mention_goes_to_first_column_in_schema_order():
    assert resolve_field("sort by salesperson", ["sales", "salesperson_name"]) == "sales"


def test_multi_word_column_names_are_matched():
    assert resolve_field("group by product name please", ["id", "Product Name"]) == "Product Name"


def test_by_word_prefers_longest_overlap():
    """
    'salesperson' overlaps 'sales' by 5 characters but 'salesperson_name' by 11.
    """
    assert find_closest_field("salesperson", ["sales", "salesperson_name"]) == "salesperson_name"


def test_by_word_ties_go_to_first_column():
    assert resolve_field("group by cat", ["name", "category", "subcategory"]) == "category"


def test_by_word_identical_name_wins():
    assert find_closest_field("units", ["units_sold", "units"]) == "units"


def test_hint_keywords_match_column_containing_keyword():
    columns = ["id", "Total_Revenue_USD"]
    assert resolve_field("what is the total revenue", columns, FINANCIAL_KEYWORDS) == "Total_Revenue_USD"


def test_hint_keywords_unused_without_list():
    assert match_field("what is the total revenue", ["id", "Total_Revenue_USD"]) is None


def test_fallback_is_first_column():
    assert resolve_field("do something clever", ["first", "second"]) == "first"


def test_empty_prompt_falls_back():
    assert resolve_field("", ["first", "second"]) == "first"


def test_no_columns_raises():
    """
    Resolution with zero columns is the only failure, reported as invalid input.
    """
    with pytest.raises(NoColumnsAvailable) as exc_info:
        resolve_field("anything", [])
    assert isinstance(exc_info.value, InvalidInput)
