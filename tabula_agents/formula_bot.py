"""
FormulaBot - translates natural language into spreadsheet formulas.

Claude is asked first when configured; its answer is only accepted if the
formula parses and sticks to the supported function set. Otherwise the local
templates below produce a formula deterministically.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from .base import LLMBaseAgent, RemoteUnavailable, call_with_deadline, remote_available, DEFAULT_MODEL
from .field_resolver import find_columns_like
from .formula_engine import SUPPORTED_FUNCTIONS, FormulaError, validate_formula
from .table import InvalidInput
from .utils import column_index_to_letter, parse_number

logger = logging.getLogger(__name__)

REVENUE_KEYWORDS = ['revenue', 'sales', 'income', 'price', 'amount']
COST_KEYWORDS = ['cost', 'expense', 'cogs', 'spending']


class FormulaBot(LLMBaseAgent):
    """
    Asks Claude for a formula in the supported dialect.

    Usage:
        bot = FormulaBot()
        spec = bot.interpret_formula("profit margin", sample_rows, headers)
        # {"formula": "=(B2-C2)/B2", "explanation": "..."}
    """

    def __init__(self, model=DEFAULT_MODEL, timeout=None):
        super().__init__(model=model, max_tokens=600, timeout=timeout)

        self.system_prompt = f"""You write spreadsheet formulas for tabular data.

CRITICAL: Return ONLY valid JSON. No markdown, no explanations outside the JSON.

Return format:
{{
  "formula": "=...",
  "explanation": "One or two sentences describing what the formula does"
}}

The formula dialect is restricted:
- Functions: {', '.join(SUPPORTED_FUNCTIONS)} and nothing else
- Cell references like A2 (column letters + 1-based row number)
- Whole-column ranges like A:A or A:C (no row numbers in ranges)
- Bare column names (letters, digits, underscores) refer to the current row
- Operators: + - * / ^ & = <> < <= > >=
- No sheet references (Sheet2!A1), no $ absolute references, no array formulas

Examples:

"profit margin" with columns revenue, cost →
{{"formula": "=(revenue - cost) / revenue", "explanation": "Profit as a share of revenue."}}

"flag big orders" with column amount →
{{"formula": "=IF(amount > 1000, \\"Big\\", \\"Normal\\")", "explanation": "Labels orders over 1000 as Big."}}
"""

    def interpret_formula(self, prompt: str, data: List[Dict], headers: Sequence[str]) -> Dict:
        """
        Ask Claude for a formula.

        Returns:
            {"formula", "explanation"}

        Raises:
            RemoteUnavailable: if the call fails or the reply is unusable
        """
        content = (
            f"Columns (in order, A, B, C, ...): {', '.join(headers)}\n"
            f"Sample rows: {data[:5]}\n\n"
            f"Request: {prompt}"
        )
        response_text = self.call_api(self.system_prompt, [{"role": "user", "content": content}])
        try:
            spec = self.parse_json_response(response_text)
        except ValueError as e:
            raise RemoteUnavailable(str(e))

        is_valid, error = self.validate_formula_spec(spec)
        if not is_valid:
            raise RemoteUnavailable(f"Unusable formula from model: {error}")
        return {'formula': spec['formula'].strip(), 'explanation': spec['explanation'].strip()}

    def validate_formula_spec(self, spec: Dict) -> tuple:
        """
        Validate a formula spec before handing it to the user.

        Returns:
            (is_valid: bool, error_message: str)
        """
        if not isinstance(spec, dict):
            return False, "Response is not an object"
        for field in ['formula', 'explanation']:
            if not isinstance(spec.get(field), str) or not spec[field].strip():
                return False, f"Missing required field: {field}"
        try:
            validate_formula(spec['formula'])
        except FormulaError as e:
            return False, str(e)
        return True, ""


_IDENTIFIER_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
_CELL_LIKE_RE = re.compile(r'^[A-Z]+[0-9]+$')


def _letter_for(headers: Sequence[str], column: str) -> str:
    return column_index_to_letter(list(headers).index(column))


def _row_ref(headers: Sequence[str], column: str) -> str:
    """
    Reference to `column` in the current row: the bare name when it is a
    usable identifier, else the column's cell in row 2.
    """
    if (_IDENTIFIER_RE.match(column) and not _CELL_LIKE_RE.match(column)
            and column.upper() not in ('TRUE', 'FALSE')):
        return column
    return f"{_letter_for(headers, column)}2"


def find_keyword_column(headers: Sequence[str], keywords: Sequence[str]) -> Optional[str]:
    """First header containing a keyword (keywords tried in order)."""
    for keyword in keywords:
        matches = find_columns_like(headers, [keyword])
        if matches:
            return matches[0]
    return None


def find_numeric_column(data: List[Dict], headers: Sequence[str]) -> Optional[str]:
    """First header with any numeric value in the sample rows."""
    for header in headers:
        if any(parse_number(row.get(header)) is not None for row in data if isinstance(row, dict)):
            return header
    return None


def local_formula(prompt: str, data: List[Dict], headers: Sequence[str]) -> Dict:
    """
    Pick a formula template from keywords in the prompt.

    Args:
        prompt: What the formula should do
        data: Sample rows
        headers: Column names in order (position gives the column letter)

    Returns:
        {"formula", "explanation"}
    """
    text = prompt.lower()
    headers = list(headers)

    if 'profit margin' in text or 'margin' in text:
        revenue = find_keyword_column(headers, REVENUE_KEYWORDS)
        cost = find_keyword_column(headers, COST_KEYWORDS)
        if revenue and cost:
            r, c = _row_ref(headers, revenue), _row_ref(headers, cost)
            return {
                'formula': f"=({r} - {c}) / {r}",
                'explanation': (f"This formula calculates the profit margin by subtracting the cost ({cost}) "
                                f"from revenue ({revenue}), then dividing by revenue. The result is a decimal "
                                f"you can format as a percentage."),
            }

    numeric = find_numeric_column(data, headers)
    if numeric:
        value, letter = _row_ref(headers, numeric), _letter_for(headers, numeric)
    else:
        numeric, value, letter = 'A', 'A2', 'A'

    if 'categorize' in text or 'category' in text:
        return {
            'formula': f'=IF({value} > 1000, "High", IF({value} > 500, "Medium", "Low"))',
            'explanation': (f'This formula categorizes values in {numeric} as "High" if greater than 1000, '
                            f'"Medium" if greater than 500, and "Low" otherwise. Adjust the thresholds as needed.'),
        }

    if 'vlookup' in text or 'lookup' in text:
        return {
            'formula': "=VLOOKUP(A2, A:B, 2, FALSE)",
            'explanation': ("This VLOOKUP searches for the value in cell A2 within the first column of A:B and "
                            "returns the matching value from the second column. FALSE requires an exact match."),
        }

    if 'outlier' in text or 'highlight' in text:
        return {
            'formula': (f'=IF(ABS({value} - AVERAGE({letter}:{letter})) > 2*STDEV({letter}:{letter}), '
                        f'"Outlier", "Normal")'),
            'explanation': ("This formula flags a value as an outlier when it is more than 2 standard deviations "
                            f"away from the average of {numeric}."),
        }

    if 'sum' in text or 'total' in text:
        return {
            'formula': f"=SUM({letter}:{letter})",
            'explanation': f"This formula calculates the sum of all values in {numeric} (column {letter}).",
        }

    if 'average' in text or 'mean' in text:
        return {
            'formula': f"=AVERAGE({letter}:{letter})",
            'explanation': f"This formula calculates the average of all values in {numeric} (column {letter}).",
        }

    if 'count' in text or 'frequency' in text:
        return {
            'formula': '=COUNTIF(A:A, "criteria")',
            'explanation': ('This formula counts cells in column A that match the criteria. '
                            'Replace "criteria" with your value, or use * as a wildcard.'),
        }

    if re.search(r'\bif\b', text) or 'condition' in text:
        return {
            'formula': '=IF(A2>100, "Over Budget", "Within Budget")',
            'explanation': ('This IF formula checks whether A2 is greater than 100 and returns "Over Budget" if so, '
                            'or "Within Budget" otherwise.'),
        }

    return {
        'formula': '=IF(A2>B2, A2-B2, "N/A")',
        'explanation': ('This general formula compares columns A and B, returning the difference when A is greater '
                        'than B, or "N/A" otherwise. Customize it for your needs.'),
    }


class FormulaGenerator:
    """
    The "generate formula" operation: remote first when configured, local
    templates otherwise.

    Usage:
        generator = FormulaGenerator()
        generator.generate_formula("calculate profit margin", rows[:5], headers)
    """

    _DEFAULT = object()

    def __init__(self, bot=_DEFAULT):
        """
        Args:
            bot: A FormulaBot (or anything with interpret_formula). Defaults to
                building one when remote calls are configured; None forces local.
        """
        if bot is self._DEFAULT:
            bot = self._build_bot()
        self.bot = bot

    @staticmethod
    def _build_bot() -> Optional[FormulaBot]:
        if not remote_available():
            return None
        try:
            return FormulaBot()
        except ValueError as e:
            logger.info("Remote formula generation disabled: %s", e)
            return None

    def generate_formula(self, prompt: str, data: List[Dict], headers: Optional[Sequence[str]] = None) -> Dict:
        """
        Generate a formula and explanation.

        Args:
            prompt: What the formula should do
            data: Sample rows (list of dicts)
            headers: Column names in order; defaults to the first row's keys

        Returns:
            {"formula", "explanation"}

        Raises:
            InvalidInput: if data or prompt is missing
        """
        if not isinstance(data, list) or not data:
            raise InvalidInput("Valid data array is required", hint="Upload a file or paste data first.")
        if not prompt or not str(prompt).strip():
            raise InvalidInput("Prompt is required", hint="Describe the formula you need.")
        if not headers:
            headers = list(data[0].keys()) if isinstance(data[0], dict) else []

        if self.bot is not None:
            try:
                return call_with_deadline(lambda: self.bot.interpret_formula(prompt, data, headers),
                                          getattr(self.bot, 'timeout', None))
            except RemoteUnavailable as e:
                logger.info("Remote formula generation failed, using local templates: %s", e)

        return local_formula(prompt, data, headers)
