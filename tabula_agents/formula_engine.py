"""
FormulaEngine - parses and evaluates a small spreadsheet formula dialect.

Formulas are tokenized and parsed into a typed expression tree once per
application, then evaluated per row against the table. There is no dynamic
code execution: only the whitelisted functions below can be called.

Dialect:
    =SUM(A:A)                       range of whole columns, row-major
    =IF(A2>100, "High", "Low")      cell reference, 1-based row
    =(revenue - cost) / revenue     bare names bind to the current row
"""

import logging
import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, List, Sequence, Tuple

import numpy as np

from . import config
from .table import InvalidInput, Table
from .utils import column_letter_to_index, is_missing, parse_number

logger = logging.getLogger(__name__)

ERROR = config.ERROR_SENTINEL

SUPPORTED_FUNCTIONS = (
    'SUM', 'AVERAGE', 'COUNT', 'IF', 'AND', 'OR', 'NOT', 'CONCATENATE',
    'VLOOKUP', 'ABS', 'ROUND', 'STDEV', 'COUNTIF',
)


class FormulaError(Exception):
    pass


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


_TOKEN_SPEC = [
    ('WS', r'\s+'),
    ('STRING', r'"(?:[^"]|"")*"'),
    ('NUMBER', r'(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?'),
    ('RANGE', r'[A-Z]+:[A-Z]+(?![A-Za-z0-9_])'),
    ('NAME', r'[A-Za-z_][A-Za-z0-9_]*'),
    ('OP', r'<>|<=|>=|==|!=|[-+*/^&=<>]'),
    ('LPAREN', r'\('),
    ('RPAREN', r'\)'),
    ('COMMA', r','),
]
_TOKEN_RE = re.compile('|'.join(f'(?P<{name}>{pattern})' for name, pattern in _TOKEN_SPEC))
_CELL_RE = re.compile(r'^([A-Z]+)([0-9]+)$')


def tokenize(text: str) -> List[Token]:
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match:
            raise FormulaError(f"Unexpected character {text[pos]!r} at position {pos}")
        kind = match.lastgroup
        value = match.group()
        if kind == 'NAME' and _CELL_RE.match(value):
            kind = 'CELL'
        if kind != 'WS':
            tokens.append(Token(kind, value, pos))
        pos = match.end()
    tokens.append(Token('EOF', '', pos))
    return tokens


# ---------------------------------------------------------------------------
# Expression tree
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class CellRef:
    column: int
    row: int  # 1-based


@dataclass(frozen=True)
class RangeRef:
    start: int
    end: int


@dataclass(frozen=True)
class Name:
    name: str


@dataclass(frozen=True)
class FunctionCall:
    name: str
    args: Tuple[Any, ...]


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Any


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Any
    right: Any


_COMPARISON_OPS = {'=', '==', '<>', '!=', '<', '<=', '>', '>='}


class _Parser:
    """Recursive descent parser. Precedence, low to high: comparison, &, + -, * /, ^, unary."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.i = 0

    def peek(self) -> Token:
        return self.tokens[self.i]

    def advance(self) -> Token:
        token = self.tokens[self.i]
        self.i += 1
        return token

    def expect(self, kind: str) -> Token:
        token = self.peek()
        if token.kind != kind:
            raise FormulaError(f"Expected {kind} at position {token.pos}, got {token.text or 'end of formula'!r}")
        return self.advance()

    def at_op(self, ops) -> bool:
        token = self.peek()
        return token.kind == 'OP' and token.text in ops

    def parse(self):
        node = self.comparison()
        if self.peek().kind != 'EOF':
            token = self.peek()
            raise FormulaError(f"Unexpected {token.text!r} at position {token.pos}")
        return node

    def comparison(self):
        node = self.concat()
        while self.at_op(_COMPARISON_OPS):
            op = self.advance().text
            node = BinaryOp(op, node, self.concat())
        return node

    def concat(self):
        node = self.additive()
        while self.at_op({'&'}):
            self.advance()
            node = BinaryOp('&', node, self.additive())
        return node

    def additive(self):
        node = self.term()
        while self.at_op({'+', '-'}):
            op = self.advance().text
            node = BinaryOp(op, node, self.term())
        return node

    def term(self):
        node = self.power()
        while self.at_op({'*', '/'}):
            op = self.advance().text
            node = BinaryOp(op, node, self.power())
        return node

    def power(self):
        node = self.unary()
        if self.at_op({'^'}):
            self.advance()
            node = BinaryOp('^', node, self.power())
        return node

    def unary(self):
        if self.at_op({'+', '-'}):
            op = self.advance().text
            return UnaryOp(op, self.unary())
        return self.primary()

    def primary(self):
        token = self.advance()
        if token.kind == 'NUMBER':
            return Literal(float(token.text))
        if token.kind == 'STRING':
            return Literal(token.text[1:-1].replace('""', '"'))
        if token.kind == 'CELL':
            letters, row = _CELL_RE.match(token.text).groups()
            return CellRef(column_letter_to_index(letters), int(row))
        if token.kind == 'RANGE':
            start, end = token.text.split(':')
            return RangeRef(column_letter_to_index(start), column_letter_to_index(end))
        if token.kind == 'NAME':
            if self.peek().kind == 'LPAREN':
                self.advance()
                return FunctionCall(token.text.upper(), self.arguments())
            if token.text.upper() in ('TRUE', 'FALSE'):
                return Literal(token.text.upper() == 'TRUE')
            return Name(token.text)
        if token.kind == 'LPAREN':
            node = self.comparison()
            self.expect('RPAREN')
            return node
        raise FormulaError(f"Unexpected {token.text or 'end of formula'!r} at position {token.pos}")

    def arguments(self) -> Tuple[Any, ...]:
        args = []
        if self.peek().kind == 'RPAREN':
            self.advance()
            return tuple(args)
        while True:
            args.append(self.comparison())
            token = self.advance()
            if token.kind == 'RPAREN':
                return tuple(args)
            if token.kind != 'COMMA':
                raise FormulaError(f"Expected ',' or ')' at position {token.pos}")


def strip_formula(formula: str) -> str:
    text = (formula or '').strip()
    if text.startswith('='):
        text = text[1:].strip()
    return text


def parse_formula(formula: str):
    """
    Parse a formula into an expression tree.

    Raises:
        FormulaError: on malformed syntax or an empty formula
    """
    text = strip_formula(formula)
    if not text:
        raise FormulaError("Formula is empty")
    return _Parser(tokenize(text)).parse()


def _walk(node):
    yield node
    if isinstance(node, FunctionCall):
        for arg in node.args:
            yield from _walk(arg)
    elif isinstance(node, UnaryOp):
        yield from _walk(node.operand)
    elif isinstance(node, BinaryOp):
        yield from _walk(node.left)
        yield from _walk(node.right)


def validate_formula(formula: str) -> bool:
    """
    Check that a formula parses and only calls supported functions.
    Raises FormulaError otherwise.
    """
    tree = parse_formula(formula)
    for node in _walk(tree):
        if isinstance(node, FunctionCall) and node.name not in SUPPORTED_FUNCTIONS:
            raise FormulaError(f"Unsupported function: {node.name}")
    return True


# ---------------------------------------------------------------------------
# Values and the function library
# ---------------------------------------------------------------------------

class RangeValues(list):
    """Flat, row-major values of a column range; `width` columns per row."""

    def __init__(self, values, width: int):
        super().__init__(values)
        self.width = max(width, 1)

    def as_rows(self) -> List[list]:
        return [list(self[i:i + self.width]) for i in range(0, len(self), self.width)]


def _flatten(args) -> list:
    values = []
    for arg in args:
        if isinstance(arg, list):
            values.extend(_flatten(arg))
        else:
            values.append(arg)
    return values


def _as_number(value: Any) -> float:
    if is_missing(value):
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    parsed = parse_number(value)
    if parsed is None:
        raise FormulaError(f"Expected a number, got {value!r}")
    return parsed


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        upper = value.strip().upper()
        if upper in ('TRUE', 'FALSE'):
            return upper == 'TRUE'
        parsed = parse_number(value)
        if parsed is not None:
            return parsed != 0
        return bool(value)
    return bool(value)


def _text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'TRUE' if value else 'FALSE'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def fn_sum(*args):
    return sum(parse_number(v) or 0.0 for v in _flatten(args))


def fn_average(*args):
    values = [n for n in (parse_number(v) for v in _flatten(args)) if n is not None]
    return sum(values) / (len(values) or 1)


def fn_count(*args):
    return len(_flatten(args))


def fn_if(condition, true_value=True, false_value=False):
    return true_value if _truthy(condition) else false_value


def fn_and(*args):
    return all(_truthy(v) for v in _flatten(args))


def fn_or(*args):
    return any(_truthy(v) for v in _flatten(args))


def fn_not(value):
    return not _truthy(value)


def fn_concatenate(*args):
    return ''.join(_text(v) for v in _flatten(args))


def fn_vlookup(lookup_value, table_array, col_index, exact_match=False):
    """
    Scan table_array rows top to bottom. Exact mode requires equality on the
    first element; approximate mode a case-insensitive substring match.
    Returns the col_index-th (1-based) element of the first match, else None.
    """
    if isinstance(table_array, RangeValues):
        rows = table_array.as_rows()
    elif isinstance(table_array, list):
        rows = [r if isinstance(r, list) else [r] for r in table_array]
    else:
        rows = [[table_array]]
    col = int(_as_number(col_index))
    exact = _truthy(exact_match)
    needle = _text(lookup_value).lower()
    for row in rows:
        if not row:
            continue
        first = row[0]
        if exact:
            matched = _values_equal(first, lookup_value)
        else:
            matched = needle in _text(first).lower()
        if matched:
            return row[col - 1] if 1 <= col <= len(row) else None
    return None


def fn_abs(value):
    return abs(_as_number(value))


def fn_round(value, digits=0):
    number = Decimal(str(_as_number(value)))
    places = int(_as_number(digits))
    quantum = Decimal(1).scaleb(-places)
    return float(number.quantize(quantum, rounding=ROUND_HALF_UP))


def fn_stdev(*args):
    values = [n for n in (parse_number(v) for v in _flatten(args)) if n is not None]
    if len(values) <= 1:
        return 0.0
    return float(np.std(values, ddof=1))


def fn_countif(range_values, criteria):
    values = _flatten([range_values]) if isinstance(range_values, list) else [range_values]
    if isinstance(criteria, str) and '*' in criteria:
        pattern = re.compile('^' + '.*'.join(re.escape(p) for p in criteria.split('*')) + '$')
        return sum(1 for v in values if pattern.match(_text(v)))
    return sum(1 for v in values if _values_equal(v, criteria))


FUNCTIONS: Dict[str, Callable] = {
    'SUM': fn_sum,
    'AVERAGE': fn_average,
    'COUNT': fn_count,
    'IF': fn_if,
    'AND': fn_and,
    'OR': fn_or,
    'NOT': fn_not,
    'CONCATENATE': fn_concatenate,
    'VLOOKUP': fn_vlookup,
    'ABS': fn_abs,
    'ROUND': fn_round,
    'STDEV': fn_stdev,
    'COUNTIF': fn_countif,
}


def _values_equal(a: Any, b: Any) -> bool:
    na, nb = parse_number(a), parse_number(b)
    if na is not None and nb is not None:
        return na == nb
    if isinstance(a, bool) or isinstance(b, bool):
        return _text(a) == _text(b)
    return a == b


def _compare(op: str, left: Any, right: Any) -> bool:
    nl = 0.0 if is_missing(left) else parse_number(left)
    nr = 0.0 if is_missing(right) else parse_number(right)
    if nl is not None and nr is not None:
        a, b = nl, nr
    else:
        a, b = _text(left).lower(), _text(right).lower()
    if op in ('=', '=='):
        return a == b
    if op in ('<>', '!='):
        return a != b
    if op == '<':
        return a < b
    if op == '<=':
        return a <= b
    if op == '>':
        return a > b
    return a >= b


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

class EvaluationContext:
    """
    Per-row evaluation scope: the current row's columns by name, cell and
    range accessors over the whole table, and the function library.
    """

    def __init__(self, table: Table, row_index: int):
        self.table = table
        self.row_index = row_index
        self.names = table.row_dict(row_index)

    def cell(self, column: int, row: int) -> Any:
        if row < 1 or row > len(self.table) or column >= len(self.table.columns):
            return None
        return self.table.rows[row - 1][column]

    def column_range(self, start: int, end: int) -> RangeValues:
        if start > end:
            start, end = end, start
        width = len(self.table.columns)
        stop = min(end, width - 1)
        values = []
        for row in self.table.rows:
            values.extend(row[start:stop + 1])
        return RangeValues(values, stop - start + 1)

    def lookup(self, name: str) -> Any:
        if name in self.names:
            return self.names[name]
        raise FormulaError(f"Unknown name: {name}")

    def call(self, name: str, args: Sequence[Any]) -> Any:
        func = FUNCTIONS.get(name)
        if func is None:
            raise FormulaError(f"Unsupported function: {name}")
        try:
            return func(*args)
        except TypeError as e:
            raise FormulaError(f"Bad arguments for {name}: {e}")

    def evaluate(self, node) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, CellRef):
            return self.cell(node.column, node.row)
        if isinstance(node, RangeRef):
            return self.column_range(node.start, node.end)
        if isinstance(node, Name):
            return self.lookup(node.name)
        if isinstance(node, FunctionCall):
            if node.name == 'IF' and 1 <= len(node.args) <= 3:
                # Only the chosen branch is evaluated
                branches = list(node.args[1:]) + [Literal(True), Literal(False)][len(node.args) - 1:]
                chosen = branches[0] if _truthy(self.evaluate(node.args[0])) else branches[1]
                return self.evaluate(chosen)
            return self.call(node.name, [self.evaluate(a) for a in node.args])
        if isinstance(node, UnaryOp):
            value = _as_number(self.evaluate(node.operand))
            return -value if node.op == '-' else value
        if isinstance(node, BinaryOp):
            return self._binary(node.op, self.evaluate(node.left), self.evaluate(node.right))
        raise FormulaError(f"Unknown expression node: {node!r}")

    @staticmethod
    def _binary(op: str, left: Any, right: Any) -> Any:
        if op in _COMPARISON_OPS:
            return _compare(op, left, right)
        if op == '&':
            return _text(left) + _text(right)
        a, b = _as_number(left), _as_number(right)
        if op == '+':
            return a + b
        if op == '-':
            return a - b
        if op == '*':
            return a * b
        if op == '/':
            if b == 0:
                raise FormulaError("Division by zero")
            return a / b
        try:
            result = a ** b
        except (OverflowError, ZeroDivisionError) as e:
            raise FormulaError(f"Invalid power: {e}")
        if isinstance(result, complex):
            raise FormulaError("Invalid power: complex result")
        return result


def _clean_result(value: Any) -> Any:
    if isinstance(value, RangeValues):
        return [_clean_result(v) for v in value]
    if isinstance(value, float):
        if not math.isfinite(value):
            raise FormulaError("Result is not a finite number")
        if value.is_integer():
            return int(value)
    return value


def evaluate_formula(formula: str, table: Table, row_index: int) -> Any:
    """Parse and evaluate a formula for one row. Raises FormulaError on failure."""
    return _clean_result(EvaluationContext(table, row_index).evaluate(parse_formula(formula)))


def apply_formula(table: Table, formula: str, target_column: str) -> Table:
    """
    Apply a formula to every row and write the result to `target_column`.

    The formula is parsed once. Rows whose evaluation fails get the
    '#ERROR' sentinel and the failure is logged; the other rows are
    unaffected. A new target column is appended; an existing one is
    overwritten.

    Args:
        table: Input table (not modified)
        formula: Formula text, leading '=' optional
        target_column: Column to create or overwrite

    Returns:
        A new Table

    Raises:
        InvalidInput: for an empty formula, empty table or blank target column
    """
    if not strip_formula(formula):
        raise InvalidInput("Formula is required", hint="Generate or type a formula first.")
    if table.is_empty():
        raise InvalidInput("No data to apply the formula to", hint="Upload a file or paste data first.")
    if not target_column or not str(target_column).strip():
        raise InvalidInput("Target column is required", hint="Pick a column to write the results into.")

    try:
        tree = parse_formula(formula)
    except FormulaError as e:
        logger.warning("Could not parse formula %r: %s", formula, e)
        return table.with_column(target_column, [ERROR] * len(table))

    results = []
    for i in range(len(table)):
        try:
            results.append(_clean_result(EvaluationContext(table, i).evaluate(tree)))
        except (FormulaError, ArithmeticError, ValueError) as e:
            logger.warning("Error applying formula to row %d: %s", i, e)
            results.append(ERROR)
    return table.with_column(target_column, results)
