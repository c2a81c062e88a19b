"""Safe evaluation of user-defined chart formulas.

Scorecards and derived columns reference dataset columns in a small
expression language:

- numbers, `+ - * / %`, parentheses and unary signs;
- bare column identifiers (`Revenue`, `net_sales`, `Total-Sales`) and
  bracketed names with spaces (`[Total Sales]`);
- aggregate functions over a column: `SUM AVG COUNT MIN MAX`;
- scalar functions: `ABS ROUND SQRT`.

Formulas are tokenized, rewritten into a Python expression with placeholder
names for column references, parsed with `ast` and evaluated against a strict
node whitelist (no attribute access, no arbitrary calls, no comprehensions).
"""

from __future__ import annotations

import ast
import logging
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

from .aggregations import aggregate_values, numeric_column
from .numbers import parse_numeric_value

logger = logging.getLogger(__name__)

MAX_FORMULA_LENGTH: Final[int] = 500
MAX_OPERATIONS: Final[int] = 50

AGGREGATE_FUNCTIONS: Final[dict[str, str]] = {
    "SUM": "sum",
    "AVG": "avg",
    "COUNT": "count",
    "MIN": "min",
    "MAX": "max",
}
SCALAR_FUNCTIONS: Final[frozenset[str]] = frozenset({"ABS", "ROUND", "SQRT"})
ALLOWED_FUNCTIONS: Final[frozenset[str]] = frozenset(AGGREGATE_FUNCTIONS) | SCALAR_FUNCTIONS

_FORBIDDEN_CHARS: Final = re.compile(r"[;`\\${}]")
_TOKEN_PATTERN: Final = re.compile(
    r"""
    (?P<space>\s+)
    |(?P<number>\d[\d.]*)
    |(?P<operator>[-+*/%])
    |(?P<paren>[()])
    |(?P<bracket>\[[^\]]*\])
    |(?P<identifier>[A-Za-z_][A-Za-z0-9_-]*)
    """,
    re.VERBOSE,
)
_PLACEHOLDER_PREFIX: Final[str] = "__column_"


class FormulaError(ValueError):
    """Raised when a formula cannot be parsed or evaluated."""


@dataclass(frozen=True, slots=True)
class ParsedFormula:
    """A tokenized and parsed formula.

    Args:
        source: Original formula text.
        expression: Parsed Python expression over placeholder names.
        columns: Placeholder name to column reference as written.
    """

    source: str
    expression: ast.Expression
    columns: Mapping[str, str]

    @property
    def column_refs(self) -> tuple[str, ...]:
        """Return the distinct column references in order of appearance."""

        return tuple(dict.fromkeys(self.columns.values()))

    def aggregate_calls(self) -> list[tuple[str, str]]:
        """Return `(function, column_ref)` pairs for every aggregate call."""

        calls: list[tuple[str, str]] = []
        for node in ast.walk(self.expression):
            if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id in AGGREGATE_FUNCTIONS:
                argument = node.args[0] if node.args else None
                if isinstance(argument, ast.Name) and argument.id in self.columns:
                    calls.append((node.func.id, self.columns[argument.id]))
        return calls


@dataclass(frozen=True, slots=True)
class FormulaValidation:
    """Result of `validate_formula`."""

    valid: bool
    errors: tuple[str, ...] = ()


def find_matching_column(column_ref: str, available_columns: Sequence[str]) -> str | None:
    """Resolve a column reference against dataset columns.

    Matching tries the exact name, a case-insensitive match, then the name
    with whitespace turned into underscores, then underscores into spaces.

    Args:
        column_ref: Reference as written, with or without brackets.
        available_columns: Dataset column names.

    Returns:
        The matching column name, or None.
    """

    name = column_ref.strip()
    if name.startswith("["):
        name = name[1:]
    if name.endswith("]"):
        name = name[:-1]
    name = name.strip()

    if name in available_columns:
        return name
    lowered = name.lower()
    for column in available_columns:
        if column.lower() == lowered:
            return column
    underscored = re.sub(r"\s+", "_", name)
    if underscored in available_columns:
        return underscored
    spaced = name.replace("_", " ")
    if spaced in available_columns:
        return spaced
    return None


def parse_formula(formula: str) -> ParsedFormula:
    """Tokenize and parse a formula.

    Args:
        formula: Formula text.

    Returns:
        ParsedFormula ready for evaluation.

    Raises:
        FormulaError: For over-long or over-complex formulas, forbidden
            characters, unknown functions, unbalanced parentheses or invalid
            syntax.
    """

    if len(formula) > MAX_FORMULA_LENGTH:
        raise FormulaError(f"Formula too long (max {MAX_FORMULA_LENGTH} characters)")
    if _FORBIDDEN_CHARS.search(formula):
        raise FormulaError("Formula contains invalid characters")

    parts: list[str] = []
    columns: dict[str, str] = {}
    operations = 0
    depth = 0
    position = 0
    while position < len(formula):
        match = _TOKEN_PATTERN.match(formula, position)
        if match is None:
            if formula[position] == "[":
                raise FormulaError("Unclosed bracket in column reference")
            raise FormulaError(f"Unexpected character {formula[position]!r} at position {position}")
        kind = match.lastgroup
        text = match.group()
        position = match.end()

        if kind == "space":
            continue
        if kind == "number":
            try:
                number = float(text)
            except ValueError:
                raise FormulaError(f"Invalid number: {text}") from None
            if not math.isfinite(number):
                raise FormulaError(f"Invalid number: {text}")
            parts.append(text)
        elif kind == "operator":
            operations += 1
            parts.append(text)
        elif kind == "paren":
            depth += 1 if text == "(" else -1
            if depth < 0:
                raise FormulaError("Mismatched parentheses (extra closing)")
            parts.append(text)
        elif kind == "identifier" and formula.startswith("(", position):
            function = text.upper()
            if function not in ALLOWED_FUNCTIONS:
                allowed = ", ".join(sorted(ALLOWED_FUNCTIONS))
                raise FormulaError(f"Unknown function: {text}. Allowed: {allowed}")
            operations += 1
            parts.append(function)
        else:
            placeholder = f"{_PLACEHOLDER_PREFIX}{len(columns)}"
            columns[placeholder] = text[1:-1] if kind == "bracket" else text
            parts.append(placeholder)

    if depth != 0:
        raise FormulaError("Mismatched parentheses (unclosed)")
    if operations > MAX_OPERATIONS:
        raise FormulaError(f"Formula too complex (max {MAX_OPERATIONS} operations)")
    if not parts:
        raise FormulaError("Formula is empty")

    try:
        tree = ast.parse(" ".join(parts), mode="eval")
    except SyntaxError:
        raise FormulaError(f"Invalid formula syntax: {formula}") from None

    parsed = ParsedFormula(source=formula, expression=tree, columns=columns)
    for node in ast.walk(tree):
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id in AGGREGATE_FUNCTIONS:
            if len(node.args) != 1 or not isinstance(node.args[0], ast.Name) or node.args[0].id not in columns:
                raise FormulaError(f"{node.func.id} expects a single column argument")
    return parsed


def validate_formula(formula: str, available_columns: Sequence[str]) -> FormulaValidation:
    """Check that a formula parses and that every column it uses exists."""

    try:
        parsed = parse_formula(formula)
    except FormulaError as exc:
        return FormulaValidation(valid=False, errors=(str(exc),))

    errors = [
        f'Column not found: "{ref}". Available columns: {", ".join(available_columns)}'
        for ref in parsed.column_refs
        if find_matching_column(ref, available_columns) is None
    ]
    return FormulaValidation(valid=not errors, errors=tuple(errors))


def compute_aggregates(
    parsed: ParsedFormula,
    rows: Sequence[Mapping[str, Any]],
    available_columns: Sequence[str],
) -> dict[tuple[str, str], float]:
    """Pre-compute every aggregate call of a formula over the dataset.

    Raises:
        FormulaError: When an aggregated column does not exist.
    """

    aggregates: dict[tuple[str, str], float] = {}
    for function, ref in parsed.aggregate_calls():
        column = find_matching_column(ref, available_columns)
        if column is None:
            raise FormulaError(f"Column not found for aggregation: {ref}")
        value = aggregate_values(numeric_column(rows, column), AGGREGATE_FUNCTIONS[function])
        if value is not None:
            aggregates[(function, column)] = value
    return aggregates


def evaluate(
    parsed: ParsedFormula,
    row: Mapping[str, Any],
    available_columns: Sequence[str],
    aggregates: Mapping[tuple[str, str], float] | None = None,
) -> float:
    """Evaluate a parsed formula for one row.

    Args:
        parsed: Output of `parse_formula`.
        row: Row supplying bare column references.
        available_columns: Dataset column names.
        aggregates: Output of `compute_aggregates`.

    Returns:
        The finite result.

    Raises:
        FormulaError: On unknown columns, non-numeric cells, missing
            aggregates, division or modulo by zero, or non-finite results.
    """

    context = _EvalContext(parsed.columns, row, available_columns, aggregates or {})
    return context.eval(parsed.expression.body)


def calculate_formula(
    rows: Sequence[Mapping[str, Any]],
    formula: str,
    alias: str,
    *,
    aggregate_first: bool = False,
    round_digits: int | None = None,
) -> list[dict[str, Any]]:
    """Apply a formula to a dataset.

    Args:
        rows: Dataset rows; columns are taken from the first row.
        formula: Formula text.
        alias: Name of the computed value.
        aggregate_first: Evaluate once over aggregated values. Bare column
            references then read the first row.
        round_digits: Decimal places to round results to.

    Returns:
        `[{alias: value}]` when evaluating once (formulas containing aggregate
        functions always do); otherwise a copy of every row with `alias`
        added, None where the row could not be evaluated.

    Raises:
        FormulaError: When the formula is invalid, an aggregated column does
            not exist, or the single aggregated evaluation fails.
    """

    if not rows:
        return []

    available_columns = list(rows[0].keys())
    parsed = parse_formula(formula)
    aggregates = compute_aggregates(parsed, rows, available_columns)

    if aggregate_first or parsed.aggregate_calls():
        value = evaluate(parsed, rows[0], available_columns, aggregates)
        return [{alias: _round(value, round_digits)}]

    computed: list[dict[str, Any]] = []
    failures = 0
    for row in rows:
        try:
            row_value: float | None = _round(evaluate(parsed, row, available_columns, aggregates), round_digits)
        except FormulaError:
            failures += 1
            row_value = None
        computed.append({**row, alias: row_value})
    if failures:
        logger.debug("Formula %r could not be evaluated for %d of %d rows.", formula, failures, len(rows))
    return computed


def _round(value: float, digits: int | None) -> float:
    return round(value, digits) if digits is not None else value


class _EvalContext:
    """Evaluation state for one formula and one row."""

    def __init__(
        self,
        placeholders: Mapping[str, str],
        row: Mapping[str, Any],
        available_columns: Sequence[str],
        aggregates: Mapping[tuple[str, str], float],
    ) -> None:
        self.placeholders = placeholders
        self.row = row
        self.available_columns = available_columns
        self.aggregates = aggregates

    def eval(self, node: ast.AST) -> float:
        """Recursively evaluate an AST node with strict safety rules."""

        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            try:
                return _finite(float(node.value), "Invalid number")
            except OverflowError as exc:
                raise FormulaError("Invalid number") from exc

        if isinstance(node, ast.Name):
            return self._column_value(node.id)

        if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.UAdd, ast.USub)):
            operand = self.eval(node.operand)
            return operand if isinstance(node.op, ast.UAdd) else -operand

        if isinstance(node, ast.BinOp) and isinstance(node.op, (ast.Add, ast.Sub, ast.Mult, ast.Div, ast.Mod)):
            left = self.eval(node.left)
            right = self.eval(node.right)
            if isinstance(node.op, ast.Add):
                result = left + right
            elif isinstance(node.op, ast.Sub):
                result = left - right
            elif isinstance(node.op, ast.Mult):
                result = left * right
            elif isinstance(node.op, ast.Div):
                if right == 0:
                    raise FormulaError("Division by zero")
                result = left / right
            else:
                if right == 0:
                    raise FormulaError("Modulo by zero")
                result = math.fmod(left, right)
            return _finite(result, "Calculation resulted in an invalid number")

        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and not node.keywords:
            return self._call(node)

        raise FormulaError(f"Unsupported expression: {ast.dump(node)}")

    def _call(self, node: ast.Call) -> float:
        function = node.func.id  # type: ignore[attr-defined]
        if len(node.args) != 1:
            raise FormulaError(f"Function {function} requires exactly one argument")

        if function in AGGREGATE_FUNCTIONS:
            column = self._resolve(node.args[0].id)  # type: ignore[attr-defined]
            value = self.aggregates.get((function, column))
            if value is None:
                raise FormulaError(f"{function}({column}) has no numeric values")
            return value

        argument = self.eval(node.args[0])
        if function == "ABS":
            return abs(argument)
        if function == "ROUND":
            return float(math.floor(argument + 0.5))
        if function == "SQRT":
            if argument < 0:
                raise FormulaError("Cannot take square root of negative number")
            return math.sqrt(argument)
        raise FormulaError(f"Unknown function: {function}")

    def _resolve(self, placeholder: str) -> str:
        ref = self.placeholders.get(placeholder)
        if ref is None:
            raise FormulaError(f"Unknown name: {placeholder}")
        column = find_matching_column(ref, self.available_columns)
        if column is None:
            available = ", ".join(self.available_columns)
            raise FormulaError(f'Column not found: "{ref}". Available: {available}')
        return column

    def _column_value(self, placeholder: str) -> float:
        column = self._resolve(placeholder)
        value = parse_numeric_value(self.row.get(column))
        if value is None:
            raise FormulaError(f'Cannot read numeric value from column: "{column}"')
        return value


def _finite(value: float, message: str) -> float:
    if not math.isfinite(value):
        raise FormulaError(message)
    return value
