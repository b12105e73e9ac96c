from __future__ import annotations

import ast
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Final, Literal, Mapping, Union

LOGGER = logging.getLogger(__name__)

NA: Final = "NA"
NotAvailable = Literal["NA"]
Number = Union[int, float]
ResolvedValue = Union[int, float, str]
StatisticsRecord = Mapping[str, Any]
VariableReference = Union[str, int, float, None]

# Aggregates the product derives when the record does not carry them itself.
DERIVED_VARIABLES: dict[str, str] = {
    "remoteFans": "indoor + outdoor",
    "totalFans": "remoteFans + stadium",
    "allImages": "remoteImages + hostessImages + selfies",
    "totalUnder40": "genAlpha + genYZ",
    "totalOver40": "genX + boomer",
}

_IDENTIFIER = r"[A-Za-z_][A-Za-z0-9_]*"
_SIMPLE_REFERENCE = re.compile(
    rf"^\s*(?:\[\s*(?:stats\.)?(?P<bracketed>{_IDENTIFIER})\s*\]"
    rf"|(?:stats\.)?(?P<bare>{_IDENTIFIER}))\s*$"
)
_ASSET_REFERENCE = re.compile(r"^\s*\[(?P<kind>MEDIA|TEXT):(?P<slug>[A-Za-z0-9_\-]+)\]\s*$")
_BRACKET_TOKEN = re.compile(
    r"\[\s*(?:(?P<kind>PARAM|MANUAL|MEDIA|TEXT):(?P<key>[A-Za-z0-9_\-]+)"
    rf"|(?:stats\.)?(?P<name>{_IDENTIFIER}))\s*\]"
)
_IDENTIFIER_PATTERN = re.compile(_IDENTIFIER)

_PARAM_PREFIX = "__param__"
_MANUAL_PREFIX = "__manual__"
_UNSUPPORTED_PREFIX = "__unsupported__"


class _Unavailable(Exception):
    """Raised inside formula evaluation when an operand is not available."""


def _round_half_up(value: Number) -> int:
    return int(math.floor(value + 0.5))


FORMULA_FUNCTIONS: dict[str, Callable[..., Number]] = {
    "MAX": max,
    "MIN": min,
    "ROUND": _round_half_up,
    "ABS": abs,
}
_FUNCTION_ARITY: dict[str, tuple[int, int | None]] = {
    "MAX": (1, None),
    "MIN": (1, None),
    "ROUND": (1, 1),
    "ABS": (1, 1),
}

_BINARY_OPERATORS: dict[type[ast.operator], Callable[[Number, Number], Number]] = {
    ast.Add: lambda left, right: left + right,
    ast.Sub: lambda left, right: left - right,
    ast.Mult: lambda left, right: left * right,
    ast.Div: lambda left, right: left / right,
}


def is_na(value: Any) -> bool:
    return isinstance(value, str) and value == NA


def coerce_number(value: Any) -> Number | None:
    """Return a finite int/float for numeric values and numeric strings, else ``None``."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def _plain_value(value: Any) -> ResolvedValue | NotAvailable:
    if isinstance(value, str):
        return value
    number = coerce_number(value)
    return NA if number is None else number


def _substitute_tokens(formula: str) -> str:
    def _replace(match: re.Match[str]) -> str:
        kind = match.group("kind")
        if kind == "PARAM":
            return f"{_PARAM_PREFIX}{match.group('key').replace('-', '_')}"
        if kind == "MANUAL":
            return f"{_MANUAL_PREFIX}{match.group('key').replace('-', '_')}"
        if kind is not None:
            return f"{_UNSUPPORTED_PREFIX}{match.group('key').replace('-', '_')}"
        return match.group("name")

    return _BRACKET_TOKEN.sub(_replace, formula)


def _parse_formula(formula: str) -> ast.Expression:
    tree = ast.parse(_substitute_tokens(formula).strip(), mode="eval")
    _check_supported(tree)
    return tree


def _check_supported(tree: ast.AST) -> None:
    for node in ast.walk(tree):
        if isinstance(node, (ast.Expression, ast.Load, ast.operator, ast.unaryop)):
            if isinstance(node, ast.operator) and type(node) not in _BINARY_OPERATORS:
                raise ValueError(f"Unsupported operator: {type(node).__name__}")
            if isinstance(node, ast.unaryop) and not isinstance(node, (ast.UAdd, ast.USub)):
                raise ValueError(f"Unsupported operator: {type(node).__name__}")
            continue
        if isinstance(node, (ast.BinOp, ast.UnaryOp, ast.Name)):
            continue
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
                raise ValueError(f"Unsupported literal: {node.value!r}")
            continue
        if isinstance(node, ast.Attribute):
            if not (isinstance(node.value, ast.Name) and node.value.id == "stats"):
                raise ValueError("Only stats.<name> attribute access is supported")
            continue
        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in FORMULA_FUNCTIONS:
                raise ValueError("Unsupported function call")
            if node.keywords:
                raise ValueError("Keyword arguments are not supported")
            minimum, maximum = _FUNCTION_ARITY[node.func.id]
            if len(node.args) < minimum or (maximum is not None and len(node.args) > maximum):
                raise ValueError(f"Wrong number of arguments for {node.func.id}")
            continue
        raise ValueError(f"Unsupported expression: {type(node).__name__}")


def is_simple_reference(ref: str) -> bool:
    """True when ``ref`` names a single variable rather than an expression."""
    return _SIMPLE_REFERENCE.match(ref) is not None


@dataclass(frozen=True)
class StatResolver:
    """Resolves variable references and formulas against one statistics snapshot."""

    stats: StatisticsRecord
    parameters: Mapping[str, Any] = field(default_factory=dict)
    manual: Mapping[str, Any] = field(default_factory=dict)
    content_assets: Mapping[str, str] = field(default_factory=dict)

    def resolve(self, ref: VariableReference) -> ResolvedValue | NotAvailable:
        if ref is None or isinstance(ref, bool):
            return NA
        if isinstance(ref, (int, float)):
            return _plain_value(ref)
        if not isinstance(ref, str) or not ref.strip():
            return NA

        asset = _ASSET_REFERENCE.match(ref)
        if asset is not None:
            content = self.content_assets.get(asset.group("slug"))
            return content if isinstance(content, str) and content else NA

        simple = _SIMPLE_REFERENCE.match(ref)
        if simple is not None:
            name = simple.group("bracketed") or simple.group("bare")
            if name in FORMULA_FUNCTIONS:
                return NA
            return self.lookup(name)
        return self.evaluate(ref)

    def lookup(self, name: str) -> ResolvedValue | NotAvailable:
        raw = self.stats.get(name)
        if raw is None and name in DERIVED_VARIABLES:
            return self.evaluate(DERIVED_VARIABLES[name])
        return _plain_value(raw)

    def evaluate(self, formula: str) -> Number | NotAvailable:
        try:
            tree = _parse_formula(formula)
            result = self._eval_node(tree.body)
        except (
            _Unavailable,
            ZeroDivisionError,
            OverflowError,
            RecursionError,
            SyntaxError,
            ValueError,
        ) as exc:
            LOGGER.debug("Formula %r resolved to NA: %s", formula, exc)
            return NA
        if isinstance(result, float) and not math.isfinite(result):
            return NA
        return result

    def _number_for(self, name: str) -> Number:
        if name.startswith(_PARAM_PREFIX):
            value = coerce_number(self.parameters.get(name[len(_PARAM_PREFIX) :]))
        elif name.startswith(_MANUAL_PREFIX):
            value = coerce_number(self.manual.get(name[len(_MANUAL_PREFIX) :]))
        elif name.startswith(_UNSUPPORTED_PREFIX):
            value = None
        else:
            value = coerce_number(self.lookup(name))
        if value is None:
            raise _Unavailable(name)
        return value

    def _eval_node(self, node: ast.AST) -> Number:
        if isinstance(node, ast.Constant):
            return node.value
        if isinstance(node, ast.Name):
            return self._number_for(node.id)
        if isinstance(node, ast.Attribute):
            return self._number_for(node.attr)
        if isinstance(node, ast.UnaryOp):
            operand = self._eval_node(node.operand)
            return -operand if isinstance(node.op, ast.USub) else operand
        if isinstance(node, ast.BinOp):
            left = self._eval_node(node.left)
            right = self._eval_node(node.right)
            return _BINARY_OPERATORS[type(node.op)](left, right)
        if isinstance(node, ast.Call):
            args = [self._eval_node(arg) for arg in node.args]
            return FORMULA_FUNCTIONS[node.func.id](*args)
        raise ValueError(f"Unsupported expression: {type(node).__name__}")


def resolve(
    ref: VariableReference,
    stats: StatisticsRecord,
    *,
    parameters: Mapping[str, Any] | None = None,
    manual: Mapping[str, Any] | None = None,
    content_assets: Mapping[str, str] | None = None,
) -> ResolvedValue | NotAvailable:
    return StatResolver(
        stats=stats,
        parameters=parameters or {},
        manual=manual or {},
        content_assets=content_assets or {},
    ).resolve(ref)


def extract_variables(ref: VariableReference) -> tuple[str, ...]:
    """Statistic names a reference depends on, derived variables expanded."""
    if not isinstance(ref, str) or _ASSET_REFERENCE.match(ref):
        return ()
    names: list[str] = []
    for token in _IDENTIFIER_PATTERN.findall(_substitute_tokens(ref)):
        if token == "stats" or token in FORMULA_FUNCTIONS:
            continue
        if token.startswith((_PARAM_PREFIX, _MANUAL_PREFIX, _UNSUPPORTED_PREFIX)):
            continue
        _append_with_derived(token, names)
    return tuple(names)


def _append_with_derived(name: str, names: list[str]) -> None:
    if name in names:
        return
    names.append(name)
    derived = DERIVED_VARIABLES.get(name)
    if derived is None:
        return
    for component in _IDENTIFIER_PATTERN.findall(derived):
        _append_with_derived(component, names)


@dataclass(frozen=True)
class FormulaValidation:
    is_valid: bool
    used_variables: tuple[str, ...]
    error: str | None = None
    evaluated_result: Number | NotAvailable | None = None


def validate_formula(formula: str) -> FormulaValidation:
    used = extract_variables(formula)
    depth = 0
    for char in formula:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if depth < 0:
            return FormulaValidation(
                is_valid=False,
                used_variables=used,
                error="Unbalanced parentheses: closing parenthesis without opening",
            )
    if depth > 0:
        return FormulaValidation(
            is_valid=False,
            used_variables=used,
            error="Unbalanced parentheses: unclosed opening parenthesis",
        )

    try:
        _parse_formula(formula)
    except SyntaxError as exc:
        return FormulaValidation(
            is_valid=False, used_variables=used, error=f"Syntax error: {exc.msg}"
        )
    except ValueError as exc:
        return FormulaValidation(is_valid=False, used_variables=used, error=str(exc))

    sample_stats = {name: 1 for name in used}
    return FormulaValidation(
        is_valid=True,
        used_variables=used,
        evaluated_result=StatResolver(stats=sample_stats).resolve(formula),
    )
