from __future__ import annotations

import pytest

from eventstats.stats.resolver import (
    NA,
    StatResolver,
    coerce_number,
    extract_variables,
    resolve,
    validate_formula,
)


@pytest.mark.parametrize("ref", ["female", "[female]", "stats.female", "[stats.female]"])
def test_simple_reference_spellings_resolve_the_same_value(ref: str) -> None:
    assert resolve(ref, {"female": 30}) == 30


def test_missing_and_unusable_values_resolve_to_na() -> None:
    stats = {"none": None, "flag": True, "nan": float("nan"), "inf": float("inf"), "obj": [1]}

    assert resolve("visitWeb", stats) == NA
    assert resolve("none", stats) == NA
    assert resolve("flag", stats) == NA
    assert resolve("nan", stats) == NA
    assert resolve("inf", stats) == NA
    assert resolve("obj", stats) == NA
    assert resolve(None, stats) == NA
    assert resolve("", stats) == NA


def test_string_values_pass_through() -> None:
    assert resolve("reportText", {"reportText": "# Hello"}) == "# Hello"


def test_formula_follows_standard_precedence() -> None:
    stats = {"a": 2, "b": 3, "c": 4}

    assert resolve("a + b * c", stats) == 14
    assert resolve("(a + b) * c", stats) == 20
    assert resolve("-a + c", stats) == 2
    assert resolve("a / c", stats) == pytest.approx(0.5)


def test_formula_preserves_negative_and_fractional_results() -> None:
    assert resolve("a - b", {"a": 1, "b": 3}) == -2
    assert resolve("a / b", {"a": 1, "b": 3}) == pytest.approx(1 / 3)


def test_division_by_zero_degrades_to_na() -> None:
    stats = {"approvedImages": 0, "rejectedImages": 0}

    result = resolve("approvedImages / (approvedImages + rejectedImages)", stats)

    assert result == NA


@pytest.mark.parametrize(
    "formula",
    [
        "a + missing",
        "a + label",
        "a +",
        "a ** 2",
        "__import__('os')",
        "a if a else 0",
        "UNKNOWN(a)",
    ],
)
def test_unusable_formulas_degrade_to_na_without_raising(formula: str) -> None:
    assert resolve(formula, {"a": 2, "label": "text"}) == NA


def test_numeric_strings_coerce_inside_formulas() -> None:
    assert resolve("a + b", {"a": "2", "b": "3.5"}) == pytest.approx(5.5)


def test_bracket_tokens_and_functions() -> None:
    stats = {"female": 30, "male": 70}

    assert resolve("[female] + [stats.male]", stats) == 100
    assert resolve("MAX(female, male)", stats) == 70
    assert resolve("MIN(female, male)", stats) == 30
    assert resolve("ROUND(female / 7)", stats) == 4
    assert resolve("ABS(female - male)", stats) == 40
    assert resolve("MAX(female, missing)", stats) == NA


def test_param_and_manual_tokens_use_element_values() -> None:
    resolver = StatResolver(
        stats={"fans": 100}, parameters={"price": "2.5"}, manual={"bonus": 10}
    )

    assert resolver.resolve("[fans] * [PARAM:price]") == pytest.approx(250.0)
    assert resolver.resolve("[fans] + [MANUAL:bonus]") == 110
    assert resolver.resolve("[fans] + [MANUAL:absent]") == NA


def test_content_asset_tokens_resolve_to_content() -> None:
    resolver = StatResolver(stats={}, content_assets={"hero": "https://cdn.example/hero.png"})

    assert resolver.resolve("[MEDIA:hero]") == "https://cdn.example/hero.png"
    assert resolver.resolve("[TEXT:missing]") == NA


def test_derived_variables_fill_in_when_absent() -> None:
    stats = {"indoor": 10, "outdoor": 5, "stadium": 100}

    assert resolve("remoteFans", stats) == 15
    assert resolve("totalFans", stats) == 115
    assert resolve("remoteFans", {**stats, "remoteFans": 99}) == 99


def test_coerce_number_rejects_booleans_and_non_finite_values() -> None:
    assert coerce_number(True) is None
    assert coerce_number("abc") is None
    assert coerce_number(float("nan")) is None
    assert coerce_number(" 12 ") == 12
    assert coerce_number("1.5") == pytest.approx(1.5)


def test_extract_variables_expands_derived_names() -> None:
    assert extract_variables("[totalFans] / [PARAM:goal]") == (
        "totalFans",
        "remoteFans",
        "indoor",
        "outdoor",
        "stadium",
    )
    assert extract_variables("MAX(a, stats.b)") == ("a", "b")
    assert extract_variables("[MEDIA:hero]") == ()
    assert extract_variables(None) == ()


def test_validate_formula_reports_structure_problems() -> None:
    unbalanced = validate_formula("(a + b")
    bad_syntax = validate_formula("a b")
    valid = validate_formula("a / (a + b)")

    assert not unbalanced.is_valid
    assert "parenthes" in (unbalanced.error or "")
    assert not bad_syntax.is_valid
    assert valid.is_valid
    assert valid.used_variables == ("a", "b")
    assert valid.evaluated_result == pytest.approx(0.5)
