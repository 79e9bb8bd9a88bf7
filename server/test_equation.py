"""
Test suite for the equation evaluator.

Covers operator precedence, square roots, the accepted symbol spellings,
and every way an equation can fail to produce a valid result.

Run with: pytest test_equation.py -v
"""

import pytest

from cards import CardColor, NumberCard, OperationCard, OperationType
from constants import MAX_SQRT_NESTING
from equation import (
    distance_to_target,
    evaluate,
    evaluate_or_raise,
    expression_from_cards,
    tokenize,
)
from errors import MalformedEquation


# =============================================================================
# Valid Equations
# =============================================================================

class TestEvaluate:
    """Well-formed equations evaluate with standard precedence."""

    @pytest.mark.parametrize("expression,expected", [
        ("7", 7),
        ("2+3*4", 14),
        ("10-2-3", 5),
        ("8/4/2", 1),
        ("1+10/4", 3.5),
        ("sqrt4+5", 7),
        ("5-sqrt9", 2),
        ("2*sqrt9", 6),
        ("sqrt(9+7)", 4),
        ("sqrt 16", 4),
        (" 3 + 4 ", 7),
    ])
    def test_valid(self, expression, expected):
        assert evaluate(expression) == pytest.approx(expected)

    def test_unicode_symbols(self):
        assert evaluate("8−3") == 5
        assert evaluate("4×5") == 20
        assert evaluate("10÷4") == 2.5
        assert evaluate("√4+1") == 3

    def test_square_root_binds_tighter_than_multiply(self):
        assert evaluate("sqrt4*4") == 8

    def test_irrational_result(self):
        assert evaluate("sqrt2") == pytest.approx(1.41421356)


# =============================================================================
# Invalid Equations
# =============================================================================

class TestInvalid:
    """Anything outside the grammar, or non-finite, has no valid result."""

    @pytest.mark.parametrize("expression", [
        "",
        "   ",
        "5/0",
        "1+4/(2-2)",
        "2+",
        "+2",
        "*3",
        "2 3",
        "(2+3)",
        "2*(3)",
        "sqrt",
        "sqrt+4",
        "sqrt(1-5)",
        "sqrt(4",
        "2^3",
        "abc",
        "1.5",
    ])
    def test_invalid(self, expression):
        assert evaluate(expression) is None

    def test_none_has_no_result(self):
        assert evaluate(None) is None

    def test_division_by_zero_after_sqrt(self):
        assert evaluate("4/sqrt0") is None

    def test_too_long(self):
        with pytest.raises(MalformedEquation, match="longer than"):
            evaluate_or_raise("1+" * 150 + "1")
        assert evaluate("9" * 400) is None

    def test_deeply_nested_square_roots(self):
        nested = "sqrt(" * 400 + "1" + ")" * 400
        assert evaluate(nested) is None

        nested = "sqrt(" * (MAX_SQRT_NESTING + 1) + "1" + ")" * (MAX_SQRT_NESTING + 1)
        with pytest.raises(MalformedEquation, match="nested"):
            evaluate_or_raise(nested)

    def test_nesting_at_the_limit(self):
        nested = "√(" * MAX_SQRT_NESTING + "1" + ")" * MAX_SQRT_NESTING
        assert evaluate(nested) == 1

    def test_large_product_within_length(self):
        factor = "9" * 60
        assert evaluate(f"{factor}*{factor}*{factor}") == pytest.approx(1e180)

    def test_evaluate_or_raise(self):
        with pytest.raises(MalformedEquation):
            evaluate_or_raise("1/0")
        assert evaluate_or_raise("1+1") == 2

    def test_tokenize_reports_position(self):
        with pytest.raises(MalformedEquation, match="position 2"):
            tokenize("1+x")


# =============================================================================
# Helpers
# =============================================================================

class TestHelpers:

    def test_expression_from_cards(self):
        cards = [
            OperationCard(OperationType.SQUARE_ROOT),
            NumberCard(4, CardColor.DARK),
            OperationCard(OperationType.MULTIPLY),
            NumberCard(3, CardColor.GOLD),
        ]
        assert expression_from_cards(cards) == "sqrt4*3"
        assert evaluate(expression_from_cards(cards)) == 6

    def test_distance_to_target(self):
        assert distance_to_target(18.5, 20) == 1.5
        assert distance_to_target(-1, 1) == 2
        assert distance_to_target(None, 1) is None
