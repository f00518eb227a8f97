import math

import pytest

from derivative.errors import UnsupportedExpressionError
from derivative.expression import (
    Constant, UnaryOp, add, const, div, func, mul, neg, power, sub, var,
)
from derivative.formatter import MathFormatter
from derivative.parser import parse
from derivative.rules import (
    ChainRule,
    ConstantMultipleRule,
    ConstantRule,
    ElementaryFunctionRule,
    NegationRule,
    PowerRule,
    ProductRule,
    QuotientRule,
    SinRule,
    SumRule,
    VariableRule,
    default_rules,
    local_derivative,
)
from derivative.simplifier import simplify

x = var("x")
fmt = MathFormatter()


def d(text: str) -> str:
    """Simplified, formatted local derivative of *text* with respect to x."""
    return fmt.format(simplify(local_derivative(parse(text), "x")))


@pytest.mark.parametrize(
    "text,expected",
    [
        ("7", "0"),
        ("y", "0"),
        ("x", "1"),
        ("x^3", "3x²"),
        ("x^y", "y × x^(y - 1)"),
        ("x^2 + 3x", "2x + 3"),
        ("5 - x", "-1"),
        ("-x", "-1"),
        ("x * sin(x)", "sin(x) + x × cos(x)"),
        ("x / 2", "0.5"),
        ("1 / x", "-1 / x²"),
        ("ln(x)", "1 / x"),
        ("exp(x)", "exp(x)"),
        ("cos(x)", "-sin(x)"),
    ],
)
def test_local_derivative(text: str, expected: str) -> None:
    assert d(text) == expected


@pytest.mark.parametrize("text", ["sin(x^2)", "ln(2x)", "(x + 1)^2", "2^x", "x^x"])
def test_local_derivative_refuses_chain_shapes(text: str) -> None:
    with pytest.raises(UnsupportedExpressionError, match="Cannot differentiate"):
        local_derivative(parse(text), "x")


def test_log_derivative_uses_ln10() -> None:
    result = simplify(local_derivative(func(UnaryOp.LOG, x), "x"))
    assert result == div(const(1), mul(x, const(math.log(10))))


class TestCanApply:
    def test_constant_rule_accepts_anything_free_of_the_variable(self) -> None:
        rule = ConstantRule()
        assert rule.can_apply(const(3), "x")
        assert rule.can_apply(parse("sin(y) * y"), "x")
        assert not rule.can_apply(x, "x")

    def test_power_rule_needs_bare_base_and_constant_exponent(self) -> None:
        rule = PowerRule()
        assert rule.can_apply(parse("x^2"), "x")
        assert rule.can_apply(parse("x^n"), "x")
        assert not rule.can_apply(parse("x^x"), "x")
        assert not rule.can_apply(parse("(x + 1)^2"), "x")

    def test_constant_multiple_needs_exactly_one_side_with_the_variable(self) -> None:
        rule = ConstantMultipleRule()
        assert rule.can_apply(parse("3 * sin(x)"), "x")
        assert rule.can_apply(parse("sin(x) * 3"), "x")
        assert not rule.can_apply(parse("x * sin(x)"), "x")

    def test_chain_rule_skips_bare_arguments(self) -> None:
        rule = ChainRule()
        assert not rule.can_apply(parse("sin(x)"), "x")
        assert rule.can_apply(parse("sin(x^2)"), "x")
        assert rule.can_apply(parse("(x + 1)^3"), "x")
        assert not rule.can_apply(parse("x^3"), "x")

    def test_sin_rule_only_for_bare_argument(self) -> None:
        rule = SinRule()
        assert rule.can_apply(parse("sin(x)"), "x")
        assert not rule.can_apply(parse("sin(2x)"), "x")
        assert not rule.can_apply(parse("cos(x)"), "x")


class TestApply:
    def test_constant_and_variable(self) -> None:
        assert ConstantRule().apply(const(4), "x") == Constant(0)
        assert VariableRule().apply(x, "x") == Constant(1)
        assert VariableRule().apply(var("t"), "x") == Constant(0)

    def test_power(self) -> None:
        result = PowerRule().apply(power(x, const(3)), "x")
        assert result == mul(const(3), power(x, sub(const(3), const(1))))

    def test_constant_multiple(self) -> None:
        result = ConstantMultipleRule().apply(parse("5 * x^2"), "x")
        assert fmt.format(simplify(result)) == "10x"

    def test_sum_and_negation(self) -> None:
        assert fmt.format(simplify(SumRule().apply(parse("x^2 - x"), "x"))) == "2x - 1"
        assert simplify(NegationRule().apply(neg(power(x, const(2))), "x")) == \
            neg(mul(const(2), x))

    def test_product_and_quotient(self) -> None:
        product = simplify(ProductRule().apply(parse("x * ln(x)"), "x"))
        assert fmt.format(product) == "ln(x) + x × (1 / x)"
        quotient = simplify(QuotientRule().apply(parse("sin(x) / x"), "x"))
        assert fmt.format(quotient) == "(cos(x) × x - sin(x)) / x²"

    def test_chain_function_and_power(self) -> None:
        inner = simplify(ChainRule().apply(parse("sin(x^2)"), "x"))
        assert inner == mul(func(UnaryOp.COS, power(x, const(2))), mul(const(2), x))
        outer = simplify(ChainRule().apply(parse("(2x + 1)^3"), "x"))
        assert fmt.format(outer) == "3 × (2x + 1)² × 2"

    def test_chain_refuses_variable_exponent(self) -> None:
        with pytest.raises(UnsupportedExpressionError, match="exponent depends on x"):
            ChainRule().apply(parse("(x + 1)^x"), "x")

    def test_chain_refuses_function_without_derivative(self) -> None:
        with pytest.raises(UnsupportedExpressionError, match="No derivative known"):
            ChainRule().apply(neg(add(x, const(1))), "x")

    def test_elementary_functions(self) -> None:
        rule = ElementaryFunctionRule()
        assert rule.can_apply(func(UnaryOp.ATAN, x), "x")
        result = simplify(rule.apply(func(UnaryOp.ATAN, x), "x"))
        assert fmt.format(result) == "1 / (1 + x²)"


def test_explanation_params() -> None:
    product = parse("x * sin(x)")
    params = ProductRule().explanation_params(product, ProductRule().apply(product, "x"), "x")
    assert params == {"u": "x", "v": "sin(x)", "u_prime": "1", "v_prime": "cos(x)"}

    power_expr = parse("x^3")
    params = PowerRule().explanation_params(power_expr, PowerRule().apply(power_expr, "x"))
    assert params["base"] == "x" and params["exponent"] == "3"


def test_inner_derivations() -> None:
    pairs = SumRule().inner_derivations(parse("x^2 + sin(x)"), "x")
    assert [fmt.format(sub_expr) for sub_expr, _ in pairs] == ["x²", "sin(x)"]
    assert PowerRule().inner_derivations(parse("x^2"), "x") == []


def test_default_rules_have_unique_names_and_priorities() -> None:
    rules = default_rules()
    assert len(rules) == 16
    assert len({r.name for r in rules}) == len(rules)
    assert len({r.priority for r in rules}) == len(rules)
    assert all(r.description_key.startswith("rule_") for r in rules)
    assert "Power Rule" in repr(PowerRule())
