import dataclasses

import pytest

from derivative.config import Config, _env_flag
from derivative.errors import (
    DerivativeError,
    DivisionByZeroError,
    NoApplicableRuleError,
    ParseError,
    UnsupportedExpressionError,
)
from derivative.expression import (
    Binary, BinaryOp, Constant, UnaryOp, Variable, add, const, func, mul, power, var,
)

x = var("x")


def test_nodes_compare_structurally() -> None:
    assert add(x, const(1)) == Binary(Variable("x"), BinaryOp.ADD, Constant(1))
    assert Constant(2) == Constant(2.0)
    assert isinstance(Constant(3).value, float)
    assert len({mul(x, x), mul(x, x)}) == 1


def test_nodes_are_immutable() -> None:
    with pytest.raises(dataclasses.FrozenInstanceError):
        x.name = "y"


def test_tree_queries() -> None:
    expr = add(power(x, const(2)), func(UnaryOp.SIN, var("t")))
    assert expr.contains("x") and expr.contains("t")
    assert not expr.contains("y")
    assert expr.variables() == {"x", "t"}
    assert expr.size() == 6
    assert const(0).is_zero() and const(1).is_one()
    assert not x.is_zero()


def test_operator_lookup() -> None:
    assert BinaryOp.from_symbol("^") is BinaryOp.POWER
    assert BinaryOp.from_symbol("%") is None
    assert BinaryOp.MULTIPLY.precedence > BinaryOp.ADD.precedence
    assert UnaryOp.from_symbol("atan") is UnaryOp.ATAN
    assert UnaryOp.from_symbol("ln") is UnaryOp.LN
    assert UnaryOp.SQRT.symbol == "sqrt"


def test_error_hierarchy() -> None:
    for cls in (ParseError, DivisionByZeroError, NoApplicableRuleError,
                UnsupportedExpressionError):
        assert issubclass(cls, DerivativeError)
    assert issubclass(ParseError, ValueError)
    assert issubclass(DivisionByZeroError, ArithmeticError)
    err = ParseError("bad", 4)
    assert err.message == "bad" and err.position == 4 and str(err) == "bad"


@pytest.mark.parametrize("raw,expected", [("true", True), ("ON", True), ("1", True),
                                          ("false", False), ("no", False)])
def test_env_flag(monkeypatch, raw: str, expected: bool) -> None:
    monkeypatch.setenv("DERIVSOLVER_TEST_FLAG", raw)
    assert _env_flag("DERIVSOLVER_TEST_FLAG", "false") is expected


def test_config_defaults_are_typed() -> None:
    assert isinstance(Config.VARIABLE, str) and Config.VARIABLE
    assert isinstance(Config.PRECISION, int)
    assert isinstance(Config.VERIFY_TOLERANCE, float)
    assert Config.LOG_LEVEL == Config.LOG_LEVEL.upper()
