"""
Expression tree for DerivSolver.

Every value handled by the parser, the rules, the simplifier and the
formatter is one of four immutable node types:

  - ``Constant(value)``            e.g. 5, 3.14, -2
  - ``Variable(name)``             e.g. x, t
  - ``Binary(left, op, right)``    e.g. x + 2, 3 * x, x ^ 2
  - ``Unary(op, operand)``         e.g. sin(x), ln(x), -x

Nodes compare structurally, so ``Binary(x, ADD, x) == Binary(x, ADD, x)``
holds for two independently built trees.  Transformations always build
new trees; nothing is mutated in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class BinaryOp(Enum):
    ADD = ("+", 1)
    SUBTRACT = ("-", 1)
    MULTIPLY = ("*", 2)
    DIVIDE = ("/", 2)
    POWER = ("^", 3)

    def __init__(self, symbol: str, precedence: int):
        self.symbol = symbol
        self.precedence = precedence

    @classmethod
    def from_symbol(cls, symbol: str) -> "BinaryOp | None":
        for op in cls:
            if op.symbol == symbol:
                return op
        return None


class UnaryOp(Enum):
    # trigonometric
    SIN = "sin"
    COS = "cos"
    TAN = "tan"
    COT = "cot"
    SEC = "sec"
    CSC = "csc"
    # inverse trigonometric
    ASIN = "arcsin"
    ACOS = "arccos"
    ATAN = "arctan"
    # logarithmic / exponential
    LN = "ln"
    LOG = "log"
    EXP = "exp"
    # other
    SQRT = "sqrt"
    ABS = "abs"
    NEGATE = "-"

    @property
    def symbol(self) -> str:
        return self.value

    @classmethod
    def from_symbol(cls, symbol: str) -> "UnaryOp | None":
        symbol = _FUNCTION_ALIASES.get(symbol, symbol)
        for op in cls:
            if op.value == symbol:
                return op
        return None


# Short spellings accepted by the parser for the arc functions.
_FUNCTION_ALIASES = {
    "asin": "arcsin",
    "acos": "arccos",
    "atan": "arctan",
}

FUNCTION_NAMES = (
    "sin", "cos", "tan", "cot", "sec", "csc",
    "arcsin", "arccos", "arctan", "asin", "acos", "atan",
    "ln", "log", "exp", "sqrt", "abs",
)


class Expr:
    """Base class of all expression nodes."""

    __slots__ = ()

    def is_zero(self) -> bool:
        return isinstance(self, Constant) and self.value == 0.0

    def is_one(self) -> bool:
        return isinstance(self, Constant) and self.value == 1.0

    def contains(self, var_name: str) -> bool:
        """Return True if the variable *var_name* occurs anywhere in the tree."""
        if isinstance(self, Variable):
            return self.name == var_name
        if isinstance(self, Binary):
            return self.left.contains(var_name) or self.right.contains(var_name)
        if isinstance(self, Unary):
            return self.operand.contains(var_name)
        return False

    def variables(self) -> set[str]:
        if isinstance(self, Variable):
            return {self.name}
        if isinstance(self, Binary):
            return self.left.variables() | self.right.variables()
        if isinstance(self, Unary):
            return self.operand.variables()
        return set()

    def size(self) -> int:
        """Number of nodes in the tree."""
        if isinstance(self, Binary):
            return 1 + self.left.size() + self.right.size()
        if isinstance(self, Unary):
            return 1 + self.operand.size()
        return 1


@dataclass(frozen=True)
class Constant(Expr):
    value: float

    def __post_init__(self):
        object.__setattr__(self, "value", float(self.value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Variable(Expr):
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Binary(Expr):
    left: Expr
    op: BinaryOp
    right: Expr

    def __str__(self) -> str:
        return f"({self.left} {self.op.symbol} {self.right})"


@dataclass(frozen=True)
class Unary(Expr):
    op: UnaryOp
    operand: Expr

    def __str__(self) -> str:
        return f"{self.op.symbol}({self.operand})"


# ── Builders ────────────────────────────────────────────────────────────
# Short constructors used by the rules and the tests.

def const(value: float) -> Constant:
    return Constant(value)


def var(name: str = "x") -> Variable:
    return Variable(name)


def add(left: Expr, right: Expr) -> Binary:
    return Binary(left, BinaryOp.ADD, right)


def sub(left: Expr, right: Expr) -> Binary:
    return Binary(left, BinaryOp.SUBTRACT, right)


def mul(left: Expr, right: Expr) -> Binary:
    return Binary(left, BinaryOp.MULTIPLY, right)


def div(left: Expr, right: Expr) -> Binary:
    return Binary(left, BinaryOp.DIVIDE, right)


def power(base: Expr, exponent: Expr) -> Binary:
    return Binary(base, BinaryOp.POWER, exponent)


def neg(operand: Expr) -> Unary:
    return Unary(UnaryOp.NEGATE, operand)


def func(op: UnaryOp, operand: Expr) -> Unary:
    return Unary(op, operand)
