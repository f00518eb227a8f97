"""
Algebraic simplifier for DerivSolver.

``Simplifier.simplify`` normalises an expression bottom-up: children are
simplified first, then single passes of the per-operator laws run at the
node until nothing changes.  Every law either folds constants, removes
an identity, or merges like terms, so the tree never grows and the
fixpoint loop always terminates.

``Simplifier.expand`` is a separate presentation helper that multiplies
out products over sums and small integer powers.
"""

from __future__ import annotations

import logging
import math

from derivative.config import Config
from derivative.errors import DivisionByZeroError
from derivative.expression import (
    Binary, BinaryOp, Constant, Expr, Unary, UnaryOp,
)

logger = logging.getLogger(__name__)


def _reciprocal(fn):
    def apply(value: float) -> float:
        return 1.0 / fn(value)
    return apply


# Numeric counterparts of the unary operators used for constant folding.
_FOLDERS = {
    UnaryOp.NEGATE: lambda v: -v,
    UnaryOp.SIN: math.sin,
    UnaryOp.COS: math.cos,
    UnaryOp.TAN: math.tan,
    UnaryOp.COT: _reciprocal(math.tan),
    UnaryOp.SEC: _reciprocal(math.cos),
    UnaryOp.CSC: _reciprocal(math.sin),
    UnaryOp.ASIN: math.asin,
    UnaryOp.ACOS: math.acos,
    UnaryOp.ATAN: math.atan,
    UnaryOp.LN: math.log,
    UnaryOp.LOG: math.log10,
    UnaryOp.EXP: math.exp,
    UnaryOp.SQRT: math.sqrt,
    UnaryOp.ABS: abs,
}


def _is_constant(expr: Expr, value: float) -> bool:
    return isinstance(expr, Constant) and expr.value == value


class Simplifier:

    def simplify(self, expr: Expr, deep: bool = True) -> Expr:
        """Return the simplified form of *expr*.

        With *deep* the children are simplified first (post-order);
        otherwise only the root is rewritten.
        """
        if deep:
            if isinstance(expr, Binary):
                expr = Binary(self.simplify(expr.left), expr.op,
                              self.simplify(expr.right))
            elif isinstance(expr, Unary):
                expr = Unary(expr.op, self.simplify(expr.operand))
        return self._to_fixpoint(expr)

    def _to_fixpoint(self, expr: Expr) -> Expr:
        current = expr
        passes = 0
        while True:
            nxt = self._single_pass(current)
            passes += 1
            if nxt == current:
                break
            current = nxt
        if passes > 1:
            logger.debug("simplified %s -> %s in %d passes", expr, current, passes)
        return current

    def _single_pass(self, expr: Expr) -> Expr:
        if isinstance(expr, Binary):
            handler = {
                BinaryOp.ADD: self._add,
                BinaryOp.SUBTRACT: self._subtract,
                BinaryOp.MULTIPLY: self._multiply,
                BinaryOp.DIVIDE: self._divide,
                BinaryOp.POWER: self._power,
            }[expr.op]
            return handler(expr.left, expr.right)
        if isinstance(expr, Unary):
            return self._unary(expr)
        return expr

    # ── Per-operator laws (first match wins) ────────────────────────────

    def _add(self, left: Expr, right: Expr) -> Expr:
        if isinstance(left, Constant) and isinstance(right, Constant):
            return Constant(left.value + right.value)
        if left.is_zero():
            return right
        if right.is_zero():
            return left
        if left == right:
            return Binary(Constant(2.0), BinaryOp.MULTIPLY, left)
        return Binary(left, BinaryOp.ADD, right)

    def _subtract(self, left: Expr, right: Expr) -> Expr:
        if isinstance(left, Constant) and isinstance(right, Constant):
            return Constant(left.value - right.value)
        if right.is_zero():
            return left
        if left.is_zero():
            return Unary(UnaryOp.NEGATE, right)
        if left == right:
            return Constant(0.0)
        return Binary(left, BinaryOp.SUBTRACT, right)

    def _multiply(self, left: Expr, right: Expr) -> Expr:
        if isinstance(left, Constant) and isinstance(right, Constant):
            return Constant(left.value * right.value)
        if left.is_zero() or right.is_zero():
            return Constant(0.0)
        if left.is_one():
            return right
        if right.is_one():
            return left
        if _is_constant(left, -1.0):
            return Unary(UnaryOp.NEGATE, right)
        if left == right:
            return Binary(left, BinaryOp.POWER, Constant(2.0))
        # c1 * (c2 * x) -> (c1*c2) * x
        if (isinstance(left, Constant) and isinstance(right, Binary)
                and right.op is BinaryOp.MULTIPLY
                and isinstance(right.left, Constant)):
            return Binary(Constant(left.value * right.left.value),
                          BinaryOp.MULTIPLY, right.right)
        return Binary(left, BinaryOp.MULTIPLY, right)

    def _divide(self, left: Expr, right: Expr) -> Expr:
        if isinstance(left, Constant) and isinstance(right, Constant):
            if right.value == 0.0:
                raise DivisionByZeroError("Division by zero")
            return Constant(left.value / right.value)
        if left.is_zero():
            return Constant(0.0)
        if right.is_one():
            return left
        if left == right:
            return Constant(1.0)
        return Binary(left, BinaryOp.DIVIDE, right)

    def _power(self, base: Expr, exponent: Expr) -> Expr:
        if isinstance(base, Constant) and isinstance(exponent, Constant):
            folded = _fold(math.pow, base.value, exponent.value)
            if folded is not None:
                return folded
        if exponent.is_zero():
            return Constant(1.0)
        if exponent.is_one():
            return base
        if base.is_zero():
            return Constant(0.0)
        if base.is_one():
            return Constant(1.0)
        return Binary(base, BinaryOp.POWER, exponent)

    def _unary(self, expr: Unary) -> Expr:
        operand = expr.operand
        if isinstance(operand, Constant):
            folded = _fold(_FOLDERS[expr.op], operand.value)
            if folded is not None:
                return folded
        if (expr.op is UnaryOp.NEGATE and isinstance(operand, Unary)
                and operand.op is UnaryOp.NEGATE):
            return operand.operand
        return expr

    # ── Expansion ───────────────────────────────────────────────────────

    def expand(self, expr: Expr, max_power: int | None = None) -> Expr:
        """Distribute ``*`` over ``+``/``-`` and multiply out ``base^n``
        for integer n in ``[1, max_power]``.

        The result is not simplified; callers usually pass it through
        ``simplify`` afterwards.
        """
        if max_power is None:
            max_power = Config.MAX_EXPAND_POWER
        if isinstance(expr, Binary):
            if expr.op is BinaryOp.MULTIPLY:
                return self._expand_product(expr, max_power)
            if expr.op is BinaryOp.POWER:
                return self._expand_power(expr, max_power)
            return Binary(self.expand(expr.left, max_power), expr.op,
                          self.expand(expr.right, max_power))
        if isinstance(expr, Unary):
            return Unary(expr.op, self.expand(expr.operand, max_power))
        return expr

    def _expand_product(self, expr: Binary, max_power: int) -> Expr:
        left = self.expand(expr.left, max_power)
        right = self.expand(expr.right, max_power)

        # (a ± b) * c = a*c ± b*c
        if isinstance(left, Binary) and left.op in (BinaryOp.ADD, BinaryOp.SUBTRACT):
            distributed = Binary(Binary(left.left, BinaryOp.MULTIPLY, right), left.op,
                                 Binary(left.right, BinaryOp.MULTIPLY, right))
            return self.expand(distributed, max_power)

        # c * (a ± b) = c*a ± c*b
        if isinstance(right, Binary) and right.op in (BinaryOp.ADD, BinaryOp.SUBTRACT):
            distributed = Binary(Binary(left, BinaryOp.MULTIPLY, right.left), right.op,
                                 Binary(left, BinaryOp.MULTIPLY, right.right))
            return self.expand(distributed, max_power)

        return Binary(left, BinaryOp.MULTIPLY, right)

    def _expand_power(self, expr: Binary, max_power: int) -> Expr:
        base = self.expand(expr.left, max_power)
        exponent = expr.right
        if (isinstance(exponent, Constant) and exponent.value.is_integer()
                and 1 <= exponent.value <= max_power):
            product = base
            for _ in range(int(exponent.value) - 1):
                product = Binary(product, BinaryOp.MULTIPLY, base)
            return self.expand(product, max_power)
        return Binary(base, BinaryOp.POWER, exponent)


def _fold(fn, *args: float) -> Constant | None:
    """Apply *fn* to constant arguments; ``None`` when the value leaves
    the real numbers (``ln(-1)``, ``sqrt(-1)``, ``(-8)^(1/3)``)."""
    try:
        value = fn(*args)
    except (ValueError, ZeroDivisionError, OverflowError):
        return None
    if isinstance(value, complex) or math.isnan(value):
        return None
    return Constant(value)


def simplify(expr: Expr, deep: bool = True) -> Expr:
    return Simplifier().simplify(expr, deep)


def expand(expr: Expr, max_power: int | None = None) -> Expr:
    return Simplifier().expand(expr, max_power)
