"""
Differentiation rules for DerivSolver.

Each rule knows one law of differentiation: whether it applies to an
expression (``can_apply``), how to rewrite it (``apply``), and which
parameters describe the rewrite in the step trail
(``explanation_params``).  ``apply`` must only be called after
``can_apply`` returned True.

Rules never call back into the registry.  When a rule needs the
derivative of a sub-expression it uses ``local_derivative``, a bounded
differentiator that covers:

  - expressions free of the variable (→ 0), the variable itself (→ 1);
  - ``x^n`` with n free of x;
  - sums, differences, negation, products and quotients, recursively;
  - sin, cos, tan, cot, sec, csc, arcsin, arccos, arctan, ln, log, exp,
    sqrt and abs applied directly to the bare variable.

It does not apply the chain rule, so ``sin(x^2)`` or ``(x+1)^3`` nested
inside another rule's operand raise ``UnsupportedExpressionError``
instead of producing a wrong derivative.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

from derivative.errors import UnsupportedExpressionError
from derivative.expression import (
    Binary, BinaryOp, Constant, Expr, Unary, UnaryOp, Variable,
    add, const, div, mul, neg, power, sub,
)
from derivative.formatter import MathFormatter

_formatter = MathFormatter()


def _fmt(expr: Expr) -> str:
    return _formatter.format(expr)


def _is_var(expr: Expr, var_name: str) -> bool:
    return isinstance(expr, Variable) and expr.name == var_name


# ── Outer-function derivatives ──────────────────────────────────────────
# f'(g) for each elementary function, written in terms of the argument g.

def _d_sin(g):
    return Unary(UnaryOp.COS, g)


def _d_cos(g):
    return neg(Unary(UnaryOp.SIN, g))


def _d_tan(g):
    return div(const(1), power(Unary(UnaryOp.COS, g), const(2)))


def _d_cot(g):
    return neg(div(const(1), power(Unary(UnaryOp.SIN, g), const(2))))


def _d_sec(g):
    return mul(Unary(UnaryOp.SEC, g), Unary(UnaryOp.TAN, g))


def _d_csc(g):
    return neg(mul(Unary(UnaryOp.CSC, g), Unary(UnaryOp.COT, g)))


def _d_asin(g):
    return div(const(1), Unary(UnaryOp.SQRT, sub(const(1), power(g, const(2)))))


def _d_acos(g):
    return neg(_d_asin(g))


def _d_atan(g):
    return div(const(1), add(const(1), power(g, const(2))))


def _d_ln(g):
    return div(const(1), g)


def _d_log(g):
    return div(const(1), mul(g, const(math.log(10))))


def _d_exp(g):
    return Unary(UnaryOp.EXP, g)


def _d_sqrt(g):
    return div(const(1), mul(const(2), Unary(UnaryOp.SQRT, g)))


def _d_abs(g):
    return div(g, Unary(UnaryOp.ABS, g))


OUTER_DERIVATIVES = {
    UnaryOp.SIN: _d_sin,
    UnaryOp.COS: _d_cos,
    UnaryOp.TAN: _d_tan,
    UnaryOp.COT: _d_cot,
    UnaryOp.SEC: _d_sec,
    UnaryOp.CSC: _d_csc,
    UnaryOp.ASIN: _d_asin,
    UnaryOp.ACOS: _d_acos,
    UnaryOp.ATAN: _d_atan,
    UnaryOp.LN: _d_ln,
    UnaryOp.LOG: _d_log,
    UnaryOp.EXP: _d_exp,
    UnaryOp.SQRT: _d_sqrt,
    UnaryOp.ABS: _d_abs,
}


# ── Bounded local differentiator ────────────────────────────────────────

def local_derivative(expr: Expr, var_name: str) -> Expr:
    """Differentiate *expr* without the rule registry and without the
    chain rule.  See the module docstring for the covered shapes."""
    if not expr.contains(var_name):
        return const(0)
    if isinstance(expr, Variable):
        return const(1)

    if isinstance(expr, Unary):
        if expr.op is UnaryOp.NEGATE:
            return neg(local_derivative(expr.operand, var_name))
        if _is_var(expr.operand, var_name) and expr.op in OUTER_DERIVATIVES:
            return OUTER_DERIVATIVES[expr.op](expr.operand)
        raise UnsupportedExpressionError(
            f"Cannot differentiate {_fmt(expr)} inside another rule: "
            f"the chain rule is only applied at the top level")

    op = expr.op
    left, right = expr.left, expr.right
    if op in (BinaryOp.ADD, BinaryOp.SUBTRACT):
        return Binary(local_derivative(left, var_name), op,
                      local_derivative(right, var_name))
    if op is BinaryOp.MULTIPLY:
        if not left.contains(var_name):
            return mul(left, local_derivative(right, var_name))
        if not right.contains(var_name):
            return mul(right, local_derivative(left, var_name))
        return add(mul(local_derivative(left, var_name), right),
                   mul(left, local_derivative(right, var_name)))
    if op is BinaryOp.DIVIDE:
        if not right.contains(var_name):
            return div(local_derivative(left, var_name), right)
        numerator = sub(mul(local_derivative(left, var_name), right),
                        mul(left, local_derivative(right, var_name)))
        return div(numerator, power(right, const(2)))
    # power
    if _is_var(left, var_name) and not right.contains(var_name):
        return mul(right, power(left, sub(right, const(1))))
    raise UnsupportedExpressionError(
        f"Cannot differentiate {_fmt(expr)} inside another rule: "
        f"only powers of the bare variable with a constant exponent are supported")


# ── Rule base ───────────────────────────────────────────────────────────

class Rule(ABC):
    """One law of differentiation.  Lower *priority* is tried first."""

    name: str = ""
    description_key: str = ""
    priority: int = 100

    @abstractmethod
    def can_apply(self, expr: Expr, var_name: str) -> bool:
        ...

    @abstractmethod
    def apply(self, expr: Expr, var_name: str) -> Expr:
        ...

    def explanation_params(self, expr: Expr, result: Expr,
                           var_name: str = "x") -> dict[str, str]:
        return {}

    def inner_derivations(self, expr: Expr, var_name: str) -> list[tuple[Expr, Expr]]:
        """``(sub_expression, derivative)`` pairs this rule computed
        internally, shown as nested steps under the rule's step."""
        return []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} priority={self.priority}>"


class ConstantRule(Rule):
    """d/dx(c) = 0, also for any expression free of x."""

    name = "Constant Rule"
    description_key = "rule_constant"
    priority = 10

    def can_apply(self, expr, var_name):
        return isinstance(expr, Constant) or not expr.contains(var_name)

    def apply(self, expr, var_name):
        return const(0)

    def explanation_params(self, expr, result, var_name="x"):
        return {"constant": _fmt(expr), "result": "0"}


class VariableRule(Rule):
    """d/dx(x) = 1, d/dx(y) = 0."""

    name = "Variable Rule"
    description_key = "rule_variable"
    priority = 20

    def can_apply(self, expr, var_name):
        return isinstance(expr, Variable)

    def apply(self, expr, var_name):
        return const(1) if expr.name == var_name else const(0)

    def explanation_params(self, expr, result, var_name="x"):
        return {"variable": expr.name, "result": _fmt(result)}


class PowerRule(Rule):
    """d/dx(x^n) = n * x^(n-1) for n free of x."""

    name = "Power Rule"
    description_key = "rule_power"
    priority = 30

    def can_apply(self, expr, var_name):
        return (isinstance(expr, Binary) and expr.op is BinaryOp.POWER
                and _is_var(expr.left, var_name)
                and not expr.right.contains(var_name))

    def apply(self, expr, var_name):
        n = expr.right
        return mul(n, power(expr.left, sub(n, const(1))))

    def explanation_params(self, expr, result, var_name="x"):
        return {"base": _fmt(expr.left), "exponent": _fmt(expr.right),
                "result": _fmt(result)}


def _split_constant_factor(expr: Binary, var_name: str) -> tuple[Expr, Expr]:
    if not expr.left.contains(var_name):
        return expr.left, expr.right
    return expr.right, expr.left


class ConstantMultipleRule(Rule):
    """d/dx(c * f) = c * f'."""

    name = "Constant Multiple Rule"
    description_key = "rule_constant_multiple"
    priority = 35

    def can_apply(self, expr, var_name):
        if not (isinstance(expr, Binary) and expr.op is BinaryOp.MULTIPLY):
            return False
        return expr.left.contains(var_name) != expr.right.contains(var_name)

    def apply(self, expr, var_name):
        constant, function = _split_constant_factor(expr, var_name)
        return mul(constant, local_derivative(function, var_name))

    def inner_derivations(self, expr, var_name):
        _, function = _split_constant_factor(expr, var_name)
        return [(function, local_derivative(function, var_name))]

    def explanation_params(self, expr, result, var_name="x"):
        constant, function = _split_constant_factor(expr, var_name)
        return {"constant": _fmt(constant), "function": _fmt(function),
                "result": _fmt(result)}


class SumRule(Rule):
    """d/dx(f ± g) = f' ± g'."""

    name = "Sum Rule"
    description_key = "rule_sum"
    priority = 40

    def can_apply(self, expr, var_name):
        return (isinstance(expr, Binary)
                and expr.op in (BinaryOp.ADD, BinaryOp.SUBTRACT))

    def apply(self, expr, var_name):
        return Binary(local_derivative(expr.left, var_name), expr.op,
                      local_derivative(expr.right, var_name))

    def inner_derivations(self, expr, var_name):
        return [(term, local_derivative(term, var_name))
                for term in (expr.left, expr.right)]

    def explanation_params(self, expr, result, var_name="x"):
        return {"left": _fmt(expr.left), "right": _fmt(expr.right),
                "operator": expr.op.symbol, "result": _fmt(result)}


class NegationRule(Rule):
    """d/dx(-f) = -(f')."""

    name = "Negation Rule"
    description_key = "rule_negation"
    priority = 45

    def can_apply(self, expr, var_name):
        return isinstance(expr, Unary) and expr.op is UnaryOp.NEGATE

    def apply(self, expr, var_name):
        return neg(local_derivative(expr.operand, var_name))

    def inner_derivations(self, expr, var_name):
        return [(expr.operand, local_derivative(expr.operand, var_name))]

    def explanation_params(self, expr, result, var_name="x"):
        return {"function": _fmt(expr.operand), "result": _fmt(result)}


class ProductRule(Rule):
    """d/dx(u * v) = u' * v + u * v'."""

    name = "Product Rule"
    description_key = "rule_product"
    priority = 50

    def can_apply(self, expr, var_name):
        return (isinstance(expr, Binary) and expr.op is BinaryOp.MULTIPLY
                and (expr.left.contains(var_name) or expr.right.contains(var_name)))

    def apply(self, expr, var_name):
        u, v = expr.left, expr.right
        return add(mul(local_derivative(u, var_name), v),
                   mul(u, local_derivative(v, var_name)))

    def inner_derivations(self, expr, var_name):
        return [(side, local_derivative(side, var_name))
                for side in (expr.left, expr.right)]

    def explanation_params(self, expr, result, var_name="x"):
        u, v = expr.left, expr.right
        return {"u": _fmt(u), "v": _fmt(v),
                "u_prime": _fmt(local_derivative(u, var_name)),
                "v_prime": _fmt(local_derivative(v, var_name))}


class QuotientRule(Rule):
    """d/dx(u / v) = (u' * v - u * v') / v^2."""

    name = "Quotient Rule"
    description_key = "rule_quotient"
    priority = 60

    def can_apply(self, expr, var_name):
        return (isinstance(expr, Binary) and expr.op is BinaryOp.DIVIDE
                and (expr.left.contains(var_name) or expr.right.contains(var_name)))

    def apply(self, expr, var_name):
        u, v = expr.left, expr.right
        numerator = sub(mul(local_derivative(u, var_name), v),
                        mul(u, local_derivative(v, var_name)))
        return div(numerator, power(v, const(2)))

    def inner_derivations(self, expr, var_name):
        return [(side, local_derivative(side, var_name))
                for side in (expr.left, expr.right)]

    def explanation_params(self, expr, result, var_name="x"):
        u, v = expr.left, expr.right
        return {"u": _fmt(u), "v": _fmt(v),
                "u_prime": _fmt(local_derivative(u, var_name)),
                "v_prime": _fmt(local_derivative(v, var_name))}


class ChainRule(Rule):
    """d/dx f(g(x)) = f'(g(x)) * g'(x) and
    d/dx g(x)^n = n * g(x)^(n-1) * g'(x)."""

    name = "Chain Rule"
    description_key = "rule_chain"
    priority = 70

    def can_apply(self, expr, var_name):
        if isinstance(expr, Unary):
            inner = expr.operand
            return not isinstance(inner, Variable) and inner.contains(var_name)
        if isinstance(expr, Binary) and expr.op is BinaryOp.POWER:
            base = expr.left
            return not isinstance(base, Variable) and base.contains(var_name)
        return False

    def apply(self, expr, var_name):
        if isinstance(expr, Unary):
            g = expr.operand
            outer = OUTER_DERIVATIVES.get(expr.op)
            if outer is None:
                raise UnsupportedExpressionError(
                    f"No derivative known for the function '{expr.op.symbol}'")
            return mul(outer(g), local_derivative(g, var_name))

        g, n = expr.left, expr.right
        if n.contains(var_name):
            raise UnsupportedExpressionError(
                f"Cannot differentiate {_fmt(expr)}: "
                f"the exponent depends on {var_name}")
        outer = mul(n, power(g, sub(n, const(1))))
        return mul(outer, local_derivative(g, var_name))

    def inner_derivations(self, expr, var_name):
        inner = expr.operand if isinstance(expr, Unary) else expr.left
        return [(inner, local_derivative(inner, var_name))]

    def explanation_params(self, expr, result, var_name="x"):
        if isinstance(expr, Unary):
            return {"outer_function": expr.op.symbol,
                    "inner_function": _fmt(expr.operand),
                    "result": _fmt(result)}
        return {"base": _fmt(expr.left), "exponent": _fmt(expr.right),
                "result": _fmt(result)}


class FunctionRule(Rule):
    """Derivative of one elementary function applied to the bare variable."""

    function: UnaryOp

    def can_apply(self, expr, var_name):
        return (isinstance(expr, Unary) and expr.op is self.function
                and _is_var(expr.operand, var_name))

    def apply(self, expr, var_name):
        return OUTER_DERIVATIVES[self.function](expr.operand)

    def explanation_params(self, expr, result, var_name="x"):
        return {"function": self.function.symbol, "result": _fmt(result)}


class SinRule(FunctionRule):
    name = "Sine Derivative"
    description_key = "rule_sin"
    priority = 80
    function = UnaryOp.SIN


class CosRule(FunctionRule):
    name = "Cosine Derivative"
    description_key = "rule_cos"
    priority = 81
    function = UnaryOp.COS


class TanRule(FunctionRule):
    name = "Tangent Derivative"
    description_key = "rule_tan"
    priority = 82
    function = UnaryOp.TAN


class LnRule(FunctionRule):
    name = "Natural Logarithm Derivative"
    description_key = "rule_ln"
    priority = 83
    function = UnaryOp.LN


class ExpRule(FunctionRule):
    name = "Exponential Derivative"
    description_key = "rule_exp"
    priority = 84
    function = UnaryOp.EXP


class SqrtRule(FunctionRule):
    name = "Square Root Derivative"
    description_key = "rule_sqrt"
    priority = 85
    function = UnaryOp.SQRT


class ElementaryFunctionRule(Rule):
    """Remaining functions of the bare variable (cot, sec, csc, arcsin,
    arccos, arctan, log, abs) from the derivative table."""

    name = "Elementary Function Derivative"
    description_key = "rule_elementary_function"
    priority = 89

    def can_apply(self, expr, var_name):
        return (isinstance(expr, Unary) and expr.op in OUTER_DERIVATIVES
                and _is_var(expr.operand, var_name))

    def apply(self, expr, var_name):
        return OUTER_DERIVATIVES[expr.op](expr.operand)

    def explanation_params(self, expr, result, var_name="x"):
        return {"function": expr.op.symbol, "result": _fmt(result)}


def default_rules() -> list[Rule]:
    """One instance of every differentiation rule."""
    return [
        ConstantRule(),
        VariableRule(),
        PowerRule(),
        ConstantMultipleRule(),
        SumRule(),
        NegationRule(),
        ProductRule(),
        QuotientRule(),
        ChainRule(),
        SinRule(),
        CosRule(),
        TanRule(),
        LnRule(),
        ExpRule(),
        SqrtRule(),
        ElementaryFunctionRule(),
    ]
