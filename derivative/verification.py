"""
Independent check of a computed derivative with SymPy and NumPy.

The rule engine's answer is compared against ``sympy.diff`` of the same
input: both expressions are lambdified and evaluated at a handful of
sample points.  Points where either side is undefined (``ln`` of a
negative number, a pole of ``1/x``) are skipped rather than counted as
mismatches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
import sympy
from sympy import lambdify

from derivative.config import Config
from derivative.expression import BinaryOp, Constant, Expr, Unary, UnaryOp, Variable

logger = logging.getLogger(__name__)

# Value substituted for any variable other than the one differentiated.
_OTHER_SYMBOL_VALUE = 1.3
_SAMPLE_RANGE = (-2.5, 2.5)
# Shift away from integers so 0 and ±1 (common poles) are not sampled.
_SAMPLE_SHIFT = 0.137


_SYMPY_FUNCTIONS = {
    UnaryOp.SIN: sympy.sin,
    UnaryOp.COS: sympy.cos,
    UnaryOp.TAN: sympy.tan,
    UnaryOp.COT: sympy.cot,
    UnaryOp.SEC: sympy.sec,
    UnaryOp.CSC: sympy.csc,
    UnaryOp.ASIN: sympy.asin,
    UnaryOp.ACOS: sympy.acos,
    UnaryOp.ATAN: sympy.atan,
    UnaryOp.LN: sympy.log,
    UnaryOp.LOG: lambda g: sympy.log(g, 10),
    UnaryOp.EXP: sympy.exp,
    UnaryOp.SQRT: sympy.sqrt,
    UnaryOp.ABS: sympy.Abs,
    UnaryOp.NEGATE: lambda g: -g,
}


def to_sympy(expr: Expr):
    """Convert an expression tree into the equivalent SymPy expression."""
    if isinstance(expr, Constant):
        if expr.value.is_integer():
            return sympy.Integer(int(expr.value))
        return sympy.Float(expr.value)
    if isinstance(expr, Variable):
        return sympy.Symbol(expr.name)
    if isinstance(expr, Unary):
        return _SYMPY_FUNCTIONS[expr.op](to_sympy(expr.operand))
    left, right = to_sympy(expr.left), to_sympy(expr.right)
    if expr.op is BinaryOp.ADD:
        return left + right
    if expr.op is BinaryOp.SUBTRACT:
        return left - right
    if expr.op is BinaryOp.MULTIPLY:
        return left * right
    if expr.op is BinaryOp.DIVIDE:
        return left / right
    return left ** right


@dataclass(frozen=True)
class VerificationReport:
    status: str                       # "pass" | "fail" | "skipped"
    checked_points: int = 0
    max_error: float | None = None
    reference: str = ""
    library: str = f"SymPy {sympy.__version__}"
    steps: list = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.status == "pass"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "checked_points": self.checked_points,
            "max_error": self.max_error,
            "reference": self.reference,
            "library": self.library,
            "steps": list(self.steps),
        }


def _evaluate(fn, points: np.ndarray) -> np.ndarray:
    """Evaluate a lambdified function, broadcasting constant results."""
    with np.errstate(all="ignore"):
        values = fn(points)
    return np.broadcast_to(np.asarray(values, dtype=float), points.shape)


def sample_points(samples: int) -> np.ndarray:
    low, high = _SAMPLE_RANGE
    return np.linspace(low, high, max(samples, 1)) + _SAMPLE_SHIFT


def verify_derivative(original: Expr, derivative: Expr, var_name: str = "x",
                      samples: int | None = None,
                      tolerance: float | None = None,
                      order: int = 1) -> VerificationReport:
    """Compare *derivative* against SymPy's derivative of *original*.

    Returns a report with status ``"skipped"`` when SymPy cannot handle
    the expression or no sample point is defined on both sides.
    With *order* above 1 the reference is the order-th derivative.
    """
    samples = Config.VERIFY_SAMPLES if samples is None else samples
    tolerance = Config.VERIFY_TOLERANCE if tolerance is None else tolerance

    symbol = sympy.Symbol(var_name)
    try:
        original_sym = to_sympy(original)
        others = {s: _OTHER_SYMBOL_VALUE for s in original_sym.free_symbols if s != symbol}
        reference = sympy.diff(original_sym, symbol, order)
        candidate = to_sympy(derivative)
        f_ref = lambdify(symbol, reference.subs(others), modules="numpy")
        f_got = lambdify(symbol, candidate.subs(others), modules="numpy")
        points = sample_points(samples)
        expected = _evaluate(f_ref, points)
        actual = _evaluate(f_got, points)
    except Exception as e:
        logger.warning("verification skipped for %s: %s", original, e)
        return VerificationReport(status="skipped", steps=[{
            "description": "Verification skipped",
            "expression": str(original),
            "explanation": f"SymPy could not evaluate the expression: {e}",
        }])

    reference_text = str(reference).replace("**", "^")
    mask = np.isfinite(expected) & np.isfinite(actual)
    checked = int(mask.sum())
    steps = [{
        "description": "Differentiate independently with SymPy",
        "expression": f"d/d{var_name} = {reference_text}",
        "explanation": (
            f"SymPy computes the derivative of the original function on its own, "
            f"without using the rule trail."
        ),
    }]
    if checked == 0:
        steps.append({
            "description": "No comparable sample points",
            "expression": "",
            "explanation": "Both derivatives are undefined at every sample point.",
        })
        return VerificationReport(status="skipped", reference=reference_text, steps=steps)

    errors = np.abs(expected[mask] - actual[mask]) / np.maximum(1.0, np.abs(expected[mask]))
    max_error = float(errors.max())
    status = "pass" if max_error <= tolerance else "fail"
    mark = "✓" if status == "pass" else "✗"
    steps.append({
        "description": "Compare at sample points",
        "expression": f"{checked} points, max relative error {max_error:.3g}  {mark}",
        "explanation": (
            f"Both derivatives were evaluated at {checked} points in "
            f"[{_SAMPLE_RANGE[0]}, {_SAMPLE_RANGE[1]}]; "
            + ("they agree within the tolerance."
               if status == "pass" else "they disagree, so the rule trail is suspect.")
        ),
    })
    if status == "fail":
        logger.warning("derivative of %s disagrees with SymPy (max error %g)",
                       original, max_error)
    return VerificationReport(status=status, checked_points=checked,
                              max_error=max_error, reference=reference_text,
                              steps=steps)
