"""
Expression formatter for DerivSolver.

Renders an expression tree as plain text with Unicode superscripts
(``2x² + 3``), as LaTeX (``2x^{2} + 3``) or as an HTML fragment.
Parentheses come from comparing each node's precedence with its
parent's, and the multiplication glyph is dropped where the product
reads naturally without it (``2x``, ``3sin(x)``, ``2(x + 1)``).
"""

from __future__ import annotations

import html
import math
from enum import Enum

from derivative.config import Config
from derivative.expression import (
    Binary, BinaryOp, Constant, Expr, Unary, UnaryOp, Variable,
)


class FormatStyle(Enum):
    TEXT = "text"
    LATEX = "latex"
    HTML = "html"

    @classmethod
    def from_string(cls, value: str) -> "FormatStyle":
        for style in cls:
            if style.value == value.lower():
                return style
        raise ValueError(f"Unknown format style: '{value}'")


_SUPERSCRIPT = str.maketrans("0123456789+-.", "⁰¹²³⁴⁵⁶⁷⁸⁹⁺⁻·")
_SUPERSCRIPTABLE = set("0123456789+-.")


def _to_superscript(text: str) -> str:
    """Convert a string of digits / signs into Unicode superscript."""
    return text.translate(_SUPERSCRIPT)


_LATEX_FUNCTIONS = {
    UnaryOp.SIN: r"\sin",
    UnaryOp.COS: r"\cos",
    UnaryOp.TAN: r"\tan",
    UnaryOp.COT: r"\cot",
    UnaryOp.SEC: r"\sec",
    UnaryOp.CSC: r"\csc",
    UnaryOp.ASIN: r"\arcsin",
    UnaryOp.ACOS: r"\arccos",
    UnaryOp.ATAN: r"\arctan",
    UnaryOp.LN: r"\ln",
    UnaryOp.LOG: r"\log",
}

_TIMES = {
    FormatStyle.TEXT: " × ",
    FormatStyle.LATEX: r" \cdot ",
    FormatStyle.HTML: " &times; ",
}


# ── Layout decisions shared by every style ──────────────────────────────

def _is_negative(expr: Expr) -> bool:
    return ((isinstance(expr, Constant) and expr.value < 0)
            or (isinstance(expr, Unary) and expr.op is UnaryOp.NEGATE))


def _is_call(expr: Expr) -> bool:
    return isinstance(expr, Unary) and expr.op is not UnaryOp.NEGATE


def needs_parentheses(child: Expr, parent_op: BinaryOp, right: bool) -> bool:
    """Decide whether *child* must be wrapped when it is an operand of
    *parent_op* (on the right-hand side when *right* is set)."""
    if isinstance(child, Binary):
        if child.op.precedence < parent_op.precedence:
            return True
        if child.op.precedence == parent_op.precedence:
            # a - (b + c), a / (b * c), a × (2x), (a^b)^c
            if right and parent_op in (BinaryOp.SUBTRACT, BinaryOp.DIVIDE,
                                       BinaryOp.MULTIPLY):
                return True
            if parent_op is BinaryOp.POWER and not right:
                return True
        return False
    if _is_negative(child):
        return right or parent_op is BinaryOp.POWER
    return False


def omits_multiplication(left: Expr, right: Expr) -> bool:
    """True for products that read without a glyph: ``2x``, ``2(x + 1)``,
    ``2sin(x)``, ``3x²``, ``xy``, ``(x + 1)x``."""
    if isinstance(left, Constant):
        if isinstance(right, Variable) or _is_call(right):
            return True
        if isinstance(right, Binary):
            if needs_parentheses(right, BinaryOp.MULTIPLY, True):
                return True
            return (right.op is BinaryOp.POWER
                    and isinstance(right.left, Variable))
        return False
    if isinstance(left, Variable) and isinstance(right, Variable):
        return True
    if (isinstance(left, Binary) and needs_parentheses(left, BinaryOp.MULTIPLY, False)
            and isinstance(right, Variable)):
        return True
    return False


class MathFormatter:
    """Pretty-printer for expression trees."""

    def __init__(self, precision: int | None = None):
        self.precision = Config.PRECISION if precision is None else precision

    def format(self, expr: Expr, style: FormatStyle = FormatStyle.TEXT) -> str:
        if isinstance(style, str):
            style = FormatStyle.from_string(style)
        if style is FormatStyle.LATEX:
            return self._latex(expr)
        if style is FormatStyle.HTML:
            return self._html(expr)
        return self._text(expr)

    def format_number(self, value: float) -> str:
        """Integers without a decimal point, other values with up to
        ``precision`` decimals and no trailing zeros."""
        if not math.isfinite(value):
            return str(value)
        if value.is_integer() and abs(value) < 1e15:
            return str(int(value))
        formatted = f"{value:.{self.precision}f}".rstrip("0").rstrip(".")
        if formatted in ("-0", ""):
            return "0"
        return formatted

    # ── Plain text ──────────────────────────────────────────────────────

    def _text(self, expr: Expr) -> str:
        if isinstance(expr, Constant):
            return self.format_number(expr.value)
        if isinstance(expr, Variable):
            return expr.name
        if isinstance(expr, Unary):
            return self._text_unary(expr)
        return self._text_binary(expr)

    def _text_operand(self, child: Expr, parent_op: BinaryOp, right: bool) -> str:
        text = self._text(child)
        if needs_parentheses(child, parent_op, right):
            return f"({text})"
        return text

    def _text_binary(self, expr: Binary) -> str:
        left = self._text_operand(expr.left, expr.op, False)
        if expr.op is BinaryOp.POWER:
            exponent = self._text(expr.right)
            if exponent and set(exponent) <= _SUPERSCRIPTABLE:
                return f"{left}{_to_superscript(exponent)}"
            return f"{left}^({exponent})"
        right = self._text_operand(expr.right, expr.op, True)
        if expr.op is BinaryOp.MULTIPLY:
            if omits_multiplication(expr.left, expr.right):
                return f"{left}{right}"
            return f"{left}{_TIMES[FormatStyle.TEXT]}{right}"
        return f"{left} {expr.op.symbol} {right}"

    def _text_unary(self, expr: Unary) -> str:
        operand = self._text(expr.operand)
        if expr.op is UnaryOp.NEGATE:
            if isinstance(expr.operand, Binary) or _is_negative(expr.operand):
                return f"-({operand})"
            return f"-{operand}"
        return f"{expr.op.symbol}({operand})"

    # ── LaTeX ───────────────────────────────────────────────────────────

    def _latex(self, expr: Expr) -> str:
        if isinstance(expr, Constant):
            return self.format_number(expr.value)
        if isinstance(expr, Variable):
            return expr.name
        if isinstance(expr, Unary):
            return self._latex_unary(expr)
        return self._latex_binary(expr)

    def _latex_operand(self, child: Expr, parent_op: BinaryOp, right: bool) -> str:
        text = self._latex(child)
        if needs_parentheses(child, parent_op, right):
            return rf"\left({text}\right)"
        return text

    def _latex_binary(self, expr: Binary) -> str:
        if expr.op is BinaryOp.DIVIDE:
            # the fraction bar groups both sides
            return rf"\frac{{{self._latex(expr.left)}}}{{{self._latex(expr.right)}}}"
        left = self._latex_operand(expr.left, expr.op, False)
        if expr.op is BinaryOp.POWER:
            return f"{left}^{{{self._latex(expr.right)}}}"
        right = self._latex_operand(expr.right, expr.op, True)
        if expr.op is BinaryOp.MULTIPLY:
            if omits_multiplication(expr.left, expr.right):
                return f"{left}{right}"
            return f"{left}{_TIMES[FormatStyle.LATEX]}{right}"
        return f"{left} {expr.op.symbol} {right}"

    def _latex_unary(self, expr: Unary) -> str:
        operand = self._latex(expr.operand)
        if expr.op is UnaryOp.NEGATE:
            if isinstance(expr.operand, Binary) or _is_negative(expr.operand):
                return rf"-\left({operand}\right)"
            return f"-{operand}"
        if expr.op is UnaryOp.SQRT:
            return rf"\sqrt{{{operand}}}"
        if expr.op is UnaryOp.ABS:
            return rf"\left|{operand}\right|"
        if expr.op is UnaryOp.EXP:
            return f"e^{{{operand}}}"
        return rf"{_LATEX_FUNCTIONS[expr.op]}\left({operand}\right)"

    # ── HTML ────────────────────────────────────────────────────────────

    def _html(self, expr: Expr) -> str:
        if isinstance(expr, Constant):
            return self.format_number(expr.value)
        if isinstance(expr, Variable):
            return f"<i>{html.escape(expr.name)}</i>"
        if isinstance(expr, Unary):
            return self._html_unary(expr)
        return self._html_binary(expr)

    def _html_operand(self, child: Expr, parent_op: BinaryOp, right: bool) -> str:
        text = self._html(child)
        if needs_parentheses(child, parent_op, right):
            return f"({text})"
        return text

    def _html_binary(self, expr: Binary) -> str:
        if expr.op is BinaryOp.DIVIDE:
            return ("<span class='fraction'>"
                    f"<span class='numerator'>{self._html(expr.left)}</span>"
                    f"<span class='denominator'>{self._html(expr.right)}</span>"
                    "</span>")
        left = self._html_operand(expr.left, expr.op, False)
        if expr.op is BinaryOp.POWER:
            return f"{left}<sup>{self._html(expr.right)}</sup>"
        right = self._html_operand(expr.right, expr.op, True)
        if expr.op is BinaryOp.MULTIPLY:
            if omits_multiplication(expr.left, expr.right):
                return f"{left}{right}"
            return f"{left}{_TIMES[FormatStyle.HTML]}{right}"
        symbol = "&minus;" if expr.op is BinaryOp.SUBTRACT else expr.op.symbol
        return f"{left} {symbol} {right}"

    def _html_unary(self, expr: Unary) -> str:
        operand = self._html(expr.operand)
        if expr.op is UnaryOp.NEGATE:
            if isinstance(expr.operand, Binary) or _is_negative(expr.operand):
                return f"-({operand})"
            return f"-{operand}"
        if expr.op is UnaryOp.SQRT:
            return f"&radic;({operand})"
        if expr.op is UnaryOp.ABS:
            return f"|{operand}|"
        return f"{expr.op.symbol}({operand})"


def format_expr(expr: Expr, style: FormatStyle = FormatStyle.TEXT) -> str:
    return MathFormatter().format(expr, style)
