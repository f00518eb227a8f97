"""
Graph builder for DerivSolver.

Produces a dark-themed matplotlib Figure showing a function next to its
derivative.  Both curves are evaluated with ``sympy.lambdify`` on a NumPy
grid; points where either is undefined are left as gaps.
"""

import logging

import numpy as np
from sympy import Symbol, lambdify

from derivative.expression import Expr
from derivative.formatter import MathFormatter
from derivative.verification import to_sympy

logger = logging.getLogger(__name__)

# ── palette ────────────────────────────────────────────────────────────────
C_BG       = "#0f0f0f"
C_AX       = "#181818"
C_GRID     = "#252525"
C_TICK     = "#666666"
C_SPINE    = "#333333"
C_LINE1    = "#1a8cff"   # f
C_LINE2    = "#ff8c42"   # f'
C_TEXT     = "#cccccc"

X_RANGE = (-5.0, 5.0)
_POINTS = 400
# Values beyond this are treated as asymptotes and not drawn.
_CLIP = 1e6


def _style_axes(ax, fig):
    fig.patch.set_facecolor(C_BG)
    ax.set_facecolor(C_AX)
    ax.tick_params(colors=C_TICK, labelsize=9)
    ax.xaxis.label.set_color(C_TEXT)
    ax.yaxis.label.set_color(C_TEXT)
    ax.title.set_color(C_TEXT)
    for spine in ax.spines.values():
        spine.set_edgecolor(C_SPINE)
    ax.grid(True, color=C_GRID, linewidth=0.8, linestyle="--", alpha=0.7)
    ax.axhline(0, color=C_SPINE, linewidth=0.8)
    ax.axvline(0, color=C_SPINE, linewidth=0.8)


def sample_curve(expr: Expr, var_name: str, x_range: np.ndarray) -> np.ndarray:
    """Evaluate *expr* over *x_range*; undefined or huge values become NaN."""
    symbol = Symbol(var_name)
    sym_expr = to_sympy(expr)
    if sym_expr.free_symbols - {symbol}:
        raise ValueError(f"Cannot plot an expression with variables other than {var_name}")
    fn = lambdify(symbol, sym_expr, modules="numpy")
    with np.errstate(all="ignore"):
        raw = fn(x_range)
    values = np.array(np.broadcast_to(np.asarray(raw, dtype=complex), x_range.shape))
    real = values.real.astype(float)
    real[np.abs(values.imag) > 1e-12] = np.nan
    real[~np.isfinite(real) | (np.abs(real) > _CLIP)] = np.nan
    return real


def build_figure(source, derivative: Expr | None = None, var_name: str = "x"):
    """
    Build and return a dark-themed matplotlib Figure of f and f'.

    *source* is either a successful ``ComputationResult`` (its expression
    and result are used) or an ``Expr``, in which case *derivative* must
    be given.  Returns None when there is nothing sensible to plot.
    """
    from matplotlib.figure import Figure

    if isinstance(source, Expr):
        function = source
    else:
        if not getattr(source, "success", False):
            return None
        function = source.expression
        derivative = source.result
    if function is None or derivative is None:
        return None

    x_range = np.linspace(X_RANGE[0], X_RANGE[1], _POINTS)
    try:
        y_f = sample_curve(function, var_name, x_range)
        y_d = sample_curve(derivative, var_name, x_range)
    except Exception as e:
        logger.debug("not plottable: %s", e)
        return None
    if not (np.isfinite(y_f).any() or np.isfinite(y_d).any()):
        return None

    formatter = MathFormatter()
    fig = Figure(figsize=(7, 3.4), dpi=100)
    ax  = fig.add_subplot(111)
    _style_axes(ax, fig)

    ax.plot(x_range, y_f, color=C_LINE1, linewidth=2,
            label=f"f({var_name}) = {formatter.format(function)}")
    ax.plot(x_range, y_d, color=C_LINE2, linewidth=2,
            label=f"f'({var_name}) = {formatter.format(derivative)}")
    ax.set_title("Function and derivative", color=C_TEXT, fontsize=10)
    ax.set_xlabel(var_name, color=C_TEXT)
    ax.set_ylabel("value", color=C_TEXT)

    # Clip y-axis to avoid extreme values
    y_all = np.concatenate([y_f, y_d])
    y_finite = y_all[np.isfinite(y_all)]
    if len(y_finite):
        ylo, yhi = np.percentile(y_finite, 2), np.percentile(y_finite, 98)
        pad = max((yhi - ylo) * 0.2, 1.0)
        ax.set_ylim(ylo - pad, yhi + pad)

    ax.legend(fontsize=8, facecolor="#1e1e1e", edgecolor=C_SPINE,
              labelcolor=C_TEXT)
    fig.tight_layout(pad=1.2)
    return fig
