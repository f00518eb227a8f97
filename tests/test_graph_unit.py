import numpy as np
from matplotlib.figure import Figure

from derivative import graph
from derivative.engine import DerivativeEngine
from derivative.parser import parse


def test_style_axes() -> None:
    fig = Figure(figsize=(4, 2))
    ax = fig.add_subplot(111)
    graph._style_axes(ax, fig)
    assert ax.get_xlabel() == ""


def test_sample_curve_marks_undefined_points() -> None:
    xs = np.array([-1.0, 1.0, 4.0])
    values = graph.sample_curve(parse("sqrt(x)"), "x", xs)
    assert np.isnan(values[0])
    assert values[1] == 1.0 and values[2] == 2.0


def test_sample_curve_broadcasts_constants() -> None:
    xs = np.linspace(-1, 1, 5)
    values = graph.sample_curve(parse("3"), "x", xs)
    assert values.shape == (5,)
    assert np.all(values == 3.0)


def test_build_figure_from_expressions() -> None:
    fig = graph.build_figure(parse("x^2"), parse("2x"))
    assert isinstance(fig, Figure)
    ax = fig.axes[0]
    assert len(ax.get_lines()) >= 2
    labels = [t.get_text() for t in ax.get_legend().get_texts()]
    assert labels == ["f(x) = x²", "f'(x) = 2x"]


def test_build_figure_from_result() -> None:
    result = DerivativeEngine(verify=False).compute("x * sin(x)")
    assert isinstance(graph.build_figure(result), Figure)


def test_build_figure_returns_none_when_not_plottable() -> None:
    failed = DerivativeEngine(verify=False).compute("x + ")
    assert graph.build_figure(failed) is None
    assert graph.build_figure(parse("x * y"), parse("y")) is None
    assert graph.build_figure(parse("x^2")) is None
