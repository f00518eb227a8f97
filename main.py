"""
DerivSolver entry point.

Differentiate an expression from the command line and print the
derivation step by step:

    python main.py "x^2 + 3x"
    python main.py "x^3" --order 3
    python main.py "x * sin(x)" --style latex --verify
    python main.py "sin(x)" --plot sin.png
"""

import argparse
import logging
import sys

from derivative.config import Config
from derivative.engine import ComputationResult, DerivativeEngine
from derivative.formatter import FormatStyle
from derivative.graph import build_figure
from derivative.steps import CalculationStep, describe_step


def _print_step(step: CalculationStep, indent: int = 0) -> None:
    pad = "    " * indent
    rule = f"[{step.rule_applied}] " if step.rule_applied else ""
    print(f"{pad}{step.step_number}. {rule}{describe_step(step)}")
    for sub in step.sub_steps:
        _print_step(sub, indent + 1)


def render(result: ComputationResult, engine: DerivativeEngine, style: FormatStyle) -> None:
    for step in result.steps:
        _print_step(step)
    print()
    print(f"f' = {engine.formatter.format(result.result, style)}")
    if result.verification is not None:
        report = result.verification
        print(f"verification: {report.status} ({report.library}, "
              f"{report.checked_points} points)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="derivsolver",
        description="Symbolic differentiation with a rule-by-rule derivation.",
    )
    parser.add_argument("expression", help="expression to differentiate, e.g. 'x^2 + 3x'")
    parser.add_argument("-n", "--order", type=int, default=1,
                        help="order of the derivative (default: 1)")
    parser.add_argument("--var", default=Config.VARIABLE,
                        help=f"variable to differentiate by (default: {Config.VARIABLE})")
    parser.add_argument("--style", choices=[s.value for s in FormatStyle], default="text",
                        help="output notation for the result")
    parser.add_argument("--verify", action="store_true", default=Config.VERIFY,
                        help="cross-check the result with SymPy")
    parser.add_argument("--plot", metavar="PNG",
                        help="save a graph of f and its derivative to this file")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=Config.LOG_LEVEL,
                        format="%(levelname)s %(name)s: %(message)s")

    engine = DerivativeEngine(verify=args.verify)
    result = engine.compute_higher_order(args.expression, args.var, args.order)
    if not result.success:
        print(f"error: {result.error_message}", file=sys.stderr)
        return 1
    render(result, engine, FormatStyle.from_string(args.style))
    if args.plot:
        save_plot(result, args.var, args.plot)
    return 0


def save_plot(result: ComputationResult, var_name: str, path: str) -> bool:
    fig = build_figure(result, var_name=var_name)
    if fig is None:
        print(f"warning: nothing to plot for {var_name}", file=sys.stderr)
        return False
    fig.savefig(path, dpi=150, bbox_inches="tight", facecolor=fig.get_facecolor())
    print(f"graph saved to {path}")
    return True


if __name__ == "__main__":
    sys.exit(main())
