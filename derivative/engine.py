"""
Differentiation engine for DerivSolver.

Pipeline: parse → differentiate (rule lookup + rewrite + step log) →
simplify → format.  Every public entry point returns a
``ComputationResult``; errors are converted into a failed result and
never propagate to the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime

import sympy

from derivative.config import Config
from derivative.errors import DerivativeError, NoApplicableRuleError
from derivative.expression import Expr
from derivative.formatter import MathFormatter
from derivative.parser import Parser
from derivative.registry import RuleRegistry
from derivative.rules import default_rules
from derivative.simplifier import Simplifier
from derivative.steps import CalculationStep, StepTracker, StepType
from derivative.verification import VerificationReport, verify_derivative

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComputationResult:
    result: Expr | None
    steps: list[CalculationStep] = field(default_factory=list)
    formatted_result: str = ""
    success: bool = True
    error_message: str | None = None
    computation_time_ms: float = 0.0
    verification: VerificationReport | None = None
    expression: Expr | None = None

    @classmethod
    def failure(cls, message: str, computation_time_ms: float = 0.0) -> "ComputationResult":
        return cls(result=None, steps=[], formatted_result="", success=False,
                   error_message=message, computation_time_ms=computation_time_ms)

    def has_steps(self) -> bool:
        return bool(self.steps)

    def step_count(self) -> int:
        return len(self.steps)

    def to_dict(self, formatter: MathFormatter | None = None) -> dict:
        """JSON-ready view: steps, final answer, verification and summary."""
        formatter = formatter or MathFormatter()
        steps = [step.to_dict(formatter) for step in self.steps]
        verification_steps = self.verification.steps if self.verification else []
        return {
            "success": self.success,
            "error": self.error_message,
            "steps": steps,
            "final_answer": self.formatted_result,
            "verification": self.verification.to_dict() if self.verification else None,
            "verification_steps": list(verification_steps),
            "summary": {
                "runtime_ms": round(self.computation_time_ms, 2),
                "total_steps": len(steps),
                "verification_steps": len(verification_steps),
                "timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
                "library": f"SymPy {sympy.__version__}",
            },
        }


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class DerivativeEngine:
    """Rule-based symbolic differentiator with a step-by-step trail.

    One engine owns one ``StepTracker`` and is therefore not meant to be
    shared between threads; build one engine per worker.
    """

    def __init__(self, formatter: MathFormatter | None = None,
                 simplifier: Simplifier | None = None,
                 parser: Parser | None = None,
                 registry: RuleRegistry | None = None,
                 verify: bool | None = None):
        self.formatter = formatter or MathFormatter()
        self.simplifier = simplifier or Simplifier()
        self.parser = parser or Parser(implicit_multiplication=Config.IMPLICIT_MULTIPLICATION)
        self.registry = registry if registry is not None else RuleRegistry(default_rules())
        self.verify = Config.VERIFY if verify is None else verify
        self.tracker = StepTracker()

    @property
    def engine_name(self) -> str:
        return "DerivativeEngine"

    def get_supported_operations(self) -> list[str]:
        return ["derivative", "differentiate", "d/dx"]

    def validate_input(self, text: str) -> str | None:
        """Return the parse error message for *text*, or None if it parses."""
        try:
            self.parser.parse(text)
        except DerivativeError as e:
            return str(e)
        except Exception as e:
            return f"Invalid input: {e}"
        return None

    # ── Public entry points ─────────────────────────────────────────────

    def compute(self, text: str, var_name: str = "x") -> ComputationResult:
        """Differentiate *text* once and return the result with its steps."""
        start = time.perf_counter()
        self.tracker.clear()
        try:
            expr = self.parser.parse(text)
        except DerivativeError as e:
            logger.debug("parse failed for %r: %s", text, e)
            return ComputationResult.failure(str(e), _elapsed_ms(start))
        except Exception as e:
            logger.exception("parsing %r failed", text)
            return ComputationResult.failure(_describe_error(e), _elapsed_ms(start))

        try:
            self.tracker.add_simple_step(StepType.IDENTIFY, expr, "step_identify_function",
                                         {"function": self.formatter.format(expr)})
            raw = self.differentiate(expr, var_name)
            return self._finish(expr, raw, self.simplifier.simplify(raw), var_name, start)
        except Exception as e:
            logger.exception("differentiation of %r failed", text)
            return ComputationResult.failure(_describe_error(e), _elapsed_ms(start))

    def compute_higher_order(self, text: str, var_name: str | None = None,
                             order: int = 1) -> ComputationResult:
        """Differentiate *text* ``order`` times, simplifying after every pass.

        *var_name* defaults to ``Config.VARIABLE``.
        """
        var_name = var_name or Config.VARIABLE
        start = time.perf_counter()
        self.tracker.clear()
        if order < 1:
            return ComputationResult.failure(
                f"Order must be a positive integer, got {order}", _elapsed_ms(start))
        try:
            expr = self.parser.parse(text)
        except DerivativeError as e:
            return ComputationResult.failure(str(e), _elapsed_ms(start))
        except Exception as e:
            logger.exception("parsing %r failed", text)
            return ComputationResult.failure(_describe_error(e), _elapsed_ms(start))

        try:
            self.tracker.add_simple_step(StepType.IDENTIFY, expr, "step_identify_function",
                                         {"function": self.formatter.format(expr)})
            current = raw = expr
            for n in range(1, order + 1):
                self.tracker.add_simple_step(StepType.INFO, current, "step_computing_order",
                                             {"order": n})
                raw = self.differentiate(current, var_name)
                current = self.simplifier.simplify(raw)
            return self._finish(expr, raw, current, var_name, start, order=order)
        except Exception as e:
            logger.exception("order-%d differentiation of %r failed", order, text)
            return ComputationResult.failure(_describe_error(e), _elapsed_ms(start))

    def differentiate(self, expr: Expr, var_name: str) -> Expr:
        """One differentiation pass: a single rule application with its step.

        Raises ``NoApplicableRuleError`` when no rule matches and lets a
        rule's ``UnsupportedExpressionError`` propagate.
        """
        rule = self.registry.find_applicable_rule(expr, var_name)
        if rule is None:
            raise NoApplicableRuleError(
                f"No differentiation rule applies to {self.formatter.format(expr)}")
        logger.debug("rule %s selected for %s", rule.name, expr)
        result = rule.apply(expr, var_name)

        self.tracker.begin_sub_steps()
        for sub, sub_derivative in rule.inner_derivations(expr, var_name):
            self.tracker.add_step(
                StepType.INFO, sub, sub_derivative, "step_inner_derivative",
                {"function": self.formatter.format(sub),
                 "derivative": self.formatter.format(self.simplifier.simplify(sub_derivative))})
        sub_steps = self.tracker.end_sub_steps()

        self.tracker.add_step(StepType.APPLY_RULE, expr, result, rule.description_key,
                              rule.explanation_params(expr, result, var_name),
                              rule_name=rule.name, sub_steps=sub_steps)
        return result

    # ── Internals ───────────────────────────────────────────────────────

    def _finish(self, original: Expr, raw: Expr, derivative: Expr, var_name: str,
                start: float, order: int = 1) -> ComputationResult:
        formatted = self.formatter.format(derivative)
        # before: the derivative as the rule produced it, after: simplified
        self.tracker.add_step(StepType.RESULT, raw, derivative, "step_final_result",
                              {"result": formatted})
        verification = None
        if self.verify:
            verification = verify_derivative(original, derivative, var_name, order=order)
        return ComputationResult(
            result=derivative,
            steps=self.tracker.steps,
            formatted_result=formatted,
            success=True,
            computation_time_ms=_elapsed_ms(start),
            verification=verification,
            expression=original,
        )


def _describe_error(e: Exception) -> str:
    if isinstance(e, DerivativeError):
        return str(e)
    return f"Internal error: {type(e).__name__}: {e}"
