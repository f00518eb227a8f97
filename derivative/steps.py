"""
Step trail for DerivSolver.

A computation records one ``CalculationStep`` per rewrite.  Steps never
carry display text: each holds a template key plus a parameter mapping,
and the caller resolves the key into whatever language it shows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from derivative.expression import Expr

if TYPE_CHECKING:
    from derivative.formatter import MathFormatter


class StepType(Enum):
    IDENTIFY = "step_type_identify"
    APPLY_RULE = "step_type_apply_rule"
    EXPAND = "step_type_expand"
    SIMPLIFY = "step_type_simplify"
    SUBSTITUTE = "step_type_substitute"
    FACTOR = "step_type_factor"
    COMBINE_LIKE_TERMS = "step_type_combine_like_terms"
    REARRANGE = "step_type_rearrange"
    RESULT = "step_type_result"
    WARNING = "step_type_warning"
    INFO = "step_type_info"

    @property
    def display_name_key(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, value: str) -> "StepType | None":
        for step_type in cls:
            if step_type.name.lower() == value.lower():
                return step_type
        return None


@dataclass(frozen=True)
class CalculationStep:
    step_number: int
    step_type: StepType
    expression_before: Expr
    expression_after: Expr
    template_key: str
    template_params: dict[str, str] = field(default_factory=dict)
    rule_applied: str | None = None
    sub_steps: tuple["CalculationStep", ...] = ()
    level: int = 0
    note: str | None = None

    @property
    def is_expandable(self) -> bool:
        return bool(self.sub_steps)

    def has_sub_steps(self) -> bool:
        return bool(self.sub_steps)

    def flatten(self) -> list["CalculationStep"]:
        """This step followed by every nested sub-step, depth first."""
        result = [self]
        for sub in self.sub_steps:
            result.extend(sub.flatten())
        return result

    def to_dict(self, formatter: "MathFormatter") -> dict:
        return {
            "step_number": self.step_number,
            "step_type": self.step_type.name,
            "rule": self.rule_applied,
            "template_key": self.template_key,
            "params": dict(self.template_params),
            "before": formatter.format(self.expression_before),
            "after": formatter.format(self.expression_after),
            "level": self.level,
            "note": self.note,
            "sub_steps": [sub.to_dict(formatter) for sub in self.sub_steps],
        }


class StepTracker:
    """Collects the steps of one computation.

    ``begin_sub_steps`` / ``end_sub_steps`` bracket a nested derivation;
    steps added in between are collected separately and handed back by
    ``end_sub_steps`` so they can be attached to a parent step.
    """

    def __init__(self):
        self._steps: list[CalculationStep] = []
        self._step_number = 0
        self._level = 0
        self._nested: list[list[CalculationStep]] = []
        self._nested_numbers: list[int] = []

    @property
    def level(self) -> int:
        return self._level

    def add_step(self, step_type: StepType, expr_before: Expr, expr_after: Expr,
                 template_key: str, params: dict | None = None,
                 rule_name: str | None = None,
                 sub_steps: list[CalculationStep] | tuple = (),
                 note: str | None = None) -> CalculationStep:
        self._step_number += 1
        step = CalculationStep(
            step_number=self._step_number,
            step_type=step_type,
            expression_before=expr_before,
            expression_after=expr_after,
            template_key=template_key,
            template_params={k: str(v) for k, v in (params or {}).items()},
            rule_applied=rule_name,
            sub_steps=tuple(sub_steps),
            level=self._level,
            note=note,
        )
        if self._nested:
            self._nested[-1].append(step)
        else:
            self._steps.append(step)
        return step

    def add_simple_step(self, step_type: StepType, expr: Expr, template_key: str,
                        params: dict | None = None) -> CalculationStep:
        return self.add_step(step_type, expr, expr, template_key, params)

    def begin_sub_steps(self) -> None:
        self._level += 1
        self._nested.append([])
        # nested steps are numbered from 1 within their group
        self._nested_numbers.append(self._step_number)
        self._step_number = 0

    def end_sub_steps(self) -> list[CalculationStep]:
        if not self._nested:
            return []
        self._level -= 1
        self._step_number = self._nested_numbers.pop()
        return self._nested.pop()

    @property
    def steps(self) -> list[CalculationStep]:
        return list(self._steps)

    def step_count(self) -> int:
        return len(self._steps)

    def has_steps(self) -> bool:
        return bool(self._steps)

    def clear(self) -> None:
        self._steps.clear()
        self._step_number = 0
        self._level = 0
        self._nested.clear()
        self._nested_numbers.clear()


# ── English rendering ───────────────────────────────────────────────────

STEP_TEMPLATES = {
    "step_identify_function": "Differentiate f = {function}",
    "step_computing_order": "Compute derivative number {order}",
    "step_inner_derivative": "d/dx[{function}] = {derivative}",
    "step_final_result": "Result: {result}",
    "rule_constant": "The derivative of the constant {constant} is 0",
    "rule_variable": "The derivative of {variable} is {result}",
    "rule_power": "Power rule: bring down {exponent} and lower the exponent of {base} by one: {result}",
    "rule_constant_multiple": "Constant multiple rule: keep {constant} and differentiate {function}: {result}",
    "rule_sum": "Differentiate {left} and {right} term by term: {result}",
    "rule_negation": "Negation: the derivative of -({function}) is {result}",
    "rule_product": "Product rule with u = {u}, v = {v}, u' = {u_prime}, v' = {v_prime}: u'v + uv'",
    "rule_quotient": "Quotient rule with u = {u}, v = {v}, u' = {u_prime}, v' = {v_prime}: (u'v - uv') / v²",
    "rule_chain": "Chain rule: derivative of the outer function times the derivative of the inner one: {result}",
    "rule_sin": "Standard derivative of {function}: {result}",
    "rule_cos": "Standard derivative of {function}: {result}",
    "rule_tan": "Standard derivative of {function}: {result}",
    "rule_ln": "Standard derivative of {function}: {result}",
    "rule_exp": "Standard derivative of {function}: {result}",
    "rule_sqrt": "Standard derivative of {function}: {result}",
    "rule_elementary_function": "Standard derivative of {function}: {result}",
}


class _Params(dict):
    def __missing__(self, key):
        return "{" + key + "}"


def describe_step(step: CalculationStep, templates: dict[str, str] | None = None) -> str:
    """Resolve a step's template key into text; unknown keys render as-is."""
    template = (templates or STEP_TEMPLATES).get(step.template_key, step.template_key)
    return template.format_map(_Params(step.template_params))
