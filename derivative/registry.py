"""Ordered rule collection queried by the differentiation engine."""

from __future__ import annotations

from typing import Iterable

from derivative.expression import Expr
from derivative.rules import Rule


class RuleRegistry:
    """Rules sorted by ascending priority, unique by name.

    Populate it once, then treat it as read-only: lookups from several
    threads are safe as long as nobody registers concurrently.
    """

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules: list[Rule] = []
        self._by_name: dict[str, Rule] = {}
        self.register_all(rules)

    def register(self, rule: Rule) -> bool:
        """Add *rule*; a rule whose name is already registered is ignored.

        Returns True when the rule was added.
        """
        if rule.name in self._by_name:
            return False
        self._rules.append(rule)
        self._by_name[rule.name] = rule
        # stable sort keeps registration order for equal priorities
        self._rules.sort(key=lambda r: r.priority)
        return True

    def register_all(self, rules: Iterable[Rule]) -> None:
        for rule in rules:
            self.register(rule)

    def get_rule(self, name: str) -> Rule | None:
        return self._by_name.get(name)

    def find_applicable_rule(self, expr: Expr, var_name: str) -> Rule | None:
        """First rule, in priority order, whose ``can_apply`` accepts *expr*."""
        for rule in self._rules:
            if rule.can_apply(expr, var_name):
                return rule
        return None

    def find_all_applicable_rules(self, expr: Expr, var_name: str) -> list[Rule]:
        return [rule for rule in self._rules if rule.can_apply(expr, var_name)]

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(list(self._rules))

    def clear(self) -> None:
        self._rules.clear()
        self._by_name.clear()
