"""
Dependency plan with deterministic topological ordering.

Validates the Action graph at construction time and computes a linear
execution order with Kahn's algorithm. Among Actions whose dependencies
are all satisfied, declaration order decides, so two runs of the same
plan always execute in the same order.

Usage::

    from bootcore.plan.dependency import DependencyPlan

    plan = DependencyPlan([namespace, argocd, root_app])
    for action in plan:
        ...

Raises ``PlanConstructionError`` subclasses for duplicate names, unknown
or self dependencies, and cycles.
"""

from __future__ import annotations

import heapq
import logging
from typing import Iterable, Iterator, Optional

from bootcore.errors import (
    CyclicDependencyError,
    DuplicateActionError,
    UnknownDependencyError,
)
from bootcore.plan.action import Action

logger = logging.getLogger(__name__)


class DependencyPlan:
    """Owns a set of Actions and their depends-on edges."""

    def __init__(self, actions: Iterable[Action], plan_id: str = "default") -> None:
        self.plan_id = plan_id
        self._actions: dict[str, Action] = {}
        for action in actions:
            if action.name in self._actions:
                raise DuplicateActionError(action.name)
            self._actions[action.name] = action

        self._declared = list(self._actions)
        self._dependents: dict[str, list[str]] = {name: [] for name in self._declared}

        for action in self._actions.values():
            for dep in action.depends_on:
                if dep == action.name or dep not in self._actions:
                    raise UnknownDependencyError(action.name, dep)
                self._dependents[dep].append(action.name)

        self._order = self._topological_order()
        logger.debug(
            "Plan %s ordered: %s", plan_id, " -> ".join(self._order) or "(empty)"
        )

    def _topological_order(self) -> list[str]:
        """Kahn's algorithm; ties broken by declaration index."""
        index = {name: i for i, name in enumerate(self._declared)}
        in_degree = {
            name: len(set(self._actions[name].depends_on)) for name in self._declared
        }

        ready = [index[name] for name, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)

        order: list[str] = []
        while ready:
            name = self._declared[heapq.heappop(ready)]
            order.append(name)
            for dependent in dict.fromkeys(self._dependents[name]):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, index[dependent])

        if len(order) != len(self._declared):
            remaining = [name for name in self._declared if in_degree[name] > 0]
            raise CyclicDependencyError(remaining)

        return order

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def execution_order(self) -> list[str]:
        return list(self._order)

    def get(self, name: str) -> Optional[Action]:
        return self._actions.get(name)

    def __getitem__(self, name: str) -> Action:
        return self._actions[name]

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def __iter__(self) -> Iterator[Action]:
        """Iterate Actions in execution order."""
        return (self._actions[name] for name in self._order)

    def __len__(self) -> int:
        return len(self._actions)

    def dependents_of(self, name: str) -> list[str]:
        """All Actions that depend on ``name`` directly or transitively, in execution order."""
        if name not in self._actions:
            raise KeyError(name)
        seen: set[str] = set()
        stack = list(self._dependents[name])
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._dependents[current])
        return [n for n in self._order if n in seen]
