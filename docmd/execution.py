"""Execution records and dispatch scopes."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any

from docmd._vendor import FrozenDict

_ids = itertools.count(1)


def _next_id() -> int:
    return next(_ids)


@dataclass(frozen=True)
class ExecutionRecord:
    """
    Identity of one interpretation.

    ``ancestors`` holds the ids of every enclosing interpretation plus this
    record's own id, so descendant checks are a single set lookup.
    """

    id: int = field(default_factory=_next_id)
    ancestors: frozenset[int] = frozenset()

    def __post_init__(self) -> None:
        if self.id not in self.ancestors:
            object.__setattr__(self, "ancestors", self.ancestors | {self.id})

    def child(self) -> ExecutionRecord:
        return ExecutionRecord(ancestors=self.ancestors)

    def is_descendant_of(self, execution_id: int) -> bool:
        return execution_id in self.ancestors

    @property
    def depth(self) -> int:
        return len(self.ancestors) - 1


@dataclass(frozen=True)
class Scope:
    """
    Immutable state of one interpretation: its record and the backend instances
    its handlers are bound to, keyed by backend slot.

    Forking a scope returns a new value, so concurrent forks never see each
    other's instances.
    """

    record: ExecutionRecord
    instances: FrozenDict[int, Any] = field(default_factory=FrozenDict)

    @classmethod
    def root(cls) -> Scope:
        return cls(ExecutionRecord())

    def nested(self) -> Scope:
        return Scope(self.record.child(), self.instances)

    def fork(self, slot: int, instance: Any) -> Scope:
        return Scope(self.record.child(), self.instances.set(slot, instance))

    def instance_for(self, slot: int, default: Any = None) -> Any:
        return self.instances.get(slot, default)


__all__ = ["ExecutionRecord", "Scope"]
