from __future__ import annotations
"""Finite state machine helpers for status lifecycles.

TransitionValidator guards manual, user-requested transitions:
    SERVICE_FSM = TransitionValidator({
        'assigned': {'in_progress'},
        'in_progress': {'completed'},
        'completed': set(),
    })
    SERVICE_FSM.assert_can_transition(current_status, target_status)

EventTable maps lifecycle events to (allowed sources, target) rules and is
checked for exhaustiveness against its event enum on construction.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Set, Type
from flask import abort

class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            abort(400, description=f"Invalid {self.field_name} transition {current} -> {target}")
        return True


@dataclass(frozen=True)
class EventRule:
    target: str
    # None means the rule applies from any status
    sources: Optional[FrozenSet[str]] = None

    def applies_to(self, current: str) -> bool:
        return self.sources is None or current in self.sources


class EventTable:
    def __init__(self, event_enum: Type[Enum], rules: Dict[Enum, EventRule]):
        missing = [e.value for e in event_enum if e not in rules]
        if missing:
            raise ValueError(f"event table missing rules for: {', '.join(missing)}")
        self.rules = rules

    def rule_for(self, event: Enum) -> EventRule:
        return self.rules[event]

    def resolve(self, event: Enum, current: str) -> Optional[str]:
        """Return the new status for ``event`` from ``current``, or None when the rule does not apply."""
        rule = self.rules[event]
        return rule.target if rule.applies_to(current) else None

__all__ = ['TransitionValidator', 'EventRule', 'EventTable']
