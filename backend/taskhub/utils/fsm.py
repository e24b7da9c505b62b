from __future__ import annotations
"""Simple finite state machine utility for enforcing allowed status transitions.

Designed for the lightweight lifecycle models (Task, Stage).
Usage:
    from taskhub.utils.fsm import TransitionValidator
    STAGE_FSM = TransitionValidator({
        'PENDING': {'IN_PROGRESS', 'BLOCKED', 'COMPLETED'},
        'BLOCKED': {'IN_PROGRESS', 'COMPLETED'},
        'COMPLETED': set(),
    }, resource='STAGE')
    STAGE_FSM.assert_can_transition(current_status, target_status)

Raises InvalidTransition (400) if the move is not in the graph.
"""
from typing import Any, Dict, FrozenSet, Optional, Set
from taskhub.errors import InvalidTransition


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status', resource: Optional[str] = None):
        self.graph = {state: frozenset(targets) for state, targets in graph.items()}
        self.field_name = field_name
        self.resource = resource

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self.graph)

    def targets(self, current: str) -> FrozenSet[str]:
        return self.graph.get(current, frozenset())

    def is_terminal(self, state: str) -> bool:
        return not self.targets(state)

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.targets(current)

    def assert_can_transition(self, current: str, target: str, record_id: Any = None):
        if not self.can_transition(current, target):
            raise InvalidTransition(
                f"Invalid {self.field_name} transition {current} -> {target}",
                resource=self.resource, action='UPDATE', record_id=record_id,
            )
        return True

__all__ = ['TransitionValidator']
