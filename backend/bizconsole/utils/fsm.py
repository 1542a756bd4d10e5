from __future__ import annotations
"""Small finite state machine helper for enforcing allowed status transitions.

Usage:
    from bizconsole.utils.fsm import TransitionValidator
    SESSION_FSM = TransitionValidator({
        'uninitialized': {'loading'},
        'loading': {'ready', 'error', 'uninitialized'},
        'ready': {'loading'},
        'error': {'loading'},
    }, field_name='state', error_status=500)
    SESSION_FSM.assert_can_transition(current, target)

Aborts with ``error_status`` if the transition is not in the graph.
"""
from typing import Dict, Set
from flask import abort


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status', error_status: int = 400):
        self.graph = graph
        self.field_name = field_name
        self.error_status = error_status

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            abort(self.error_status, description=f"Invalid {self.field_name} transition {current} -> {target}")
        return True


__all__ = ['TransitionValidator']
