from __future__ import annotations
"""Console session state returned to the web client.

Replaces loose "is initialized" / "employee data" flags with one struct and
an explicit lifecycle: uninitialized -> loading -> ready | error.
"""
from dataclasses import dataclass
from typing import Optional
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from bizconsole.services.scope import EmployeeProfile, find_owned_business_id, find_employee_profile
from bizconsole.utils.fsm import TransitionValidator

STATE_UNINITIALIZED = 'uninitialized'
STATE_LOADING = 'loading'
STATE_READY = 'ready'
STATE_ERROR = 'error'

SESSION_FSM = TransitionValidator({
    STATE_UNINITIALIZED: {STATE_LOADING},
    STATE_LOADING: {STATE_READY, STATE_ERROR, STATE_UNINITIALIZED},
    STATE_READY: {STATE_LOADING},
    STATE_ERROR: {STATE_LOADING},
}, field_name='state', error_status=500)


@dataclass
class ConsoleSession:
    identity_id: int
    email: str
    state: str = STATE_UNINITIALIZED
    business_id: Optional[int] = None
    is_owner: bool = False
    employee: Optional[EmployeeProfile] = None
    error: Optional[str] = None

    def advance(self, target: str):
        SESSION_FSM.assert_can_transition(self.state, target)
        self.state = target

    def load(self) -> 'ConsoleSession':
        """Resolve business and employee profile for the identity."""
        self.advance(STATE_LOADING)
        self.business_id, self.is_owner, self.employee, self.error = None, False, None, None
        try:
            business_id = find_owned_business_id(self.identity_id)
            if business_id is not None:
                self.business_id, self.is_owner = business_id, True
            else:
                self.employee = find_employee_profile(self.identity_id)
                if self.employee is not None:
                    self.business_id = self.employee.business_id
        except (SQLAlchemyError, ValueError) as e:
            current_app.logger.exception('Session load failed for identity %s', self.identity_id)
            self.error = str(e)
            self.advance(STATE_ERROR)
            return self
        self.advance(STATE_READY if self.business_id is not None else STATE_UNINITIALIZED)
        return self

    def to_json(self):
        return {
            'identity': {'id': self.identity_id, 'email': self.email},
            'state': self.state,
            'business_id': self.business_id,
            'is_owner': self.is_owner,
            'employee': self.employee.to_json() if self.employee else None,
            'error': self.error,
        }
