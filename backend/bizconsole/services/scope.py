from __future__ import annotations
"""Business scoping: every business-facing request resolves the caller's
business before touching any other relation.
"""
from dataclasses import dataclass, field
from typing import List, Optional
from flask import abort, current_app, g
from flask_jwt_extended import get_jwt_identity
from sqlalchemy import select
from werkzeug.exceptions import NotFound
from bizconsole import get_db
from bizconsole.models.authz import EmployeeRole
from bizconsole.models.business import Business
from bizconsole.models.employee import Employee


class BusinessNotInitialized(NotFound):
    """No business is reachable from the identity; the client should run setup."""
    description = 'business setup required'
    setup_required = True


@dataclass(frozen=True)
class EmployeeProfile:
    """Authenticated employee profile, built from the employees row."""
    id: int
    business_id: int
    name: str
    email: str
    job_title: str
    status: str
    branch_id: Optional[int] = None
    role_ids: List[int] = field(default_factory=list)
    kind: str = 'employee'

    @classmethod
    def from_row(cls, employee: Employee, role_ids: List[int]) -> 'EmployeeProfile':
        if employee.status not in Employee.ALL_STATUSES:
            raise ValueError(f'unknown employee status {employee.status!r}')
        if not employee.business_id:
            raise ValueError('employee has no business')
        return cls(
            id=employee.id,
            business_id=employee.business_id,
            name=employee.name,
            email=employee.email,
            job_title=employee.job_title,
            status=employee.status,
            branch_id=employee.branch_id,
            role_ids=sorted(role_ids),
        )

    def to_json(self):
        return {
            'kind': self.kind,
            'id': self.id,
            'business_id': self.business_id,
            'branch_id': self.branch_id,
            'name': self.name,
            'email': self.email,
            'job_title': self.job_title,
            'status': self.status,
            'role_ids': list(self.role_ids),
        }


@dataclass(frozen=True)
class ConsoleScope:
    identity_id: int
    business_id: int
    is_owner: bool
    employee: Optional[EmployeeProfile] = None


def find_owned_business_id(identity_id: int, session=None) -> Optional[int]:
    session = session or get_db()
    ids = session.execute(
        select(Business.id).where(Business.owner_id == identity_id).order_by(Business.id.asc())
    ).scalars().all()
    if not ids:
        return None
    if len(ids) > 1:
        current_app.logger.warning(
            'Identity %s owns %d businesses %s; using %s', identity_id, len(ids), ids, ids[0]
        )
    return ids[0]


def resolve_business_id(identity_id: int) -> int:
    """Return the id of the business owned by ``identity_id``.

    Raises BusinessNotInitialized (404, setup_required) when none exists.
    """
    if identity_id is None:
        abort(401, description='authentication required')
    business_id = find_owned_business_id(identity_id)
    if business_id is None:
        raise BusinessNotInitialized()
    return business_id


def find_employee_profile(identity_id: int, session=None) -> Optional[EmployeeProfile]:
    """Active employee linked to the identity, as a typed profile."""
    session = session or get_db()
    employee = session.execute(
        select(Employee)
        .where(Employee.identity_id == identity_id, Employee.status != Employee.STATUS_INACTIVE)
        .order_by(Employee.id.asc())
    ).scalars().first()
    if employee is None:
        return None
    role_ids = session.execute(
        select(EmployeeRole.role_id).where(EmployeeRole.employee_id == employee.id)
    ).scalars().all()
    return EmployeeProfile.from_row(employee, list(role_ids))


def resolve_scope(identity_id: int) -> ConsoleScope:
    business_id = find_owned_business_id(identity_id)
    if business_id is not None:
        return ConsoleScope(identity_id=identity_id, business_id=business_id, is_owner=True)
    profile = find_employee_profile(identity_id)
    if profile is None:
        raise BusinessNotInitialized()
    return ConsoleScope(identity_id=identity_id, business_id=profile.business_id, is_owner=False, employee=profile)


def current_identity_id() -> int:
    return int(get_jwt_identity())


def current_scope() -> ConsoleScope:
    """Scope of the authenticated caller, resolved once per request."""
    scope = g.get('console_scope')
    if scope is None:
        scope = resolve_scope(current_identity_id())
        g.console_scope = scope
    return scope


def get_scoped_or_404(model, record_id: int, scope: Optional[ConsoleScope] = None):
    """Load ``model`` by id within the caller's business; 404 otherwise."""
    scope = scope or current_scope()
    row = get_db().execute(
        select(model).where(model.id == record_id, model.business_id == scope.business_id)
    ).scalar_one_or_none()
    if row is None:
        abort(404)
    return row
