from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select, delete
from bizconsole import get_db
from bizconsole.models.authz import Identity, Role, EmployeeRole
from bizconsole.models.branch import Branch
from bizconsole.models.employee import Employee
from bizconsole.decorators.auth import require_capability
from bizconsole.decorators.audit import audit_log
from bizconsole.services.roles import role_json
from bizconsole.services.scope import current_scope, get_scoped_or_404, find_owned_business_id
from bizconsole.utils.filters import apply_filters, apply_search
from bizconsole.utils.listing import list_response, item_response
from bizconsole.utils.sorting import apply_multi_sort
from bizconsole.utils.validation import (
    require_text, optional_text, validate_choice, validate_email, validate_phone, parse_date, parse_int,
)

employees_bp = Blueprint('employees', __name__)


def _employee_json(e: Employee):
    return {
        'id': e.id,
        'name': e.name,
        'email': e.email,
        'job_title': e.job_title,
        'phone': e.phone,
        'address': e.address,
        'hire_date': e.hire_date.isoformat() if e.hire_date else None,
        'status': e.status,
        'branch_id': e.branch_id,
        'identity_id': e.identity_id,
    }


def _resolve_branch(raw, business_id: int):
    if raw is None:
        return None
    branch_id = parse_int(raw, 'branch_id', minimum=1)
    found = get_db().execute(
        select(Branch.id).where(Branch.id == branch_id, Branch.business_id == business_id)
    ).scalar_one_or_none()
    if found is None:
        abort(400, description='branch_id does not belong to this business')
    return branch_id


def _resolve_login(raw, employee: Employee) -> int | None:
    """Identity to link to ``employee``. An identity backs at most one
    employee row and never one belonging to a business owner."""
    email = validate_email(raw, 'login_email')
    if email is None:
        return None
    session = get_db()
    identity_id = session.execute(select(Identity.id).where(Identity.email == email)).scalar_one_or_none()
    if identity_id is None:
        abort(400, description='login_email has no account')
    if identity_id == employee.identity_id:
        return identity_id
    if find_owned_business_id(identity_id, session) is not None:
        abort(409, description='login_email belongs to a business owner')
    linked = select(Employee.id).where(Employee.identity_id == identity_id)
    if employee.id is not None:
        linked = linked.where(Employee.id != employee.id)
    if session.execute(linked.limit(1)).scalar_one_or_none() is not None:
        abort(409, description='login_email is already linked to an employee')
    return identity_id


def _apply_payload(employee: Employee, data: dict, business_id: int, creating: bool):
    if creating or 'name' in data:
        employee.name = require_text(data, 'name', 2)
    if creating or 'email' in data:
        employee.email = validate_email(data.get('email'), required=True)
    if creating or 'job_title' in data:
        employee.job_title = require_text(data, 'job_title')
    if 'phone' in data:
        employee.phone = validate_phone(optional_text(data, 'phone'))
    if 'address' in data:
        employee.address = optional_text(data, 'address')
    if 'hire_date' in data:
        employee.hire_date = parse_date(data.get('hire_date'), 'hire_date')
    if 'status' in data:
        employee.status = validate_choice(data.get('status'), Employee.ALL_STATUSES)
    if 'branch_id' in data:
        employee.branch_id = _resolve_branch(data.get('branch_id'), business_id)
    if 'login_email' in data:
        employee.identity_id = _resolve_login(data.get('login_email'), employee)


@employees_bp.route('', methods=['GET', 'HEAD'])
@require_capability('employees', 'read')
def list_employees():
    scope = current_scope()
    q = get_db().query(Employee).filter(Employee.business_id == scope.business_id)
    q = apply_search(q, request.args.get('search'), [Employee.name, Employee.email, Employee.job_title])
    q = apply_filters(q, {
        'status': {'op': lambda qu, v: qu.filter(Employee.status == v), 'validate': lambda v: v in Employee.ALL_STATUSES},
        'branch_id': {'op': lambda qu, v: qu.filter(Employee.branch_id == v), 'coerce': int},
    }, request.args)
    allowed = {
        'name': Employee.name,
        'email': Employee.email,
        'status': Employee.status,
        'hire_date': Employee.hire_date,
        'updated_at': Employee.updated_at,
        'id': Employee.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Employee.id, default=Employee.name)
    return list_response(q, _employee_json)


@employees_bp.post('')
@require_capability('employees', 'create')
@audit_log('EMPLOYEE.CREATE', entity='Employee', entity_id_key='id', meta_keys=['name', 'email'])
def create_employee():
    business_id = current_scope().business_id
    employee = Employee(business_id=business_id)
    _apply_payload(employee, request.get_json(silent=True) or {}, business_id, creating=True)
    session = get_db()
    session.add(employee)
    session.commit()
    return _employee_json(employee), 201


@employees_bp.route('/<int:employee_id>', methods=['GET', 'HEAD'])
@require_capability('employees', 'read')
def get_employee(employee_id: int):
    return item_response(get_scoped_or_404(Employee, employee_id), _employee_json)


@employees_bp.put('/<int:employee_id>')
@require_capability('employees', 'update')
@audit_log(
    'EMPLOYEE.UPDATE',
    entity='Employee',
    entity_id_key='id',
    diff_keys=['name', 'email', 'job_title', 'status', 'branch_id'],
    pre_fetch=lambda a, kw: _employee_json(get_scoped_or_404(Employee, kw['employee_id'])),
)
def update_employee(employee_id: int):
    employee = get_scoped_or_404(Employee, employee_id)
    _apply_payload(employee, request.get_json(silent=True) or {}, employee.business_id, creating=False)
    get_db().commit()
    return _employee_json(employee)


@employees_bp.delete('/<int:employee_id>')
@require_capability('employees', 'delete')
@audit_log('EMPLOYEE.DELETE', entity='Employee', entity_id_key='id', meta_keys=['name'])
def delete_employee(employee_id: int):
    session = get_db()
    employee = get_scoped_or_404(Employee, employee_id)
    name = employee.name
    session.execute(delete(EmployeeRole).where(EmployeeRole.employee_id == employee.id))
    session.delete(employee)
    session.commit()
    return {'status': 'deleted', 'id': employee_id, 'name': name}


def _assigned_roles(employee_id: int):
    return get_db().execute(
        select(Role)
        .join(EmployeeRole, EmployeeRole.role_id == Role.id)
        .where(EmployeeRole.employee_id == employee_id)
        .order_by(Role.id.asc())
    ).scalars().all()


def _roles_payload(employee: Employee):
    roles = _assigned_roles(employee.id)
    return {
        'id': employee.id,
        'employee_id': employee.id,
        'role_ids': [r.id for r in roles],
        'roles': [role_json(r) for r in roles],
    }


@employees_bp.get('/<int:employee_id>/roles')
@require_capability('employees', 'read')
def get_employee_roles(employee_id: int):
    return _roles_payload(get_scoped_or_404(Employee, employee_id))


@employees_bp.put('/<int:employee_id>/roles')
@require_capability('employees', 'update')
@audit_log(
    'EMPLOYEE.ROLES.SET',
    entity='Employee',
    entity_id_key='id',
    diff_keys=['role_ids'],
    pre_fetch=lambda a, kw: _roles_payload(get_scoped_or_404(Employee, kw['employee_id'])),
)
def set_employee_roles(employee_id: int):
    session = get_db()
    employee = get_scoped_or_404(Employee, employee_id)
    data = request.get_json(silent=True) or {}
    raw_ids = data.get('role_ids')
    if not isinstance(raw_ids, list):
        abort(400, description='role_ids must be a list')
    role_ids = sorted({parse_int(r, 'role_ids', minimum=1) for r in raw_ids})
    if role_ids:
        found = set(session.execute(
            select(Role.id).where(Role.id.in_(role_ids), Role.business_id == employee.business_id)
        ).scalars().all())
        missing = [r for r in role_ids if r not in found]
        if missing:
            abort(400, description=f'Unknown role ids {missing}')
    session.execute(delete(EmployeeRole).where(EmployeeRole.employee_id == employee.id))
    for role_id in role_ids:
        session.add(EmployeeRole(employee_id=employee.id, role_id=role_id))
    session.commit()
    return _roles_payload(employee)
