from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import select, update, func
from bizconsole import get_db
from bizconsole.models.branch import Branch
from bizconsole.models.employee import Employee
from bizconsole.models.product import Product
from bizconsole.models.invoice import Invoice
from bizconsole.decorators.auth import require_capability
from bizconsole.decorators.audit import audit_log
from bizconsole.services.scope import current_scope, get_scoped_or_404
from bizconsole.utils.filters import apply_filters, apply_search
from bizconsole.utils.listing import list_response, item_response
from bizconsole.utils.sorting import apply_multi_sort
from bizconsole.utils.validation import (
    require_text, optional_text, validate_choice, validate_email, validate_phone,
)

branches_bp = Blueprint('branches', __name__)


def _branch_json(b: Branch):
    return {
        'id': b.id,
        'name': b.name,
        'code': b.code,
        'address': b.address,
        'phone': b.phone,
        'email': b.email,
        'status': b.status,
    }


def _branch_with_count(b: Branch):
    body = _branch_json(b)
    body['employee_count'] = get_db().execute(
        select(func.count(Employee.id)).where(Employee.branch_id == b.id)
    ).scalar_one()
    return body


def _staff_changed_at(rows):
    return get_db().execute(
        select(func.max(Employee.updated_at)).where(Employee.branch_id.in_([b.id for b in rows]))
    ).scalar_one_or_none()


def _apply_payload(branch: Branch, data: dict, creating: bool):
    if creating or 'name' in data:
        branch.name = require_text(data, 'name', 2)
    if creating or 'code' in data:
        branch.code = require_text(data, 'code')
    if 'address' in data:
        branch.address = optional_text(data, 'address')
    if 'phone' in data:
        branch.phone = validate_phone(optional_text(data, 'phone'))
    if 'email' in data:
        branch.email = validate_email(optional_text(data, 'email'))
    if 'status' in data:
        branch.status = validate_choice(data.get('status'), Branch.ALL_STATUSES)


@branches_bp.route('', methods=['GET', 'HEAD'])
@require_capability('branches', 'read')
def list_branches():
    scope = current_scope()
    q = get_db().query(Branch).filter(Branch.business_id == scope.business_id)
    q = apply_search(q, request.args.get('search'), [Branch.name, Branch.code])
    q = apply_filters(q, {
        'status': {'op': lambda qu, v: qu.filter(Branch.status == v), 'validate': lambda v: v in Branch.ALL_STATUSES},
    }, request.args)
    allowed = {'name': Branch.name, 'code': Branch.code, 'status': Branch.status, 'updated_at': Branch.updated_at, 'id': Branch.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Branch.id, default=Branch.name)
    return list_response(q, _branch_with_count, related_latest=_staff_changed_at)


@branches_bp.post('')
@require_capability('branches', 'create')
@audit_log('BRANCH.CREATE', entity='Branch', entity_id_key='id', meta_keys=['name', 'code'])
def create_branch():
    data = request.get_json(silent=True) or {}
    branch = Branch(business_id=current_scope().business_id)
    _apply_payload(branch, data, creating=True)
    session = get_db()
    session.add(branch)
    session.commit()
    return _branch_json(branch), 201


@branches_bp.route('/<int:branch_id>', methods=['GET', 'HEAD'])
@require_capability('branches', 'read')
def get_branch(branch_id: int):
    return item_response(get_scoped_or_404(Branch, branch_id), _branch_with_count)


@branches_bp.put('/<int:branch_id>')
@require_capability('branches', 'update')
@audit_log(
    'BRANCH.UPDATE',
    entity='Branch',
    entity_id_key='id',
    diff_keys=['name', 'code', 'status'],
    pre_fetch=lambda a, kw: _branch_json(get_scoped_or_404(Branch, kw['branch_id'])),
)
def update_branch(branch_id: int):
    branch = get_scoped_or_404(Branch, branch_id)
    _apply_payload(branch, request.get_json(silent=True) or {}, creating=False)
    get_db().commit()
    return _branch_json(branch)


@branches_bp.delete('/<int:branch_id>')
@require_capability('branches', 'delete')
@audit_log('BRANCH.DELETE', entity='Branch', entity_id_key='id', meta_keys=['name'])
def delete_branch(branch_id: int):
    session = get_db()
    branch = get_scoped_or_404(Branch, branch_id)
    name = branch.name
    # Detach employees, products and invoices before removing the branch
    session.execute(update(Employee).where(Employee.branch_id == branch.id).values(branch_id=None))
    session.execute(update(Product).where(Product.branch_id == branch.id).values(branch_id=None))
    session.execute(update(Invoice).where(Invoice.branch_id == branch.id).values(branch_id=None))
    session.delete(branch)
    session.commit()
    return {'status': 'deleted', 'id': branch_id, 'name': name}
