from flask import Blueprint, request, abort
from bizconsole import get_db
from bizconsole.constants.modules import MODULES, CAPABILITIES, normalize_capability, is_module
from bizconsole.decorators.auth import require_owner
from bizconsole.decorators.audit import audit_log
from bizconsole.models.authz import Role
from bizconsole.services.scope import current_scope
from bizconsole.services import roles as role_service
from bizconsole.services.permissions import (
    set_permission, list_permissions, permission_json, capability_grid, permissions_changed_at,
)
from bizconsole.utils.filters import apply_search
from bizconsole.utils.listing import list_response
from bizconsole.utils.sorting import apply_multi_sort
from bizconsole.utils.validation import require_text, optional_text, parse_bool

roles_bp = Blueprint('roles', __name__)


def _role_with_permissions(role: Role):
    body = role_service.role_json(role)
    body['permissions'] = capability_grid(role.id)
    return body


@roles_bp.route('/roles', methods=['GET', 'HEAD'])
@require_owner
def list_roles():
    scope = current_scope()
    q = get_db().query(Role).filter(Role.business_id == scope.business_id)
    q = apply_search(q, request.args.get('search'), [Role.name, Role.description])
    q = apply_multi_sort(q, request.args.get('sort'), {'name': Role.name, 'id': Role.id, 'updated_at': Role.updated_at}, Role.id)
    if request.args.get('include') == 'permissions':
        return list_response(
            q, _role_with_permissions,
            related_latest=lambda rows: permissions_changed_at([r.id for r in rows]),
        )
    return list_response(q, role_service.role_json)


@roles_bp.post('/roles')
@require_owner
@audit_log('ROLE.CREATE', entity='Role', entity_id_key='id', meta_keys=['name'])
def create_role():
    data = request.get_json(silent=True) or {}
    name = require_text(data, 'name')
    description = optional_text(data, 'description')
    role, perms = role_service.create_role(current_scope().business_id, name, description)
    body = role_service.role_json(role)
    body['permissions'] = [permission_json(p) for p in perms]
    return body, 201


@roles_bp.get('/roles/<int:role_id>')
@require_owner
def get_role(role_id: int):
    role = role_service.get_role(current_scope().business_id, role_id)
    return _role_with_permissions(role)


@roles_bp.route('/roles/<int:role_id>', methods=['PATCH', 'PUT'])
@require_owner
@audit_log(
    'ROLE.UPDATE',
    entity='Role',
    entity_id_key='id',
    diff_keys=['name', 'description'],
    pre_fetch=lambda a, kw: role_service.role_json(role_service.get_role(current_scope().business_id, kw['role_id'])),
)
def update_role(role_id: int):
    role = role_service.get_role(current_scope().business_id, role_id)
    data = request.get_json(silent=True) or {}
    name = require_text(data, 'name') if 'name' in data else None
    description = optional_text(data, 'description') if 'description' in data else None
    role_service.update_role(role, name=name, description=description, clear_description='description' in data)
    return role_service.role_json(role)


@roles_bp.delete('/roles/<int:role_id>')
@require_owner
@audit_log('ROLE.DELETE', entity='Role', entity_id_key='id', meta_keys=['name', 'permissions_deleted'])
def delete_role(role_id: int):
    role = role_service.get_role(current_scope().business_id, role_id)
    name = role.name
    counts = role_service.delete_role(role.id)
    return {'status': 'deleted', 'id': role_id, 'name': name, 'permissions_deleted': counts['permissions']}


@roles_bp.get('/roles/<int:role_id>/permissions')
@require_owner
def get_role_permissions(role_id: int):
    scope = current_scope()
    role = role_service.get_role(scope.business_id, role_id)
    rows = list_permissions(scope.business_id, role_id=role.id)
    return {'role_id': role.id, 'data': [permission_json(p) for p in rows]}


@roles_bp.put('/roles/<int:role_id>/permissions/<module>')
@require_owner
@audit_log(
    'PERMISSION.SET',
    entity='Role',
    entity_id_arg='role_id',
    meta_builder=lambda data, a, kw: {'module': kw.get('module'), 'values': {
        k: data.get(k) for k in ('create_permission', 'read_permission', 'update_permission', 'delete_permission')
    }},
)
def update_permission(role_id: int, module: str):
    role = role_service.get_role(current_scope().business_id, role_id)
    if not is_module(module):
        abort(400, description=f'Unknown module {module}')
    data = request.get_json(silent=True) or {}
    capability = normalize_capability(data.get('capability'))
    if capability is None:
        abort(400, description=f'capability must be one of {CAPABILITIES}')
    if 'value' not in data:
        abort(400, description='value required')
    value = parse_bool(data.get('value'), 'value')
    perm = set_permission(role.id, module, capability, value)
    return permission_json(perm)


@roles_bp.get('/permissions')
@require_owner
def permission_matrix():
    scope = current_scope()
    rows = list_permissions(scope.business_id)
    return {
        'modules': list(MODULES),
        'capabilities': list(CAPABILITIES),
        'roles': [role_service.role_json(r) for r in role_service.list_roles(scope.business_id)],
        'data': [permission_json(p) for p in rows],
    }
