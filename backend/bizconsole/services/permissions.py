from __future__ import annotations
"""Permission matrix: one row per (role, module) holding four independent
CRUD flags. A missing row grants nothing.
"""
from typing import Dict, List, Optional
from flask import abort, current_app
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from bizconsole import get_db
from bizconsole.constants.modules import MODULES, CAPABILITY_COLUMNS, DEFAULT_CAPABILITIES
from bizconsole.models.authz import Permission, Role, EmployeeRole


def permission_json(p: Permission) -> Dict:
    return {
        'id': p.id,
        'role_id': p.role_id,
        'module': p.module,
        'create_permission': bool(p.create_permission),
        'read_permission': bool(p.read_permission),
        'update_permission': bool(p.update_permission),
        'delete_permission': bool(p.delete_permission),
    }


def _validate(module: str, capability: str):
    if module not in MODULES:
        abort(400, description=f'Unknown module {module}')
    if capability not in CAPABILITY_COLUMNS:
        abort(400, description=f'Unknown capability {capability}')


def build_default_permissions(role_id: int) -> List[Permission]:
    """Read-only row for every module; caller adds and commits."""
    defaults = {CAPABILITY_COLUMNS[cap]: val for cap, val in DEFAULT_CAPABILITIES.items()}
    return [Permission(role_id=role_id, module=module, **defaults) for module in MODULES]


def find_permission(session, role_id: int, module: str) -> Optional[Permission]:
    return session.execute(
        select(Permission)
        .where(Permission.role_id == role_id, Permission.module == module)
        .order_by(Permission.id.asc())
    ).scalars().first()


def set_permission(role_id: int, module: str, capability: str, value: bool) -> Permission:
    """Set one capability flag for (role, module).

    Existing row: only the named field changes. Missing row: a new row with
    the named field set and the other three false. If another writer inserted
    the row between our read and our insert, the unique constraint rejects
    ours and the value is applied to the winner's row instead.
    """
    _validate(module, capability)
    column = CAPABILITY_COLUMNS[capability]
    session = get_db()
    perm = find_permission(session, role_id, module)
    if perm is not None:
        setattr(perm, column, value)
        session.commit()
        current_app.logger.info('Permission %s.%s=%s on role %s', module, capability, value, role_id)
        return perm

    fields = {col: False for col in CAPABILITY_COLUMNS.values()}
    fields[column] = value
    perm = Permission(role_id=role_id, module=module, **fields)
    session.add(perm)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        current_app.logger.warning(
            'Concurrent insert for role %s module %s; applying %s as update', role_id, module, capability
        )
        perm = find_permission(session, role_id, module)
        if perm is None:
            raise
        setattr(perm, column, value)
        session.commit()
    current_app.logger.info('Permission %s.%s=%s on role %s (new row)', module, capability, value, role_id)
    return perm


def has_capability(role_id: int, module: str, capability: str) -> bool:
    _validate(module, capability)
    perm = find_permission(get_db(), role_id, module)
    if perm is None:
        return False
    return bool(getattr(perm, CAPABILITY_COLUMNS[capability]))


def employee_has_capability(employee_id: int, module: str, capability: str) -> bool:
    """True when any role assigned to the employee grants the capability."""
    _validate(module, capability)
    column = getattr(Permission, CAPABILITY_COLUMNS[capability])
    hit = get_db().execute(
        select(Permission.id)
        .join(EmployeeRole, EmployeeRole.role_id == Permission.role_id)
        .where(
            EmployeeRole.employee_id == employee_id,
            Permission.module == module,
            column.is_(True),
        )
        .limit(1)
    ).scalar_one_or_none()
    return hit is not None


def scope_has_capability(scope, module: str, capability: str) -> bool:
    # The business owner is authorized for everything
    if scope.is_owner:
        return True
    if scope.employee is None:
        return False
    return employee_has_capability(scope.employee.id, module, capability)


def list_permissions(business_id: int, role_id: Optional[int] = None) -> List[Permission]:
    q = (
        select(Permission)
        .join(Role, Role.id == Permission.role_id)
        .where(Role.business_id == business_id)
    )
    if role_id is not None:
        q = q.where(Permission.role_id == role_id)
    rows = get_db().execute(q.order_by(Permission.role_id.asc(), Permission.id.asc())).scalars().all()
    order = {m: i for i, m in enumerate(MODULES)}
    return sorted(rows, key=lambda p: (p.role_id, order.get(p.module, len(order)), p.id))


def permissions_changed_at(role_ids: List[int]):
    """Newest permission-row change across ``role_ids``, or None."""
    if not role_ids:
        return None
    return get_db().execute(
        select(func.max(Permission.updated_at)).where(Permission.role_id.in_(role_ids))
    ).scalar_one_or_none()


def capability_grid(role_id: int) -> Dict[str, Dict[str, bool]]:
    """module -> capability flags for one role; modules without a row are all false."""
    grid = {m: {cap: False for cap in CAPABILITY_COLUMNS} for m in MODULES}
    for p in get_db().execute(select(Permission).where(Permission.role_id == role_id)).scalars():
        if p.module in grid:
            grid[p.module] = p.capabilities()
    return grid


def matrix_gaps(business_id: Optional[int] = None) -> Dict[int, Dict[str, List[str]]]:
    """Roles whose matrix is incomplete or holds more than one row per module.

    Returns ``{role_id: {'missing': [...], 'duplicated': [...]}}`` for problem
    roles only.
    """
    session = get_db()
    q = select(Role.id)
    if business_id is not None:
        q = q.where(Role.business_id == business_id)
    role_ids = session.execute(q.order_by(Role.id.asc())).scalars().all()
    if not role_ids:
        return {}
    counts: Dict[int, Dict[str, int]] = {rid: {} for rid in role_ids}
    rows = session.execute(
        select(Permission.role_id, Permission.module, func.count(Permission.id))
        .where(Permission.role_id.in_(role_ids))
        .group_by(Permission.role_id, Permission.module)
    ).all()
    for role_id, module, n in rows:
        counts[role_id][module] = int(n)
    problems = {}
    for role_id, per_module in counts.items():
        missing = [m for m in MODULES if m not in per_module]
        duplicated = [m for m in MODULES if per_module.get(m, 0) > 1]
        if missing or duplicated:
            problems[role_id] = {'missing': missing, 'duplicated': duplicated}
    return problems


def fill_missing_permissions(gaps: Dict[int, Dict[str, List[str]]]) -> int:
    """Insert read-only default rows for every missing (role, module); caller commits."""
    session = get_db()
    defaults = {CAPABILITY_COLUMNS[cap]: val for cap, val in DEFAULT_CAPABILITIES.items()}
    added = 0
    for role_id, problem in gaps.items():
        for module in problem.get('missing', []):
            session.add(Permission(role_id=role_id, module=module, **defaults))
            added += 1
    return added
