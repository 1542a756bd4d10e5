from __future__ import annotations
from typing import Dict, List, Optional, Tuple
from flask import abort, current_app
from sqlalchemy import select, delete, func
from sqlalchemy.exc import SQLAlchemyError
from bizconsole import get_db
from bizconsole.models.authz import Role, Permission, EmployeeRole
from bizconsole.services.permissions import build_default_permissions


def role_json(r: Role) -> Dict:
    return {
        'id': r.id,
        'business_id': r.business_id,
        'name': r.name,
        'description': r.description,
    }


def get_role(business_id: int, role_id: int) -> Role:
    role = get_db().execute(
        select(Role).where(Role.id == role_id, Role.business_id == business_id)
    ).scalar_one_or_none()
    if role is None:
        abort(404)
    return role


def list_roles(business_id: int) -> List[Role]:
    return get_db().execute(
        select(Role).where(Role.business_id == business_id).order_by(Role.id.asc())
    ).scalars().all()


def create_role(business_id: int, name: str, description: Optional[str] = None) -> Tuple[Role, List[Permission]]:
    """Create a role together with its read-only permission rows.

    Role and permissions are committed together; nothing is kept if either
    insert fails.
    """
    session = get_db()
    try:
        role = Role(business_id=business_id, name=name, description=description or None)
        session.add(role)
        session.flush()
        perms = build_default_permissions(role.id)
        session.add_all(perms)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        current_app.logger.exception('Role creation failed for business %s', business_id)
        raise
    current_app.logger.info('Created role %s (%s) with %d permissions', role.id, name, len(perms))
    return role, perms


def update_role(role: Role, name: Optional[str] = None, description: Optional[str] = None, clear_description: bool = False) -> Role:
    session = get_db()
    if name is not None:
        role.name = name
    if description is not None or clear_description:
        role.description = description or None
    session.commit()
    return role


def delete_role(role_id: int) -> Dict[str, int]:
    """Remove a role: permission rows first, then assignments, then the role.

    Runs as one transaction.
    """
    session = get_db()
    try:
        perms_deleted = session.execute(delete(Permission).where(Permission.role_id == role_id)).rowcount
        session.execute(delete(EmployeeRole).where(EmployeeRole.role_id == role_id))
        roles_deleted = session.execute(delete(Role).where(Role.id == role_id)).rowcount
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        current_app.logger.exception('Role deletion failed for role %s', role_id)
        raise
    current_app.logger.info('Deleted role %s and %d permissions', role_id, perms_deleted)
    return {'permissions': perms_deleted, 'roles': roles_deleted}


def count_roles(business_id: int) -> int:
    return get_db().execute(
        select(func.count(Role.id)).where(Role.business_id == business_id)
    ).scalar_one()
