from __future__ import annotations
from typing import Any, Dict, Optional
from flask import g, has_request_context
from flask_jwt_extended import get_jwt_identity
from bizconsole import get_db
from bizconsole.models.audit import AuditLog


def _actor_id() -> int:
    if not has_request_context():
        return 0
    try:
        ident = get_jwt_identity()
    except RuntimeError:
        # no verified JWT in this request (e.g. setup)
        return 0
    return int(ident) if ident is not None else 0


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[Any] = None,
              meta: Optional[Dict[str, Any]] = None, business_id: Optional[int] = None,
              actor_id: Optional[int] = None):
    """Add an audit entry to the current session.

    Parameters:
      action: short action code e.g. ROLE.CREATE, PERMISSION.SET, EMPLOYEE.ROLES.SET
      entity: optional entity name (Role, Employee, ...)
      entity_id: optional primary key
      meta: JSON-safe dict (shallow copied)
      business_id: defaults to the business resolved for the current request
    """
    if business_id is None and has_request_context():
        scope = g.get('console_scope')
        business_id = scope.business_id if scope else None
    log = AuditLog(
        actor_identity_id=actor_id if actor_id is not None else _actor_id(),
        business_id=business_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    get_db().add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
