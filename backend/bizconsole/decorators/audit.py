from __future__ import annotations
"""Audit logging decorator for mutating route handlers.

@audit_log('ROLE.CREATE', entity='Role', entity_id_key='id', meta_keys=['name'])
def create_role(): ... return {'id': role.id, 'name': role.name}, 201

Parameters:
  action: audit action code
  entity: entity label (Role, Employee, ...)
  entity_id_key: key of the returned JSON whose value becomes entity_id
  entity_id_arg: view kwarg used for entity_id when the key is absent
  meta_keys: keys projected from the returned JSON into meta
  meta_builder: callable(data, args, kwargs) -> dict, overrides meta_keys
  diff_keys + pre_fetch: record before/after values under meta['changes']

Only successful (status < 400) responses are audited. The entry is committed
in its own step after the view; a failure there is logged and does not
change the response.
"""
from functools import wraps
from typing import Any, Callable, Dict, Iterable, Optional
from flask import current_app
from bizconsole import get_db
from bizconsole.services.audit import add_audit


def _split_rv(rv: Any):
    """Return (payload, status) from a view return value."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, 200


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, tuple, dict], dict]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before = pre_fetch(args, kwargs) if (diff_keys and pre_fetch) else None
            rv = fn(*args, **kwargs)
            data, status = _split_rv(rv)
            if status >= 400:
                return rv
            if not isinstance(data, dict):
                data = {}
            entity_id = data.get(entity_id_key) if entity_id_key else None
            if entity_id is None and entity_id_arg:
                entity_id = kwargs.get(entity_id_arg)
            if meta_builder:
                meta = meta_builder(data, args, kwargs) or {}
            else:
                meta = {k: data[k] for k in (meta_keys or []) if k in data}
            if diff_keys and before:
                changes = {
                    k: {'before': before.get(k), 'after': data.get(k)}
                    for k in diff_keys
                    if k in before and k in data and before.get(k) != data.get(k)
                }
                if changes:
                    meta['changes'] = changes
            session = get_db()
            try:
                add_audit(action, entity, entity_id, meta)
                session.commit()
            except Exception:
                session.rollback()
                current_app.logger.exception('Audit write failed for %s', action)
            return rv
        return wrapper
    return outer
