from __future__ import annotations
from typing import Any, Dict, Iterable, Mapping
from flask import abort
from sqlalchemy import or_


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Mapping[str, Any]):
    """Generic filter builder.

    specs: { param_name: { 'op': callable(query, value)->query, 'coerce': callable (optional), 'validate': callable (optional) } }
    Empty or missing params are skipped.
    """
    for name, meta in specs.items():
        val = params.get(name)
        if val is None or val == '':
            continue
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except (TypeError, ValueError):
                abort(400, description=f'{name} invalid')
        if 'validate' in meta and not meta['validate'](val):
            abort(400, description=f'{name} invalid')
        query = meta['op'](query, val)
    return query


def apply_search(query, term: str | None, columns: Iterable):
    """Case-insensitive substring match of ``term`` against any of ``columns``."""
    term = (term or '').strip()
    if not term:
        return query
    pattern = f'%{term}%'
    return query.filter(or_(*[col.ilike(pattern) for col in columns]))
