from __future__ import annotations
from flask import abort


def apply_multi_sort(query, sort_expr: str | None, allowed: dict, tie_breaker, default=None):
    """Apply a comma-separated sort expression such as ``name,-updated_at``.

    allowed: mapping of public field key -> column.
    default: column used when no expression is given (falls back to tie_breaker).
    The tie breaker is always appended so paging stays deterministic.
    """
    if not sort_expr:
        first = default if default is not None else tie_breaker
        return query.order_by(first.asc(), tie_breaker.asc()) if first is not tie_breaker else query.order_by(tie_breaker.asc())
    clauses = []
    seen = set()
    for raw in sort_expr.split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token.lstrip('-+')
        col = allowed.get(key)
        if col is None:
            abort(400, description=f'Invalid sort field {key}')
        if key in seen:
            continue
        seen.add(key)
        clauses.append(col.desc() if desc else col.asc())
    clauses.append(tie_breaker.asc())
    return query.order_by(*clauses)
