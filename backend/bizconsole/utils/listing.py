from __future__ import annotations
from typing import Callable, Iterable, Optional, Tuple
from flask import request, abort, make_response
from sqlalchemy.orm import Query
from bizconsole.config.pagination import normalize_pagination
import hashlib
import json
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

TIMESTAMP_TOLERANCE = timedelta(seconds=1)


def canonicalize_timestamp(dt: datetime) -> datetime:
    """UTC tz-aware timestamp truncated to whole seconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0)


def iso_z(dt: datetime) -> str:
    return canonicalize_timestamp(dt).isoformat().replace('+00:00', 'Z')


def http_date(dt: datetime) -> str:
    return format_datetime(canonicalize_timestamp(dt), usegmt=True)


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(
            request.args.get('limit'), request.args.get('offset'), request.args.get('page')
        )
    except ValueError as e:
        abort(400, description=str(e))
    total = q.order_by(None).count()
    return q.offset(offset).limit(limit), total, limit, offset


def compute_etag(ids: Iterable[int], total: int, limit: int, offset: int, latest_iso: str = '', digest: str = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{latest_iso}|{digest}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def latest_timestamp(rows) -> Optional[datetime]:
    stamps = [canonicalize_timestamp(r.updated_at) for r in rows if getattr(r, 'updated_at', None)]
    return max(stamps) if stamps else None


def body_digest(payload) -> str:
    """Digest of the serialized representation, so data folded in by a
    serializer (nested grids, counts) moves the ETag too."""
    raw = json.dumps(payload, sort_keys=True, default=str, separators=(',', ':'))
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


def _max_ts(*stamps: Optional[datetime]) -> Optional[datetime]:
    present = [canonicalize_timestamp(s) for s in stamps if s]
    return max(present) if present else None


def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    # ISO 8601 first, then RFC 1123 HTTP-date
    try:
        return canonicalize_timestamp(datetime.fromisoformat(header_val.replace('Z', '+00:00')))
    except ValueError:
        pass
    try:
        return canonicalize_timestamp(parsedate_to_datetime(header_val))
    except (TypeError, ValueError, IndexError):
        return None


def _not_modified(etag_value: str, latest_ts: Optional[datetime]):
    resp = make_response('', 304)
    resp.headers['ETag'] = etag_value
    if latest_ts:
        resp.headers['Last-Modified'] = http_date(latest_ts)
        resp.headers['X-Last-Modified-ISO'] = iso_z(latest_ts)
    return resp


def handle_conditional(etag_value: str, latest_ts: Optional[datetime]):
    """Return a 304 response when the client's validators still match, else None.

    If-None-Match wins over If-Modified-Since.
    """
    inm = request.headers.get('If-None-Match')
    if inm:
        if inm.strip().strip('"') == etag_value:
            return _not_modified(etag_value, latest_ts)
        return None
    ims_raw = request.headers.get('If-Modified-Since')
    if ims_raw and latest_ts:
        ims_dt = _parse_if_modified_since(ims_raw)
        if ims_dt and canonicalize_timestamp(latest_ts) <= ims_dt + TIMESTAMP_TOLERANCE:
            return _not_modified(etag_value, latest_ts)
    return None


def list_response(q: Query, serialize: Callable, related_latest: Optional[Callable] = None):
    """Paginate ``q`` and build the standard list payload with cache validators.

    ``related_latest(rows)`` returns the newest change among rows the
    serializer reads besides ``rows`` themselves; it feeds Last-Modified.
    Handles GET and HEAD; HEAD responses carry headers only.
    """
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    data = [serialize(r) for r in rows]
    latest_ts = latest_timestamp(rows)
    if related_latest is not None and rows:
        latest_ts = _max_ts(latest_ts, related_latest(rows))
    etag = compute_etag(
        [d.get('id') for d in data], total, limit, offset,
        iso_z(latest_ts) if latest_ts else '', body_digest(data),
    )
    resp = handle_conditional(etag, latest_ts)
    if resp is None:
        resp = make_response({
            'data': data,
            'pagination': {
                'total': total,
                'limit': limit,
                'offset': offset,
                'returned': len(data),
            },
        })
        resp.headers['ETag'] = etag
        if latest_ts:
            resp.headers['Last-Modified'] = http_date(latest_ts)
            resp.headers['X-Last-Modified-ISO'] = iso_z(latest_ts)
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


def item_response(row, serialize: Callable):
    """Single-resource response with ETag / Last-Modified validators."""
    latest_ts = canonicalize_timestamp(row.updated_at) if row.updated_at else None
    body = serialize(row)
    etag = compute_etag([row.id], 1, 1, 0, iso_z(latest_ts) if latest_ts else '', body_digest(body))
    resp = handle_conditional(etag, latest_ts)
    if resp is None:
        resp = make_response(body)
        resp.headers['ETag'] = etag
        if latest_ts:
            resp.headers['Last-Modified'] = http_date(latest_ts)
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp
