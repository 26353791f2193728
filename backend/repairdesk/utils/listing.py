from __future__ import annotations
"""Shared list/detail response plumbing: pagination, multi-field sort, ETag and
Last-Modified conditional handling.

Typical list endpoint:
    q = session.query(Service)
    return list_response(q, _service_json, {'status': Service.status}, Service.id, Service.updated_at)
"""
from typing import Any, Callable, Dict, Iterable, Optional, Tuple
from flask import request, abort, make_response, jsonify
from sqlalchemy.orm import Query
import hashlib
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

DEFAULT_LIMIT = 50
MAX_LIMIT = 200
TIMESTAMP_TOLERANCE = timedelta(seconds=1)


def normalize_pagination(limit_raw, offset_raw):
    try:
        limit = int(limit_raw) if limit_raw is not None else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    limit = max(1, min(limit, MAX_LIMIT))
    offset = max(0, offset)
    return limit, offset


def canonicalize_timestamp(dt: datetime) -> datetime:
    """Return UTC tz-aware timestamp truncated to whole seconds (microseconds removed)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.replace(microsecond=0)


def iso_z(dt: Optional[datetime]) -> Optional[str]:
    if not isinstance(dt, datetime):
        return None
    return canonicalize_timestamp(dt).isoformat().replace('+00:00', 'Z')


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def apply_multi_sort(query, sort_expr: Optional[str], allowed: dict, tie_breaker):
    """Apply comma-separated sort tokens (``-`` prefix for descending) from the allowed column map."""
    if not sort_expr:
        return query.order_by(tie_breaker.asc())
    clauses = []
    for raw in sort_expr.split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token[1:] if desc else token
        col = allowed.get(key)
        if col is None:
            abort(400, description=f'Invalid sort field {key}')
        clauses.append(col.desc() if desc else col.asc())
    clauses.append(tie_breaker.asc())
    return query.order_by(*clauses)


def compute_etag(ids: Iterable[int], total: int, limit: int, offset: int, latest_ts: Optional[str] = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{latest_ts or ''}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }


def _http_date(dt: datetime) -> str:
    """Return RFC1123 HTTP-date string in GMT."""
    return format_datetime(dt, usegmt=True)


def _set_last_modified(resp, latest_ts: Optional[datetime]):
    if isinstance(latest_ts, datetime):
        lt = canonicalize_timestamp(latest_ts)
        resp.headers['Last-Modified'] = _http_date(lt)
        resp.headers['X-Last-Modified-ISO'] = iso_z(lt)


def make_cached_list_response(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None):
    ids = [r.get('id') for r in rows]
    etag = compute_etag(ids, total, limit, offset, iso_z(latest_ts) or '')
    resp = make_response(build_list_payload(rows, total, limit, offset))
    resp.headers['ETag'] = etag
    _set_last_modified(resp, latest_ts)
    return resp, etag


def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    if not header_val:
        return None
    try:
        dt = datetime.fromisoformat(header_val.replace('Z', '+00:00'))
    except ValueError:
        try:
            dt = parsedate_to_datetime(header_val)
        except (TypeError, ValueError):
            return None
    if dt and dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def handle_conditional(etag_value: str, latest_ts: Optional[datetime]):
    """Evaluate conditional request headers.

    Precedence: If-None-Match over If-Modified-Since (per RFC 9110 semantics).
    Returns a 304 response object if conditions satisfied, else None.
    """
    inm = request.headers.get('If-None-Match')
    if inm and inm.strip('"') == etag_value:
        resp = make_response('', 304)
        resp.headers['ETag'] = etag_value
        _set_last_modified(resp, latest_ts)
        return resp
    ims_raw = request.headers.get('If-Modified-Since')
    if ims_raw and isinstance(latest_ts, datetime):
        ims_dt = _parse_if_modified_since(ims_raw)
        if ims_dt and canonicalize_timestamp(latest_ts) <= canonicalize_timestamp(ims_dt) + TIMESTAMP_TOLERANCE:
            resp = make_response('', 304)
            resp.headers['ETag'] = etag_value
            _set_last_modified(resp, latest_ts)
            return resp
    return None


def list_response(q: Query, serializer: Callable[[Any], Dict[str, Any]], sort_allowed: Dict[str, Any], tie_breaker, updated_col=None):
    """Sort, paginate and serialize ``q``; honours conditional headers and HEAD."""
    q = apply_multi_sort(q, request.args.get('sort'), sort_allowed, tie_breaker)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    latest_ts = None
    if updated_col is not None:
        stamps = [getattr(r, updated_col.key) for r in rows if getattr(r, updated_col.key, None) is not None]
        latest_ts = max(stamps) if stamps else None
    resp, etag = make_cached_list_response([serializer(r) for r in rows], total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


def resource_response(body: Dict[str, Any], latest_ts: Optional[datetime], status: int = 200):
    """Single-resource GET/HEAD with ETag + Last-Modified."""
    etag = compute_etag([body.get('id')], 1, 1, 0, iso_z(latest_ts) or '')
    cond = handle_conditional(etag, latest_ts)
    if cond:
        cond.set_data(b'')
        return cond
    resp = make_response(jsonify(body), status)
    resp.headers['ETag'] = etag
    _set_last_modified(resp, latest_ts)
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params):
    """Apply query-string filters.

    specs: {param: {'op': callable(query, value) -> query, 'coerce': callable, 'choices': iterable}}
    Unknown or empty parameters are ignored; bad values abort with 400.
    """
    for name, meta in specs.items():
        raw = params.get(name)
        if raw is None or raw == '':
            continue
        val = raw
        if 'coerce' in meta:
            try:
                val = meta['coerce'](raw)
            except (TypeError, ValueError):
                abort(400, description=f'{name} invalid')
        if 'choices' in meta and val not in tuple(meta['choices']):
            abort(400, description=f'{name} invalid')
        query = meta['op'](query, val)
    return query

__all__ = [
    'normalize_pagination', 'canonicalize_timestamp', 'iso_z', 'apply_pagination', 'apply_multi_sort',
    'compute_etag', 'build_list_payload', 'make_cached_list_response', 'handle_conditional',
    'list_response', 'resource_response', 'apply_filters',
]
