from __future__ import annotations
from datetime import datetime
from flask import Blueprint, request, abort, make_response, jsonify
from sqlalchemy import func, select, and_
from repairdesk.decorators.auth import require_permissions
from repairdesk.utils.listing import handle_conditional, compute_etag, iso_z, _set_last_modified
from repairdesk import get_db
from repairdesk.constants.statuses import ServiceStatus, SparePartStatus, OutboundStatus, values
from repairdesk.models.service import Service
from repairdesk.models.spare_part_order import SparePartOrder
from repairdesk.models.removed_part import RemovedPart
from repairdesk.models.notification import OutboundMessage

rpt_bp = Blueprint('reports', __name__)


def _parse_date(value: str, name: str):
    if not value:
        return None
    for fmt in ('%Y-%m-%d', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M:%S%z'):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    abort(400, description=f'{name} invalid')


def _status_counts(session, model, vocabulary, start_date=None, end_date=None):
    """Zero-filled {status: count} over ``model`` rows created inside the optional window."""
    q = session.query(model.status, func.count(model.id))
    dt_filters = []
    if start_date:
        dt_filters.append(model.created_at >= start_date)
    if end_date:
        dt_filters.append(model.created_at <= end_date)
    if dt_filters:
        q = q.filter(and_(*dt_filters))
    counts = {status: 0 for status in vocabulary}
    for status, count in q.group_by(model.status).all():
        counts[status] = int(count)
    return counts


@rpt_bp.get('/summary')
@require_permissions('RPT.READ')
def summary():
    session = get_db()
    start_date = _parse_date(request.args.get('start_date'), 'start_date')
    end_date = _parse_date(request.args.get('end_date'), 'end_date')
    outstanding = session.execute(
        select(func.count(RemovedPart.id)).where(RemovedPart.actual_return_date.is_(None))
    ).scalar_one()
    returned = session.execute(
        select(func.count(RemovedPart.id)).where(RemovedPart.actual_return_date.isnot(None))
    ).scalar_one()
    body = {
        'services': _status_counts(session, Service, values(ServiceStatus), start_date, end_date),
        'spare_parts': _status_counts(session, SparePartOrder, values(SparePartStatus), start_date, end_date),
        'removed_parts': {'outstanding': outstanding, 'returned': returned},
        'outbound': _status_counts(session, OutboundMessage, values(OutboundStatus), start_date, end_date),
    }
    latest_candidates = [
        session.execute(select(func.max(model.updated_at))).scalar_one_or_none()
        for model in (Service, SparePartOrder, RemovedPart)
    ]
    latest_candidates = [c for c in latest_candidates if c is not None]
    latest_ts = max(latest_candidates) if latest_candidates else None
    fingerprint = [f"{section}:{k}={v}" for section, counts in sorted(body.items()) for k, v in sorted(counts.items())]
    etag = compute_etag(fingerprint, 1, 1, 0, iso_z(latest_ts) or '')
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    resp = make_response(jsonify(body))
    resp.headers['ETag'] = etag
    _set_last_modified(resp, latest_ts)
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp
