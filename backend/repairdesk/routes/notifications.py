from __future__ import annotations
from datetime import datetime, timezone
from flask import Blueprint, request, abort
from sqlalchemy import func, select, update
from repairdesk import get_db
from repairdesk.models.notification import Notification
from repairdesk.decorators.auth import require_permissions
from repairdesk.services.policy import current_principal
from repairdesk.utils.listing import list_response, apply_filters, iso_z
from repairdesk.utils.validation import parse_bool

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.get('')
@require_permissions('NTF.READ')
def list_notifications():
    """Notifications addressed to the caller, newest first unless ``sort`` says otherwise."""
    session = get_db()
    principal = current_principal()
    q = session.query(Notification).filter(Notification.user_id == principal.user_id)
    q = apply_filters(q, {
        'is_read': {'coerce': lambda v: parse_bool(v, 'is_read'), 'op': lambda qu, v: qu.filter(Notification.is_read.is_(v))},
        'type': {'op': lambda qu, v: qu.filter(Notification.type == v)},
        'related_service_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Notification.related_service_id == v)},
    }, request.args)
    allowed = {'created_at': Notification.created_at, 'type': Notification.type, 'is_read': Notification.is_read, 'id': Notification.id}
    if not request.args.get('sort'):
        q = q.order_by(Notification.created_at.desc(), Notification.id.desc())
    return list_response(q, notification_json, allowed, Notification.id, Notification.created_at)


@notifications_bp.get('/unread-count')
@require_permissions('NTF.READ')
def unread_count():
    session = get_db()
    principal = current_principal()
    count = session.execute(
        select(func.count(Notification.id)).where(Notification.user_id == principal.user_id, Notification.is_read.is_(False))
    ).scalar_one()
    return {'count': count}


@notifications_bp.patch('/<int:notification_id>/read')
@require_permissions('NTF.READ')
def mark_read(notification_id: int):
    session = get_db()
    principal = current_principal()
    note = session.get(Notification, notification_id)
    if not note or note.user_id != principal.user_id:
        abort(404)
    if not note.is_read:
        note.is_read = True
        note.read_at = datetime.now(timezone.utc)
        session.commit()
    return notification_json(note)


@notifications_bp.post('/read-all')
@require_permissions('NTF.READ')
def mark_all_read():
    session = get_db()
    principal = current_principal()
    res = session.execute(
        update(Notification)
        .where(Notification.user_id == principal.user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=datetime.now(timezone.utc))
    )
    session.commit()
    return {'updated': res.rowcount}


def notification_json(n: Notification):
    return {
        'id': n.id,
        'user_id': n.user_id,
        'type': n.type,
        'title': n.title,
        'message': n.message,
        'related_service_id': n.related_service_id,
        'related_user_id': n.related_user_id,
        'priority': n.priority,
        'is_read': n.is_read,
        'read_at': iso_z(n.read_at),
        'created_at': iso_z(n.created_at),
    }
