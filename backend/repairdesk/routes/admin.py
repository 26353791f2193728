from __future__ import annotations
from datetime import datetime, timezone
from flask import Blueprint, request, abort, current_app, send_file
from repairdesk import get_db
from repairdesk.constants.statuses import SparePartStatus, TERMINAL_SERVICE_STATUSES, OPEN_SPARE_PART_STATUSES
from repairdesk.models.service import Service
from repairdesk.models.spare_part_order import SparePartOrder
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.routes.services import load_service, service_json, with_warnings
from repairdesk.routes.spare_parts import spare_part_json
from repairdesk.services.coordinator import build_coordinator
from repairdesk.services.dispatch import commit_and_dispatch
from repairdesk.services.policy import current_principal
from repairdesk.utils.export import build_spare_parts_workbook, workbook_bytes
from repairdesk.utils.fsm import TransitionValidator
from repairdesk.utils.listing import list_response, apply_filters
from repairdesk.utils.validation import pick, optional_text, require_choice, parse_bool

admin_bp = Blueprint('admin', __name__)

P = SparePartStatus
SPARE_PART_FSM = TransitionValidator({
    P.PENDING.value: {P.ORDERED.value, P.DELIVERED.value, P.CANCELLED.value},
    P.ORDERED.value: {P.DELIVERED.value, P.CANCELLED.value},
    P.DELIVERED.value: set(),
    P.CANCELLED.value: set(),
})


@admin_bp.put('/spare-parts/<int:order_id>')
@require_permissions('SPR.SUPPLY')
@audit_log('SPR.ORDER.UPDATE', entity='SparePartOrder', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_order(kw.get('order_id')), meta_keys=['status', 'service_status'])
def update_spare_part(order_id: int):
    session = get_db()
    principal = current_principal()
    order = session.get(SparePartOrder, order_id)
    if not order:
        abort(404, description=f"Spare part order {order_id} not found")
    data = request.json or {}
    previous = order.status
    target = require_choice(pick(data, 'status'), SparePartOrder.ALL_STATUSES, 'status', default=previous)
    if target != previous:
        SPARE_PART_FSM.assert_can_transition(previous, target)
    supplier_name = optional_text(pick(data, 'supplier_name'), 'supplier_name')
    estimated_cost = optional_text(pick(data, 'estimated_cost'), 'estimated_cost')
    estimated_delivery = optional_text(pick(data, 'estimated_delivery'), 'estimated_delivery')
    note = optional_text(pick(data, 'notes'), 'notes')
    order.status = target
    if supplier_name is not None:
        order.supplier_name = supplier_name
    if estimated_cost is not None:
        order.estimated_cost = estimated_cost
    if estimated_delivery is not None:
        order.estimated_delivery = estimated_delivery
    if note:
        stamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M')
        line = f"[{stamp}] {note}"
        order.notes = f"{order.notes}\n{line}" if order.notes else line
    result = build_coordinator(session, current_app).spare_part_updated(principal, order, previous)
    warnings = commit_and_dispatch(session, [result])
    body = spare_part_json(order)
    service = session.get(Service, order.service_id) if order.service_id is not None else None
    body['service_status'] = service.status if service is not None else None
    body['warnings'] = warnings
    return body


@admin_bp.get('/spare-parts/export')
@require_permissions('RPT.EXPORT')
def export_spare_parts():
    session = get_db()
    q = session.query(SparePartOrder)
    q = apply_filters(q, {
        'status': {'op': lambda qu, v: qu.filter(SparePartOrder.status == v), 'choices': SparePartOrder.ALL_STATUSES},
    }, request.args)
    orders = q.order_by(SparePartOrder.id.asc()).all()
    service_ids = {o.service_id for o in orders if o.service_id is not None}
    services = {s.id: s for s in session.query(Service).filter(Service.id.in_(service_ids))} if service_ids else {}
    output = workbook_bytes(build_spare_parts_workbook(orders, services))
    filename = f"rezervni-delovi-{datetime.now(timezone.utc):%Y%m%d}.xlsx"
    return send_file(
        output,
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        as_attachment=True,
        download_name=filename,
    )


@admin_bp.get('/waiting-for-parts')
@require_permissions('SPR.MANAGE')
def waiting_for_parts():
    session = get_db()
    q = session.query(Service).filter(Service.status == Service.STATUS_WAITING_PARTS)

    def _row(s: Service):
        body = service_json(s)
        open_orders = (
            session.query(SparePartOrder)
            .filter(SparePartOrder.service_id == s.id, SparePartOrder.status.in_(OPEN_SPARE_PART_STATUSES))
            .order_by(SparePartOrder.id.asc())
            .all()
        )
        body['open_orders'] = [spare_part_json(o) for o in open_orders]
        return body

    allowed = {'updated_at': Service.updated_at, 'id': Service.id}
    return list_response(q, _row, allowed, Service.id, Service.updated_at)


@admin_bp.post('/services/<int:service_id>/return-from-waiting')
@require_permissions('SRV.RETURN_FROM_WAITING')
@audit_log('SRV.SERVICE.RETURN_FROM_WAITING', entity='Service', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_status(kw.get('service_id')), meta_keys=['status', 'changed'])
def return_from_waiting(service_id: int):
    session = get_db()
    principal = current_principal()
    service = load_service(service_id, principal)
    data = request.get_json(silent=True) or {}
    force = parse_bool(pick(data, 'force', request.args.get('force', False)), 'force')
    result = build_coordinator(session, current_app).return_from_waiting(principal, service, force=force)
    warnings = commit_and_dispatch(session, [result])
    body = with_warnings(service_json(service), warnings)
    body['changed'] = result.changed
    return body


@admin_bp.post('/services/<int:service_id>/remind')
@require_permissions('SRV.UPDATE')
@audit_log('SRV.SERVICE.REMIND', entity='Service', entity_id_key='id', meta_keys=['scheduled_date', 'queued'])
def remind_client(service_id: int):
    session = get_db()
    principal = current_principal()
    service = load_service(service_id, principal)
    if service.status in TERMINAL_SERVICE_STATUSES:
        abort(400, description=f"Service {service_id} is {service.status}; no appointment to remind about")
    result = build_coordinator(session, current_app).appointment_reminder(principal, service)
    warnings = commit_and_dispatch(session, [result])
    body = with_warnings(service_json(service), warnings)
    body['queued'] = len(result.outbound)
    return body


def _prefetch_order(order_id: int):
    o = get_db().get(SparePartOrder, order_id)
    return {'status': o.status} if o else {}


def _prefetch_status(service_id: int):
    s = get_db().get(Service, service_id)
    return {'status': s.status} if s else {}
