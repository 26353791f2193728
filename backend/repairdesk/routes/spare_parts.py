from __future__ import annotations
from flask import Blueprint, request, abort, current_app
from sqlalchemy import select
from repairdesk import get_db
from repairdesk.models.service import Service
from repairdesk.models.spare_part_order import SparePartOrder
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.services.coordinator import build_coordinator
from repairdesk.services.dispatch import commit_and_dispatch
from repairdesk.services.intake import create_spare_part_order
from repairdesk.services.policy import current_principal, check_service_access
from repairdesk.utils.listing import list_response, resource_response, apply_filters, iso_z

spare_parts_bp = Blueprint('spare_parts', __name__)


@spare_parts_bp.post('')
@require_permissions('SPR.REQUEST')
@audit_log('SPR.ORDER.CREATE', entity='SparePartOrder', entity_id_key='id',
           meta_keys=['service_id', 'part_name', 'urgency', 'service_status'])
def create_spare_part():
    session = get_db()
    principal = current_principal()
    order = create_spare_part_order(session, principal, request.json or {})
    result = build_coordinator(session, current_app).spare_part_requested(principal, order)
    warnings = commit_and_dispatch(session, [result])
    body = spare_part_json(order)
    body['service_status'] = result.new_status
    body['warnings'] = warnings
    return body, 201


@spare_parts_bp.get('')
@require_permissions('SPR.READ')
def list_spare_parts():
    session = get_db()
    principal = current_principal()
    q = session.query(SparePartOrder)
    if principal.is_technician or principal.is_business_partner:
        if not principal.is_admin:
            from repairdesk.routes.services import scoped_services_query
            visible = [sid for (sid,) in scoped_services_query(session, principal).with_entities(Service.id).all()]
            q = q.filter(SparePartOrder.service_id.in_(visible) | (SparePartOrder.requested_by == principal.user_id))
    q = apply_filters(q, {
        'status': {'op': lambda qu, v: qu.filter(SparePartOrder.status == v), 'choices': SparePartOrder.ALL_STATUSES},
        'urgency': {'op': lambda qu, v: qu.filter(SparePartOrder.urgency == v), 'choices': SparePartOrder.ALL_URGENCIES},
        'service_id': {'coerce': int, 'op': lambda qu, v: qu.filter(SparePartOrder.service_id == v)},
    }, request.args)
    allowed = {
        'status': SparePartOrder.status,
        'urgency': SparePartOrder.urgency,
        'part_name': SparePartOrder.part_name,
        'created_at': SparePartOrder.created_at,
        'id': SparePartOrder.id,
    }
    return list_response(q, spare_part_json, allowed, SparePartOrder.id, SparePartOrder.updated_at)


@spare_parts_bp.get('/<int:order_id>')
@require_permissions('SPR.READ')
def get_spare_part(order_id: int):
    order = load_order(order_id)
    return resource_response(spare_part_json(order), order.updated_at)


def load_order(order_id: int) -> SparePartOrder:
    session = get_db()
    order = session.get(SparePartOrder, order_id)
    if not order:
        abort(404, description=f"Spare part order {order_id} not found")
    principal = current_principal()
    if order.service_id is not None and order.requested_by != principal.user_id:
        service = session.execute(select(Service).where(Service.id == order.service_id)).scalar_one_or_none()
        if service is not None:
            check_service_access(session, principal, service)
    return order


def spare_part_json(o: SparePartOrder):
    return {
        'id': o.id,
        'service_id': o.service_id,
        'part_name': o.part_name,
        'part_number': o.part_number,
        'quantity': o.quantity,
        'urgency': o.urgency,
        'warranty_status': o.warranty_status,
        'status': o.status,
        'description': o.description,
        'notes': o.notes,
        'supplier_name': o.supplier_name,
        'estimated_cost': o.estimated_cost,
        'estimated_delivery': o.estimated_delivery,
        'requested_by': o.requested_by,
        'created_at': iso_z(o.created_at),
        'updated_at': iso_z(o.updated_at),
    }
