from __future__ import annotations
from flask import Blueprint, request, abort, current_app
from sqlalchemy import or_, select
from repairdesk import get_db
from repairdesk.constants.statuses import ServiceStatus, SERVICE_STATUS_LABELS
from repairdesk.models.authz import User
from repairdesk.models.client import Client, Appliance
from repairdesk.models.service import Service
from repairdesk.models.spare_part_order import SparePartOrder
from repairdesk.models.removed_part import RemovedPart
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.services.coordinator import build_coordinator
from repairdesk.services.dispatch import commit_and_dispatch
from repairdesk.services.policy import current_principal, check_service_access
from repairdesk.utils.fsm import TransitionValidator
from repairdesk.utils.listing import list_response, resource_response, apply_filters, iso_z
from repairdesk.utils.validation import (
    FieldValidationError, pick, require_text, optional_text, require_choice, parse_positive_int, parse_bool,
)

services_bp = Blueprint('services', __name__)

S = ServiceStatus
# Manual lifecycle steps. waiting_parts, device_parts_removed and completed are
# entered only through the status coordinator.
SERVICE_FSM = TransitionValidator({
    S.PENDING.value: {S.SCHEDULED.value, S.ASSIGNED.value, S.CANCELLED.value},
    S.SCHEDULED.value: {S.ASSIGNED.value, S.IN_PROGRESS.value, S.CANCELLED.value},
    S.ASSIGNED.value: {S.SCHEDULED.value, S.IN_PROGRESS.value, S.CLIENT_NOT_HOME.value,
                       S.CLIENT_NOT_ANSWERING.value, S.CANCELLED.value},
    S.IN_PROGRESS.value: {S.CLIENT_NOT_HOME.value, S.CLIENT_NOT_ANSWERING.value,
                          S.CUSTOMER_REFUSED_REPAIR.value, S.REPAIR_FAILED.value, S.CANCELLED.value},
    S.WAITING_PARTS.value: {S.REPAIR_FAILED.value, S.CANCELLED.value},
    S.DEVICE_PARTS_REMOVED.value: {S.REPAIR_FAILED.value, S.CANCELLED.value},
    S.CLIENT_NOT_HOME.value: {S.SCHEDULED.value, S.IN_PROGRESS.value, S.CANCELLED.value},
    S.CLIENT_NOT_ANSWERING.value: {S.SCHEDULED.value, S.IN_PROGRESS.value, S.CANCELLED.value},
    S.COMPLETED.value: {S.DELIVERED.value},
    S.DELIVERED.value: set(),
    S.CANCELLED.value: set(),
    S.CUSTOMER_REFUSED_REPAIR.value: set(),
    S.REPAIR_FAILED.value: set(),
})

COORDINATOR_OWNED = (S.WAITING_PARTS.value, S.DEVICE_PARTS_REMOVED.value, S.COMPLETED.value)


@services_bp.get('')
@require_permissions('SRV.READ')
def list_services():
    session = get_db()
    q = scoped_services_query(session, current_principal())
    q = apply_filters(q, {
        'status': {'op': lambda qu, v: qu.filter(Service.status == v), 'choices': Service.ALL_STATUSES},
        'technician_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Service.technician_id == v)},
        'client_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Service.client_id == v)},
    }, request.args)
    allowed = {
        'status': Service.status,
        'created_at': Service.created_at,
        'updated_at': Service.updated_at,
        'id': Service.id,
    }
    return list_response(q, service_json, allowed, Service.id, Service.updated_at)


@services_bp.post('')
@require_permissions('SRV.CREATE')
@audit_log('SRV.SERVICE.CREATE', entity='Service', entity_id_key='id', meta_keys=['client_id', 'appliance_id', 'status'])
def create_service():
    session = get_db()
    principal = current_principal()
    data = request.json or {}
    client_id = parse_positive_int(pick(data, 'client_id'), 'client_id')
    appliance_id = parse_positive_int(pick(data, 'appliance_id'), 'appliance_id')
    description = require_text(pick(data, 'description'), 'description')
    client = session.get(Client, client_id)
    if not client:
        abort(404, description=f"Client {client_id} not found")
    if principal.is_customer and not principal.is_admin and client.user_id != principal.user_id:
        abort(403, description='Client access denied')
    appliance = session.get(Appliance, appliance_id)
    if not appliance or appliance.client_id != client_id:
        raise FieldValidationError('appliance_id', "appliance_id does not belong to client")
    technician_id = pick(data, 'technician_id')
    technician_id = parse_positive_int(technician_id, 'technician_id') if technician_id not in (None, '') else None
    if technician_id is not None and not session.get(User, technician_id):
        raise FieldValidationError('technician_id', 'technician_id unknown user')
    partner_id = principal.user_id if principal.is_business_partner else None
    service = Service(
        client_id=client_id,
        appliance_id=appliance_id,
        description=description,
        technician_id=technician_id,
        business_partner_id=partner_id,
        scheduled_date=optional_text(pick(data, 'scheduled_date'), 'scheduled_date'),
        status=S.ASSIGNED.value if technician_id else S.PENDING.value,
        created_by=principal.user_id,
    )
    session.add(service)
    session.commit()
    return service_json(service), 201


@services_bp.get('/<int:service_id>')
@require_permissions('SRV.READ')
def get_service(service_id: int):
    service = load_service(service_id)
    return resource_response(service_json(service), service.updated_at)


@services_bp.delete('/<int:service_id>')
@require_permissions('SRV.DELETE')
@audit_log('SRV.SERVICE.DELETE', entity='Service', entity_id_key='id', meta_keys=['status'])
def delete_service(service_id: int):
    session = get_db()
    service = load_service(service_id)
    body = {'id': service.id, 'status': service.status, 'deleted': True}
    session.query(SparePartOrder).filter(SparePartOrder.service_id == service.id).delete()
    session.query(RemovedPart).filter(RemovedPart.service_id == service.id).delete()
    session.delete(service)
    session.commit()
    return body


@services_bp.post('/<int:service_id>/assign')
@require_permissions('SRV.UPDATE')
@audit_log('SRV.SERVICE.ASSIGN', entity='Service', entity_id_key='id', diff_keys=['status', 'technician_id'],
           pre_fetch=lambda a, kw: _prefetch_service(kw.get('service_id')), meta_keys=['status', 'technician_id'])
def assign_service(service_id: int):
    session = get_db()
    service = load_service(service_id)
    data = request.json or {}
    technician_id = parse_positive_int(pick(data, 'technician_id'), 'technician_id')
    if not session.get(User, technician_id):
        raise FieldValidationError('technician_id', 'technician_id unknown user')
    previous = service.status
    if previous != S.ASSIGNED.value:
        SERVICE_FSM.assert_can_transition(previous, S.ASSIGNED.value)
        service.status = S.ASSIGNED.value
    service.technician_id = technician_id
    scheduled_date = optional_text(pick(data, 'scheduled_date'), 'scheduled_date')
    if scheduled_date:
        service.scheduled_date = scheduled_date
    return _announce(service, previous)


@services_bp.post('/<int:service_id>/start')
@require_permissions('SRV.UPDATE')
@audit_log('SRV.SERVICE.START', entity='Service', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_service(kw.get('service_id')), meta_keys=['status'])
def start_service(service_id: int):
    return _manual_transition(service_id, S.IN_PROGRESS.value)


@services_bp.post('/<int:service_id>/deliver')
@require_permissions('SRV.UPDATE')
@audit_log('SRV.SERVICE.DELIVER', entity='Service', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_service(kw.get('service_id')), meta_keys=['status'])
def deliver_service(service_id: int):
    return _manual_transition(service_id, S.DELIVERED.value)


@services_bp.post('/<int:service_id>/cancel')
@require_permissions('SRV.UPDATE')
@audit_log('SRV.SERVICE.CANCEL', entity='Service', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_service(kw.get('service_id')), meta_keys=['status'])
def cancel_service(service_id: int):
    return _manual_transition(service_id, S.CANCELLED.value)


@services_bp.post('/<int:service_id>/status')
@require_permissions('SRV.UPDATE')
@audit_log('SRV.SERVICE.STATUS', entity='Service', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_service(kw.get('service_id')), meta_keys=['status'])
def update_status(service_id: int):
    data = request.json or {}
    target = require_choice(pick(data, 'status'), Service.ALL_STATUSES, 'status')
    if target in COORDINATOR_OWNED:
        raise FieldValidationError('status', f"status {target} is set by spare-part, removed-part or complete actions")
    notes = optional_text(pick(data, 'technician_notes'), 'technician_notes')
    return _manual_transition(service_id, target, notes)


@services_bp.post('/<int:service_id>/complete')
@require_permissions('SRV.COMPLETE')
@audit_log('SRV.SERVICE.COMPLETE', entity='Service', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_service(kw.get('service_id')), meta_keys=['status', 'cost', 'is_completely_fixed'])
def complete_service(service_id: int):
    session = get_db()
    principal = current_principal()
    service = load_service(service_id, principal)
    data = request.json or {}
    cost = pick(data, 'cost')
    if isinstance(cost, (int, float)) and not isinstance(cost, bool):
        cost = str(cost)
    cost = require_text(cost, 'cost')
    notes = require_text(pick(data, 'technician_notes'), 'technician_notes')
    fixed_raw = pick(data, 'is_completely_fixed')
    if fixed_raw is None:
        raise FieldValidationError('is_completely_fixed', 'is_completely_fixed required')
    fixed = parse_bool(fixed_raw, 'is_completely_fixed')
    coordinator = build_coordinator(session, current_app)
    result = coordinator.complete(principal, service, cost, notes, fixed)
    warnings = commit_and_dispatch(session, [result])
    return with_warnings(service_json(service), warnings)


@services_bp.patch('/<int:service_id>/parts-removed')
@require_permissions('RMP.CREATE')
@audit_log('SRV.SERVICE.PARTS_REMOVED', entity='Service', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_service(kw.get('service_id')), meta_keys=['status'])
def mark_parts_removed(service_id: int):
    """Deprecated alias of POST /removed-parts; drives the same transition without a part record."""
    session = get_db()
    principal = current_principal()
    service = load_service(service_id, principal)
    result = build_coordinator(session, current_app).parts_removed(principal, service)
    warnings = commit_and_dispatch(session, [result])
    headers = {'Deprecation': 'true', 'Link': '</removed-parts>; rel="successor-version"'}
    return with_warnings(service_json(service), warnings), 200, headers


@services_bp.get('/<int:service_id>/removed-parts')
@require_permissions('RMP.READ')
def list_service_removed_parts(service_id: int):
    from repairdesk.routes.removed_parts import removed_part_json
    session = get_db()
    load_service(service_id)
    q = session.query(RemovedPart).filter(RemovedPart.service_id == service_id)
    allowed = {'removal_date': RemovedPart.removal_date, 'part_status': RemovedPart.part_status, 'id': RemovedPart.id}
    return list_response(q, removed_part_json, allowed, RemovedPart.id, RemovedPart.updated_at)


@services_bp.get('/<int:service_id>/spare-parts')
@require_permissions('SPR.READ')
def list_service_spare_parts(service_id: int):
    from repairdesk.routes.spare_parts import spare_part_json
    session = get_db()
    load_service(service_id)
    q = session.query(SparePartOrder).filter(SparePartOrder.service_id == service_id)
    allowed = {'status': SparePartOrder.status, 'created_at': SparePartOrder.created_at, 'id': SparePartOrder.id}
    return list_response(q, spare_part_json, allowed, SparePartOrder.id, SparePartOrder.updated_at)


def _manual_transition(service_id: int, target: str, notes: str = None):
    service = load_service(service_id)
    previous = service.status
    SERVICE_FSM.assert_can_transition(previous, target)
    service.status = target
    if notes:
        service.technician_notes = notes
    return _announce(service, previous)


def _announce(service: Service, previous: str):
    session = get_db()
    principal = current_principal()
    result = build_coordinator(session, current_app).status_changed(principal, service, previous)
    warnings = commit_and_dispatch(session, [result])
    return with_warnings(service_json(service), warnings)


def scoped_services_query(session, principal):
    """Services visible to ``principal``: everything for admins/suppliers, own tickets otherwise."""
    q = session.query(Service)
    if principal.is_admin or not (principal.is_technician or principal.is_business_partner or principal.is_customer):
        return q
    clauses = []
    if principal.is_technician:
        clauses.append(Service.technician_id == principal.user_id)
    if principal.is_business_partner:
        clauses.append(Service.business_partner_id == principal.user_id)
    if principal.is_customer:
        own_clients = select(Client.id).where(Client.user_id == principal.user_id)
        clauses.append(Service.client_id.in_(own_clients))
    return q.filter(or_(*clauses))


def load_service(service_id: int, principal=None) -> Service:
    session = get_db()
    service = session.get(Service, service_id)
    if not service:
        abort(404, description=f"Service {service_id} not found")
    check_service_access(session, principal or current_principal(), service)
    return service


def with_warnings(body: dict, warnings):
    body['warnings'] = list(warnings)
    return body


def service_json(s: Service):
    return {
        'id': s.id,
        'client_id': s.client_id,
        'appliance_id': s.appliance_id,
        'technician_id': s.technician_id,
        'business_partner_id': s.business_partner_id,
        'status': s.status,
        'status_label': SERVICE_STATUS_LABELS.get(s.status, s.status),
        'description': s.description,
        'technician_notes': s.technician_notes,
        'cost': s.cost,
        'is_completely_fixed': s.is_completely_fixed,
        'scheduled_date': s.scheduled_date,
        'completed_date': s.completed_date,
        'created_by': s.created_by,
        'created_at': iso_z(s.created_at),
        'updated_at': iso_z(s.updated_at),
    }


def _prefetch_service(service_id: int):
    session = get_db()
    s = session.get(Service, service_id)
    if not s:
        return {}
    return {'status': s.status, 'technician_id': s.technician_id}
