from __future__ import annotations
from datetime import datetime, timezone
from flask import Blueprint, request, abort, current_app
from repairdesk import get_db
from repairdesk.constants.statuses import PartLocation
from repairdesk.models.service import Service
from repairdesk.models.removed_part import RemovedPart
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.services.coordinator import build_coordinator
from repairdesk.services.dispatch import commit_and_dispatch
from repairdesk.services.policy import current_principal, check_service_access
from repairdesk.utils.listing import list_response, apply_filters, iso_z
from repairdesk.utils.validation import (
    pick, require_text, optional_text, require_choice, parse_positive_int, parse_bool,
)

removed_parts_bp = Blueprint('removed_parts', __name__)


@removed_parts_bp.post('')
@require_permissions('RMP.CREATE')
@audit_log('RMP.PART.CREATE', entity='RemovedPart', entity_id_key='id',
           meta_keys=['service_id', 'part_name', 'current_location', 'service_status'])
def create_removed_part():
    session = get_db()
    principal = current_principal()
    data = request.json or {}
    service_id = parse_positive_int(pick(data, 'service_id'), 'service_id')
    part_name = require_text(pick(data, 'part_name'), 'part_name')
    removal_reason = require_text(pick(data, 'removal_reason'), 'removal_reason')
    location = require_choice(pick(data, 'current_location'), RemovedPart.ALL_LOCATIONS, 'current_location',
                              default=PartLocation.WORKSHOP.value)
    removal_date = optional_text(pick(data, 'removal_date'), 'removal_date') or _today()
    service = session.get(Service, service_id)
    if not service:
        abort(404, description=f"Service {service_id} not found")
    check_service_access(session, principal, service)
    part = RemovedPart(
        service_id=service_id,
        part_name=part_name,
        removal_date=removal_date,
        removal_reason=removal_reason,
        current_location=location,
        expected_return_date=optional_text(pick(data, 'expected_return_date'), 'expected_return_date'),
        technician_notes=optional_text(pick(data, 'technician_notes'), 'technician_notes'),
        part_status=RemovedPart.PART_STATUS_IN_REPAIR if location == PartLocation.EXTERNAL_REPAIR.value else RemovedPart.PART_STATUS_REMOVED,
        created_by=principal.user_id,
    )
    session.add(part)
    session.flush()
    result = build_coordinator(session, current_app).parts_removed(principal, service, part)
    warnings = commit_and_dispatch(session, [result])
    body = removed_part_json(part)
    body['service_status'] = result.new_status
    body['warnings'] = warnings
    return body, 201


@removed_parts_bp.get('')
@require_permissions('RMP.READ')
def list_removed_parts():
    session = get_db()
    principal = current_principal()
    q = session.query(RemovedPart)
    if (principal.is_technician or principal.is_business_partner) and not principal.is_admin:
        from repairdesk.routes.services import scoped_services_query
        visible = [sid for (sid,) in scoped_services_query(session, principal).with_entities(Service.id).all()]
        q = q.filter(RemovedPart.service_id.in_(visible))
    q = apply_filters(q, {
        'service_id': {'coerce': int, 'op': lambda qu, v: qu.filter(RemovedPart.service_id == v)},
        'current_location': {'op': lambda qu, v: qu.filter(RemovedPart.current_location == v), 'choices': RemovedPart.ALL_LOCATIONS},
        'returned': {
            'coerce': lambda v: parse_bool(v, 'returned'),
            'op': lambda qu, v: qu.filter(RemovedPart.actual_return_date.isnot(None) if v else RemovedPart.actual_return_date.is_(None)),
        },
    }, request.args)
    allowed = {
        'removal_date': RemovedPart.removal_date,
        'expected_return_date': RemovedPart.expected_return_date,
        'part_status': RemovedPart.part_status,
        'id': RemovedPart.id,
    }
    return list_response(q, removed_part_json, allowed, RemovedPart.id, RemovedPart.updated_at)


@removed_parts_bp.patch('/<int:part_id>/return')
@require_permissions('RMP.RETURN')
@audit_log('RMP.PART.RETURN', entity='RemovedPart', entity_id_key='id',
           meta_keys=['service_id', 'actual_return_date', 'service_status'])
def return_removed_part(part_id: int):
    session = get_db()
    principal = current_principal()
    part = session.get(RemovedPart, part_id)
    if not part:
        abort(404, description=f"Removed part {part_id} not found")
    service = session.get(Service, part.service_id)
    if service is not None:
        check_service_access(session, principal, service)
    if part.is_returned:
        abort(409, description=f"Removed part {part_id} already returned")
    data = request.json or {}
    return_date = pick(data, 'return_date', pick(data, 'actual_return_date'))
    part.actual_return_date = require_text(return_date, 'return_date')
    part.current_location = PartLocation.RETURNED.value
    part.part_status = RemovedPart.PART_STATUS_RETURNED
    notes = optional_text(pick(data, 'technician_notes'), 'technician_notes')
    if notes:
        part.technician_notes = notes
    result = build_coordinator(session, current_app).part_returned(principal, part)
    warnings = commit_and_dispatch(session, [result])
    body = removed_part_json(part)
    body['service_status'] = result.new_status
    body['warnings'] = warnings
    return body


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def removed_part_json(p: RemovedPart):
    return {
        'id': p.id,
        'service_id': p.service_id,
        'part_name': p.part_name,
        'removal_date': p.removal_date,
        'removal_reason': p.removal_reason,
        'current_location': p.current_location,
        'expected_return_date': p.expected_return_date,
        'actual_return_date': p.actual_return_date,
        'part_status': p.part_status,
        'technician_notes': p.technician_notes,
        'created_by': p.created_by,
        'created_at': iso_z(p.created_at),
    }
