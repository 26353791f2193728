from __future__ import annotations
from typing import Any, Mapping

from flask import abort

from repairdesk.models.service import Service
from repairdesk.models.spare_part_order import SparePartOrder
from repairdesk.services.policy import Principal, check_service_access
from repairdesk.utils.validation import (
    FieldValidationError, pick, require_text, optional_text, require_choice, parse_positive_int,
)


def create_spare_part_order(session, principal: Principal, payload: Mapping[str, Any]) -> SparePartOrder:
    """Validate a spare-part request and add a pending order to ``session``.

    service_id may only be omitted by administrators (stock orders). Each invalid
    field raises FieldValidationError before anything is added to the session.
    Announcing the order is left to the status coordinator.
    """
    raw_service_id = pick(payload, 'service_id')
    service_id = None
    if raw_service_id is None or raw_service_id == '':
        if not principal.is_admin:
            raise FieldValidationError('service_id', 'service_id required')
    else:
        service_id = parse_positive_int(raw_service_id, 'service_id')
    part_name = require_text(pick(payload, 'part_name'), 'part_name')
    warranty_status = require_choice(pick(payload, 'warranty_status'), SparePartOrder.ALL_WARRANTY_STATUSES, 'warranty_status')
    quantity = parse_positive_int(pick(payload, 'quantity'), 'quantity', default=1)
    urgency = require_choice(pick(payload, 'urgency'), SparePartOrder.ALL_URGENCIES, 'urgency', default='normal')
    part_number = optional_text(pick(payload, 'part_number'), 'part_number')
    description = optional_text(pick(payload, 'description'), 'description')
    notes = optional_text(pick(payload, 'notes'), 'notes')
    supplier_name = optional_text(pick(payload, 'supplier_name'), 'supplier_name')
    estimated_cost = optional_text(pick(payload, 'estimated_cost'), 'estimated_cost')

    if service_id is not None:
        service = session.get(Service, service_id)
        if service is None:
            abort(404, description=f"Service {service_id} not found")
        check_service_access(session, principal, service)

    order = SparePartOrder(
        service_id=service_id,
        part_name=part_name,
        part_number=part_number,
        quantity=quantity,
        urgency=urgency,
        warranty_status=warranty_status,
        status=SparePartOrder.STATUS_PENDING,
        description=description,
        notes=notes,
        supplier_name=supplier_name,
        estimated_cost=estimated_cost,
        requested_by=principal.user_id,
    )
    session.add(order)
    session.flush()
    return order

__all__ = ['create_spare_part_order']
