from __future__ import annotations
"""Status coordinator: derives Service.status from spare-part and removed-part
lifecycle events.

Every method receives the acting Principal explicitly, changes rows only inside
the caller's session and never commits. The caller commits once (state change,
notifications and outbox rows together) and then dispatches the outbox.

Transition rules live in EVENT_TABLE; building it fails at import time if an
event has no rule.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from flask import abort, current_app
from sqlalchemy import func, select

from repairdesk.constants.statuses import (
    NotificationEvent, ServiceStatus, SparePartStatus, TERMINAL_SERVICE_STATUSES,
    OPEN_SPARE_PART_STATUSES, values,
)
from repairdesk.models.service import Service
from repairdesk.models.spare_part_order import SparePartOrder
from repairdesk.models.removed_part import RemovedPart
from repairdesk.services.fanout import NotificationFanout
from repairdesk.services.policy import Principal
from repairdesk.utils.fsm import EventRule, EventTable


class CoordinatorEvent(str, Enum):
    SPARE_PART_REQUESTED = 'spare_part_requested'
    SPARE_PARTS_CLEARED = 'spare_parts_cleared'
    RETURN_FROM_WAITING = 'return_from_waiting'
    PARTS_REMOVED = 'parts_removed'
    REMOVED_PARTS_RETURNED = 'removed_parts_returned'
    REMOVED_PARTS_RETURNED_ORDERS_OPEN = 'removed_parts_returned_orders_open'
    COMPLETE = 'complete'


NON_TERMINAL_STATUSES = frozenset(values(ServiceStatus)) - TERMINAL_SERVICE_STATUSES

EVENT_TABLE = EventTable(CoordinatorEvent, {
    CoordinatorEvent.SPARE_PART_REQUESTED: EventRule(
        ServiceStatus.WAITING_PARTS.value,
        frozenset({ServiceStatus.IN_PROGRESS.value, ServiceStatus.ASSIGNED.value}),
    ),
    CoordinatorEvent.SPARE_PARTS_CLEARED: EventRule(
        ServiceStatus.IN_PROGRESS.value, frozenset({ServiceStatus.WAITING_PARTS.value}),
    ),
    CoordinatorEvent.RETURN_FROM_WAITING: EventRule(
        ServiceStatus.IN_PROGRESS.value, frozenset({ServiceStatus.WAITING_PARTS.value}),
    ),
    CoordinatorEvent.PARTS_REMOVED: EventRule(ServiceStatus.DEVICE_PARTS_REMOVED.value),
    CoordinatorEvent.REMOVED_PARTS_RETURNED: EventRule(
        ServiceStatus.IN_PROGRESS.value, frozenset({ServiceStatus.DEVICE_PARTS_REMOVED.value}),
    ),
    # spare-part orders still open: back to waiting instead of work
    CoordinatorEvent.REMOVED_PARTS_RETURNED_ORDERS_OPEN: EventRule(
        ServiceStatus.WAITING_PARTS.value, frozenset({ServiceStatus.DEVICE_PARTS_REMOVED.value}),
    ),
    CoordinatorEvent.COMPLETE: EventRule(ServiceStatus.COMPLETED.value, NON_TERMINAL_STATUSES),
})

ORDER_NOTICES = {
    SparePartStatus.DELIVERED.value: NotificationEvent.SPARE_PART_DELIVERED,
    SparePartStatus.CANCELLED.value: NotificationEvent.SPARE_PART_CANCELLED,
}


@dataclass
class TransitionResult:
    notice: NotificationEvent
    service: Optional[Service]
    old_status: Optional[str]
    new_status: Optional[str]
    actor: Principal
    trigger: Any = None
    event: Optional[CoordinatorEvent] = None
    notifications: List[Any] = field(default_factory=list)
    outbound: List[Any] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class StatusCoordinator:
    def __init__(self, session, fanout: Optional[NotificationFanout] = None):
        self.session = session
        self.fanout = fanout if fanout is not None else NotificationFanout(session)

    # spare-part orders

    def spare_part_requested(self, principal: Principal, order: SparePartOrder) -> TransitionResult:
        service = self._service(order.service_id)
        return self._apply(CoordinatorEvent.SPARE_PART_REQUESTED, NotificationEvent.SPARE_PART_ORDERED,
                           principal, service, trigger=order)

    def spare_part_updated(self, principal: Principal, order: SparePartOrder, previous_status: str) -> Optional[TransitionResult]:
        """Order status moved from ``previous_status``; leave waiting_parts once no open order remains."""
        if order.status == previous_status:
            return None
        notice = ORDER_NOTICES.get(order.status, NotificationEvent.SPARE_PART_STATUS_CHANGED)
        service = self._service(order.service_id)
        event = None
        if service is not None and not order.is_open and self.open_order_count(service.id) == 0:
            event = CoordinatorEvent.SPARE_PARTS_CLEARED
        return self._apply(event, notice, principal, service, trigger=order)

    def return_from_waiting(self, principal: Principal, service: Service, force: bool = False) -> TransitionResult:
        if service.status == ServiceStatus.IN_PROGRESS.value:
            # already back in work; nothing to record or announce
            return TransitionResult(NotificationEvent.RETURNED_FROM_WAITING, service, service.status,
                                    service.status, principal, event=CoordinatorEvent.RETURN_FROM_WAITING)
        open_orders = self.open_order_count(service.id)
        if open_orders and service.status == ServiceStatus.WAITING_PARTS.value and not force:
            abort(409, description=f"Service {service.id} still has {open_orders} open spare part order(s); pass force=true to override")
        return self._apply(CoordinatorEvent.RETURN_FROM_WAITING, NotificationEvent.RETURNED_FROM_WAITING,
                           principal, service, strict=True)

    # removed parts

    def parts_removed(self, principal: Principal, service: Service, removed_part: Optional[RemovedPart] = None) -> TransitionResult:
        return self._apply(CoordinatorEvent.PARTS_REMOVED, NotificationEvent.PARTS_REMOVED,
                           principal, service, trigger=removed_part)

    def part_returned(self, principal: Principal, removed_part: RemovedPart) -> TransitionResult:
        service = self._service(removed_part.service_id)
        event = None
        if service is not None and self.unreturned_part_count(service.id) == 0:
            if self.open_order_count(service.id):
                event = CoordinatorEvent.REMOVED_PARTS_RETURNED_ORDERS_OPEN
            else:
                event = CoordinatorEvent.REMOVED_PARTS_RETURNED
        return self._apply(event, NotificationEvent.PART_RETURNED, principal, service, trigger=removed_part)

    # technician / admin actions

    def complete(self, principal: Principal, service: Service, cost: str, technician_notes: str,
                 is_completely_fixed: bool) -> TransitionResult:
        if EVENT_TABLE.resolve(CoordinatorEvent.COMPLETE, service.status) is None:
            abort(400, description=f"Invalid status transition {service.status} -> {ServiceStatus.COMPLETED.value}")
        service.cost = cost
        service.technician_notes = technician_notes
        service.is_completely_fixed = is_completely_fixed
        service.completed_date = _today()
        return self._apply(CoordinatorEvent.COMPLETE, NotificationEvent.SERVICE_COMPLETED,
                           principal, service, strict=True)

    def status_changed(self, principal: Principal, service: Service, previous_status: str) -> TransitionResult:
        """Announce a manual lifecycle step already applied by the caller."""
        result = TransitionResult(NotificationEvent.SERVICE_STATUS_CHANGED, service, previous_status,
                                  service.status, principal)
        return self._publish(result)

    def appointment_reminder(self, principal: Principal, service: Service) -> TransitionResult:
        result = TransitionResult(NotificationEvent.APPOINTMENT_REMINDER, service, service.status,
                                  service.status, principal)
        return self._publish(result)

    # queries

    def open_order_count(self, service_id: int) -> int:
        self.session.flush()
        stmt = select(func.count(SparePartOrder.id)).where(
            SparePartOrder.service_id == service_id,
            SparePartOrder.status.in_(OPEN_SPARE_PART_STATUSES),
        )
        return self.session.execute(stmt).scalar_one()

    def unreturned_part_count(self, service_id: int) -> int:
        self.session.flush()
        stmt = select(func.count(RemovedPart.id)).where(
            RemovedPart.service_id == service_id,
            RemovedPart.actual_return_date.is_(None),
        )
        return self.session.execute(stmt).scalar_one()

    # internals

    def _service(self, service_id: Optional[int]) -> Optional[Service]:
        if service_id is None:
            return None
        return self.session.get(Service, service_id)

    def _apply(self, event: Optional[CoordinatorEvent], notice: NotificationEvent, principal: Principal,
               service: Optional[Service], trigger: Any = None, strict: bool = False) -> TransitionResult:
        old_status = service.status if service is not None else None
        new_status = old_status
        if event is not None and service is not None:
            target = EVENT_TABLE.resolve(event, old_status)
            if target is None and strict:
                abort(400, description=f"Invalid status transition {old_status} -> {EVENT_TABLE.rule_for(event).target}")
            if target is not None:
                service.status = target
                new_status = target
        result = TransitionResult(notice, service, old_status, new_status, principal, trigger=trigger, event=event)
        if result.changed:
            current_app.logger.info('Service %s: %s -> %s (%s by user %s)', service.id, old_status, new_status,
                                    event.value, principal.user_id)
        return self._publish(result)

    def _publish(self, result: TransitionResult) -> TransitionResult:
        self.session.flush()
        self.fanout.publish(result)
        return result


def build_coordinator(session, app) -> StatusCoordinator:
    """Coordinator whose fan-out only queues messages for channels the app has sinks for."""
    sinks = app.extensions.get('notification_sinks', {})
    fanout = NotificationFanout(session, channels=sinks.keys(), company_phone=app.config.get('COMPANY_PHONE', ''))
    return StatusCoordinator(session, fanout)

__all__ = ['CoordinatorEvent', 'EVENT_TABLE', 'TransitionResult', 'StatusCoordinator', 'build_coordinator']
