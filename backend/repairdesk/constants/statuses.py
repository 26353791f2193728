"""Closed status vocabularies shared by models, validation and routes.

Stored values are the enum ``.value`` strings; never persist the member itself.
Add new members here (and to the transition tables) instead of scattering literals.
"""
from __future__ import annotations
from enum import Enum
from typing import FrozenSet, Tuple


class ServiceStatus(str, Enum):
    PENDING = 'pending'
    SCHEDULED = 'scheduled'
    ASSIGNED = 'assigned'
    IN_PROGRESS = 'in_progress'
    WAITING_PARTS = 'waiting_parts'
    DEVICE_PARTS_REMOVED = 'device_parts_removed'
    CLIENT_NOT_HOME = 'client_not_home'
    CLIENT_NOT_ANSWERING = 'client_not_answering'
    COMPLETED = 'completed'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'
    CUSTOMER_REFUSED_REPAIR = 'customer_refused_repair'
    REPAIR_FAILED = 'repair_failed'


class SparePartStatus(str, Enum):
    PENDING = 'pending'
    ORDERED = 'ordered'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


class Urgency(str, Enum):
    LOW = 'low'
    NORMAL = 'normal'
    HIGH = 'high'
    URGENT = 'urgent'


class WarrantyStatus(str, Enum):
    IN_WARRANTY = 'u garanciji'
    OUT_OF_WARRANTY = 'van garancije'


class PartLocation(str, Enum):
    WORKSHOP = 'workshop'
    EXTERNAL_REPAIR = 'external_repair'
    RETURNED = 'returned'


class NotificationEvent(str, Enum):
    SPARE_PART_ORDERED = 'spare_part_ordered'
    SPARE_PART_STATUS_CHANGED = 'spare_part_status_changed'
    SPARE_PART_DELIVERED = 'spare_part_delivered'
    SPARE_PART_CANCELLED = 'spare_part_cancelled'
    PARTS_REMOVED = 'parts_removed'
    PART_RETURNED = 'part_returned'
    RETURNED_FROM_WAITING = 'returned_from_waiting'
    SERVICE_STATUS_CHANGED = 'service_status_changed'
    SERVICE_COMPLETED = 'service_completed'
    APPOINTMENT_REMINDER = 'appointment_reminder'


class Channel(str, Enum):
    DASHBOARD = 'dashboard'
    SMS = 'sms'
    WHATSAPP = 'whatsapp'
    EMAIL = 'email'


class OutboundStatus(str, Enum):
    QUEUED = 'queued'
    SENDING = 'sending'
    SENT = 'sent'
    FAILED = 'failed'


def values(enum_cls) -> Tuple[str, ...]:
    return tuple(m.value for m in enum_cls)


TERMINAL_SERVICE_STATUSES: FrozenSet[str] = frozenset({
    ServiceStatus.COMPLETED.value,
    ServiceStatus.DELIVERED.value,
    ServiceStatus.CANCELLED.value,
    ServiceStatus.CUSTOMER_REFUSED_REPAIR.value,
    ServiceStatus.REPAIR_FAILED.value,
})

OPEN_SPARE_PART_STATUSES: FrozenSet[str] = frozenset({
    SparePartStatus.PENDING.value,
    SparePartStatus.ORDERED.value,
})

# Events the client hears about directly (SMS / WhatsApp / email)
CLIENT_FACING_EVENTS: FrozenSet[str] = frozenset({
    NotificationEvent.SERVICE_COMPLETED.value,
    NotificationEvent.SPARE_PART_DELIVERED.value,
    NotificationEvent.APPOINTMENT_REMINDER.value,
})

SERVICE_STATUS_LABELS = {
    ServiceStatus.PENDING.value: 'Na čekanju',
    ServiceStatus.SCHEDULED.value: 'Zakazano',
    ServiceStatus.ASSIGNED.value: 'Dodeljeno',
    ServiceStatus.IN_PROGRESS.value: 'U procesu',
    ServiceStatus.WAITING_PARTS.value: 'Čeka delove',
    ServiceStatus.DEVICE_PARTS_REMOVED.value: 'Delovi uklonjeni sa uređaja',
    ServiceStatus.CLIENT_NOT_HOME.value: 'Klijent nije kod kuće',
    ServiceStatus.CLIENT_NOT_ANSWERING.value: 'Klijent se ne javlja',
    ServiceStatus.COMPLETED.value: 'Završeno',
    ServiceStatus.DELIVERED.value: 'Isporučeno',
    ServiceStatus.CANCELLED.value: 'Otkazano',
    ServiceStatus.CUSTOMER_REFUSED_REPAIR.value: 'Klijent odbio popravku',
    ServiceStatus.REPAIR_FAILED.value: 'Popravka neuspešna',
}

__all__ = [
    'ServiceStatus', 'SparePartStatus', 'Urgency', 'WarrantyStatus', 'PartLocation',
    'NotificationEvent', 'Channel', 'OutboundStatus', 'values',
    'TERMINAL_SERVICE_STATUSES', 'OPEN_SPARE_PART_STATUSES', 'CLIENT_FACING_EVENTS',
    'SERVICE_STATUS_LABELS',
]
