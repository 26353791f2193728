from __future__ import annotations
"""Turns a status-coordinator result into dashboard notifications and queued
outbound messages.

Nothing is sent here: rows are added to the caller's session so they commit
together with the state change, and delivery happens afterwards in
repairdesk.services.dispatch.
"""
from typing import Any, Dict, Iterable, Optional

from repairdesk.constants.permissions import ROLE_ADMIN
from repairdesk.constants.statuses import (
    Channel, NotificationEvent, CLIENT_FACING_EVENTS, SERVICE_STATUS_LABELS,
)
from repairdesk.models.authz import User
from repairdesk.models.client import Client, Appliance
from repairdesk.models.notification import Notification, OutboundMessage
from repairdesk.models.spare_part_order import SparePartOrder
from repairdesk.models.removed_part import RemovedPart
from repairdesk.services.policy import users_with_role
from repairdesk.services.templates import (
    EMAIL_SUBJECTS, render, render_sms, render_dashboard, SMS_TEMPLATES,
)

CLIENT_SMS_TEMPLATE = {
    NotificationEvent.SERVICE_COMPLETED.value: 'client_service_completed',
    NotificationEvent.SPARE_PART_DELIVERED.value: 'client_spare_part_arrived',
    NotificationEvent.APPOINTMENT_REMINDER.value: 'client_appointment_reminder',
}

ADMIN_SMS_TEMPLATE = {
    NotificationEvent.SPARE_PART_ORDERED.value: 'admin_parts_ordered',
    NotificationEvent.SPARE_PART_DELIVERED.value: 'admin_parts_arrived',
    NotificationEvent.PARTS_REMOVED.value: 'admin_removed_parts',
}

TECHNICIAN_SMS_TEMPLATE = {
    NotificationEvent.SPARE_PART_DELIVERED.value: 'technician_part_arrived',
}

URGENCY_TAGS = {'urgent': '[HITNO] ', 'high': '[BRZO] '}


class NotificationFanout:
    def __init__(self, session, channels: Iterable[str] = (), company_phone: str = '067051141'):
        self.session = session
        # external channels with a configured sink; others are skipped silently
        self.channels = set(channels)
        self.company_phone = company_phone

    def publish(self, result) -> None:
        """Attach Notification and OutboundMessage rows for ``result`` (a TransitionResult)."""
        event = result.notice.value
        service = result.service
        ctx = self._context(result)
        client = self.session.get(Client, service.client_id) if service is not None else None
        technician = self.session.get(User, service.technician_id) if service is not None and service.technician_id else None
        admins = users_with_role(self.session, ROLE_ADMIN)

        # dashboard: every admin always, plus the technician and partner tied to the service
        recipients: Dict[int, None] = {}
        for admin in admins:
            recipients[admin.id] = None
        if technician is not None and technician.id != result.actor.user_id:
            recipients[technician.id] = None
        if service is not None and service.business_partner_id and service.business_partner_id != result.actor.user_id:
            recipients[service.business_partner_id] = None
        title, message = render_dashboard(event, ctx)
        for user_id in recipients:
            note = Notification(
                user_id=user_id,
                type=event,
                title=title,
                message=message,
                related_service_id=service.id if service is not None else None,
                related_user_id=result.actor.user_id,
                priority=self._priority(result),
            )
            self.session.add(note)
            result.notifications.append(note)

        if event in CLIENT_FACING_EVENTS and client is not None:
            self._queue_client(result, client, ctx)
        if event in ADMIN_SMS_TEMPLATE:
            body = render_sms(ADMIN_SMS_TEMPLATE[event], ctx)
            for admin in admins:
                self._queue(result, Channel.SMS, admin.phone, admin.full_name, body)
        if event in TECHNICIAN_SMS_TEMPLATE and technician is not None:
            self._queue(result, Channel.SMS, technician.phone, technician.full_name,
                        render_sms(TECHNICIAN_SMS_TEMPLATE[event], ctx))
        self.session.flush()

    def _queue_client(self, result, client: Client, ctx: Dict[str, Any]) -> None:
        event = result.notice.value
        template = CLIENT_SMS_TEMPLATE[event]
        sms_text = render_sms(template, ctx)
        self._queue(result, Channel.SMS, client.phone, client.full_name, sms_text)
        self._queue(result, Channel.WHATSAPP, client.phone, client.full_name, sms_text)
        self._queue(result, Channel.EMAIL, client.email, client.full_name,
                    render(SMS_TEMPLATES[template], ctx), subject=render(EMAIL_SUBJECTS[event], ctx))

    def _queue(self, result, channel: Channel, address: Optional[str], label: Optional[str], body: str,
               subject: Optional[str] = None) -> None:
        if not address or channel.value not in self.channels:
            return
        msg = OutboundMessage(
            channel=channel.value,
            recipient=address,
            recipient_label=label,
            subject=subject,
            body=body,
            event=result.notice.value,
            related_service_id=result.service.id if result.service is not None else None,
        )
        self.session.add(msg)
        result.outbound.append(msg)

    def _priority(self, result) -> str:
        trigger = result.trigger
        if isinstance(trigger, SparePartOrder) and trigger.urgency in URGENCY_TAGS:
            return 'high'
        return 'normal'

    def _context(self, result) -> Dict[str, Any]:
        service = result.service
        ctx: Dict[str, Any] = {
            'company_phone': self.company_phone,
            'old_label': SERVICE_STATUS_LABELS.get(result.old_status, result.old_status),
            'new_label': SERVICE_STATUS_LABELS.get(result.new_status, result.new_status),
            'service_id': service.id if service is not None else '-',
            'client_name': '',
            'device_type': '',
            'manufacturer': '',
            'technician_name': 'nije dodeljen',
            'cost_info': '',
            'scheduled_date': '',
        }
        if service is not None:
            client = self.session.get(Client, service.client_id)
            appliance = self.session.get(Appliance, service.appliance_id)
            technician = self.session.get(User, service.technician_id) if service.technician_id else None
            ctx['client_name'] = client.full_name if client else ''
            if appliance is not None:
                ctx['device_type'] = appliance.category
                ctx['manufacturer'] = appliance.manufacturer or ''
            if technician is not None:
                ctx['technician_name'] = technician.full_name
            if service.cost and _positive(service.cost):
                ctx['cost_info'] = f", cena: {service.cost}€"
            ctx['scheduled_date'] = service.scheduled_date or 'dogovoreni termin'
        trigger = result.trigger
        if isinstance(trigger, SparePartOrder):
            ctx['part_name'] = trigger.part_name
            ctx['part_status'] = trigger.status
            ctx['urgency_tag'] = URGENCY_TAGS.get(trigger.urgency, '')
            ctx['estimated_delivery'] = trigger.estimated_delivery or '5-7d'
        elif isinstance(trigger, RemovedPart):
            ctx['part_name'] = trigger.part_name
            ctx['part_status'] = trigger.part_status
        else:
            ctx['part_name'] = ''
        return ctx


def _positive(raw: str) -> bool:
    try:
        return float(str(raw).replace(',', '.')) > 0
    except ValueError:
        return False

__all__ = ['NotificationFanout']
