from __future__ import annotations
"""Message texts for notifications.

Placeholders are ``{name}`` markers replaced verbatim (no escaping); unknown
markers stay in the text. SMS bodies go through ``normalize_sms`` so they fit a
single GSM segment.
"""
import re
from typing import Any, Mapping

SMS_MAX_LENGTH = 160

SMS_TEMPLATES = {
    'admin_parts_ordered': '{urgency_tag}PORUCEN DEO - {part_name} za servis #{service_id}: {client_name}, {device_type}, Tehnicar: {technician_name}, Vreme: {estimated_delivery}',
    'admin_parts_arrived': 'STIGAO DEO - Servis #{service_id}, Deo: {part_name}, Klijent: {client_name}, Tehnicar: {technician_name}. Moze ugradnja.',
    'admin_removed_parts': 'UKLONJENI DELOVI - Servis #{service_id}, Tehnicar: {technician_name}, Klijent: {client_name}, Uredjaj: {device_type}',
    'client_service_completed': 'Servis #{service_id} za {device_type} {manufacturer} uspesno zavrsen. Tehnicar: {technician_name}{cost_info}. Hvala! Tel: {company_phone}',
    'client_spare_part_arrived': 'Deo {part_name} za servis #{service_id} je stigao. Tehnicar ce vas kontaktirati u 24h. Tel: {company_phone}',
    'client_appointment_reminder': 'Podsetnik: servis #{service_id} ({device_type}) zakazan je za {scheduled_date}. Tehnicar: {technician_name}. Tel: {company_phone}',
    'technician_part_arrived': 'Stigao deo {part_name} za servis #{service_id}. Klijent: {client_name}. Mozete ugradjivati.',
}

# Dashboard notification (title, message) per event
DASHBOARD_TEMPLATES = {
    'spare_part_ordered': ('Novi zahtev za rezervni deo', 'Zatražen deo "{part_name}" za servis #{service_id} ({client_name}).'),
    'spare_part_status_changed': ('Status rezervnog dela promenjen', 'Deo "{part_name}" za servis #{service_id}: {part_status}.'),
    'spare_part_delivered': ('Rezervni deo stigao', 'Deo "{part_name}" za servis #{service_id} je isporučen.'),
    'spare_part_cancelled': ('Porudžbina dela otkazana', 'Porudžbina dela "{part_name}" za servis #{service_id} je otkazana.'),
    'parts_removed': ('Delovi uklonjeni sa uređaja', 'Servis #{service_id}: uklonjen deo "{part_name}".'),
    'part_returned': ('Deo vraćen', 'Servis #{service_id}: deo "{part_name}" je vraćen.'),
    'returned_from_waiting': ('Servis vraćen u rad', 'Servis #{service_id} je vraćen iz čekanja delova u rad.'),
    'service_status_changed': ('Promena statusa servisa', 'Servis #{service_id}: {old_label} -> {new_label}.'),
    'service_completed': ('Servis završen', 'Servis #{service_id} ({client_name}) je završen.'),
    'appointment_reminder': ('Podsetnik za termin', 'Poslat podsetnik klijentu {client_name} za servis #{service_id}.'),
}

EMAIL_SUBJECTS = {
    'service_completed': 'Servis #{service_id} je završen',
    'spare_part_delivered': 'Rezervni deo za servis #{service_id} je stigao',
    'appointment_reminder': 'Podsetnik za servis #{service_id}',
}

_PLACEHOLDER = re.compile(r'\{([a-z_]+)\}')
# Serbian Latin letters outside the GSM 03.38 alphabet
_SERBIAN_LATIN = str.maketrans({
    'č': 'c', 'ć': 'c', 'š': 's', 'ž': 'z', 'đ': 'dj',
    'Č': 'C', 'Ć': 'C', 'Š': 'S', 'Ž': 'Z', 'Đ': 'Dj',
})


def render(template: str, data: Mapping[str, Any]) -> str:
    def _sub(match):
        key = match.group(1)
        if key not in data:
            return match.group(0)
        value = data[key]
        return '' if value is None else str(value)
    return _PLACEHOLDER.sub(_sub, template)


def normalize_sms(text: str) -> str:
    """Replace characters that force UCS-2 encoding (typographic punctuation,
    Serbian diacritics) and keep the text within one segment."""
    clean = (
        text.replace('“', '"').replace('”', '"')
        .replace('‘', "'").replace('’', "'")
        .replace('—', '-').replace('–', '-')
        .replace('…', '...')
        .translate(_SERBIAN_LATIN)
    )
    clean = re.sub(r'\s+', ' ', clean).strip()
    if len(clean) > SMS_MAX_LENGTH:
        clean = clean[:SMS_MAX_LENGTH - 3] + '...'
    return clean


def render_sms(name: str, data: Mapping[str, Any]) -> str:
    return normalize_sms(render(SMS_TEMPLATES[name], data))


def render_dashboard(event: str, data: Mapping[str, Any]):
    title, message = DASHBOARD_TEMPLATES[event]
    return render(title, data), render(message, data)

__all__ = ['SMS_MAX_LENGTH', 'SMS_TEMPLATES', 'DASHBOARD_TEMPLATES', 'EMAIL_SUBJECTS',
           'render', 'normalize_sms', 'render_sms', 'render_dashboard']
