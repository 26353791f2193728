from __future__ import annotations
"""Excel export of spare-part orders (openpyxl)."""
from io import BytesIO
from typing import Dict, Iterable

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font

from repairdesk.constants.statuses import SERVICE_STATUS_LABELS

SPARE_PARTS_SHEET = 'Rezervni delovi'
SPARE_PARTS_HEADERS = [
    'ID', 'Servis', 'Status servisa', 'Deo', 'Kataloški broj', 'Količina', 'Hitnost',
    'Garancija', 'Status', 'Dobavljač', 'Procena cene', 'Očekivana isporuka', 'Napomene', 'Kreirano',
]


def build_spare_parts_workbook(orders: Iterable, services: Dict[int, object]) -> Workbook:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SPARE_PARTS_SHEET
    sheet.append(SPARE_PARTS_HEADERS)
    for idx, header in enumerate(SPARE_PARTS_HEADERS, start=1):
        cell = sheet.cell(row=1, column=idx)
        cell.font = Font(bold=True)
        cell.alignment = Alignment(wrap_text=True)
        sheet.column_dimensions[cell.column_letter].width = max(12, len(header) + 2)
    for o in orders:
        service = services.get(o.service_id) if o.service_id is not None else None
        created = o.created_at.replace(tzinfo=None) if getattr(o.created_at, 'tzinfo', None) else o.created_at
        sheet.append([
            o.id,
            o.service_id,
            SERVICE_STATUS_LABELS.get(service.status, service.status) if service is not None else '',
            o.part_name,
            o.part_number or '',
            o.quantity,
            o.urgency,
            o.warranty_status,
            o.status,
            o.supplier_name or '',
            o.estimated_cost or '',
            o.estimated_delivery or '',
            o.notes or '',
            created,
        ])
    sheet.freeze_panes = 'A2'
    return workbook


def workbook_bytes(workbook: Workbook) -> BytesIO:
    output = BytesIO()
    workbook.save(output)
    output.seek(0)
    return output

__all__ = ['SPARE_PARTS_SHEET', 'SPARE_PARTS_HEADERS', 'build_spare_parts_workbook', 'workbook_bytes']
