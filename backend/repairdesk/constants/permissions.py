"""Central enum-like definitions to avoid typos in permission/service strings.
Extend cautiously; never rename codes silently; create new ones and deprecate old via migration if needed.
"""
from __future__ import annotations
from typing import List, Dict

SERVICES = ['SRV', 'SPR', 'RMP', 'NTF', 'CLI', 'RPT', 'ADMIN']

SERVICE_ACTIONS = {
    'SRV': ['READ', 'CREATE', 'UPDATE', 'COMPLETE', 'DELETE', 'RETURN_FROM_WAITING'],
    'SPR': ['READ', 'REQUEST', 'SUPPLY', 'MANAGE'],
    'RMP': ['READ', 'CREATE', 'RETURN'],
    'NTF': ['READ'],
    'CLI': ['READ', 'MANAGE'],
    'RPT': ['READ', 'EXPORT'],
    'ADMIN': ['USER.MANAGE', 'ROLE.MANAGE'],
}

ROLE_ADMIN = 'Administrator'
ROLE_TECHNICIAN = 'Technician'
ROLE_BUSINESS_PARTNER = 'BusinessPartner'
ROLE_SUPPLIER = 'Supplier'
ROLE_CUSTOMER = 'Customer'


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

ROLE_PRESETS: Dict[str, List[str]] = {
    ROLE_TECHNICIAN: [
        'SRV.READ', 'SRV.UPDATE', 'SRV.COMPLETE',
        'SPR.READ', 'SPR.REQUEST',
        'RMP.READ', 'RMP.CREATE', 'RMP.RETURN',
        'NTF.READ', 'CLI.READ',
    ],
    ROLE_BUSINESS_PARTNER: [
        'SRV.READ', 'SRV.CREATE',
        'SPR.READ', 'SPR.REQUEST',
        'CLI.READ', 'CLI.MANAGE',
        'NTF.READ',
    ],
    # Suppliers only move spare-part orders along (ordered / delivered)
    ROLE_SUPPLIER: ['SPR.READ', 'SPR.SUPPLY', 'NTF.READ'],
    ROLE_CUSTOMER: ['SRV.READ', 'SRV.CREATE', 'NTF.READ'],
    ROLE_ADMIN: ['*'],
}
