"""Registries the OpenAPI builder walks. Ordering here is the ordering of the
generated document."""
from typing import Dict, List, Tuple

# (SchemaName, collection path, id param or None for list-only collections, read permission)
ENTITIES: List[Tuple[str, str, object, str]] = [
    ("Client", "/clients", "client_id", "CLI.READ"),
    ("Service", "/services", "service_id", "SRV.READ"),
    ("SparePartOrder", "/spare-parts", "order_id", "SPR.READ"),
    ("RemovedPart", "/removed-parts", None, "RMP.READ"),
    ("Notification", "/notifications", None, "NTF.READ"),
]

# Creation endpoints: (path, schema, permission, summary)
CREATE_ENDPOINTS: List[Tuple[str, str, str, str]] = [
    ("/clients", "Client", "CLI.MANAGE", "Register client"),
    ("/services", "Service", "SRV.CREATE", "Open service ticket"),
    ("/spare-parts", "SparePartOrder", "SPR.REQUEST", "Request spare part (moves service to waiting_parts)"),
    ("/removed-parts", "RemovedPart", "RMP.CREATE", "Record removed part (moves service to device_parts_removed)"),
]

# State-changing endpoints: (path, method, schema, permission, summary)
ACTION_REGISTRY: List[Tuple[str, str, str, str, str]] = [
    ("/services/{service_id}/assign", "post", "Service", "SRV.UPDATE", "Assign technician"),
    ("/services/{service_id}/start", "post", "Service", "SRV.UPDATE", "Start work"),
    ("/services/{service_id}/status", "post", "Service", "SRV.UPDATE", "Manual status change"),
    ("/services/{service_id}/complete", "post", "Service", "SRV.COMPLETE", "Complete service"),
    ("/services/{service_id}/deliver", "post", "Service", "SRV.UPDATE", "Deliver appliance"),
    ("/services/{service_id}/cancel", "post", "Service", "SRV.UPDATE", "Cancel service"),
    ("/services/{service_id}/parts-removed", "patch", "Service", "RMP.CREATE", "Deprecated alias of POST /removed-parts"),
    ("/removed-parts/{part_id}/return", "patch", "RemovedPart", "RMP.RETURN", "Mark removed part returned"),
    ("/admin/spare-parts/{order_id}", "put", "SparePartOrder", "SPR.SUPPLY", "Update spare part order"),
    ("/admin/services/{service_id}/return-from-waiting", "post", "Service", "SRV.RETURN_FROM_WAITING", "Return service from waiting_parts"),
    ("/admin/services/{service_id}/remind", "post", "Service", "SRV.UPDATE", "Send appointment reminder"),
    ("/notifications/{notification_id}/read", "patch", "Notification", "NTF.READ", "Mark notification read"),
]

SORT_PARAM_MAP: Dict[str, str] = {
    "Client": "SortClientsParam",
    "Service": "SortServicesParam",
    "SparePartOrder": "SortSparePartsParam",
    "RemovedPart": "SortRemovedPartsParam",
    "Notification": "SortNotificationsParam",
}

SORT_DETAILS: Dict[str, str] = {
    "SortClientsParam": "Multi-field sort (full_name,city,updated_at,id). Prefix - for desc",
    "SortServicesParam": "Multi-field sort (status,created_at,updated_at,id). Prefix - for desc",
    "SortSparePartsParam": "Multi-field sort (status,urgency,part_name,created_at,id). Prefix - for desc",
    "SortRemovedPartsParam": "Multi-field sort (removal_date,expected_return_date,part_status,id). Prefix - for desc",
    "SortNotificationsParam": "Multi-field sort (created_at,type,is_read,id). Prefix - for desc",
}

__all__ = ["ENTITIES", "CREATE_ENDPOINTS", "ACTION_REGISTRY", "SORT_PARAM_MAP", "SORT_DETAILS"]
