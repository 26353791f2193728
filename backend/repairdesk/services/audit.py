from __future__ import annotations
from typing import Any, Dict, Optional
from flask_jwt_extended import get_jwt_identity, get_jwt
from repairdesk import get_db
from repairdesk.models.audit import AuditLog


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None, actor_user_id: Optional[int] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. SPR.ORDER.CREATE, SRV.RETURN_FROM_WAITING
      entity: optional entity name (Service, SparePartOrder, ...)
      entity_id: optional primary key string
      meta: additional JSON-safe dictionary (will be shallow copied)
      actor_user_id: explicit actor; falls back to the JWT identity when omitted
    """
    session = get_db()
    claims = {}
    try:
        claims = get_jwt() or {}
    except RuntimeError:
        pass  # no JWT context (e.g. scripts) – keep empty
    actor = actor_user_id
    if actor is None:
        try:
            ident = get_jwt_identity()
            actor = int(ident) if ident is not None else None
        except RuntimeError:
            actor = None
    log = AuditLog(
        actor_user_id=actor or 0,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        perms_snapshot={'perms': claims.get('perms', [])},
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
