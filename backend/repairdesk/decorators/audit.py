from __future__ import annotations
"""Audit logging decorator for state-changing route handlers.

Usage examples:

@audit_log('SPR.ORDER.CREATE', entity='SparePartOrder', entity_id_key='id', meta_keys=['service_id', 'part_name'])
def create_spare_part(): ...

@audit_log('SRV.RETURN_FROM_WAITING', entity='Service', entity_id_arg='service_id',
           diff_keys=['status'], pre_fetch=lambda a, kw: _prefetch_service(kw.get('service_id')))
def return_from_waiting(service_id): ...

Parameters:
  action: required audit action code
  entity: optional entity label (Service, SparePartOrder, RemovedPart)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: path parameter to use for entity_id (fallback if entity_id_key absent).
  meta_keys: keys to project from returned JSON into meta dict (shallow copy).
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs).
  diff_keys / pre_fetch: record before/after values of the listed keys under meta['changes'].

The audit row is written after the handler returns, in its own commit; a failing
audit write is logged and never changes the response.
"""

from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from repairdesk.services.audit import add_audit
from repairdesk import get_db


def _extract_payload(rv: Any):
    """Return the JSON-able dict for inspection from dict / (dict, status[, headers]) returns."""
    if isinstance(rv, tuple) and rv:
        return rv[0]
    return rv


def _diff(before: Dict[str, Any], data: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    changes = {}
    for k in keys:
        if k in before and k in data and before.get(k) != data.get(k):
            changes[k] = {'before': before.get(k), 'after': data.get(k)}
    return changes


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = pre_fetch(args, kwargs) if (diff_keys and pre_fetch) else None
            rv = fn(*args, **kwargs)
            data = _extract_payload(rv)
            if not isinstance(data, dict):
                return rv
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            if meta_builder:
                meta = meta_builder(data, rv, args, kwargs) or {}
            else:
                meta = {k: data.get(k) for k in (meta_keys or ()) if k in data}
            if diff_keys and before_snapshot:
                changes = _diff(before_snapshot, data, diff_keys)
                if changes:
                    meta['changes'] = changes
            session = get_db()
            try:
                add_audit(action, entity, entity_id, meta)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                current_app.logger.warning('Audit write failed for %s', action, exc_info=True)
            return rv
        return wrapper
    return outer
