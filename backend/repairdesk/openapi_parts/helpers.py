"""Helper functions for the OpenAPI builder."""
from typing import Any, Dict, Iterable, Optional
from sqlalchemy import Boolean, DateTime, Integer, JSON


def schema_from_model(model, enums: Optional[Dict[str, Iterable[str]]] = None) -> Dict[str, Any]:
    """Object schema with one property per mapped column; ``enums`` pins closed vocabularies."""
    enums = enums or {}
    props: Dict[str, Any] = {}
    required = []
    for col in model.__table__.columns:
        if isinstance(col.type, Boolean):
            prop = {"type": "boolean"}
        elif isinstance(col.type, Integer):
            prop = {"type": "integer"}
        elif isinstance(col.type, DateTime):
            prop = {"type": "string", "format": "date-time"}
        elif isinstance(col.type, JSON):
            prop = {"type": "object"}
        else:
            prop = {"type": "string"}
        if col.name in enums:
            prop["enum"] = list(enums[col.name])
        if col.nullable:
            prop["nullable"] = True
        elif col.name == "id" or (col.default is None and col.server_default is None):
            required.append(col.name)
        props[col.name] = prop
    return {"type": "object", "properties": props, "required": required}


def caching_headers() -> Dict[str, Any]:
    return {
        "ETag": {"schema": {"type": "string"}},
        "Last-Modified": {"schema": {"type": "string"}},
        "X-Last-Modified-ISO": {"schema": {"type": "string"}},
    }


def path_param(name: str) -> Dict[str, Any]:
    return {"name": name, "in": "path", "required": True, "schema": {"type": "integer"}}


__all__ = ["schema_from_model", "caching_headers", "path_param"]
