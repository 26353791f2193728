"""Deterministic OpenAPI document for the repair desk API.

Scope:
- Auth endpoints: /auth/login (POST), /auth/me (GET)
- For each tracked entity: list (+ single GET/HEAD where addressable) with caching headers
- Creation and state-changing action endpoints with their required permissions
- Admin and reporting endpoints

`repairdesk/openapi.py` re-exports from here.
"""
from typing import Any, Dict
from .constants.statuses import (
    ServiceStatus, SparePartStatus, Urgency, WarrantyStatus, PartLocation, NotificationEvent, values,
)
from .models.client import Client
from .models.service import Service
from .models.spare_part_order import SparePartOrder
from .models.removed_part import RemovedPart
from .models.notification import Notification
from .openapi_parts.constants import (
    ENTITIES,
    CREATE_ENDPOINTS,
    ACTION_REGISTRY,
    SORT_PARAM_MAP,
    SORT_DETAILS,
)
from .openapi_parts.helpers import schema_from_model, caching_headers, path_param

__all__ = ["build_openapi_spec"]


def _schemas() -> Dict[str, Any]:
    schemas = {
        "Client": schema_from_model(Client),
        "Service": schema_from_model(Service, {"status": values(ServiceStatus)}),
        "SparePartOrder": schema_from_model(SparePartOrder, {
            "status": values(SparePartStatus),
            "urgency": values(Urgency),
            "warranty_status": values(WarrantyStatus),
        }),
        "RemovedPart": schema_from_model(RemovedPart, {"current_location": values(PartLocation)}),
        "Notification": schema_from_model(Notification, {"type": values(NotificationEvent)}),
    }
    for name in ("Service", "SparePartOrder", "RemovedPart"):
        schemas[name]["properties"]["warnings"] = {"type": "array", "items": {"type": "string"}}
    schemas["Service"]["x-transitions"] = values(ServiceStatus)
    schemas["SparePartOrder"]["x-transitions"] = values(SparePartStatus)
    return schemas


def _ref(schema_name: str) -> Dict[str, Any]:
    return {"$ref": f"#/components/schemas/{schema_name}"}


def _json(schema: Dict[str, Any]) -> Dict[str, Any]:
    return {"application/json": {"schema": schema}}


def _list_paths(schema_name: str, coll: str, id_param, permission: str) -> Dict[str, Any]:
    paths: Dict[str, Any] = {
        coll: {
            "get": {
                "summary": f"List {coll.strip('/').replace('-', ' ')}",
                "parameters": [
                    {"$ref": "#/components/parameters/LimitParam"},
                    {"$ref": "#/components/parameters/OffsetParam"},
                    {"$ref": f"#/components/parameters/{SORT_PARAM_MAP[schema_name]}"},
                ],
                "responses": {
                    "200": {
                        "description": "OK",
                        "headers": caching_headers(),
                        "content": _json({
                            "type": "object",
                            "properties": {
                                "data": {"type": "array", "items": _ref(schema_name)},
                                "pagination": {"$ref": "#/components/schemas/Pagination"},
                            },
                        }),
                    },
                    "304": {"description": "Not Modified"},
                    "400": {"$ref": "#/components/responses/BadRequest"},
                },
                "x-required-permissions": [permission],
            },
        }
    }
    if id_param:
        paths[f"{coll}/{{{id_param}}}"] = {
            "get": {
                "summary": f"Get {schema_name}",
                "parameters": [path_param(id_param)],
                "responses": {
                    "200": {"description": "OK", "headers": caching_headers(), "content": _json(_ref(schema_name))},
                    "304": {"description": "Not Modified"},
                    "404": {"$ref": "#/components/responses/NotFound"},
                },
                "x-required-permissions": [permission],
            },
            "head": {
                "summary": f"{schema_name} validators",
                "parameters": [path_param(id_param)],
                "responses": {
                    "200": {"description": "Headers only", "headers": caching_headers()},
                    "304": {"description": "Not Modified"},
                    "404": {"$ref": "#/components/responses/NotFound"},
                },
                "x-required-permissions": [permission],
            },
        }
    return paths


def build_openapi_spec() -> Dict[str, Any]:
    components: Dict[str, Any] = {
        "schemas": _schemas()
        | {
            "Pagination": {
                "type": "object",
                "properties": {
                    "total": {"type": "integer"},
                    "limit": {"type": "integer"},
                    "offset": {"type": "integer"},
                    "returned": {"type": "integer"},
                },
                "required": ["total", "limit", "offset", "returned"],
            },
            "Error": {
                "type": "object",
                "properties": {
                    "error": {
                        "type": "object",
                        "properties": {
                            "status": {"type": "integer"},
                            "title": {"type": "string"},
                            "detail": {"type": "string"},
                            "field": {"type": "string"},
                        },
                        "required": ["status", "title", "detail"],
                    }
                },
                "required": ["error"],
            },
        },
        "responses": {
            "NotFound": {"description": "Not Found", "content": _json(_ref("Error"))},
            "BadRequest": {"description": "Bad Request", "content": _json(_ref("Error"))},
            "Conflict": {"description": "Conflict", "content": _json(_ref("Error"))},
            "Forbidden": {"description": "Forbidden", "content": _json(_ref("Error"))},
        },
        "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        "parameters": {
            "LimitParam": {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 50}},
            "OffsetParam": {"name": "offset", "in": "query", "schema": {"type": "integer", "default": 0}},
        },
    }
    for pname, desc in SORT_DETAILS.items():
        components["parameters"][pname] = {"name": "sort", "in": "query", "schema": {"type": "string"}, "description": desc}

    paths: Dict[str, Any] = {
        "/auth/login": {"post": {"summary": "Login", "security": [], "responses": {"200": {"description": "JWT issued"}, "401": {"description": "Invalid credentials"}}}},
        "/auth/me": {"get": {"summary": "Current user", "responses": {"200": {"description": "OK"}}}},
    }
    for schema_name, coll, id_param, permission in ENTITIES:
        for k, v in _list_paths(schema_name, coll, id_param, permission).items():
            paths[k] = v

    for path, schema_name, permission, summary in CREATE_ENDPOINTS:
        paths.setdefault(path, {})["post"] = {
            "summary": summary,
            "requestBody": {"required": True, "content": _json(_ref(schema_name))},
            "responses": {
                "201": {"description": "Created", "content": _json(_ref(schema_name))},
                "400": {"$ref": "#/components/responses/BadRequest"},
                "403": {"$ref": "#/components/responses/Forbidden"},
                "404": {"$ref": "#/components/responses/NotFound"},
            },
            "x-required-permissions": [permission],
        }

    for path, method, schema_name, permission, summary in ACTION_REGISTRY:
        params = [path_param(seg.strip("{}")) for seg in path.split("/") if seg.startswith("{")]
        responses = {
            "200": {"description": "OK", "content": _json(_ref(schema_name))},
            "400": {"$ref": "#/components/responses/BadRequest"},
            "403": {"$ref": "#/components/responses/Forbidden"},
            "404": {"$ref": "#/components/responses/NotFound"},
        }
        if path.endswith("return-from-waiting") or path.endswith("/return"):
            responses["409"] = {"$ref": "#/components/responses/Conflict"}
        op = {"summary": summary, "parameters": params, "responses": responses, "x-required-permissions": [permission]}
        if path.endswith("parts-removed"):
            op["deprecated"] = True
        paths.setdefault(path, {})[method] = op

    paths["/admin/spare-parts/export"] = {"get": {
        "summary": "Export spare part orders (xlsx)",
        "responses": {"200": {"description": "Workbook", "content": {
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": {"schema": {"type": "string", "format": "binary"}}}}},
        "x-required-permissions": ["RPT.EXPORT"],
    }}
    paths["/admin/waiting-for-parts"] = {"get": {
        "summary": "Services waiting for parts with their open orders",
        "parameters": [{"$ref": "#/components/parameters/LimitParam"}, {"$ref": "#/components/parameters/OffsetParam"}],
        "responses": {"200": {"description": "OK", "headers": caching_headers()}},
        "x-required-permissions": ["SPR.MANAGE"],
    }}
    paths["/notifications/unread-count"] = {"get": {"summary": "Unread notification count", "responses": {"200": {"description": "OK"}}, "x-required-permissions": ["NTF.READ"]}}
    paths["/notifications/read-all"] = {"post": {"summary": "Mark all notifications read", "responses": {"200": {"description": "OK"}}, "x-required-permissions": ["NTF.READ"]}}
    paths["/reports/summary"] = {"get": {"summary": "Status counts", "responses": {"200": {"description": "OK", "headers": caching_headers()}, "304": {"description": "Not Modified"}}, "x-required-permissions": ["RPT.READ"]}}
    for coll, schema_name in (("/services/{service_id}/removed-parts", "RemovedPart"), ("/services/{service_id}/spare-parts", "SparePartOrder")):
        paths[coll] = {"get": {
            "summary": f"{schema_name} rows of one service",
            "parameters": [path_param("service_id"), {"$ref": f"#/components/parameters/{SORT_PARAM_MAP[schema_name]}"}],
            "responses": {"200": {"description": "OK", "headers": caching_headers()}, "404": {"$ref": "#/components/responses/NotFound"}},
            "x-required-permissions": ["RMP.READ" if schema_name == "RemovedPart" else "SPR.READ"],
        }}

    # Add operationIds & tags
    tag_desc: Dict[str, str] = {}
    for path, ops in paths.items():
        tag = path.split("/")[1].replace("-", " ").title().replace(" ", "")
        for method, od in ops.items():
            rid = path.strip("/").replace("/", "_").replace("{", "").replace("}", "").replace("-", "_")
            od["operationId"] = f"{method}_{rid}"
            od["tags"] = [tag]
        tag_desc[tag] = f"{tag} endpoints"

    return {
        "openapi": "3.0.3",
        "info": {"title": "Repair Desk API", "version": "0.1.0"},
        "paths": paths,
        "components": components,
        "security": [{"BearerAuth": []}],
        "tags": [{"name": n, "description": d} for n, d in sorted(tag_desc.items())],
    }
