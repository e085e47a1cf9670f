from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from ..errors import InvalidArgumentsError

FieldKind = Literal["string", "bool", "number", "json"]

_JSON_SCHEMA_TYPES: dict[str, dict[str, Any]] = {
    "string": {"type": "string"},
    "bool": {"type": "boolean"},
    "number": {"type": "number"},
    "json": {},
}


@dataclass(frozen=True)
class FieldSpec:
    name: str
    wire: str
    kind: FieldKind = "string"
    aliases: tuple[str, ...] = ()
    required: bool = False
    default: Any = None
    description: Optional[str] = None

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)

    def default_value(self) -> Any:
        return self.default() if callable(self.default) else self.default


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    method: Optional[str] = None
    fields: tuple[FieldSpec, ...] = ()
    extra: bool = True
    annotations: dict[str, Any] = field(default_factory=dict)

    def known_keys(self) -> set[str]:
        return {n for f in self.fields for n in f.names}

    def input_schema(self) -> dict[str, Any]:
        """JSON schema advertised to MCP clients.

        Aliases are listed as their own properties so schema-validating hosts
        accept legacy names; a required field with aliases is satisfied by any
        one of its names.
        """
        props: dict[str, Any] = {}
        required: list[str] = []
        alternatives: list[dict[str, Any]] = []
        for f in self.fields:
            prop = dict(_JSON_SCHEMA_TYPES[f.kind])
            if not f.required and "type" in prop:
                prop["type"] = [prop["type"], "null"]
            if f.kind == "json":
                prop["description"] = "JSON value; a string starting with '{' or '[' is parsed as JSON"
            if f.description:
                prop["description"] = f.description
            if f.default is not None:
                prop["default"] = f.default_value()
            props[f.name] = prop
            for alias in f.aliases:
                props.setdefault(alias, {**prop, "description": f"Alias of `{f.name}`."})
            if f.required and f.aliases:
                alternatives.append({"anyOf": [{"required": [n]} for n in f.names]})
            elif f.required:
                required.append(f.name)
        schema: dict[str, Any] = {
            "type": "object",
            "properties": props,
            "additionalProperties": self.extra,
        }
        if required:
            schema["required"] = required
        if alternatives:
            schema["allOf"] = alternatives
        return schema


def normalize_json_value(value: Any, field_name: str) -> Any:
    """Parse strings that look like JSON documents; leave everything else as is."""
    if not isinstance(value, str):
        return value
    trimmed = value.strip()
    if not (trimmed.startswith("{") or trimmed.startswith("[")):
        return value
    try:
        return json.loads(trimmed)
    except ValueError as e:
        raise InvalidArgumentsError(
            f"field `{field_name}` must be valid JSON when passed as a string: {e}",
            {"field": field_name},
        ) from e


def _check_kind(spec: FieldSpec, value: Any) -> Any:
    if spec.kind == "json":
        return normalize_json_value(value, spec.name)
    if spec.kind == "string":
        ok = isinstance(value, str)
    elif spec.kind == "bool":
        ok = isinstance(value, bool)
    else:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    if not ok:
        raise InvalidArgumentsError(
            f"field `{spec.name}` must be a {spec.kind}, got {type(value).__name__}",
            {"field": spec.name},
        )
    return value


_MISSING = object()


def _resolve(spec: FieldSpec, args: Mapping[str, Any]) -> Any:
    # Declaration order decides when more than one alternative is present.
    for key in spec.names:
        if key in args:
            return args[key]
    return _MISSING


def _is_missing(spec: FieldSpec, value: Any) -> bool:
    # null is a real value only for required JSON fields
    if value is _MISSING:
        return True
    return value is None and not (spec.required and spec.kind == "json")


def canonicalize(spec: ToolSpec, args: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Build the request body for ``spec`` from caller arguments.

    Typed fields are written first under their wire keys, then unmodelled
    keys (when the tool carries an extra bag) are merged on top, so an extra
    key can replace a typed one.
    """
    if args is None:
        args = {}
    if not isinstance(args, Mapping):
        raise InvalidArgumentsError(
            f"arguments for {spec.name} must be a JSON object",
            {"tool": spec.name},
        )

    missing = [f.name for f in spec.fields if f.required and _is_missing(f, _resolve(f, args))]
    if missing:
        raise InvalidArgumentsError(
            f"missing required field(s) for {spec.name}: {', '.join(missing)}",
            {"tool": spec.name, "missing": missing},
        )

    payload: dict[str, Any] = {}
    for f in spec.fields:
        value = _resolve(f, args)
        if _is_missing(f, value):
            if f.default is None:
                continue
            value = f.default_value()
        payload[f.wire] = _check_kind(f, value)

    if spec.extra:
        known = spec.known_keys()
        for key, value in args.items():
            if key not in known:
                payload[key] = value
    return payload


def _f(name: str, wire: Optional[str] = None, kind: FieldKind = "string", *aliases: str, **kw: Any) -> FieldSpec:
    return FieldSpec(name=name, wire=wire or name, kind=kind, aliases=tuple(aliases), **kw)


_READ = {"readOnlyHint": True}
_WRITE = {"readOnlyHint": False}
_DELETE = {"readOnlyHint": False, "destructiveHint": True}

# shared field shapes
_CREATED_BY = _f("created_by", "createdBy", "json", "createdBy")
_ORDER_BY = _f("order_by", "orderBy", "json", "orderBy")
_FILTERS = _f("filters", "filters", "json")
_PAGE = _f("page", "page", "number")
_PAGE_SIZE = _f("page_size", "pageSize", "number", "pageSize")
_PERMS_INFO = _f("include_permissions_info", "includePermissionsInfo", "bool", "includePermissionsInfo")
_INCLUDE_LINKS = _f("include_links", "includeLinks", "bool", "includeLinks")
_WORKBOOK_ID = _f("workbook_id", "workbookId", "string", "workbookId")
_DATASET_ID = _f("dataset_id", "datasetId", "string", "datasetId", required=True)
_DASHBOARD_ID = _f("dashboard_id", "dashboardId", "string", "dashboardId", required=True)
_CONNECTION_ID = _f("connection_id", "connectionId", "string", "connectionId", required=True)
_ENTRY = _f("entry", "entry", "json", required=True)
_MODE = _f("mode", "mode", "string", required=True, description="`save` or `publish`")

TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="datalens_rpc",
        description="Call any DataLens RPC method by its method name and JSON payload.",
        fields=(
            _f("method", required=True),
            _f("payload", "payload", "json", default=lambda: {}),
        ),
        extra=False,
    ),
    ToolSpec(
        name="datalens_list_methods",
        description="List DataLens API methods known to this server, with MCP tool names and method categories.",
        extra=False,
        annotations=_READ,
    ),
    ToolSpec(
        name="datalens_get_method_schema",
        description="Return OpenAPI request schema and invocation hints for a DataLens RPC method.",
        fields=(_f("method", "method", "string", "methodName", required=True),),
        extra=False,
        annotations=_READ,
    ),
    ToolSpec(
        name="datalens_list_directory",
        method="listDirectory",
        description="Call listDirectory. By default, lists the root path '/'.",
        fields=(
            _f("path", default="/"),
            _CREATED_BY,
            _ORDER_BY,
            _FILTERS,
            _PAGE,
            _PAGE_SIZE,
            _PERMS_INFO,
        ),
        annotations=_READ,
    ),
    ToolSpec(
        name="datalens_get_entries",
        method="getEntries",
        description="Call getEntries. Pass any getEntries request fields.",
        fields=(
            _f("exclude_locked", "excludeLocked", "bool", "excludeLocked"),
            _f("include_data", "includeData", "bool", "includeData"),
            _INCLUDE_LINKS,
            _FILTERS,
            _ORDER_BY,
            _CREATED_BY,
            _PAGE,
            _PAGE_SIZE,
            _PERMS_INFO,
            _f("ignore_workbook_entries", "ignoreWorkbookEntries", "bool", "ignoreWorkbookEntries"),
            _f("scope"),
            _f("ids", "ids", "json"),
        ),
        annotations=_READ,
    ),
    ToolSpec(
        name="datalens_get_dataset",
        method="getDataset",
        description="Call getDataset by dataset_id. Optional: workbook_id, rev_id and other request fields.",
        fields=(_DATASET_ID, _WORKBOOK_ID, _f("rev_id", "rev_id", "string", "revId")),
        annotations=_READ,
    ),
    ToolSpec(
        name="datalens_get_dashboard",
        method="getDashboard",
        description=(
            "Call getDashboard by dashboard_id. Optional: rev_id, include_permissions, include_links, "
            "include_favorite, branch and other fields."
        ),
        fields=(
            _DASHBOARD_ID,
            _f("rev_id", "revId", "string", "revId"),
            _f("include_permissions", "includePermissions", "bool", "includePermissions", "includePermissionsInfo"),
            _INCLUDE_LINKS,
            _f("include_favorite", "includeFavorite", "bool", "includeFavorite"),
            _f("branch"),
            _WORKBOOK_ID,
        ),
        annotations=_READ,
    ),
    ToolSpec(
        name="datalens_get_connection",
        method="getConnection",
        description="Call getConnection by connection_id. Optional: workbook_id, binded_dataset_id, rev_id.",
        fields=(
            _CONNECTION_ID,
            _WORKBOOK_ID,
            _f("binded_dataset_id", "bindedDatasetId", "string", "bindedDatasetId"),
            _f("rev_id", "rev_id", "string", "revId"),
        ),
        annotations=_READ,
    ),
    ToolSpec(
        name="datalens_create_connection",
        method="createConnection",
        description="Call createConnection. Include required connection fields for the selected `type`.",
        fields=(_f("type", required=True),),
        annotations=_WRITE,
    ),
    ToolSpec(
        name="datalens_update_connection",
        method="updateConnection",
        description="Call updateConnection. Required: connection_id, data.",
        fields=(_CONNECTION_ID, _f("data", "data", "json", required=True)),
        annotations=_WRITE,
    ),
    ToolSpec(
        name="datalens_delete_connection",
        method="deleteConnection",
        description="Call deleteConnection by connection_id.",
        fields=(_CONNECTION_ID,),
        annotations=_DELETE,
    ),
    ToolSpec(
        name="datalens_create_dashboard",
        method="createDashboard",
        description="Call createDashboard. Required: entry, mode (`save` or `publish`).",
        fields=(_ENTRY, _MODE),
        annotations=_WRITE,
    ),
    ToolSpec(
        name="datalens_update_dashboard",
        method="updateDashboard",
        description="Call updateDashboard. Required: entry, mode (`save` or `publish`).",
        fields=(_ENTRY, _MODE),
        annotations=_WRITE,
    ),
    ToolSpec(
        name="datalens_delete_dashboard",
        method="deleteDashboard",
        description="Call deleteDashboard by dashboard_id. Optional: lock_token.",
        fields=(_DASHBOARD_ID, _f("lock_token", "lockToken", "string", "lockToken")),
        annotations=_DELETE,
    ),
    ToolSpec(
        name="datalens_create_dataset",
        method="createDataset",
        description="Call createDataset. Required: dataset. For workbook-scoped creation, pass workbook_id.",
        fields=(
            _f("dataset", "dataset", "json", required=True),
            _f("created_via", "created_via", "json", "createdVia"),
            _f("dir_path", "dir_path", "string", "dirPath"),
            _f("name"),
            _f("options", "options", "json"),
            _f("preview", "preview", "bool"),
            _f("workbook_id", "workbook_id", "string", "workbookId"),
        ),
        annotations=_WRITE,
    ),
    ToolSpec(
        name="datalens_update_dataset",
        method="updateDataset",
        description="Call updateDataset by dataset_id. Optional: data.",
        fields=(_DATASET_ID, _f("data", "data", "json", default=lambda: {})),
        annotations=_WRITE,
    ),
    ToolSpec(
        name="datalens_delete_dataset",
        method="deleteDataset",
        description="Call deleteDataset by dataset_id.",
        fields=(_DATASET_ID,),
        annotations=_DELETE,
    ),
    ToolSpec(
        name="datalens_validate_dataset",
        method="validateDataset",
        description="Call validateDataset by dataset_id. Optional: workbook_id, data.",
        fields=(_DATASET_ID, _WORKBOOK_ID, _f("data", "data", "json", default=lambda: {})),
        annotations=_READ,
    ),
)

TOOLS_BY_NAME: dict[str, ToolSpec] = {t.name: t for t in TOOL_SPECS}


def get_tool_spec(name: str) -> ToolSpec:
    try:
        return TOOLS_BY_NAME[name]
    except KeyError:
        raise InvalidArgumentsError(f"Unknown tool: {name}", {"tool": name}) from None
