from __future__ import annotations

"""
Method catalog built from the embedded DataLens API snapshot.

The snapshot lives in ``data/rpc_methods.json``. Adding a remote method is a
data change there; a method without a ``typedTool`` is reachable through the
generic ``datalens_rpc`` tool.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import CatalogError, InvalidArgumentsError

GENERIC_TOOL = "datalens_rpc"
LIST_METHODS_TOOL = "datalens_list_methods"
SNAPSHOT_PATH = Path(__file__).resolve().parent / "data" / "rpc_methods.json"


class MethodEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    method: str
    category: Literal["read", "write"]
    experimental: bool = False
    typed_tool: Optional[str] = Field(default=None, alias="typedTool")
    invoke_with: str = Field(alias="invokeWith")
    summary: Optional[str] = None
    description: Optional[str] = None
    request_schema: dict[str, Any] = Field(alias="requestSchema")
    request_example: Any = Field(default=None, alias="requestExample")
    response_example: Any = Field(default=None, alias="responseExample")

    @property
    def tool(self) -> str:
        return self.typed_tool or GENERIC_TOOL

    def listing(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "mcpTool": self.tool,
            "typedTool": self.typed_tool,
            "invokeWith": self.invoke_with,
            "category": self.category,
            "experimental": self.experimental,
            "summary": self.summary,
        }


class MethodCatalog(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    snapshot_date: str = Field(alias="snapshotDate")
    source_url: str = Field(alias="sourceUrl")
    openapi_version: Optional[str] = Field(default=None, alias="openapiVersion")
    api_info: Any = Field(default=None, alias="apiInfo")
    methods: tuple[MethodEntry, ...]

    def list_methods(self) -> tuple[MethodEntry, ...]:
        return self.methods

    def lookup(self, name: str) -> MethodEntry:
        wanted = name.lower()
        for entry in self.methods:
            if entry.method.lower() == wanted:
                return entry
        raise InvalidArgumentsError(
            f"Unknown DataLens RPC method: {name}",
            {"hint": f"Call {LIST_METHODS_TOOL} first to discover valid methods."},
        )

    def typed_tools(self) -> dict[str, MethodEntry]:
        return {e.typed_tool: e for e in self.methods if e.typed_tool}

    def snapshot(self) -> dict[str, Any]:
        return {
            "snapshotDate": self.snapshot_date,
            "sourceUrl": self.source_url,
            "openapiVersion": self.openapi_version,
        }

    def listing(self) -> dict[str, Any]:
        methods = [e.listing() for e in self.methods]
        return {
            **self.snapshot(),
            "apiInfo": self.api_info,
            "totalMethods": len(methods),
            "genericTool": GENERIC_TOOL,
            "methods": methods,
        }

    def method_schema(self, name: str) -> dict[str, Any]:
        entry = self.lookup(name)
        return {
            **self.snapshot(),
            "method": entry.method,
            "category": entry.category,
            "experimental": entry.experimental,
            "typedTool": entry.typed_tool,
            "invokeWith": entry.invoke_with,
            "summary": entry.summary,
            "description": entry.description,
            "requestSchema": entry.request_schema,
            "requestExample": entry.request_example,
            "responseExample": entry.response_example,
        }


def _check_invariants(catalog: MethodCatalog) -> None:
    seen_methods: set[str] = set()
    seen_tools: set[str] = set()
    for entry in catalog.methods:
        key = entry.method.lower()
        if key in seen_methods:
            raise CatalogError(f"duplicate method in catalog: {entry.method}")
        seen_methods.add(key)
        if entry.typed_tool:
            if entry.typed_tool in seen_tools:
                raise CatalogError(f"duplicate typed tool in catalog: {entry.typed_tool}")
            seen_tools.add(entry.typed_tool)
        if entry.invoke_with != entry.tool:
            raise CatalogError(
                f"method {entry.method}: invokeWith {entry.invoke_with!r} does not match tool {entry.tool!r}"
            )


def load_catalog(path: Optional[Path] = None) -> MethodCatalog:
    path = path or SNAPSHOT_PATH
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        catalog = MethodCatalog.model_validate(raw)
    except (OSError, ValueError, ValidationError) as e:
        raise CatalogError(f"embedded DataLens method registry at {path} is invalid: {e}") from e
    _check_invariants(catalog)
    return catalog


@lru_cache(maxsize=1)
def get_catalog() -> MethodCatalog:
    return load_catalog()
