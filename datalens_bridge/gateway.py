from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from .catalog import MethodCatalog, get_catalog
from .config import Settings
from .errors import InvalidArgumentsError
from .services.args_service import TOOL_SPECS, ToolSpec, canonicalize, get_tool_spec
from .services.rpc_service import RpcClient

logger = logging.getLogger("datalens_bridge.gateway")

INSTRUCTIONS = (
    "Yandex DataLens MCP server. Configure DATALENS_ORG_ID and YC_IAM_TOKEN (or DATALENS_IAM_TOKEN) "
    "before calling tools. For broad RPC usage: call datalens_list_methods, then "
    "datalens_get_method_schema for the chosen method, then call either a typed tool or datalens_rpc."
)


class Gateway:
    """Dispatches ``(tool, arguments)`` pairs to the catalog or the RPC client."""

    def __init__(
        self,
        settings: Settings,
        rpc: Optional[RpcClient] = None,
        catalog: Optional[MethodCatalog] = None,
    ) -> None:
        self.settings = settings
        self.rpc = rpc or RpcClient(settings)
        self.catalog = catalog or get_catalog()

    @property
    def tools(self) -> tuple[ToolSpec, ...]:
        return TOOL_SPECS

    async def aclose(self) -> None:
        await self.rpc.aclose()

    def build_request(self, tool: str, arguments: Optional[Mapping[str, Any]]) -> tuple[str, dict[str, Any]]:
        """Return ``(method, payload)`` for an RPC-backed tool without sending it."""
        spec = get_tool_spec(tool)
        payload = canonicalize(spec, arguments)
        if spec.name == "datalens_rpc":
            return payload["method"], payload["payload"]
        if spec.method is None:
            raise InvalidArgumentsError(f"tool {tool} does not call the DataLens API", {"tool": tool})
        return spec.method, payload

    async def dispatch(self, tool: str, arguments: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        spec = get_tool_spec(tool)
        logger.debug("tool call", extra={"tool": tool})
        if spec.name == "datalens_list_methods":
            return self.catalog.listing()
        if spec.name == "datalens_get_method_schema":
            args = canonicalize(spec, arguments)
            return self.catalog.method_schema(args["method"])
        method, payload = self.build_request(tool, arguments)
        return await self.rpc.call(method, payload)
