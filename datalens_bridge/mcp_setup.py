from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import TextContent, ToolAnnotations
from pydantic import Field

from .errors import BridgeError
from .gateway import INSTRUCTIONS, Gateway
from .services.args_service import ToolSpec

logger = logging.getLogger("datalens_bridge.mcp")

SERVER_NAME = "datalens-mcp"


def error_text(err: BridgeError) -> str:
    return json.dumps({"error": err.to_dict()}, ensure_ascii=False)


class GatewayTool(Tool):
    """MCP tool backed by a ToolSpec.

    Arguments reach the gateway as the raw JSON object so aliases and
    unmodelled keys survive; FastMCP's signature-based tools would drop them.
    """

    spec: Any = Field(exclude=True)
    gateway: Any = Field(exclude=True)

    @classmethod
    def from_spec(cls, spec: ToolSpec, gateway: Gateway) -> "GatewayTool":
        return cls(
            name=spec.name,
            description=spec.description,
            parameters=spec.input_schema(),
            annotations=ToolAnnotations(**spec.annotations) if spec.annotations else None,
            spec=spec,
            gateway=gateway,
        )

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            result = await self.gateway.dispatch(self.name, arguments)
        except BridgeError as e:
            logger.info("tool %s failed: %s", self.name, e.message, extra={"tool": self.name, "outcome": e.kind})
            raise ToolError(error_text(e)) from e
        text = json.dumps(result, ensure_ascii=False)
        return ToolResult(content=[TextContent(type="text", text=text)], structured_content=result)


def build_mcp(gateway: Gateway, name: Optional[str] = None) -> FastMCP:
    server: FastMCP = FastMCP(name or SERVER_NAME, instructions=INSTRUCTIONS)
    for spec in gateway.tools:
        server.add_tool(GatewayTool.from_spec(spec, gateway))
    return server
