from __future__ import annotations

"""
FastMCP entry point for the DataLens bridge.

Transports:
- STDIO (default): datalens-mcp
- HTTP: datalens-mcp http --host 127.0.0.1 --port 3334 --path /mcp
- SSE: datalens-mcp sse --host 127.0.0.1 --port 3334

Settings come from the environment (and an optional .env / config.yaml);
see datalens_bridge.config.
"""

import argparse
import asyncio
import logging
import os
from typing import Any, Optional

from dotenv import load_dotenv

from .config import load_settings, warn_if_incomplete
from .gateway import Gateway
from .log import configure_logging
from .mcp_setup import build_mcp

logger = logging.getLogger("datalens_bridge")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the DataLens MCP server")
    parser.add_argument(
        "transport",
        nargs="?",
        default=os.getenv("DATALENS_MCP_TRANSPORT", "stdio"),
        choices=["stdio", "http", "sse"],
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument("--host", default=os.getenv("DATALENS_MCP_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("DATALENS_MCP_PORT", "3334")))
    parser.add_argument("--path", default="/mcp")
    return parser.parse_args(argv)


async def serve(args: argparse.Namespace) -> None:
    settings = load_settings()
    configure_logging(settings.log_level, settings.log_format)
    logger.info(
        "starting datalens-mcp server base_url=%s api_version=%s transport=%s",
        settings.base_url,
        settings.api_version,
        args.transport,
    )
    warn_if_incomplete(settings)

    gateway = Gateway(settings)
    server = build_mcp(gateway)
    kwargs: dict[str, Any] = {}
    if args.transport == "http":
        kwargs = {"host": args.host, "port": args.port, "path": args.path}
    elif args.transport == "sse":
        kwargs = {"host": args.host, "port": args.port}
    try:
        await server.run_async(transport=args.transport, **kwargs)
    finally:
        await gateway.aclose()
        logger.info("datalens-mcp server stopped")


def main(argv: Optional[list[str]] = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    asyncio.run(serve(args))


if __name__ == "__main__":
    main()
