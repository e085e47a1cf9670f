from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Any, Awaitable, Callable, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.responses import Response

from . import __version__
from .config import Settings, load_settings, warn_if_incomplete
from .errors import BridgeError
from .gateway import Gateway
from .log import configure_logging
from .services.args_service import TOOLS_BY_NAME

logger = logging.getLogger("datalens_bridge.api")

# status code per error kind
ERROR_STATUS = {
    "invalid_arguments": 400,
    "configuration": 503,
    "upstream": 502,
    "transport": 504,
    "decode": 502,
}


class Health(BaseModel):
    status: str
    version: str
    configured: bool
    snapshot_date: str
    methods: int


def error_response(err: BridgeError) -> JSONResponse:
    return JSONResponse(status_code=ERROR_STATUS.get(err.kind, 500), content={"error": err.to_dict()})


def create_app(settings: Optional[Settings] = None, gateway: Optional[Gateway] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal gateway
        if gateway is None:
            resolved = settings or load_settings()
            warn_if_incomplete(resolved)
            gateway = Gateway(resolved)
        app.state.gateway = gateway
        logger.info("Startup complete, app ready to serve requests")
        yield
        logger.info("Shutting down gracefully...")
        await gateway.aclose()

    app = FastAPI(title="DataLens Bridge", version=__version__, lifespan=lifespan)

    @app.exception_handler(BridgeError)
    async def bridge_error_handler(request: Request, exc: BridgeError) -> JSONResponse:
        return error_response(exc)

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        start = perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={"status": response.status_code, "duration_ms": round((perf_counter() - start) * 1000, 1)},
        )
        return response

    def _gateway(request: Request) -> Gateway:
        return request.app.state.gateway

    @app.get("/health")
    def health(request: Request) -> Health:
        gw = _gateway(request)
        return Health(
            status="ok",
            version=__version__,
            configured=bool(gw.settings.org_id and gw.settings.subject_token),
            snapshot_date=gw.catalog.snapshot_date,
            methods=len(gw.catalog.methods),
        )

    @app.get("/methods")
    def list_methods(request: Request) -> dict[str, Any]:
        return _gateway(request).catalog.listing()

    @app.get("/methods/{method}")
    def method_schema(method: str, request: Request) -> dict[str, Any]:
        return _gateway(request).catalog.method_schema(method)

    @app.post("/tools/{tool}")
    async def run_tool(tool: str, request: Request, arguments: Any = Body(default=None)) -> Any:
        if tool not in TOOLS_BY_NAME:
            return JSONResponse(
                status_code=404,
                content={"error": {"kind": "not_found", "message": f"Unknown tool: {tool}"}},
            )
        return await _gateway(request).dispatch(tool, arguments)

    return app


def run() -> None:
    load_dotenv()
    settings = load_settings()
    configure_logging(settings.log_level, settings.log_format)
    host = os.getenv("DATALENS_API_HOST", "127.0.0.1")
    port = int(os.getenv("DATALENS_API_PORT", "3333"))
    uvicorn.run(create_app(settings), host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
