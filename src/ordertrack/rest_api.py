"""HTTP surface for the order lookup handler, via FastAPI.

Endpoints::

    POST    /api/order-status   {"orderNumber": "...", "email": "..."}
    OPTIONS /api/order-status   CORS preflight
    GET     /api/health

The route forwards the raw method and body to
:class:`~ordertrack.handler.OrderLookupHandler`, which owns status codes,
CORS headers and error messages.  Any other method on the lookup route is
answered by the handler with 405.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import Response

from ordertrack import __version__
from ordertrack.config import LookupConfig, load_config, parse_int_env
from ordertrack.handler import OrderLookupHandler

logger = logging.getLogger(__name__)

LOOKUP_PATH = "/api/order-status"
_LOOKUP_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@dataclass
class RestApiConfig:
    """Bind address for the REST server."""

    host: str = field(default_factory=lambda: os.environ.get("ORDERTRACK_REST_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: parse_int_env("ORDERTRACK_REST_PORT", 8430))


def create_app(
    config: LookupConfig | None = None,
    *,
    handler: OrderLookupHandler | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    When neither *config* nor *handler* is given, ``.env`` files are loaded
    and the configuration is read from the environment.
    """
    if handler is None:
        handler = OrderLookupHandler(config or load_config())

    app = FastAPI(
        title="ordertrack",
        description="Order status lookups backed by ShipStation and 17TRACK",
        version=__version__,
    )
    app.state.handler = handler

    @app.get("/api/health")
    async def health():
        return JSONResponse(
            {
                "status": "ok",
                "version": __version__,
                "tracking_enabled": handler.config.tracking_enabled,
            }
        )

    @app.api_route(LOOKUP_PATH, methods=_LOOKUP_METHODS)
    async def order_status(request: Request) -> Response:
        body = await request.body()
        # The handler blocks on upstream calls and poll sleeps.
        result = await run_in_threadpool(handler.handle, request.method, body)
        return Response(
            content=result.body,
            status_code=result.status_code,
            headers=result.headers,
        )

    return app


def run_rest_server(
    config: LookupConfig | None = None,
    rest_config: RestApiConfig | None = None,
) -> None:
    """Start the REST API server (blocking)."""
    import uvicorn

    rest_config = rest_config or RestApiConfig()
    app = create_app(config)

    logger.info(
        "Starting ordertrack REST API on %s:%d (tracking: %s)",
        rest_config.host,
        rest_config.port,
        "on" if app.state.handler.config.tracking_enabled else "off",
    )
    uvicorn.run(app, host=rest_config.host, port=rest_config.port)
