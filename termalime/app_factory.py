"""
FastAPI application factory for Termalime.

Creates and configures the FastAPI application with middleware, error
handlers, routers and the services they share (terminal bridge, model
server client, command analyzer).
"""

import logging
import uuid as uuid_lib
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from termalime.config import TermalimeSettings, get_settings
from termalime.exceptions import TermalimeError
from termalime.routes import assistant_router, terminal_router
from termalime.services.ollama_client import OllamaClient
from termalime.services.preflight import CommandAnalyzer
from termalime.services.terminal import TerminalBridge
from termalime.utils.errors import build_error_response, to_http_error
from termalime.utils.structured_logging import request_id_ctx

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Every terminal session is closed on shutdown.
    """
    # ===== STARTUP =====
    client: OllamaClient = app.state.ollama_client
    if await client.check_server():
        logger.info(f"Ollama reachable at {client.base_url}")
    else:
        logger.warning(f"Ollama not reachable at {client.base_url}; assistant features will fail until it starts")

    yield

    # ===== SHUTDOWN =====
    logger.info("Shutting down, closing terminal sessions...")
    await app.state.terminal_bridge.shutdown()


def register_error_handlers(app: FastAPI) -> None:
    """Map service-layer errors to HTTP responses"""

    @app.exception_handler(TermalimeError)
    async def termalime_error_handler(request: Request, exc: TermalimeError) -> JSONResponse:
        http_error = to_http_error(exc)
        logger.warning(
            "HTTP %d: %s | path=%s",
            http_error.status_code,
            http_error.detail,
            request.url.path,
        )
        return JSONResponse(
            status_code=http_error.status_code,
            content=build_error_response(http_error.status_code, http_error.detail),
        )


def create_app(
    settings: Optional[TermalimeSettings] = None,
    bridge: Optional[TerminalBridge] = None,
    ollama_client: Optional[OllamaClient] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings (defaults to get_settings())
        bridge: Terminal bridge owning the session registry
        ollama_client: Model server client

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Termalime API",
        description="Embedded terminal sessions with a local AI assistant and command preflight checks.",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
    )

    app.state.settings = settings
    app.state.terminal_bridge = bridge or TerminalBridge(settings=settings)
    app.state.ollama_client = ollama_client or OllamaClient(settings=settings)
    app.state.command_analyzer = CommandAnalyzer(
        app.state.ollama_client,
        default_model=settings.preflight_model,
        threshold=settings.suspicion_threshold,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600,
    )
    register_error_handlers(app)

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add unique request ID for tracing"""
        request_id = request.headers.get("X-Request-ID", str(uuid_lib.uuid4()))
        request_id_ctx.set(request_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(terminal_router)
    app.include_router(assistant_router)

    return app
