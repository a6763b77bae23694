"""Avatar Assistant - FastAPI Application Entry Point.

Streaming avatar whose speech is driven by a hosted assistant.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src import __version__
from src.api.middleware.request_id import RequestIDMiddleware
from src.api.routes import health, session, ui
from src.api.websocket.events import get_event_hub, reset_event_hub
from src.config.settings import get_settings
from src.observability.logging import get_logger, init_logging
from src.observability.metrics import set_build_info
from src.orchestrator import create_orchestrator

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the orchestrator and event hub on startup, ends any live
    session on shutdown.
    """
    settings = get_settings()
    init_logging(
        json_format=settings.environment == "production",
        level=settings.log_level,
    )
    logger.info(
        "avatar_assistant_starting",
        version=__version__,
        environment=settings.environment,
        port=settings.api_port,
        avatar_engine=settings.avatar_engine,
        assistant_engine=settings.assistant_engine,
        speak_mode=settings.speak_mode,
    )

    http_client = httpx.AsyncClient(timeout=settings.http_timeout_s)
    try:
        orchestrator = create_orchestrator(settings, http_client=http_client)
        hub = get_event_hub()
        orchestrator.on_change(hub.publish_snapshot)
        orchestrator.avatar.sink.add_listener(hub.publish_stream)
        session.set_orchestrator(orchestrator)

        health.set_component_health("orchestrator", True)
        health.set_component_health("avatar", True)
        health.set_component_health("assistant", settings.assistant_enabled)
        set_build_info(__version__, "unknown", "unknown")

        health.set_ready(True)
        logger.info("avatar_assistant_ready", components=health.get_component_health())
    except Exception as e:
        logger.error("avatar_assistant_startup_failed", error=str(e))
        await http_client.aclose()
        raise

    yield  # Application runs here

    logger.info("avatar_assistant_shutting_down")
    health.set_ready(False)

    await orchestrator.aclose()
    await hub.disconnect_all()
    session.set_orchestrator(None)
    reset_event_hub()
    await http_client.aclose()

    for component in health.get_component_health():
        health.set_component_health(component, False)
    logger.info("avatar_assistant_shutdown_complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Avatar Assistant",
        description="Streaming avatar driven by a hosted assistant",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.environment == "development" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Include routers
    app.include_router(health.router)
    app.include_router(session.router)
    app.include_router(ui.router)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        level=logging.WARNING if settings.log_level == "WARN" else getattr(logging, settings.log_level),
    )

    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower().replace("warn", "warning"),
        reload=settings.environment == "development",
    )
