"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fletes.api.routes import router
from fletes.api.websocket import handle_location_feed, manager
from fletes.config import get_settings
from fletes.exceptions import DispatchError
from fletes.state.manager import get_state_manager
from fletes.utils.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Connect the store on startup and release it on shutdown."""
    settings = get_settings()
    logger.info("application_starting", environment=settings.environment)

    state_manager = await get_state_manager()
    yield

    logger.info("application_shutting_down", live_clients=len(manager.active_connections))
    await state_manager.disconnect()


async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
    """Render domain errors with their stable code."""
    logger.info(
        "request_failed",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code,
        detail=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def health_check() -> dict[str, Any]:
    """Report whether the store answers."""
    state_manager = await get_state_manager()
    try:
        redis_ok = await state_manager.ping()
    except Exception as e:
        logger.warning("health_redis_unreachable", error=str(e))
        redis_ok = False

    return {
        "status": "healthy" if redis_ok else "degraded",
        "service": "fletes-dispatch",
        "redis": "ok" if redis_ok else "unreachable",
        "live_clients": len(manager.active_connections),
    }


async def root() -> dict[str, str]:
    return {
        "message": "Fletes Dispatch API",
        "docs": "/docs",
        "health": "/health",
    }


async def locations_websocket(websocket: WebSocket) -> None:
    """Live feed of driver positions and proximity events."""
    await handle_location_feed(websocket)


def create_app() -> FastAPI:
    """Build the application with its routes, middleware and error handlers."""
    settings = get_settings()

    app = FastAPI(
        title="Fletes Dispatch",
        description="Freight job lifecycle and live driver tracking",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(DispatchError, dispatch_error_handler)

    app.add_api_route("/health", health_check, methods=["GET"])
    app.add_api_route("/", root, methods=["GET"])
    app.include_router(router, prefix="/api/v1", tags=["api"])
    app.add_api_websocket_route("/ws/locations", locations_websocket)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    # Job locks are process-local: run a single worker.
    uvicorn.run(
        "fletes.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
        workers=1,
    )
