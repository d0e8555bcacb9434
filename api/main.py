"""
FastAPI application entry point.

This is the main entry point for the Effect Studio prompt API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware.error_handler import setup_exception_handlers
from api.routers import health_router, prompts_router, websocket_router
from api.schemas.prompts import CatalogName
from core.config import Settings, get_settings
from core.redis import close_redis, init_redis
from services.change_bus import RESOURCE_PROMPTS, ChangeBus, FileChangeWatcher, RedisChangeRelay
from services.prompt_store import PromptCatalogStore
from services.websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings: Settings = app.state.settings
    bus: ChangeBus = app.state.bus
    store: PromptCatalogStore = app.state.prompt_store
    ws_manager: WebSocketManager = app.state.ws_manager

    # ============ Startup ============
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Prompt catalogs: {store.path_for(CatalogName.DEFAULT)}, {store.path_for(CatalogName.CUSTOM)}")

    # Initialize Redis
    try:
        redis = await init_redis(settings)
    except Exception as e:
        logger.error(f"Failed to initialize Redis: {e}")
        raise

    relay = None
    if redis is not None:
        relay = RedisChangeRelay(bus, redis, settings.redis_channel)
        await relay.start()

    # Watch catalog files for edits made outside this process
    watcher = None
    if settings.watch_enabled:
        watcher = FileChangeWatcher(bus, interval=settings.watch_interval_seconds)
        for name in CatalogName:
            await watcher.watch(store.path_for(name), RESOURCE_PROMPTS, catalog=name.value)
        watcher.start()

    subscription = ws_manager.attach(bus)
    ws_manager.start_heartbeat()

    logger.info("Application startup complete")

    yield

    # ============ Shutdown ============
    logger.info("Shutting down application...")

    subscription.unsubscribe()
    await ws_manager.stop_heartbeat()

    if watcher is not None:
        await watcher.stop()

    if relay is not None:
        await relay.stop()

    # Close Redis
    await close_redis()

    logger.info("Application shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the cached environment settings

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Effect catalog API for the image editing studio",
        version=settings.app_version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # ============ State ============
    bus = ChangeBus()
    app.state.settings = settings
    app.state.bus = bus
    app.state.prompt_store = PromptCatalogStore.from_settings(settings, bus=bus)
    app.state.ws_manager = WebSocketManager()

    # ============ Middleware ============

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # ============ Exception Handlers ============
    setup_exception_handlers(app)

    # ============ Routers ============

    # Health check
    app.include_router(health_router, prefix="/api")

    # Prompt catalogs
    app.include_router(prompts_router, prefix="/api")

    # WebSocket
    app.include_router(websocket_router, prefix="/api")

    # ============ Root Endpoint ============

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs" if not settings.is_production else None,
            "health": "/api/health",
        }

    return app


# Create application instance
app = create_app()


def run():
    """Run the application with uvicorn (for development)."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
