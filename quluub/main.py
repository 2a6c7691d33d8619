"""
quluub/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Registers API routes (relationships, chat, wali, account)
- No business logic should be written here
- Manages application lifecycle (service container startup/shutdown)
"""

from contextlib import asynccontextmanager
from typing import Optional
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quluub.api import account, chat, relationships, wali
from quluub.core.config import Settings, settings, validate_settings
from quluub.core.container import ServiceContainer
from quluub.core.errors import add_exception_handlers
from quluub.core.logging import get_logger, setup_logging

# Initialize logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Builds the service container unless one was provided up front.
    """
    config: Settings = app.state.config
    owns_container = getattr(app.state, "container", None) is None

    logger.info("Starting Quluub core...")
    try:
        validate_settings(config)
        if owns_container:
            app.state.container = await ServiceContainer.from_settings(config)
        logger.info(f"Quluub core started (environment={config.ENVIRONMENT}, storage={config.STORAGE_BACKEND})")
    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield

    logger.info("Shutting down Quluub core...")
    try:
        container: ServiceContainer = app.state.container
        if owns_container:
            await container.close()
            app.state.container = None
        else:
            await container.queue.drain()
        logger.info("Quluub core shut down")
    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


def create_app(config: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    config = config or settings

    app = FastAPI(
        title="Quluub Core",
        description="Relationship lifecycle and Wali-supervised messaging",
        version="1.0.0",
        lifespan=lifespan,
        debug=config.DEBUG,
        docs_url="/docs" if not config.is_production else None,
        redoc_url="/redoc" if not config.is_production else None,
    )
    app.state.config = config
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time header to all responses."""
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)

        if process_time > 5.0:
            logger.warning(f"Slow request detected: {request.method} {request.url.path} ({process_time:.2f}s)")

        return response

    add_exception_handlers(app, expose_internal_errors=not config.is_production)

    app.include_router(relationships.router, prefix=config.API_PREFIX)
    app.include_router(chat.router, prefix=config.API_PREFIX)
    app.include_router(wali.router, prefix=config.API_PREFIX)
    app.include_router(account.router, prefix=config.API_PREFIX)

    @app.get("/", tags=["Health"])
    async def root():
        """Root endpoint - basic info."""
        return {
            "name": "Quluub Core API",
            "version": "1.0.0",
            "status": "running",
            "environment": config.ENVIRONMENT,
        }

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """
        Checks storage connectivity and background queue depth.
        """
        container: Optional[ServiceContainer] = request.app.state.container
        health_status = {
            "status": "healthy",
            "timestamp": time.time(),
            "environment": config.ENVIRONMENT,
            "version": "1.0.0",
            "checks": {},
        }

        storage_healthy = container is not None and await container.storage.ping()
        health_status["checks"]["storage"] = "healthy" if storage_healthy else "unhealthy"
        health_status["checks"]["email"] = (
            "configured" if container is not None and container.email.enabled else "disabled"
        )
        if container is not None:
            health_status["checks"]["pending_dispatches"] = container.queue.pending
        if not storage_healthy:
            health_status["status"] = "unhealthy"

        status_code = 200 if health_status["status"] == "healthy" else 503
        return JSONResponse(content=health_status, status_code=status_code)

    @app.get("/ready", tags=["Health"])
    async def readiness_check(request: Request):
        """
        Readiness probe - indicates if app is ready to receive traffic.
        """
        container: Optional[ServiceContainer] = request.app.state.container
        if container is not None and await container.storage.ping():
            return {"status": "ready"}
        return JSONResponse(status_code=503, content={"status": "not_ready", "reason": "storage_unavailable"})

    @app.get("/live", tags=["Health"])
    async def liveness_check():
        """
        Liveness probe - indicates if app is alive.
        """
        return {"status": "alive"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "quluub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower(),
    )
