"""
FastAPI Application Factory

Builds the small application the command-line listener serves: a health
check plus the task introspection routes. Library users pass their own ASGI
application to LifecycleCoordinator instead.
"""

from fastapi import FastAPI

from graceful_listener.api.routes import system
from graceful_listener.utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.API)


def create_app(
    title: str = "Graceful Listener",
    version: str = "1.0.0",
    docs_enabled: bool = False,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        title: API title (shown in docs)
        version: API version
        docs_enabled: Enable /docs and /openapi.json

    Returns:
        Configured FastAPI application ready to run
    """
    app = FastAPI(
        title=title,
        version=version,
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    log.info(f"Creating FastAPI app: {title} v{version}")

    app.include_router(system.router)

    @app.get("/health", tags=["System"], summary="Health check")
    async def health_check():
        return {"status": "ok", "version": version}

    log.debug("Routes registered: /health, /system/tasks/summary, /system/tasks/active")
    return app
