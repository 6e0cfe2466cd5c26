"""
Admin Override Engine — FastAPI Application.

This is the entry point for the application.
All routers are registered here, and the expiry scheduler
is started and stopped with the application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from override_engine.config import get_settings
from override_engine.api.health import router as health_router
from override_engine.api.overrides import router as overrides_router
from override_engine.handlers.registry import get_registry
from override_engine.middleware.logging import RequestLoggingMiddleware
from override_engine.services.expiry_scheduler import ExpiryScheduler

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
)

logger = logging.getLogger("override_engine")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s (env=%s)", settings.APP_NAME, settings.ENVIRONMENT)
    scheduler = None
    if settings.EXPIRY_SCHEDULER_ENABLED:
        scheduler = ExpiryScheduler(registry=get_registry())
        scheduler.start()
    app.state.expiry_scheduler = scheduler
    yield
    if scheduler is not None:
        scheduler.stop()
    get_registry().shutdown()
    # The next lifespan in this process needs a live worker pool
    get_registry.cache_clear()
    logger.info("Shut down %s", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Temporary, reversible and audited admin corrections to user state",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed input, including an unknown action type, is a 400."""
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors())},
    )


# Register routers
app.include_router(health_router)
app.include_router(overrides_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "override_engine.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
