# crosslist/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from crosslist.core.config import get_settings
from crosslist.core.exceptions import ConfigurationError, LocationUnavailableError
from crosslist.core.logging_config import configure_logging
from crosslist.core.security import require_auth
from crosslist.database import dispose_engine
from crosslist.routes import delist_history, health, listings, reconcile
from crosslist.scheduler import shutdown_scheduler, start_scheduler

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    try:
        yield
    finally:
        shutdown_scheduler()
        await dispose_engine()


app = FastAPI(
    title="Crosslist Sync",
    lifespan=lifespan
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "error": "configuration"})


@app.exception_handler(LocationUnavailableError)
async def location_error_handler(request: Request, exc: LocationUnavailableError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "error": "location"})


app.include_router(listings.router, dependencies=[require_auth()])
app.include_router(reconcile.router, dependencies=[require_auth()])
app.include_router(delist_history.router, dependencies=[require_auth()])
app.include_router(health.router)  # Health check should be accessible without auth
