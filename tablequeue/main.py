from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tablequeue.config import get_settings
from tablequeue.database import close_db, init_db
from tablequeue.errors import (
    InvalidConfirmationCodeError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
)

# Import all models to register them with Base BEFORE init_db
from tablequeue.models import (  # noqa: F401
    HourlyAnalytics,
    Restaurant,
    TableType,
    WaitlistEntry,
)

settings = get_settings()
LOGGER = logging.getLogger("tablequeue")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown events."""
    # create_all() is idempotent
    try:
        await init_db()
        LOGGER.info("Database initialized")
    except Exception as e:
        LOGGER.error("Database initialization failed: %s", e)
        raise

    yield

    await close_db()


app = FastAPI(
    title="TableQueue",
    description="Restaurant waitlist queue, demand estimates and seating suggestions",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS (needed for browser preflight requests)
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(ValidationError)
@app.exception_handler(InvalidConfirmationCodeError)
async def bad_request_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(InvalidTransitionError)
async def conflict_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    LOGGER.warning("Storage error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": exc.message})


@app.get("/healthz")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "service": "tablequeue"}


@app.get("/")
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "name": "TableQueue",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/healthz",
    }


# Include API routers
from tablequeue.api import (  # noqa: E402
    analytics_router,
    restaurants_router,
    table_types_router,
    waitlist_router,
)

app.include_router(restaurants_router)
app.include_router(table_types_router)
app.include_router(waitlist_router)
app.include_router(analytics_router)
