from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from oncelink.config import settings
from oncelink.database import engine
from oncelink.errors import OnceLinkError, StorageFault
from oncelink.logging_config import setup_logging
from oncelink.middleware.logging import LoggingMiddleware
from oncelink.routers import secrets

# Database tables are managed by Alembic migrations
# Run: alembic -c backend/alembic.ini upgrade head
REQUIRED_TABLES = {"secrets", "request_log"}


def check_database_tables() -> None:
    """Refuse to start against a database that has not been migrated."""
    existing = set(inspect(engine).get_table_names())
    missing = REQUIRED_TABLES - existing
    if missing:
        raise RuntimeError(
            f"Database tables missing: {', '.join(sorted(missing))}. "
            "Run: alembic -c backend/alembic.ini upgrade head"
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and verify the schema before serving requests."""
    setup_logging()
    check_database_tables()
    yield


app = FastAPI(
    title="OnceLink",
    description="Zero-knowledge read-once secret links",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(OnceLinkError)
async def oncelink_error_handler(request: Request, exc: OnceLinkError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Runs outside the logging middleware, so copy the correlation id here.
    correlation_id = structlog.contextvars.get_contextvars().get("correlation_id")
    headers = {"X-Correlation-ID": correlation_id} if correlation_id else None
    return JSONResponse(
        status_code=StorageFault.status_code,
        content={"error": StorageFault.message},
        headers=headers,
    )


app.add_middleware(LoggingMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(secrets.router, prefix="/api/v1", tags=["secrets"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
