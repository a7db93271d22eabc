"""FastAPI application, the main entrypoint for FeatureBoard."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from backend.app.api.comments import router as comments_router
from backend.app.api.features import router as features_router
from backend.app.api.merges import router as merges_router
from backend.app.api.users import router as users_router
from backend.app.api.votes import router as votes_router
from backend.app.config import settings
from backend.app.db import engine, init_db
from backend.app.errors import FeatureBoardError

logger = logging.getLogger(__name__)

# Uvicorn configures only its own loggers; ours need a root handler.
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(levelname)s:%(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    await init_db()
    yield
    await engine.dispose()


app = FastAPI(
    title="FeatureBoard",
    description="Feature request voting, triage and duplicate merging",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or [f"http://localhost:{settings.port}"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error rendering ---


@app.exception_handler(FeatureBoardError)
async def _domain_exception_handler(request: Request, exc: FeatureBoardError) -> JSONResponse:
    """Render service-layer errors with their status code."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch unhandled exceptions and return a clean JSON 500 instead of a stack trace."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Include routers
app.include_router(users_router, prefix="/api")
app.include_router(features_router, prefix="/api")
app.include_router(votes_router, prefix="/api")
app.include_router(merges_router, prefix="/api")
app.include_router(comments_router, prefix="/api")


# --- Health check ---


@app.get("/api/health")
async def health() -> dict[str, str]:
    """Liveness plus a SELECT 1 against the request database."""
    db_ok = "ok"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        db_ok = "error"
        logger.exception("Health check: database connectivity failed")

    return {
        "status": "ok" if db_ok == "ok" else "degraded",
        "database": db_ok,
        "version": app.version,
    }
