"""
Luna Astrology API - Main Application Entry Point
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from luna.config import settings
from luna.db import init_db, async_session_maker
from luna.api import auth_router, identities_router, partners_router, audio_router, diary_router
from luna.exceptions import LunaError
from luna.structured_logging import (
    configure_logging, generate_request_id, log_with_data, set_request_context,
)

logger = logging.getLogger(__name__)

# Global start time for uptime tracking
_app_start_time = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown"""
    global _app_start_time
    _app_start_time = time.time()

    configure_logging(settings.log_level, settings.log_json)
    logger.info(f"{settings.app_name} starting up...")
    await init_db()
    logger.info("Database initialized")

    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set: questions will end with an error event")
    if not settings.auth_required:
        logger.warning("AUTH_REQUIRED=false: identity routes are open")

    yield

    logger.info(f"{settings.app_name} shutdown complete.")


app = FastAPI(
    title=settings.app_name,
    description="Personalized astrology conversations with per-plan daily question limits",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag logs with a request id and echo it back as ``X-Request-ID``."""
    request_id = request.headers.get("X-Request-ID") or generate_request_id()
    set_request_context(request_id=request_id)
    started = time.time()

    response = await call_next(request)

    response.headers["X-Request-ID"] = request_id
    log_with_data(logger, logging.INFO, f"{request.method} {request.url.path}", {
        "status": response.status_code,
        "duration_ms": int((time.time() - started) * 1000),
    })
    return response


# ============ Error rendering ============

@app.exception_handler(LunaError)
async def luna_error_handler(request: Request, exc: LunaError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Invalid input is a 400 with the first validation message."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", message)
    return JSONResponse(status_code=400, content={"error": message})


# Include routers
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(identities_router, prefix=settings.api_prefix)
app.include_router(partners_router, prefix=settings.api_prefix)
app.include_router(audio_router, prefix=settings.api_prefix)
app.include_router(diary_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "name": settings.app_name,
        "status": "healthy",
        "version": "1.0.0",
    }


@app.get("/health")
async def health():
    """Detailed health check with a database check and uptime."""
    db_status = "connected"
    try:
        async with async_session_maker() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check database query failed: {e}")
        db_status = f"error: {e}"

    uptime = time.time() - _app_start_time if _app_start_time else 0

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "uptime_seconds": round(uptime, 1),
        "database": db_status,
        "chat_model": settings.chat_model,
        "gateway": "configured" if settings.openai_api_key else "missing OPENAI_API_KEY",
        "auth_required": settings.auth_required,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
