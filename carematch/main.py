# carematch/main.py
from __future__ import annotations

# Load .env early so settings pick it up everywhere
from dotenv import load_dotenv
load_dotenv()

import secrets

import sqlalchemy as sa
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from carematch.core.config import settings
from carematch.core.errors import (
    ErrorSeverity,
    SchedulingError,
    get_error_summary,
    log_error,
    scheduling_error_handler,
)
from carematch.core.logging import LoggingMiddleware, get_logger, setup_logging
from carematch.db.base import init_db
from carematch.db.session import engine, get_session

# Routers
from carematch.api.routes.availability import router as availability_router
from carematch.api.routes.public import router as public_router
from carematch.api.routes.templates import router as templates_router
from carematch.api.routes.specialist_bookings import router as specialist_bookings_router
from carematch.api.routes.parent_bookings import router as parent_bookings_router

setup_logging(debug=settings.is_development, max_log_length=settings.MAX_LOG_LENGTH, level=settings.LOG_LEVEL)
logger = get_logger(__name__)

app = FastAPI(title="CareMatch Scheduler", description="Slot-based scheduling for specialists and parents")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.middleware("http")(
    LoggingMiddleware(
        log_requests=settings.LOG_REQUESTS or settings.is_development,
        log_responses=settings.LOG_RESPONSES or settings.is_development,
        slow_threshold=settings.SLOW_REQUEST_THRESHOLD,
    )
)

app.add_exception_handler(SchedulingError, scheduling_error_handler)

# -------- Health / readiness (public) --------
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"ok": True}

@app.get("/readyz", include_in_schema=False)
async def readyz(db: AsyncSession = Depends(get_session)):
    await db.execute(sa.text("SELECT 1"))
    return {"db": "ok", "errors": get_error_summary()["total_error_count"]}

# -------- API key gate (off when API_KEY is unset) --------
PUBLIC_EXACT = {"/healthz", "/readyz"}
PUBLIC_PREFIXES = ("/specialists/",)

def _is_public(path: str) -> bool:
    return path in PUBLIC_EXACT or any(path.startswith(p) for p in PUBLIC_PREFIXES)

@app.middleware("http")
async def api_key_gate(request: Request, call_next):
    if not settings.API_KEY or _is_public(request.url.path):
        return await call_next(request)

    api_key = request.headers.get("X-API-Key", "")
    if not secrets.compare_digest(api_key, settings.API_KEY):
        log_error(
            Exception("API key validation failed"),
            {"endpoint": request.url.path, "has_key": bool(api_key)},
            ErrorSeverity.MEDIUM,
        )
        return JSONResponse({"detail": "Invalid or missing API key"}, status_code=401)
    return await call_next(request)

# -------- Include routers --------
app.include_router(availability_router)
app.include_router(public_router)
app.include_router(templates_router)
app.include_router(specialist_bookings_router)
app.include_router(parent_bookings_router)

# -------- Application startup --------
@app.on_event("startup")
async def startup_event():
    if engine.dialect.name == "sqlite":
        await init_db()
        logger.info("sqlite_schema_ready")
