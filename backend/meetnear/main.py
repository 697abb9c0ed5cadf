# meetnear/main.py
"""
FastAPI application entry point.
Sets up the web server, middleware, database migrations, error rendering and API routes.
"""

from __future__ import annotations

import logging
import os
import subprocess
from datetime import datetime
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from meetnear.routers import health, auth, users, sessions, chat
from meetnear.database import log_where_am_i
from meetnear.config import settings
from meetnear.errors import DomainError
from meetnear.schemas.common import ErrorResponse

# Configure logging level from environment variable
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

# alembic.ini lives next to the meetnear package
BACKEND_DIR = Path(__file__).resolve().parents[1]

# Create FastAPI application instance
app = FastAPI(title="MeetNear API", version="0.1.0")

# ---- CORS Middleware ----
# The mobile client (and Expo web in dev) calls from these origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],  # Must include Authorization
)

# ---- Domain error rendering ----
@app.exception_handler(DomainError)
async def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.warning({
        "step": "domain_error",
        "path": request.url.path,
        "code": exc.code,
        "error": exc.message,
    })
    body = ErrorResponse(
        error=exc.message,
        error_code=exc.code,
        details=exc.details,
        timestamp=datetime.utcnow(),
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))

# ---- Database Migration Function ----
def run_migrations() -> None:
    """Run Alembic database migrations on startup."""
    # Ensure Alembic sees DATABASE_URL
    os.environ.setdefault("DATABASE_URL", settings.DATABASE_URL)
    logger.warning("Running Alembic migrations...")
    subprocess.check_call(["alembic", "upgrade", "head"], cwd=str(BACKEND_DIR))
    logger.warning("Migrations complete.")

# ---- Startup Event Handler ----
@app.on_event("startup")
def _bootstrap() -> None:
    """Apply migrations (when enabled) and log connection details on app startup."""
    if settings.RUN_MIGRATIONS:
        run_migrations()
    log_where_am_i()

# ---- API Routes ----
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(sessions.router)
app.include_router(chat.router)

# ---- Root Endpoint ----
@app.get("/")
def root():
    """Health check endpoint for the root path."""
    return {"status": "ok", "message": "MeetNear backend is running"}
