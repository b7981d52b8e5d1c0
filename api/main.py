"""
mailmatch - Name-to-Email Resolution Service
FastAPI Application Entry Point

Run with:

    uvicorn api.main:app --host 127.0.0.1 --port 8000
"""
# Load environment variables from .env file first, before any imports
from dotenv import load_dotenv
load_dotenv()

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from api.routes import bounces, resolve, senders
from api.services.google_auth import CREDENTIALS_FILENAME
from config.settings import settings

logger = logging.getLogger(__name__)


app = FastAPI(
    title="mailmatch",
    description="Resolve display names to email addresses from mailbox and calendar history",
    version="0.1.0",
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(resolve.router)
app.include_router(senders.router)
app.include_router(bounces.router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Convert validation errors to 400 with clear messages."""
    errors = exc.errors()

    # Sanitize errors for JSON serialization (convert bytes to string)
    sanitized_errors = []
    for error in errors:
        sanitized = dict(error)
        if "input" in sanitized and isinstance(sanitized["input"], bytes):
            sanitized["input"] = sanitized["input"].decode("utf-8", errors="replace")
        sanitized.pop("ctx", None)
        sanitized_errors.append(sanitized)

    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "detail": sanitized_errors}
    )


@app.get("/health")
async def health_check():
    """Health check endpoint that reports configuration state."""
    credentials_path = settings.google_config_dir / CREDENTIALS_FILENAME

    checks = {
        "google_credentials_present": credentials_path.exists(),
        "spreadsheet_configured": settings.sheet_enabled,
    }

    return {
        "status": "healthy" if checks["google_credentials_present"] else "degraded",
        "service": "mailmatch",
        "checks": checks,
    }
