"""VanVyaapaar checkout FastAPI application.

Serves the checkout wizard and payment flow over HTTP. Each checkout
session talks to the storefront backend with the caller's bearer token.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from checkout.api import router as checkout_router
from checkout.api.routes import close_sessions
from checkout.config import get_settings
from checkout.utils.logging import configure_logging

settings = get_settings()
configure_logging(settings.environment)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Checkout service starting", environment=settings.environment)
    yield
    await close_sessions()
    logger.info("Checkout service stopped")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="VanVyaapaar Checkout API",
    description="Checkout wizard and payment settlement for the storefront",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Bind a request id to every log line emitted while serving the request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request.headers.get("x-request-id") or uuid4().hex,
        path=request.url.path,
    )
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(checkout_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "service": "checkout",
            "environment": settings.environment,
        }
    )
