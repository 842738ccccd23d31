# src/inbox_broker/main.py
"""Main entry point for the Inbox Broker application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from inbox_broker.api.v1 import (
    inboxes_router,
    ingest_router,
    messages_router,
    system_router,
)
from inbox_broker.core.errors import BrokerError
from inbox_broker.core.settings import settings
from inbox_broker.services.broker import InboxBroker

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Inbox Broker API",
    description="Disposable, credential-gated JSON event inboxes with live fan-out",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression; event streams are left uncompressed.
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(ingest_router, prefix="/api/v1")
app.include_router(inboxes_router, prefix="/api/v1")
app.include_router(messages_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.exception_handler(BrokerError)
async def broker_error_handler(request: Request, exc: BrokerError) -> JSONResponse:
    """Render broker errors with their status and machine-readable code."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.on_event("startup")
async def on_startup() -> None:
    broker = InboxBroker.from_settings(settings)
    app.state.broker = broker
    logger.info("Inbox broker started (database: %s)", broker.engine.url if broker.engine else "-")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    broker: InboxBroker | None = getattr(app.state, "broker", None)
    if broker:
        broker.close()
        app.state.broker = None


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Disposable, credential-gated JSON event inboxes",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=settings.log_level.upper())
    uvicorn.run("inbox_broker.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
