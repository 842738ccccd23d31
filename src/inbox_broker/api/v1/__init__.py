"""Version 1 API endpoints."""

from .endpoints import (
    inboxes_router,
    ingest_router,
    messages_router,
    system_router,
)

__all__ = [
    "inboxes_router",
    "ingest_router",
    "messages_router",
    "system_router",
]
