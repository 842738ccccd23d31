# src/inbox_broker/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .inboxes import router as inboxes_router
from .ingest import router as ingest_router
from .messages import router as messages_router
from .system import router as system_router

__all__ = [
    "inboxes_router",
    "ingest_router",
    "messages_router",
    "system_router",
]
