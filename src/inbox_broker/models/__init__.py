# src/inbox_broker/models/__init__.py
"""SQLAlchemy models for the Inbox Broker."""

from .inbox import Inbox, new_id
from .message import Message

__all__ = ["Inbox", "Message", "new_id"]
