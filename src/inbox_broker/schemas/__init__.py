# src/inbox_broker/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .inbox import InboxCreate, InboxCreated, InboxDetail, InboxPublic
from .message import IngestAck, MessageRecord, SendMessageRequest, SendMessageResponse

__all__ = [
    "InboxCreate", "InboxCreated", "InboxDetail", "InboxPublic",
    "IngestAck", "MessageRecord", "SendMessageRequest", "SendMessageResponse",
]
