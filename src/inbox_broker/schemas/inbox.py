# src/inbox_broker/schemas/inbox.py
"""Inbox-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class InboxCreate(BaseModel):
    """Schema for creating a new inbox."""

    name: str | None = Field(None, description="Optional human-readable label for the inbox")


class InboxPublic(BaseModel):
    """Inbox metadata that is safe to show to anyone; never carries the secret."""

    id: str
    name: str | None
    public_key: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InboxCreated(InboxPublic):
    """Full inbox record returned exactly once, at creation time."""

    private_secret: str
    endpoint_url: str = Field(..., description="URL senders POST envelopes to")
    monitor_url: str = Field(..., description="Owner-facing live event stream URL")


class InboxDetail(BaseModel):
    """Owner view of an inbox."""

    inbox: InboxPublic
    message_count: int
