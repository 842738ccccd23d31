# src/inbox_broker/schemas/message.py
"""Message-related Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageRecord(BaseModel):
    """Stored message as returned by queries and live subscriptions."""

    id: str
    inbox_id: str
    headers: dict[str, str]
    body: dict[str, Any]
    method: str
    received_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SendMessageRequest(BaseModel):
    """Structured envelope submitted through the tool-facing send endpoint.

    Field contents are checked by the envelope validator so that every
    failing field is reported together.
    """

    source: str = Field(..., description="Sender identity: service name, agent id or path")
    topic: str = Field(..., description="Machine-parseable event type, e.g. 'pr.merged'")
    ref: str | None = Field(None, description="Optional correlation or thread identifier")
    payload: Any = Field(None, description="Arbitrary JSON payload, opaque to the broker")


class IngestAck(BaseModel):
    """Acknowledgement returned to senders."""

    ok: bool = True


class SendMessageResponse(IngestAck):
    """Acknowledgement for tool-facing sends, echoing the stored message."""

    message: MessageRecord
