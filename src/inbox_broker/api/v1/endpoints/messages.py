# src/inbox_broker/api/v1/endpoints/messages.py
"""Message retrieval, tool-facing send and live stream endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import APIRouter, Query, Request
from sse_starlette.sse import EventSourceResponse
from starlette.background import BackgroundTask

from inbox_broker.schemas import MessageRecord, SendMessageRequest, SendMessageResponse
from inbox_broker.services.fanout import Subscription

from ..dependencies import BrokerDep, InboxKeyDep, OwnerSecretDep

router = APIRouter(prefix="/inboxes", tags=["messages"])


@router.get("/{inbox_id}/messages", response_model=list[MessageRecord])
def get_messages(
    inbox_id: str,
    broker: BrokerDep,
    secret: OwnerSecretDep,
    limit: int | None = Query(None, ge=1),
    topic: str | None = Query(None, description="Substring of the envelope topic"),
    source: str | None = Query(None, description="Substring of the envelope source"),
    ref: str | None = Query(None, description="Substring of the envelope ref"),
) -> list[MessageRecord]:
    """Return the newest messages of an inbox, optionally filtered."""
    return broker.get_messages(
        inbox_id,
        secret,
        limit=limit or broker.config.view_default_limit,
        topic=topic,
        source=source,
        ref=ref,
    )


@router.post("/{inbox_id}/messages", response_model=SendMessageResponse)
def send_message(
    inbox_id: str,
    message: SendMessageRequest,
    broker: BrokerDep,
    key: InboxKeyDep,
) -> SendMessageResponse:
    """Send a structured envelope to an inbox through the ingestion path."""
    # An explicit "payload": null is kept; an absent payload stays absent.
    extra = {"payload": message.payload} if "payload" in message.model_fields_set else {}
    stored = broker.send_message(
        inbox_id,
        key,
        source=message.source,
        topic=message.topic,
        ref=message.ref,
        **extra,
    )
    return SendMessageResponse(message=stored)


async def _message_events(subscription: Subscription) -> AsyncIterator[dict[str, str]]:
    async with subscription:
        async for message in subscription:
            yield {
                "event": "message",
                "id": message.id,
                "data": message.model_dump_json(),
            }


@router.get("/{inbox_id}/stream")
async def stream_messages(
    inbox_id: str,
    request: Request,
    broker: BrokerDep,
    secret: OwnerSecretDep,
    after: str | None = Query(None, description="Replay messages after this message id first"),
) -> EventSourceResponse:
    """Server-Sent Events stream of messages appended from now on.

    Pass `after` (or a `Last-Event-ID` header on reconnect) to first replay
    what arrived after that message. Heartbeat pings keep idle connections
    alive; a dead connection ends the stream and releases the subscription.
    """
    resume_after = after or request.headers.get("last-event-id")
    subscription = await broker.subscribe(inbox_id, secret, after=resume_after)
    return EventSourceResponse(
        _message_events(subscription),
        ping=broker.config.subscribe_heartbeat_seconds,
        send_timeout=broker.config.subscribe_send_timeout_seconds,
        background=BackgroundTask(subscription.close),
    )
