# src/inbox_broker/api/v1/endpoints/ingest.py
"""Public ingestion endpoint used by external senders."""

from __future__ import annotations

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool

from inbox_broker.schemas import IngestAck

from ..dependencies import BrokerDep, InboxKeyDep

router = APIRouter(prefix="/inbox", tags=["ingest"])


@router.post("/{inbox_id}", response_model=IngestAck)
async def ingest_message(
    inbox_id: str,
    request: Request,
    broker: BrokerDep,
    key: InboxKeyDep,
) -> IngestAck:
    """Accept a JSON envelope for an inbox.

    Responds 401 without a key, 404 for an unknown inbox or wrong key, 400 for
    a body that is not JSON and 422 with per-field errors for an invalid
    envelope.
    """
    raw_body = await request.body()
    await run_in_threadpool(
        broker.ingest_raw,
        inbox_id,
        key,
        raw_body,
        request.headers,
        request.method,
    )
    return IngestAck()
