# src/inbox_broker/api/v1/endpoints/inboxes.py
"""Inbox management endpoints for owners and tooling."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from inbox_broker.schemas import InboxCreate, InboxCreated, InboxDetail, InboxPublic

from ..dependencies import BrokerDep, OwnerSecretDep

router = APIRouter(prefix="/inboxes", tags=["inboxes"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=InboxCreated)
def create_inbox(broker: BrokerDep, payload: InboxCreate | None = None) -> InboxCreated:
    """Create an inbox. The private secret in the response is never shown again."""
    return broker.create_inbox(payload.name if payload else None)


@router.get("", response_model=list[InboxPublic])
def list_inboxes(
    broker: BrokerDep,
    limit: int | None = Query(None, ge=1),
) -> list[InboxPublic]:
    """List public inbox metadata, newest first."""
    return broker.list_inboxes(limit)


@router.get("/{inbox_id}", response_model=InboxDetail)
def get_inbox(inbox_id: str, broker: BrokerDep, secret: OwnerSecretDep) -> InboxDetail:
    """Return inbox metadata and its message count to the owner."""
    return broker.get_inbox(inbox_id, secret)


@router.delete("/{inbox_id}")
def delete_inbox(inbox_id: str, broker: BrokerDep, secret: OwnerSecretDep) -> dict[str, object]:
    """Delete an inbox together with all of its messages."""
    removed = broker.delete_inbox(inbox_id, secret)
    return {"status": "deleted", "messages_removed": removed}
