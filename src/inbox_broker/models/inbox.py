# src/inbox_broker/models/inbox.py
"""SQLAlchemy model for credential-gated inboxes."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inbox_broker.db.session import Base
from inbox_broker.db.time import utcnow

if TYPE_CHECKING:
    from .message import Message


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return str(uuid.uuid4())


class Inbox(Base):
    """A namespace with its own credentials and message log.

    `public_key` is handed to senders and only grants ingestion.
    `private_secret` is held by the owner and grants everything.
    """

    __tablename__ = "inboxes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    public_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    private_secret: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    messages: Mapped[list[Message]] = relationship(
        "Message",
        back_populates="inbox",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
