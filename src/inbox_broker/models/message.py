# src/inbox_broker/models/message.py
"""SQLAlchemy model for messages received by an inbox."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inbox_broker.db.session import Base
from inbox_broker.db.time import utcnow

from .inbox import new_id

if TYPE_CHECKING:
    from .inbox import Inbox


class Message(Base):
    """Immutable record of one envelope accepted by an inbox.

    `seq` is the insertion sequence; it breaks `received_at` ties so the log
    order is total within an inbox.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_inbox_order", "inbox_id", "received_at", "seq"),
    )

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=new_id)
    inbox_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("inboxes.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Allow-listed transport metadata only.
    headers: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    body: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    method: Mapped[str] = mapped_column(String(16), nullable=False, default="POST")
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    inbox: Mapped[Inbox] = relationship("Inbox", back_populates="messages")
