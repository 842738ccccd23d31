"""Filtered retrieval over an inbox's message log."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from inbox_broker.models import Message

from .message_log import MessageLog


@dataclass(frozen=True)
class MessageFilters:
    """Case-sensitive substring filters on envelope fields, combined with AND."""

    topic: str | None = None
    source: str | None = None
    ref: str | None = None

    def active(self) -> dict[str, str]:
        """Return the non-empty filters keyed by envelope field."""
        return {
            field: value
            for field, value in (("topic", self.topic), ("source", self.source), ("ref", self.ref))
            if value
        }

    def matches(self, message: Message) -> bool:
        body = message.body if isinstance(message.body, dict) else {}
        for field, needle in self.active().items():
            value = body.get(field)
            if not isinstance(value, str) or needle not in value:
                return False
        return True


class QueryEngine:
    """Bounded, filtered history lookups delegating to the message log."""

    def __init__(self, log: MessageLog) -> None:
        self.log = log

    def query(
        self,
        db: Session,
        inbox_id: str,
        limit: int,
        filters: MessageFilters | None = None,
    ) -> list[Message]:
        """Return up to `limit` matching messages, newest first."""
        if filters is None or not filters.active():
            return self.log.list(db, inbox_id, limit)
        return self.log.list(db, inbox_id, limit, predicate=filters.matches)
