"""Append-only, per-inbox ordered message storage."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy.orm import Session

from inbox_broker.core.errors import InboxNotFoundError
from inbox_broker.db.time import utcnow
from inbox_broker.models import Inbox, Message

from .inbox_locks import InboxLocks

logger = logging.getLogger(__name__)

DEFAULT_MAX_LIMIT = 500
SCAN_BATCH_SIZE = 200

MessagePredicate = Callable[[Message], bool]


class MessageLog:
    """Stores messages per inbox and reads them back newest first.

    Args:
        locks: Shared per-inbox lock registry
        max_limit: Hard ceiling applied to every `list` call
    """

    def __init__(self, locks: InboxLocks, max_limit: int = DEFAULT_MAX_LIMIT) -> None:
        self.locks = locks
        self.max_limit = max_limit

    def clamp(self, limit: int) -> int:
        """Bound a requested limit to `[1, max_limit]`."""
        return max(1, min(int(limit), self.max_limit))

    def append(
        self,
        db: Session,
        inbox_id: str,
        headers: Mapping[str, str],
        body: dict[str, Any],
        method: str = "POST",
        notify: Callable[[Message], None] | None = None,
    ) -> Message:
        """Assign id, sequence and `received_at`, then commit the message.

        The existence check, insert and commit run under the inbox lock, so a
        concurrent delete either happens entirely before (and this raises
        `InboxNotFoundError`) or entirely after. `notify` runs after the
        commit, outside the append lock, in the same order as the commits.
        """
        publish_lock = self.locks.publish_lock(inbox_id)
        with self.locks.hold(inbox_id):
            exists = db.query(Inbox.id).filter(Inbox.id == inbox_id).first()
            if exists is None:
                raise InboxNotFoundError()

            message = Message(
                inbox_id=inbox_id,
                headers=dict(headers),
                body=body,
                method=method,
                received_at=utcnow(),
            )
            db.add(message)
            db.commit()
            publish_lock.acquire()

        logger.debug("Appended message %s to inbox %s", message.id, inbox_id)
        try:
            if notify is not None:
                notify(message)
        finally:
            publish_lock.release()
        return message

    def list(
        self,
        db: Session,
        inbox_id: str,
        limit: int,
        predicate: MessagePredicate | None = None,
    ) -> list[Message]:
        """Return up to `limit` messages of the inbox, newest first.

        When `predicate` is given the log is scanned newest first until
        `limit` matching messages are found.
        """
        limit = self.clamp(limit)
        query = (
            db.query(Message)
            .filter(Message.inbox_id == inbox_id)
            .order_by(Message.received_at.desc(), Message.seq.desc())
        )
        if predicate is None:
            return query.limit(limit).all()

        matched: list[Message] = []
        for message in query.yield_per(SCAN_BATCH_SIZE):
            if predicate(message):
                matched.append(message)
                if len(matched) >= limit:
                    break
        return matched

    def list_after(self, db: Session, inbox_id: str, message_id: str) -> list[Message]:
        """Return messages appended after `message_id`, oldest first.

        An id that does not belong to the inbox yields an empty list. At most
        `max_limit` messages are returned; a caller further behind than that
        has a gap before the live tail and must re-query to fill it.
        """
        anchor = (
            db.query(Message.seq)
            .filter(Message.inbox_id == inbox_id, Message.id == message_id)
            .scalar()
        )
        if anchor is None:
            logger.debug("Resume anchor %s not found in inbox %s", message_id, inbox_id)
            return []
        backlog = (
            db.query(Message)
            .filter(Message.inbox_id == inbox_id, Message.seq > anchor)
            .order_by(Message.seq.asc())
            .limit(self.max_limit + 1)
            .all()
        )
        if len(backlog) > self.max_limit:
            logger.debug(
                "Resume backlog for inbox %s truncated to %d messages after %s",
                inbox_id,
                self.max_limit,
                message_id,
            )
            del backlog[self.max_limit:]
        return backlog

    def count(self, db: Session, inbox_id: str) -> int:
        """Return how many messages the inbox holds."""
        return db.query(Message).filter(Message.inbox_id == inbox_id).count() or 0

    def delete_all(self, db: Session, inbox_id: str) -> int:
        """Delete every message of the inbox; the caller commits.

        Deleting from an empty inbox is a no-op.
        """
        return (
            db.query(Message)
            .filter(Message.inbox_id == inbox_id)
            .delete(synchronize_session=False)
        )
