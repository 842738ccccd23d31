"""Creation and cascading deletion of inboxes."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inbox_broker.core.errors import ConflictError, InboxNotFoundError
from inbox_broker.db.time import utcnow
from inbox_broker.models import Inbox

from .credentials import CredentialStore
from .inbox_locks import InboxLocks
from .message_log import MessageLog

logger = logging.getLogger(__name__)


class InboxLifecycle:
    """Creates inboxes with fresh credentials and deletes them with their messages."""

    def __init__(self, credentials: CredentialStore, log: MessageLog, locks: InboxLocks) -> None:
        self.credentials = credentials
        self.log = log
        self.locks = locks

    def create(self, db: Session, name: str | None = None) -> Inbox:
        """Persist a new inbox.

        The returned record is the only place the private secret is ever
        handed out.

        Raises:
            ConflictError: If the generated id or credentials collide with an
                existing inbox. This is surfaced, never retried.
        """
        public_key, private_secret = self.credentials.issue()
        inbox = Inbox(
            name=name,
            public_key=public_key,
            private_secret=private_secret,
            created_at=utcnow(),
        )
        db.add(inbox)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.error("Credential collision while creating inbox: %s", exc)
            raise ConflictError() from exc

        logger.info("Created inbox %s", inbox.id)
        return inbox

    def list_public(self, db: Session, limit: int) -> Sequence[Inbox]:
        """Return the newest inboxes first."""
        return db.query(Inbox).order_by(Inbox.created_at.desc()).limit(limit).all()

    def delete(self, db: Session, inbox_id: str) -> int:
        """Delete the inbox and every message it owns in one transaction.

        Returns:
            Number of messages removed

        Raises:
            InboxNotFoundError: If the inbox is already gone
        """
        with self.locks.hold(inbox_id):
            removed = self.log.delete_all(db, inbox_id)
            deleted = (
                db.query(Inbox)
                .filter(Inbox.id == inbox_id)
                .delete(synchronize_session=False)
            )
            if not deleted:
                db.rollback()
                raise InboxNotFoundError()
            db.commit()

        self.locks.discard(inbox_id)
        logger.info("Deleted inbox %s with %d messages", inbox_id, removed)
        return removed
