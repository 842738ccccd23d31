"""Authorization checks placed in front of every broker operation."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from inbox_broker.core.errors import InvalidCredentialError, MissingCredentialError
from inbox_broker.models import Inbox

from .credentials import CredentialStore, Tier

logger = logging.getLogger(__name__)


class AccessGate:
    """Resolves an inbox from its id and a presented token.

    A missing token raises `MissingCredentialError`. An unknown inbox and a
    wrong token both raise the same `InvalidCredentialError`.
    """

    def __init__(self, credentials: CredentialStore) -> None:
        self.credentials = credentials

    @staticmethod
    def _require(token: str | None, what: str) -> str:
        if token is None or not token.strip():
            raise MissingCredentialError(f"Missing {what}")
        return token

    def authorize_sender(self, db: Session, inbox_id: str, token: str | None) -> Inbox:
        """Authorize ingestion; the owner's private secret is accepted as well."""
        token = self._require(
            token,
            "public key. Provide x-inbox-key header or ?key= query parameter.",
        )
        inbox = self.credentials.verify(db, inbox_id, token, Tier.SENDER)
        if inbox is None:
            inbox = self.credentials.verify(db, inbox_id, token, Tier.OWNER)
        if inbox is None:
            logger.warning("Rejected sender credential for inbox %s", inbox_id)
            raise InvalidCredentialError("Inbox not found or invalid public key")
        return inbox

    def authorize_owner(self, db: Session, inbox_id: str, token: str | None) -> Inbox:
        """Authorize subscribe, query and delete."""
        token = self._require(
            token,
            "private secret. Provide a Bearer token or ?secret= query parameter.",
        )
        inbox = self.credentials.verify(db, inbox_id, token, Tier.OWNER)
        if inbox is None:
            logger.warning("Rejected owner credential for inbox %s", inbox_id)
            raise InvalidCredentialError("Inbox not found or invalid secret")
        return inbox
