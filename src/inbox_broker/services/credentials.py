"""Credential issuance and verification for inboxes."""

from __future__ import annotations

import hmac
import secrets
from enum import Enum

from sqlalchemy.orm import Session

from inbox_broker.core.errors import ConflictError
from inbox_broker.models import Inbox

# 32 random bytes per token, well above the 122 bits of a random UUID.
TOKEN_BYTES = 32
PUBLIC_KEY_PREFIX = "pk_"
PRIVATE_SECRET_PREFIX = "sk_"

# Compared against when no inbox matches, so a miss costs the same as a hit.
_DUMMY_TOKEN = PRIVATE_SECRET_PREFIX + "0" * 43


class Tier(str, Enum):
    """Which credential of an inbox a token is checked against."""

    SENDER = "sender"
    OWNER = "owner"


def tokens_match(expected: str, presented: str) -> bool:
    """Compare two tokens in constant time."""
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))


class CredentialStore:
    """Issues and verifies the public/private token pair of each inbox."""

    def __init__(self, token_bytes: int = TOKEN_BYTES) -> None:
        self.token_bytes = token_bytes

    def issue(self) -> tuple[str, str]:
        """Return a fresh `(public_key, private_secret)` pair."""
        public_key = PUBLIC_KEY_PREFIX + secrets.token_urlsafe(self.token_bytes)
        private_secret = PRIVATE_SECRET_PREFIX + secrets.token_urlsafe(self.token_bytes)
        if public_key == private_secret:  # pragma: no cover - prefixes differ
            raise ConflictError("Generated public key equals private secret")
        return public_key, private_secret

    def verify(
        self,
        db: Session,
        inbox_id: str,
        presented_token: str,
        tier: Tier,
    ) -> Inbox | None:
        """Return the inbox if `presented_token` is its credential for `tier`.

        Args:
            db: Database session
            inbox_id: Inbox the caller is addressing
            presented_token: Token supplied by the caller
            tier: Which credential to compare against

        Returns:
            The matching inbox, or None when the inbox does not exist or the
            token does not match. Both cases are indistinguishable to callers.
        """
        inbox = db.get(Inbox, inbox_id)
        if inbox is None:
            tokens_match(_DUMMY_TOKEN, presented_token)
            return None

        expected = inbox.public_key if tier is Tier.SENDER else inbox.private_secret
        if not tokens_match(expected, presented_token):
            return None
        return inbox


__all__ = ["CredentialStore", "Tier", "tokens_match"]
