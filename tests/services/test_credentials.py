"""Tests for credential issuance and verification."""

from sqlalchemy.orm import Session

from inbox_broker.models import Inbox
from inbox_broker.services.credentials import CredentialStore, Tier, tokens_match


def _persist(db: Session, store: CredentialStore) -> Inbox:
    public_key, private_secret = store.issue()
    inbox = Inbox(name="creds", public_key=public_key, private_secret=private_secret)
    db.add(inbox)
    db.commit()
    return inbox


def test_issue_returns_independent_high_entropy_tokens() -> None:
    """The two tokens differ from each other and from every other issue."""
    store = CredentialStore()
    public_key, private_secret = store.issue()
    assert public_key != private_secret
    assert public_key.startswith("pk_")
    assert private_secret.startswith("sk_")
    # 32 bytes of urlsafe base64 is 43 characters.
    assert len(public_key) == len("pk_") + 43

    issued = {token for _ in range(50) for token in store.issue()}
    assert len(issued) == 100


def test_tokens_match() -> None:
    assert tokens_match("sk_abc", "sk_abc")
    assert not tokens_match("sk_abc", "sk_abd")
    assert not tokens_match("sk_abc", "sk_ab")


def test_verify_by_tier(db_session: Session) -> None:
    """Each tier only accepts its own credential."""
    store = CredentialStore()
    inbox = _persist(db_session, store)

    assert store.verify(db_session, inbox.id, inbox.public_key, Tier.SENDER) is inbox
    assert store.verify(db_session, inbox.id, inbox.private_secret, Tier.OWNER) is inbox
    assert store.verify(db_session, inbox.id, inbox.public_key, Tier.OWNER) is None
    assert store.verify(db_session, inbox.id, inbox.private_secret, Tier.SENDER) is None


def test_verify_unknown_inbox_and_wrong_token(db_session: Session) -> None:
    """Unknown inboxes and wrong tokens both come back as None."""
    store = CredentialStore()
    inbox = _persist(db_session, store)

    assert store.verify(db_session, "missing", inbox.public_key, Tier.SENDER) is None
    assert store.verify(db_session, inbox.id, "pk_wrong", Tier.SENDER) is None
